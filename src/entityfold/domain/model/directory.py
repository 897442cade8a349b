"""Directory records: entities and the sub-records they own.

Plain dataclasses; the SQLAlchemy adapter maps them imperatively, so nothing in
here knows about sessions or tables. Identifiers are assigned by the store and
stay ``None`` until the first flush.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import TYPE_CHECKING

from .enums import EntityKind

if TYPE_CHECKING:
    from datetime import date, datetime


@dataclass(eq=False, kw_only=True)
class Person:
    entity_id: int | None = None
    first_name: str | None = None
    middle_name: str | None = None
    last_name: str | None = None
    email: str | None = None
    phone: str | None = None
    date_of_birth: date | None = None

    deleted_at: datetime | None = None
    created_at: datetime | None = None
    updated_at: datetime | None = None

    people_id: int | None = None

    @property
    def is_deleted(self) -> bool:
        return self.deleted_at is not None


@dataclass(eq=False, kw_only=True)
class Address:
    entity_id: int | None = None
    address_line1: str | None = None
    address_line2: str | None = None
    city: str | None = None
    state: str | None = None
    postal_code: str | None = None
    country: str | None = None
    is_primary: bool = False

    deleted_at: datetime | None = None
    created_at: datetime | None = None
    updated_at: datetime | None = None

    address_id: int | None = None

    @property
    def is_deleted(self) -> bool:
        return self.deleted_at is not None


@dataclass(eq=False, kw_only=True)
class EntityProperty:
    """A typed value attached to an entity (phone, website, tax number...)."""

    entity_id: int | None = None
    property_id: int
    property_value: str | None = None
    is_primary: bool = False

    created_at: datetime | None = None
    updated_at: datetime | None = None

    entity_property_id: int | None = None


@dataclass(eq=False, kw_only=True)
class Entity:
    """Canonical organisation or individual record.

    ``kind`` is persisted in the ``type`` column. Soft deletion sets both
    ``is_deleted`` and ``deleted_at``; only the merge executor does that.
    """

    name: str | None = None
    trade_name: str | None = None
    kind: int = EntityKind.ORGANIZATION

    is_deleted: bool = False
    deleted_at: datetime | None = None
    created_at: datetime | None = None
    updated_at: datetime | None = None

    entity_id: int | None = None

    people: list[Person] = field(default_factory=list["Person"], repr=False)
    addresses: list[Address] = field(default_factory=list["Address"], repr=False)
    properties: list[EntityProperty] = field(default_factory=list["EntityProperty"], repr=False)

    @property
    def active_people(self) -> list[Person]:
        return [person for person in self.people if not person.is_deleted]

    @property
    def active_addresses(self) -> list[Address]:
        return [address for address in self.addresses if not address.is_deleted]

    def owns_person(self, people_id: int | None) -> bool:
        return people_id is not None and any(p.people_id == people_id for p in self.people)

    def find_address(self, address_id: int | None) -> Address | None:
        if address_id is None:
            return None
        return next((a for a in self.addresses if a.address_id == address_id), None)

    def find_person(self, people_id: int | None) -> Person | None:
        if people_id is None:
            return None
        return next((p for p in self.people if p.people_id == people_id), None)


@dataclass(eq=False, kw_only=True)
class PersonCandidate:
    """A person read together with the entity that owns it, for duplicate analysis."""

    person: Person
    entity: Entity

    @property
    def people_id(self) -> int:
        if self.person.people_id is None:
            raise ValueError("Candidate person has not been persisted")
        return self.person.people_id
