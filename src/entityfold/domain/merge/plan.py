"""Transient merge proposal types.

A proposal is produced by the planner or authored by a client, validated, and then
consumed once by the executor. Sub-record payloads remember which fields the author
actually supplied so that an in-place update touches only those columns.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import TYPE_CHECKING, Final

from entityfold.domain.model import MergeStatus

if TYPE_CHECKING:
    from collections.abc import Iterable, Sequence
    from datetime import date

    from entityfold.domain.model import Address, Entity, EntityProperty, Person

CLIENT_PLAN_NOTE: Final[str] = "Applied client-submitted merge plan"
ORACLE_PLAN_NOTE: Final[str] = "Applied oracle-proposed merge plan"

PERSON_FIELDS: Final[tuple[str, ...]] = (
    "first_name",
    "middle_name",
    "last_name",
    "email",
    "phone",
    "date_of_birth",
)
ADDRESS_FIELDS: Final[tuple[str, ...]] = (
    "address_line1",
    "address_line2",
    "city",
    "state",
    "postal_code",
    "country",
    "is_primary",
)
PROPERTY_FIELDS: Final[tuple[str, ...]] = ("property_id", "property_value", "is_primary")


def _supplied(payload: object, names: Sequence[str], provided: frozenset[str] | None) -> dict[str, object]:
    return {
        name: getattr(payload, name)
        for name in names
        if provided is None or name in provided
    }


@dataclass(slots=True, kw_only=True)
class PersonPayload:
    people_id: int | None = None
    first_name: str | None = None
    middle_name: str | None = None
    last_name: str | None = None
    email: str | None = None
    phone: str | None = None
    # left raw; the executor sanitises it
    date_of_birth: date | str | None = None
    provided: frozenset[str] | None = None

    def changes(self) -> dict[str, object]:
        return _supplied(self, PERSON_FIELDS, self.provided)

    @classmethod
    def from_person(cls, person: Person) -> PersonPayload:
        return cls(
            people_id=person.people_id,
            first_name=person.first_name,
            middle_name=person.middle_name,
            last_name=person.last_name,
            email=person.email,
            phone=person.phone,
            date_of_birth=person.date_of_birth,
        )


@dataclass(slots=True, kw_only=True)
class AddressPayload:
    address_id: int | None = None
    address_line1: str | None = None
    address_line2: str | None = None
    city: str | None = None
    state: str | None = None
    postal_code: str | None = None
    country: str | None = None
    is_primary: bool = False
    provided: frozenset[str] | None = None

    def changes(self) -> dict[str, object]:
        return _supplied(self, ADDRESS_FIELDS, self.provided)

    @classmethod
    def from_address(cls, address: Address, *, is_primary: bool | None = None) -> AddressPayload:
        return cls(
            address_id=address.address_id,
            address_line1=address.address_line1,
            address_line2=address.address_line2,
            city=address.city,
            state=address.state,
            postal_code=address.postal_code,
            country=address.country,
            is_primary=address.is_primary if is_primary is None else is_primary,
        )


@dataclass(slots=True, kw_only=True)
class PropertyPayload:
    entity_property_id: int | None = None
    property_id: int
    property_value: str | None = None
    is_primary: bool = False

    def key(self) -> tuple[int, str] | None:
        """Identity of the property for deduplication, ``None`` for empty values."""

        if self.property_value is None:
            return None
        normalized = self.property_value.strip().lower()
        if not normalized:
            return None
        return (self.property_id, normalized)

    @classmethod
    def from_property(cls, prop: EntityProperty) -> PropertyPayload:
        return cls(
            entity_property_id=prop.entity_property_id,
            property_id=prop.property_id,
            property_value=prop.property_value,
            is_primary=prop.is_primary,
        )


def collapse_properties(payloads: Iterable[PropertyPayload]) -> list[PropertyPayload]:
    """Unique by ``(property_id, normalized value)``; first seen wins, primary is OR-ed.

    Payloads with blank values are dropped.
    """

    merged: dict[tuple[int, str], PropertyPayload] = {}
    for payload in payloads:
        key = payload.key()
        if key is None:
            continue
        existing = merged.get(key)
        if existing is None:
            merged[key] = payload
        elif payload.is_primary:
            existing.is_primary = True
    return list(merged.values())


@dataclass(slots=True, kw_only=True)
class MergedFields:
    name: str | None = None
    trade_name: str | None = None
    provided: frozenset[str] | None = None

    @property
    def trade_name_supplied(self) -> bool:
        return self.provided is None or "trade_name" in self.provided


@dataclass(slots=True, kw_only=True)
class DeletionPlan:
    """Ids to retire, per table; tables with nothing to retire are left out."""

    retained_entity_id: int
    retained_people_id: int | None = None
    deleted_people_ids: list[int] = field(default_factory=list[int])
    deleted_entity_ids: list[int] = field(default_factory=list[int])
    tables_to_cleanup: dict[str, list[int]] = field(default_factory=dict[str, list[int]])

    @classmethod
    def build(
        cls,
        *,
        keep: Entity,
        removed: Sequence[Entity],
        retained_people_id: int | None = None,
        deleted_people_ids: Iterable[int] = (),
    ) -> DeletionPlan:
        if keep.entity_id is None:
            raise ValueError("Cannot plan a merge into an unsaved entity")
        entity_ids = [e.entity_id for e in removed if e.entity_id is not None]
        tables = {
            "people": [
                p.people_id
                for e in removed
                for p in e.active_people
                if p.people_id is not None
            ],
            "entity": entity_ids,
            "entity_property": [
                p.entity_property_id
                for e in removed
                for p in e.properties
                if p.entity_property_id is not None
            ],
            "address": [
                a.address_id
                for e in removed
                for a in e.active_addresses
                if a.address_id is not None
            ],
        }
        return cls(
            retained_entity_id=keep.entity_id,
            retained_people_id=retained_people_id,
            deleted_people_ids=list(deleted_people_ids),
            deleted_entity_ids=entity_ids,
            tables_to_cleanup={table: ids for table, ids in tables.items() if ids},
        )


@dataclass(kw_only=True)
class MergeProposal:
    """Everything needed to collapse ``remove_ids`` into ``keep_id``.

    List fields are ``None`` when a client omitted them; validation rejects that
    before the executor runs.
    """

    keep_id: int | None
    remove_ids: list[int] | None
    merged_fields: MergedFields = field(default_factory=MergedFields)
    merged_people: list[PersonPayload] | None = field(default_factory=list[PersonPayload])
    merged_addresses: list[AddressPayload] | None = field(default_factory=list[AddressPayload])
    merged_properties: list[PropertyPayload] | None = field(
        default_factory=list[PropertyPayload]
    )
    deletion_plan: DeletionPlan | None = None
    note: str = CLIENT_PLAN_NOTE
    status: MergeStatus = MergeStatus.PROPOSED

    def entity_ids(self) -> list[int]:
        """``keep_id`` followed by the distinct remove ids, in request order."""

        ordered: list[int] = []
        for entity_id in [self.keep_id, *(self.remove_ids or [])]:
            if entity_id is not None and entity_id not in ordered:
                ordered.append(entity_id)
        return ordered

    def distinct_remove_ids(self) -> list[int]:
        return [entity_id for entity_id in self.entity_ids() if entity_id != self.keep_id]


@dataclass(slots=True, frozen=True)
class MergeResult:
    merged_entity_id: int
    deleted_entity_ids: list[int]
    applied: bool = True
    audit_id: int | None = None
