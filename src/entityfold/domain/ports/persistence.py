"""Ports for persisting directory records and merge audits."""

from __future__ import annotations

from typing import TYPE_CHECKING, Protocol, runtime_checkable

from entityfold.domain.model import Entity, MergeAuditRecord, Person

if TYPE_CHECKING:
    from collections.abc import Collection


@runtime_checkable
class Repository[TEntity](Protocol):
    """Minimal repository contract for a persistent aggregate store."""

    def add(self, entity: TEntity) -> None: ...


@runtime_checkable
class EntityRepository(Repository[Entity], Protocol):
    """Persistence contract for entities and their owned sub-records."""

    def get(self, entity_id: int) -> Entity | None: ...

    def find_active(self, entity_ids: Collection[int], *, for_update: bool = False) -> list[Entity]:
        """Return non-deleted entities among ``entity_ids``, ordered by id.

        ``for_update`` asks the store to lock the rows for the rest of the transaction.
        """
        ...

    def list_active(self, *, kind: int | None = None) -> list[Entity]: ...

    def find_by_name(self, name: str) -> list[Entity]: ...


@runtime_checkable
class PersonRepository(Repository[Person], Protocol):
    """Persistence contract for people."""

    def find_by_name(self, first_name: str, last_name: str | None = None) -> list[Person]:
        """Case-insensitive match; a blank stored last name also matches ``last_name``."""
        ...

    def list_named(self) -> list[Person]: ...


@runtime_checkable
class PropertyRepository(Protocol):
    """Persistence contract for entity properties (hard-deleted, never soft-deleted)."""

    def delete_owned_by(self, entity: Entity) -> int: ...


@runtime_checkable
class AuditRepository(Repository[MergeAuditRecord], Protocol):
    """Append-only store of merge audit records."""

    def list_for_entity(self, entity_id: int) -> list[MergeAuditRecord]: ...
