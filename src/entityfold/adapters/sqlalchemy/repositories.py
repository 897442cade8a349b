"""Repository implementations backed by SQLAlchemy sessions."""

from __future__ import annotations

from typing import TYPE_CHECKING

from sqlalchemy import func, or_, select

from entityfold.adapters.sqlalchemy.mappings import (
    entity_table,
    merge_audit_table,
    people_table,
)
from entityfold.domain.model import Entity, MergeAuditRecord, Person

if TYPE_CHECKING:
    from collections.abc import Collection

    from sqlalchemy import Select
    from sqlalchemy.orm import Session


def supports_row_locks(session: Session) -> bool:
    """SQLite has no ``SELECT ... FOR UPDATE``; everything else we target does."""

    bind = session.get_bind()
    return bind.dialect.name != "sqlite"


class SqlAlchemyEntityRepository:
    def __init__(self, session: Session) -> None:
        self.session = session

    def add(self, entity: Entity) -> None:
        self.session.add(entity)

    def get(self, entity_id: int) -> Entity | None:
        return self.session.get(Entity, entity_id)

    def find_active(self, entity_ids: Collection[int], *, for_update: bool = False) -> list[Entity]:
        ids = sorted(set(entity_ids))
        if not ids:
            return []
        stmt = (
            select(Entity)
            .where(entity_table.c.entity_id.in_(ids))
            .where(entity_table.c.is_deleted.is_(False))
            .order_by(entity_table.c.entity_id)
        )
        if for_update and supports_row_locks(self.session):
            # rows come back in id order, so overlapping merges lock in the same order
            stmt = stmt.with_for_update(of=entity_table)
        return list(self.session.execute(stmt).scalars().all())

    def list_active(self, *, kind: int | None = None) -> list[Entity]:
        stmt = self._active().order_by(entity_table.c.entity_id)
        if kind is not None:
            stmt = stmt.where(entity_table.c.kind == int(kind))
        return list(self.session.execute(stmt).scalars().all())

    def find_by_name(self, name: str) -> list[Entity]:
        normalized = name.strip().lower()
        stmt = (
            self._active()
            .where(func.lower(func.trim(entity_table.c.name)) == normalized)
            .order_by(entity_table.c.entity_id)
        )
        return list(self.session.execute(stmt).scalars().all())

    @staticmethod
    def _active() -> Select[tuple[Entity]]:
        return (
            select(Entity)
            .where(entity_table.c.is_deleted.is_(False))
            .where(entity_table.c.deleted_at.is_(None))
        )


class SqlAlchemyPersonRepository:
    def __init__(self, session: Session) -> None:
        self.session = session

    def add(self, entity: Person) -> None:
        self.session.add(entity)

    def find_by_name(self, first_name: str, last_name: str | None = None) -> list[Person]:
        first = func.lower(func.trim(people_table.c.first_name))
        stmt = (
            select(Person)
            .where(first == first_name.strip().lower())
            .where(people_table.c.deleted_at.is_(None))
            .order_by(people_table.c.people_id)
        )
        if last_name:
            last = func.lower(func.trim(func.coalesce(people_table.c.last_name, "")))
            stmt = stmt.where(or_(last == last_name.strip().lower(), last == ""))
        return list(self.session.execute(stmt).scalars().all())

    def list_named(self) -> list[Person]:
        stmt = (
            select(Person)
            .where(people_table.c.first_name.is_not(None))
            .where(people_table.c.deleted_at.is_(None))
            .order_by(people_table.c.people_id)
        )
        return list(self.session.execute(stmt).scalars().all())


class SqlAlchemyPropertyRepository:
    def __init__(self, session: Session) -> None:
        self.session = session

    def delete_owned_by(self, entity: Entity) -> int:
        """Hard-delete every property of ``entity`` and flush before returning.

        The flush keeps the DELETEs ahead of any INSERTs queued afterwards.
        """

        doomed = list(entity.properties)
        for prop in doomed:
            self.session.delete(prop)
        entity.properties.clear()
        self.session.flush()
        return len(doomed)


class SqlAlchemyAuditRepository:
    def __init__(self, session: Session) -> None:
        self.session = session

    def add(self, entity: MergeAuditRecord) -> None:
        self.session.add(entity)

    def list_for_entity(self, entity_id: int) -> list[MergeAuditRecord]:
        stmt = (
            select(MergeAuditRecord)
            .where(merge_audit_table.c.entity_id == entity_id)
            .order_by(merge_audit_table.c.audit_id)
        )
        return list(self.session.execute(stmt).scalars().all())
