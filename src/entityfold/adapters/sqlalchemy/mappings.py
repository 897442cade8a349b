"""SQLAlchemy mapping metadata for the entityfold domain model."""

from __future__ import annotations

import logging
from datetime import UTC, datetime
from functools import cache
from typing import TYPE_CHECKING

from sqlalchemy import (
    Boolean,
    Column,
    Date,
    DateTime,
    Dialect,
    ForeignKey,
    Index,
    Integer,
    String,
    Table,
    Text,
    TypeDecorator,
    false,
    orm,
)
from sqlalchemy.orm import configure_mappers, relationship

from entityfold.domain.model import (
    Address,
    Entity,
    EntityProperty,
    MergeAuditRecord,
    Person,
)

if TYPE_CHECKING:
    from sqlalchemy.engine import Engine

log = logging.getLogger(__name__)


class UTCDateTime(TypeDecorator[datetime]):
    impl = DateTime(timezone=True)
    cache_ok = True

    def process_bind_param(self, value: datetime | None, dialect: Dialect) -> datetime | None:
        _ = dialect
        if value is None:
            return None
        if value.tzinfo is None:
            value = value.replace(tzinfo=UTC)
        return value.astimezone(UTC)

    def process_result_value(self, value: datetime | None, dialect: Dialect) -> datetime | None:
        _ = dialect
        if value is None:
            return None
        return value if value.tzinfo else value.replace(tzinfo=UTC)


mapper_registry = orm.registry()
mapper_registry.metadata.naming_convention = {
    "ix": "ix_%(column_0_label)s",
    "uq": "uq_%(table_name)s_%(column_0_label)s",
    "ck": "ck_%(table_name)s_%(constraint_name)s",
    "fk": "fk_%(table_name)s_%(column_0_label)s_%(referred_table_name)s",
    "pk": "pk_%(table_name)s",
}

# Directory tables --------------------------------------------------------------

entity_table = Table(
    "entity",
    mapper_registry.metadata,
    Column("entity_id", Integer, primary_key=True, autoincrement=True),
    Column("name", String, nullable=True),
    Column("trade_name", String, nullable=True),
    Column("type", Integer, key="kind", nullable=False, default=2),
    Column("is_deleted", Boolean, nullable=False, default=False, server_default=false()),
    Column("deleted_at", UTCDateTime(), nullable=True),
    Column("created_at", UTCDateTime(), nullable=True),
    Column("updated_at", UTCDateTime(), nullable=True),
)
Index("ix_entity_type_is_deleted", entity_table.c.kind, entity_table.c.is_deleted)

people_table = Table(
    "people",
    mapper_registry.metadata,
    Column("people_id", Integer, primary_key=True, autoincrement=True),
    Column("entity_id", Integer, ForeignKey("entity.entity_id"), nullable=True, index=True),
    Column("first_name", String, nullable=True),
    Column("middle_name", String, nullable=True),
    Column("last_name", String, nullable=True),
    Column("email", String, nullable=True),
    Column("phone", String, nullable=True),
    Column("date_of_birth", Date, nullable=True),
    Column("deleted_at", UTCDateTime(), nullable=True),
    Column("created_at", UTCDateTime(), nullable=True),
    Column("updated_at", UTCDateTime(), nullable=True),
)

address_table = Table(
    "address",
    mapper_registry.metadata,
    Column("address_id", Integer, primary_key=True, autoincrement=True),
    Column("entity_id", Integer, ForeignKey("entity.entity_id"), nullable=True, index=True),
    Column("address_line1", String, nullable=True),
    Column("address_line2", String, nullable=True),
    Column("city", String, nullable=True),
    Column("state", String, nullable=True),
    Column("postal_code", String, nullable=True),
    Column("country", String, nullable=True),
    Column("is_primary", Boolean, nullable=False, default=False, server_default=false()),
    Column("deleted_at", UTCDateTime(), nullable=True),
    Column("created_at", UTCDateTime(), nullable=True),
    Column("updated_at", UTCDateTime(), nullable=True),
)

entity_property_table = Table(
    "entity_property",
    mapper_registry.metadata,
    Column("entity_property_id", Integer, primary_key=True, autoincrement=True),
    Column("entity_id", Integer, ForeignKey("entity.entity_id"), nullable=True, index=True),
    Column("property_id", Integer, nullable=False),
    Column("property_value", Text, nullable=True),
    Column("is_primary", Boolean, nullable=False, default=False, server_default=false()),
    Column("created_at", UTCDateTime(), nullable=True),
    Column("updated_at", UTCDateTime(), nullable=True),
)

# Audit -----------------------------------------------------------------------

merge_audit_table = Table(
    "merge_audit",
    mapper_registry.metadata,
    Column("audit_id", Integer, primary_key=True, autoincrement=True),
    Column("action", String(64), nullable=False),
    Column("entity_type", String(64), nullable=False),
    Column("entity_id", Integer, nullable=False, index=True),
    Column("old_value", Text, nullable=True),
    Column("new_value", Text, nullable=True),
    Column("note", Text, nullable=True),
    Column("created_at", UTCDateTime(), nullable=False),
)


@cache
def start_mappers() -> orm.registry:
    """Configure SQLAlchemy mappers for the domain model."""

    log.info("Starting SQLAlchemy mappers")

    mapper_registry.map_imperatively(Person, people_table)
    mapper_registry.map_imperatively(Address, address_table)
    mapper_registry.map_imperatively(EntityProperty, entity_property_table)

    mapper_registry.map_imperatively(
        Entity,
        entity_table,
        properties={
            "people": relationship(
                Person,
                order_by=people_table.c.people_id,
                lazy="selectin",
            ),
            "addresses": relationship(
                Address,
                order_by=address_table.c.address_id,
                lazy="selectin",
            ),
            "properties": relationship(
                EntityProperty,
                order_by=entity_property_table.c.entity_property_id,
                cascade="all, delete-orphan",
                lazy="selectin",
            ),
        },
    )

    mapper_registry.map_imperatively(MergeAuditRecord, merge_audit_table)

    configure_mappers()
    return mapper_registry


def create_all_tables(engine: Engine) -> None:
    """Create tables for local development and tests."""

    mapper_registry.metadata.create_all(engine)
