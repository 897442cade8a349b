"""SQLAlchemy adapter package for entityfold."""

from __future__ import annotations

from .mappings import create_all_tables, mapper_registry, start_mappers
from .repositories import (
    SqlAlchemyAuditRepository,
    SqlAlchemyEntityRepository,
    SqlAlchemyPersonRepository,
    SqlAlchemyPropertyRepository,
)
from .unit_of_work import Database, SqlAlchemyMergeUnitOfWork, StartupError

__all__ = [
    "Database",
    "SqlAlchemyAuditRepository",
    "SqlAlchemyEntityRepository",
    "SqlAlchemyMergeUnitOfWork",
    "SqlAlchemyPersonRepository",
    "SqlAlchemyPropertyRepository",
    "StartupError",
    "create_all_tables",
    "mapper_registry",
    "start_mappers",
]
