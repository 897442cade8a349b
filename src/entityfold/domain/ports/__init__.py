"""Ports exposed by the domain to its adapters."""

from __future__ import annotations

from .oracle import MergeDecision, OracleRequest, ResolutionOracle
from .persistence import (
    AuditRepository,
    EntityRepository,
    PersonRepository,
    PropertyRepository,
    Repository,
)
from .unit_of_work import MergeRepositories, MergeUnitOfWork, RepositoryCollection, UnitOfWork

__all__ = [
    "AuditRepository",
    "EntityRepository",
    "MergeDecision",
    "MergeRepositories",
    "MergeUnitOfWork",
    "OracleRequest",
    "PersonRepository",
    "PropertyRepository",
    "Repository",
    "RepositoryCollection",
    "ResolutionOracle",
    "UnitOfWork",
]
