"""Public domain model surface."""

from __future__ import annotations

from entityfold.domain.model.audit import MergeAuditRecord
from entityfold.domain.model.directory import (
    Address,
    Entity,
    EntityProperty,
    Person,
    PersonCandidate,
)
from entityfold.domain.model.enums import AuditAction, EntityKind, MergeStatus

__all__ = [
    "Address",
    "AuditAction",
    "Entity",
    "EntityKind",
    "EntityProperty",
    "MergeAuditRecord",
    "MergeStatus",
    "Person",
    "PersonCandidate",
]
