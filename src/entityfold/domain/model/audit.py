"""Append-only audit records for applied merges."""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import UTC, datetime

from .enums import AuditAction


@dataclass(eq=False, kw_only=True)
class MergeAuditRecord:
    """One row per applied merge; never updated after insert."""

    entity_id: int
    old_value: str
    new_value: str
    note: str | None = None
    action: str = AuditAction.ENTITY_MERGE
    entity_type: str = "entity"
    created_at: datetime = field(default_factory=lambda: datetime.now(tz=UTC))

    audit_id: int | None = None
