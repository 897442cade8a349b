"""Domain enums (pure, dependency-light)."""

from __future__ import annotations

from enum import IntEnum, StrEnum


class EntityKind(IntEnum):
    """Recognised values of the ``entity.type`` discriminator."""

    INDIVIDUAL = 1
    ORGANIZATION = 2


class MergeStatus(StrEnum):
    PROPOSED = "proposed"
    VALIDATED = "validated"
    APPLIED = "applied"
    REJECTED = "rejected"
    FAILED = "failed"

    @property
    def is_terminal(self) -> bool:
        return self in {MergeStatus.APPLIED, MergeStatus.REJECTED, MergeStatus.FAILED}


class AuditAction(StrEnum):
    ENTITY_MERGE = "ENTITY_MERGE"
