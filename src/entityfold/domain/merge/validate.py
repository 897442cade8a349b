"""Structural and referential checks run before any merge mutation."""

from __future__ import annotations

from typing import TYPE_CHECKING

from entityfold.domain.errors import NotFoundError, ValidationError

if TYPE_CHECKING:
    from collections.abc import Iterable, Sequence

    from entityfold.domain.model import Entity

    from .plan import MergeProposal


def validate_proposal(proposal: MergeProposal) -> None:
    """Fail fast on the first structural problem, in a fixed order."""

    if proposal.status.is_terminal:
        raise ValidationError(f"Merge proposal is already {proposal.status}")
    if not proposal.keep_id:
        raise ValidationError("Field 'keep_entity_id' is required")
    if not isinstance(proposal.remove_ids, list) or not proposal.remove_ids:
        raise ValidationError("At least one entity must be in 'remove_entity_ids'")
    if proposal.keep_id in proposal.remove_ids:
        raise ValidationError("'keep_entity_id' cannot be in 'remove_entity_ids'")
    for label, values in (
        ("people", proposal.merged_people),
        ("address", proposal.merged_addresses),
        ("entity_property", proposal.merged_properties),
    ):
        if not isinstance(values, list):
            raise ValidationError(f"'merged_entity.{label}' must be an array")


def ensure_entities_exist(requested: Sequence[int], found: Iterable[Entity]) -> None:
    """Raise ``NotFoundError`` naming every requested id missing from ``found``."""

    found_ids = {entity.entity_id for entity in found if not entity.is_deleted}
    missing = [entity_id for entity_id in requested if entity_id not in found_ids]
    if missing:
        raise NotFoundError(missing)
