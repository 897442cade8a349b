"""Build the audit record written alongside every applied merge."""

from __future__ import annotations

from typing import TYPE_CHECKING

from entityfold.domain.model import MergeAuditRecord

if TYPE_CHECKING:
    from datetime import datetime

    from .plan import MergeProposal


def merge_audit_record(proposal: MergeProposal, *, at: datetime) -> MergeAuditRecord:
    if proposal.keep_id is None:
        raise ValueError("Audit requires a kept entity id")
    removed = proposal.distinct_remove_ids()
    people = len(proposal.merged_people or [])
    addresses = len(proposal.merged_addresses or [])
    return MergeAuditRecord(
        entity_id=proposal.keep_id,
        old_value=f"Merged from {len(removed)} duplicates",
        new_value=f"Merged entity updated with {people} people, {addresses} addresses",
        note=proposal.note,
        created_at=at,
    )
