"""Duplicate grouping, merge planning, validation and execution."""

from __future__ import annotations

from .addresses import address_key, merge_similar_addresses
from .audit import merge_audit_record
from .execute import MergeExecutor, sanitize_date
from .grouping import (
    CandidateGroups,
    candidate_name_key,
    entity_name_key,
    group_candidates,
    normalize_name,
    person_name_key,
)
from .locks import EntityLockRegistry
from .plan import (
    ADDRESS_FIELDS,
    CLIENT_PLAN_NOTE,
    ORACLE_PLAN_NOTE,
    PERSON_FIELDS,
    PROPERTY_FIELDS,
    AddressPayload,
    DeletionPlan,
    MergedFields,
    MergeProposal,
    MergeResult,
    PersonPayload,
    PropertyPayload,
    collapse_properties,
)
from .planner import (
    AnalysisResult,
    GroupAnalysis,
    MergePlanner,
    build_proposal,
    merge_people,
    merge_properties,
)
from .validate import ensure_entities_exist, validate_proposal

__all__ = [
    "ADDRESS_FIELDS",
    "CLIENT_PLAN_NOTE",
    "ORACLE_PLAN_NOTE",
    "PERSON_FIELDS",
    "PROPERTY_FIELDS",
    "AddressPayload",
    "AnalysisResult",
    "CandidateGroups",
    "DeletionPlan",
    "EntityLockRegistry",
    "GroupAnalysis",
    "MergeExecutor",
    "MergePlanner",
    "MergeProposal",
    "MergeResult",
    "MergedFields",
    "PersonPayload",
    "PropertyPayload",
    "address_key",
    "build_proposal",
    "candidate_name_key",
    "collapse_properties",
    "ensure_entities_exist",
    "entity_name_key",
    "group_candidates",
    "merge_audit_record",
    "merge_people",
    "merge_properties",
    "merge_similar_addresses",
    "normalize_name",
    "person_name_key",
    "sanitize_date",
    "validate_proposal",
]
