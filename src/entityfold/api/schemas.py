"""Request and response models for the cleanup routes.

Request models are deliberately lenient: structural problems are left for
``validate_proposal`` so that HTTP clients get the same messages as any other
caller of the executor.
"""

from __future__ import annotations

from datetime import date, datetime
from typing import TYPE_CHECKING, Any

from pydantic import AliasChoices, BaseModel, ConfigDict, Field, field_validator

from entityfold.domain.merge import (
    ADDRESS_FIELDS,
    PERSON_FIELDS,
    AddressPayload,
    MergedFields,
    MergeProposal,
    PersonPayload,
    PropertyPayload,
)

if TYPE_CHECKING:
    from entityfold.domain.merge import AnalysisResult, DeletionPlan, GroupAnalysis, MergeResult
    from entityfold.domain.model import Address, Entity, EntityProperty, Person
    from entityfold.domain.queries import DuplicateNamePage


def _primary_flag(value: object) -> object:
    """Accept booleans as well as the legacy ``"Yes"``/``"No"`` strings."""

    if value is None:
        return False
    if isinstance(value, str):
        normalized = value.strip().lower()
        if normalized in {"yes", "y", "true", "1"}:
            return True
        if normalized in {"no", "n", "false", "0", ""}:
            return False
    return value


def _list_or_none(value: object) -> object:
    return value if isinstance(value, list) else None


class RequestModel(BaseModel):
    model_config = ConfigDict(extra="ignore", populate_by_name=True)


# Requests -----------------------------------------------------------------------


class PersonIn(RequestModel):
    people_id: int | None = None
    first_name: str | None = None
    middle_name: str | None = None
    last_name: str | None = None
    email: str | None = None
    phone: str | None = None
    date_of_birth: Any = None

    def to_payload(self) -> PersonPayload:
        return PersonPayload(
            people_id=self.people_id,
            first_name=self.first_name,
            middle_name=self.middle_name,
            last_name=self.last_name,
            email=self.email,
            phone=self.phone,
            date_of_birth=self.date_of_birth,
            provided=frozenset(self.model_fields_set) & frozenset(PERSON_FIELDS),
        )


class AddressIn(RequestModel):
    address_id: int | None = None
    address_line1: str | None = None
    address_line2: str | None = None
    city: str | None = None
    state: str | None = None
    postal_code: str | None = None
    country: str | None = None
    is_primary: bool = False

    _normalize_primary = field_validator("is_primary", mode="before")(_primary_flag)

    def to_payload(self) -> AddressPayload:
        return AddressPayload(
            address_id=self.address_id,
            address_line1=self.address_line1,
            address_line2=self.address_line2,
            city=self.city,
            state=self.state,
            postal_code=self.postal_code,
            country=self.country,
            is_primary=self.is_primary,
            provided=frozenset(self.model_fields_set) & frozenset(ADDRESS_FIELDS),
        )


class PropertyIn(RequestModel):
    entity_property_id: int | None = None
    property_id: int
    property_value: str | None = None
    is_primary: bool = False

    _normalize_primary = field_validator("is_primary", mode="before")(_primary_flag)

    def to_payload(self) -> PropertyPayload:
        return PropertyPayload(
            entity_property_id=self.entity_property_id,
            property_id=self.property_id,
            property_value=self.property_value,
            is_primary=self.is_primary,
        )


class MergedEntityIn(RequestModel):
    name: str | None = None
    trade_name: str | None = None
    people: list[PersonIn] | None = None
    address: list[AddressIn] | None = None
    entity_property: list[PropertyIn] | None = Field(
        default=None,
        validation_alias=AliasChoices(
            "entity_property",
            "entity_property_entity_property_entity_idToentity",
            "properties",
        ),
    )

    _arrays_only = field_validator("people", "address", "entity_property", mode="before")(
        _list_or_none
    )


class ResolveDuplicatesRequest(RequestModel):
    """Body shared by the oracle-assisted and the manual resolve routes."""

    keep_entity_id: int | None = None
    remove_entity_ids: list[int] | None = None
    merged_entity: MergedEntityIn | None = None

    _arrays_only = field_validator("remove_entity_ids", mode="before")(_list_or_none)

    def to_proposal(self) -> MergeProposal:
        merged = self.merged_entity or MergedEntityIn()
        return MergeProposal(
            keep_id=self.keep_entity_id,
            remove_ids=self.remove_entity_ids,
            merged_fields=MergedFields(
                name=merged.name,
                trade_name=merged.trade_name,
                provided=frozenset(merged.model_fields_set) & {"name", "trade_name"},
            ),
            merged_people=(
                None if merged.people is None else [p.to_payload() for p in merged.people]
            ),
            merged_addresses=(
                None if merged.address is None else [a.to_payload() for a in merged.address]
            ),
            merged_properties=(
                None
                if merged.entity_property is None
                else [p.to_payload() for p in merged.entity_property]
            ),
        )


# Responses ----------------------------------------------------------------------


class ResponseModel(BaseModel):
    model_config = ConfigDict(populate_by_name=True, from_attributes=True)


class AddressOut(ResponseModel):
    address_id: int | None = None
    address_line1: str | None = None
    address_line2: str | None = None
    city: str | None = None
    state: str | None = None
    postal_code: str | None = None
    country: str | None = None
    is_primary: bool = False


class PropertyOut(ResponseModel):
    entity_property_id: int | None = None
    property_id: int
    property_value: str | None = None
    is_primary: bool = False


class PersonOut(ResponseModel):
    people_id: int | None = None
    entity_id: int | None = None
    first_name: str | None = None
    middle_name: str | None = None
    last_name: str | None = None
    email: str | None = None
    phone: str | None = None
    date_of_birth: date | None = None
    created_at: datetime | None = None
    updated_at: datetime | None = None


class EntityOut(ResponseModel):
    entity_id: int
    name: str | None = None
    trade_name: str | None = None
    type: int
    created_at: datetime | None = None
    updated_at: datetime | None = None
    people: list[PersonOut] = Field(default_factory=list)
    address: list[AddressOut] = Field(default_factory=list)
    entity_property: list[PropertyOut] = Field(default_factory=list)

    @classmethod
    def from_entity(cls, entity: Entity) -> EntityOut:
        return cls(
            entity_id=entity.entity_id,
            name=entity.name,
            trade_name=entity.trade_name,
            type=int(entity.kind),
            created_at=entity.created_at,
            updated_at=entity.updated_at,
            people=[PersonOut.model_validate(p) for p in entity.active_people],
            address=[AddressOut.model_validate(a) for a in entity.active_addresses],
            entity_property=[PropertyOut.model_validate(p) for p in entity.properties],
        )


class DuplicateGroupOut(ResponseModel):
    name: str
    duplicate_count: int = Field(alias="duplicateCount")


class PaginationOut(ResponseModel):
    limit: int
    page: int
    offset: int
    total: int


class DuplicateNamePageOut(ResponseModel):
    duplicate_groups: list[DuplicateGroupOut] = Field(alias="duplicateGroups")
    pagination: PaginationOut

    @classmethod
    def from_page(cls, page: DuplicateNamePage) -> DuplicateNamePageOut:
        return cls(
            duplicate_groups=[
                DuplicateGroupOut(name=g.name, duplicate_count=g.duplicate_count)
                for g in page.groups
            ],
            pagination=PaginationOut.model_validate(page.pagination),
        )


class DecisionOut(ResponseModel):
    keep: int
    remove: list[int]
    rationale: str | None = None


class MergedEntityOut(ResponseModel):
    entity_id: int | None = None
    name: str | None = None
    trade_name: str | None = None
    type: int
    address: list[AddressOut] = Field(default_factory=list)
    entity_property: list[PropertyOut] = Field(default_factory=list)


class MergedPersonOut(PersonOut):
    entity: MergedEntityOut


class DeletionPlanOut(ResponseModel):
    retained_entity_id: int
    retained_people_id: int | None = None
    deleted_people_ids: list[int]
    deleted_entity_ids: list[int]
    tables_to_cleanup: dict[str, list[int]]


class MergePlanOut(ResponseModel):
    """A proposal in the shape accepted by the resolve routes."""

    keep_entity_id: int | None
    remove_entity_ids: list[int]
    merged_entity: dict[str, Any]


class GroupAnalysisOut(ResponseModel):
    ai_decision: DecisionOut = Field(alias="aiDecision")
    merged_person: MergedPersonOut = Field(alias="mergedPerson")
    deletion_plan: DeletionPlanOut | None = Field(alias="deletionPlan")
    merge_plan: MergePlanOut = Field(alias="mergePlan")


class AnalysisOut(ResponseModel):
    grouped: list[GroupAnalysisOut]
    total_found: int = Field(alias="totalFound")
    duplicate_groups_count: int = Field(alias="duplicateGroupsCount")


class MergeResultOut(ResponseModel):
    merged_entity_id: int
    deleted_entity_ids: list[int]
    applied: bool = True
    audit_id: int | None = None

    @classmethod
    def from_result(cls, result: MergeResult) -> MergeResultOut:
        return cls(
            merged_entity_id=result.merged_entity_id,
            deleted_entity_ids=list(result.deleted_entity_ids),
            applied=result.applied,
            audit_id=result.audit_id,
        )


def _address_out(payload: AddressPayload | Address) -> AddressOut:
    return AddressOut.model_validate(payload)


def _property_out(payload: PropertyPayload | EntityProperty) -> PropertyOut:
    return PropertyOut.model_validate(payload)


def merge_plan_out(proposal: MergeProposal) -> MergePlanOut:
    fields = proposal.merged_fields
    return MergePlanOut(
        keep_entity_id=proposal.keep_id,
        remove_entity_ids=list(proposal.remove_ids or []),
        merged_entity={
            "name": fields.name,
            "trade_name": fields.trade_name,
            "people": [
                {"people_id": p.people_id, **p.changes()} for p in proposal.merged_people or []
            ],
            "address": [
                {"address_id": a.address_id, **a.changes()}
                for a in proposal.merged_addresses or []
            ],
            "entity_property": [
                _property_out(p).model_dump(mode="json") for p in proposal.merged_properties or []
            ],
        },
    )


def _merged_person_out(analysis: GroupAnalysis) -> MergedPersonOut:
    person: Person = analysis.kept.person
    entity = analysis.kept.entity
    proposal = analysis.proposal
    base = PersonOut.model_validate(person).model_dump()
    return MergedPersonOut(
        **base,
        entity=MergedEntityOut(
            entity_id=entity.entity_id,
            name=entity.name,
            trade_name=entity.trade_name,
            type=int(entity.kind),
            address=[_address_out(a) for a in proposal.merged_addresses or []],
            entity_property=[_property_out(p) for p in proposal.merged_properties or []],
        ),
    )


def _deletion_plan_out(plan: DeletionPlan | None) -> DeletionPlanOut | None:
    return None if plan is None else DeletionPlanOut.model_validate(plan)


def analysis_out(result: AnalysisResult) -> AnalysisOut:
    return AnalysisOut(
        grouped=[
            GroupAnalysisOut(
                ai_decision=DecisionOut(
                    keep=analysis.decision.keep,
                    remove=list(analysis.decision.remove),
                    rationale=analysis.decision.rationale,
                ),
                merged_person=_merged_person_out(analysis),
                deletion_plan=_deletion_plan_out(analysis.deletion_plan),
                merge_plan=merge_plan_out(analysis.proposal),
            )
            for analysis in result.grouped
        ],
        total_found=result.total_found,
        duplicate_groups_count=result.duplicate_groups_count,
    )
