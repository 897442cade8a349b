"""Turn duplicate groups into merge proposals with help from the resolution oracle.

One analysis pass groups people by normalized full name, asks the oracle which
member of each group is canonical, and builds a proposal that collapses the
losers' entities into the winner's. Nothing is written to the store here.

Groups are independent, so they are resolved concurrently with a bounded number
of oracle calls in flight. Inside a group members are visited in order, and a
person claimed by an earlier decision (kept or removed) is never offered to the
oracle again in the same pass.
"""

from __future__ import annotations

import asyncio
from dataclasses import dataclass
from logging import getLogger
from typing import TYPE_CHECKING

from entityfold.domain.errors import ExternalServiceError
from entityfold.domain.ports.oracle import MergeDecision, OracleRequest

from .addresses import merge_similar_addresses
from .grouping import candidate_name_key, group_candidates, person_name_key
from .plan import (
    ORACLE_PLAN_NOTE,
    DeletionPlan,
    MergedFields,
    MergeProposal,
    PersonPayload,
    PropertyPayload,
    collapse_properties,
)

if TYPE_CHECKING:
    from collections.abc import Iterable, Sequence

    from entityfold.domain.model import Entity, PersonCandidate
    from entityfold.domain.ports.oracle import ResolutionOracle

log = getLogger(__name__)

DEFAULT_ORACLE_CONCURRENCY = 4


def merge_properties(keep: Entity, removed: Sequence[Entity]) -> list[PropertyPayload]:
    """Union of all properties, unique by ``(property_id, normalized value)``.

    The first record seen for a key survives; it is primary if any record
    sharing the key was primary. Properties with blank values are dropped.
    """

    return collapse_properties(
        PropertyPayload.from_property(prop)
        for prop in [*keep.properties, *(p for entity in removed for p in entity.properties)]
    )


def merge_people(
    keep: Entity,
    removed: Sequence[Entity],
    *,
    retired_people_ids: Iterable[int] = (),
) -> list[PersonPayload]:
    """Kept entity's people, plus people of removed entities not already represented.

    People carried over from a removed entity lose their id so the executor
    creates them fresh under the kept entity.
    """

    retired = set(retired_people_ids)
    people = [PersonPayload.from_person(person) for person in keep.active_people]
    known_keys = {person_name_key(person) for person in keep.active_people}
    for entity in removed:
        for person in entity.active_people:
            if person.people_id in retired:
                continue
            key = person_name_key(person)
            if key and key in known_keys:
                continue
            known_keys.add(key)
            payload = PersonPayload.from_person(person)
            payload.people_id = None
            people.append(payload)
    return people


def build_proposal(
    keep: Entity,
    removed: Sequence[Entity],
    *,
    retained_people_id: int | None = None,
    retired_people_ids: Sequence[int] = (),
    note: str = ORACLE_PLAN_NOTE,
) -> MergeProposal:
    """Plan collapsing ``removed`` entities into ``keep`` without touching the store."""

    if keep.entity_id is None:
        raise ValueError("Cannot plan a merge into an unsaved entity")
    removed = [entity for entity in removed if entity.entity_id != keep.entity_id]
    return MergeProposal(
        keep_id=keep.entity_id,
        remove_ids=[entity.entity_id for entity in removed if entity.entity_id is not None],
        merged_fields=MergedFields(name=keep.name, trade_name=keep.trade_name),
        merged_people=merge_people(keep, removed, retired_people_ids=retired_people_ids),
        merged_addresses=merge_similar_addresses(
            keep.addresses,
            [address for entity in removed for address in entity.addresses],
        ),
        merged_properties=merge_properties(keep, removed),
        deletion_plan=DeletionPlan.build(
            keep=keep,
            removed=removed,
            retained_people_id=retained_people_id,
            deleted_people_ids=retired_people_ids,
        ),
        note=note,
    )


@dataclass(slots=True, frozen=True)
class GroupAnalysis:
    """Outcome for one oracle decision inside a duplicate group."""

    key: str
    decision: MergeDecision
    kept: PersonCandidate
    removed: tuple[PersonCandidate, ...]
    proposal: MergeProposal

    @property
    def deletion_plan(self) -> DeletionPlan | None:
        return self.proposal.deletion_plan


@dataclass(slots=True, frozen=True)
class AnalysisResult:
    grouped: list[GroupAnalysis]
    total_found: int
    duplicate_groups_count: int


class MergePlanner:
    def __init__(
        self,
        oracle: ResolutionOracle,
        *,
        concurrency: int = DEFAULT_ORACLE_CONCURRENCY,
    ) -> None:
        if concurrency < 1:
            raise ValueError("Oracle concurrency must be at least 1")
        self.oracle = oracle
        self.concurrency = concurrency

    async def analyze(self, candidates: Sequence[PersonCandidate]) -> AnalysisResult:
        """Run one analysis pass.

        Any oracle failure aborts the whole pass with ``ExternalServiceError``;
        in-flight calls for other groups are cancelled.
        """

        active = [c for c in candidates if not c.person.is_deleted and not c.entity.is_deleted]
        groups = group_candidates(active, candidate_name_key)
        log.info(
            "Analysing %s people in %s candidate groups (concurrency=%s)",
            len(active),
            groups.count,
            self.concurrency,
        )

        seen: set[int] = set()
        semaphore = asyncio.Semaphore(self.concurrency)
        try:
            async with asyncio.TaskGroup() as task_group:
                tasks = [
                    task_group.create_task(self._resolve_group(key, members, seen, semaphore))
                    for key, members in groups.items()
                ]
        except ExceptionGroup as group:
            raise group.exceptions[0] from None

        grouped = [analysis for task in tasks for analysis in task.result()]
        return AnalysisResult(
            grouped=grouped,
            total_found=len(candidates),
            duplicate_groups_count=groups.count,
        )

    async def _resolve_group(
        self,
        key: str,
        members: list[PersonCandidate],
        seen: set[int],
        semaphore: asyncio.Semaphore,
    ) -> list[GroupAnalysis]:
        results: list[GroupAnalysis] = []
        for member in members:
            if member.people_id in seen:
                continue
            duplicates = tuple(
                other
                for other in members
                if other.people_id != member.people_id and other.people_id not in seen
            )
            if not duplicates:
                continue

            request = OracleRequest(primary=member, duplicates=duplicates)
            async with semaphore:
                decision = await self._consult(request)

            analysis = self._apply_decision(key, request, decision)
            if analysis is None:
                continue
            seen.add(analysis.kept.people_id)
            seen.update(candidate.people_id for candidate in analysis.removed)
            results.append(analysis)
        return results

    async def _consult(self, request: OracleRequest) -> MergeDecision:
        try:
            return await self.oracle(request)
        except ExternalServiceError:
            raise
        except Exception as exc:
            raise ExternalServiceError(f"Resolution oracle failed: {exc}") from exc

    def _apply_decision(
        self,
        key: str,
        request: OracleRequest,
        decision: MergeDecision,
    ) -> GroupAnalysis | None:
        offered = (request.primary, *request.duplicates)
        kept = next((c for c in offered if c.people_id == decision.keep), None)
        if kept is None:
            log.warning(
                "Oracle kept %s which is not one of %s; skipping",
                decision.keep,
                request.candidate_ids(),
            )
            return None

        removed = tuple(
            c for c in offered if c.people_id in decision.remove and c is not kept
        )
        ignored = set(decision.remove) - {c.people_id for c in removed}
        if ignored:
            log.warning("Ignoring oracle remove ids outside the group: %s", sorted(ignored))

        removed_entities: dict[int | None, Entity] = {}
        for candidate in removed:
            entity = candidate.entity
            if entity.entity_id != kept.entity.entity_id:
                removed_entities.setdefault(entity.entity_id, entity)

        proposal = build_proposal(
            kept.entity,
            list(removed_entities.values()),
            retained_people_id=kept.people_id,
            retired_people_ids=[
                c.people_id for c in removed if c.entity.entity_id in removed_entities
            ],
        )
        return GroupAnalysis(
            key=key,
            decision=decision,
            kept=kept,
            removed=removed,
            proposal=proposal,
        )
