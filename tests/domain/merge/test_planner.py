from __future__ import annotations

import asyncio
from datetime import UTC, datetime

import pytest

from entityfold.domain.errors import ExternalServiceError
from entityfold.domain.merge import (
    ORACLE_PLAN_NOTE,
    MergePlanner,
    build_proposal,
    merge_people,
    merge_properties,
)
from entityfold.domain.ports.oracle import MergeDecision, OracleRequest
from tests.helpers.directory import (
    FakeOracle,
    assign_ids,
    candidates_of,
    keep_primary_oracle,
    make_address,
    make_entity,
    make_person,
    make_property,
    scripted_oracle,
)


def test_merge_properties_unique_by_type_and_value_with_primary_or() -> None:
    keep = make_entity("Acme", properties=[make_property(1, "555-0100")])
    other = make_entity(
        "ACME",
        properties=[
            make_property(1, " 555-0100 ", primary=True),
            make_property(2, "acme.example"),
            make_property(3, "   "),
            make_property(4, None),
        ],
    )
    assign_ids(keep, other)

    merged = merge_properties(keep, [other])

    assert [(p.property_id, p.property_value, p.is_primary) for p in merged] == [
        (1, "555-0100", True),
        (2, "acme.example", False),
    ]
    assert merged[0].entity_property_id == keep.properties[0].entity_property_id


def test_merge_people_carries_over_unrepresented_people() -> None:
    keep = make_entity("Acme", people=[make_person("John", "Doe")])
    other = make_entity(
        "Acme",
        people=[
            make_person("John", "Doe"),
            make_person("Mary", "Major"),
            make_person("Gone", "Person", deleted_at=datetime(2024, 1, 1, tzinfo=UTC)),
        ],
    )
    assign_ids(keep, other)
    retired = [other.people[0].people_id]

    people = merge_people(keep, [other], retired_people_ids=retired)

    assert [(p.first_name, p.people_id) for p in people] == [
        ("John", keep.people[0].people_id),
        ("Mary", None),
    ]


def test_build_proposal_collects_deletion_plan_tables() -> None:
    keep = make_entity(
        "Acme",
        trade_name="Acme Trading",
        people=[make_person("John", "Doe")],
        addresses=[make_address("1 High St", "Leeds", "LS1", is_primary=True)],
    )
    other = make_entity(
        "Acme",
        people=[make_person("John", "Doe")],
        addresses=[make_address("9 Low Rd", "York", "YO1")],
        properties=[make_property(1, "555")],
    )
    assign_ids(keep, other)

    proposal = build_proposal(
        keep,
        [other],
        retained_people_id=keep.people[0].people_id,
        retired_people_ids=[other.people[0].people_id],
    )

    assert proposal.keep_id == keep.entity_id
    assert proposal.remove_ids == [other.entity_id]
    assert proposal.merged_fields.name == "Acme"
    assert proposal.merged_fields.trade_name == "Acme Trading"
    assert proposal.note == ORACLE_PLAN_NOTE
    plan = proposal.deletion_plan
    assert plan is not None
    assert plan.retained_entity_id == keep.entity_id
    assert plan.deleted_entity_ids == [other.entity_id]
    assert plan.tables_to_cleanup == {
        "people": [other.people[0].people_id],
        "entity": [other.entity_id],
        "entity_property": [other.properties[0].entity_property_id],
        "address": [other.addresses[0].address_id],
    }


def test_build_proposal_omits_empty_tables() -> None:
    keep = make_entity("Acme")
    other = make_entity("Acme")
    assign_ids(keep, other)

    proposal = build_proposal(keep, [other])

    assert proposal.deletion_plan is not None
    assert proposal.deletion_plan.tables_to_cleanup == {"entity": [other.entity_id]}


def test_analyze_groups_people_and_builds_one_proposal_per_group() -> None:
    first = make_entity("Doe Consulting", people=[make_person("John", "Doe")])
    second = make_entity("Doe Consulting Ltd", people=[make_person("john", "DOE")])
    third = make_entity("Doe Holdings", people=[make_person("John", "Doe")])
    loner = make_entity("Elsewhere", people=[make_person("Jane", "Roe")])
    assign_ids(first, second, third, loner)
    oracle = keep_primary_oracle()

    result = asyncio.run(MergePlanner(oracle).analyze(candidates_of(first, second, third, loner)))

    assert result.total_found == 4
    assert result.duplicate_groups_count == 1
    assert len(result.grouped) == 1
    analysis = result.grouped[0]
    assert analysis.key == "john doe"
    assert analysis.kept.person is first.people[0]
    assert [c.entity for c in analysis.removed] == [second, third]
    assert analysis.proposal.keep_id == first.entity_id
    assert analysis.proposal.remove_ids == [second.entity_id, third.entity_id]
    assert len(oracle.requests) == 1
    assert oracle.requests[0].candidate_ids() == [
        first.people[0].people_id,
        second.people[0].people_id,
        third.people[0].people_id,
    ]


def test_analyze_does_not_offer_claimed_people_again() -> None:
    entities = [make_entity(f"E{i}", people=[make_person("Ann", "Lee")]) for i in range(3)]
    assign_ids(*entities)
    ids = [e.people[0].people_id for e in entities]
    oracle = scripted_oracle([MergeDecision(keep=ids[0], remove=(ids[1],))])

    result = asyncio.run(MergePlanner(oracle).analyze(candidates_of(*entities)))

    # the third member has nobody unclaimed left to be compared with
    assert len(oracle.requests) == 1
    assert len(result.grouped) == 1
    assert [c.people_id for c in result.grouped[0].removed] == [ids[1]]


def test_analyze_skips_decisions_keeping_an_unknown_id() -> None:
    entities = [make_entity(f"E{i}", people=[make_person("Ann", "Lee")]) for i in range(2)]
    assign_ids(*entities)
    oracle = FakeOracle(decide=lambda _request: MergeDecision(keep=999_999), requests=[])

    result = asyncio.run(MergePlanner(oracle).analyze(candidates_of(*entities)))

    assert result.grouped == []
    assert len(oracle.requests) == 2
    assert result.duplicate_groups_count == 1


def test_analyze_ignores_remove_ids_outside_the_group() -> None:
    entities = [make_entity(f"E{i}", people=[make_person("Ann", "Lee")]) for i in range(2)]
    assign_ids(*entities)
    kept_id = entities[0].people[0].people_id
    oracle = scripted_oracle(
        [MergeDecision(keep=kept_id, remove=(kept_id, entities[1].people[0].people_id, 424242))]
    )

    result = asyncio.run(MergePlanner(oracle).analyze(candidates_of(*entities)))

    [analysis] = result.grouped
    assert [c.people_id for c in analysis.removed] == [entities[1].people[0].people_id]
    assert analysis.proposal.remove_ids == [entities[1].entity_id]


def test_analyze_skips_deleted_people_and_entities() -> None:
    live = make_entity("A", people=[make_person("Ann", "Lee")])
    gone_person = make_entity(
        "B", people=[make_person("Ann", "Lee", deleted_at=datetime(2024, 1, 1, tzinfo=UTC))]
    )
    gone_entity = make_entity("C", people=[make_person("Ann", "Lee")])
    gone_entity.is_deleted = True
    assign_ids(live, gone_person, gone_entity)
    oracle = keep_primary_oracle()

    result = asyncio.run(MergePlanner(oracle).analyze(candidates_of(live, gone_person, gone_entity)))

    assert result.duplicate_groups_count == 0
    assert result.grouped == []
    assert oracle.requests == []


def test_analyze_same_entity_duplicates_retire_nothing() -> None:
    entity = make_entity("Solo", people=[make_person("Ann", "Lee"), make_person("Ann", "Lee")])
    assign_ids(entity)
    oracle = keep_primary_oracle()

    result = asyncio.run(MergePlanner(oracle).analyze(candidates_of(entity)))

    [analysis] = result.grouped
    assert analysis.proposal.remove_ids == []
    assert analysis.proposal.deletion_plan is not None
    assert analysis.proposal.deletion_plan.deleted_people_ids == []


def test_analyze_wraps_oracle_failures() -> None:
    entities = [make_entity(f"E{i}", people=[make_person("Ann", "Lee")]) for i in range(2)]
    assign_ids(*entities)

    def explode(_request: OracleRequest) -> MergeDecision:
        raise RuntimeError("model overloaded")

    oracle = FakeOracle(decide=explode, requests=[])

    with pytest.raises(ExternalServiceError, match="model overloaded"):
        asyncio.run(MergePlanner(oracle).analyze(candidates_of(*entities)))


def test_analyze_bounds_concurrent_oracle_calls() -> None:
    entities = [
        make_entity(f"E{i}", people=[make_person(f"Name{i // 2}", "Lee")]) for i in range(8)
    ]
    assign_ids(*entities)
    in_flight = 0
    peak = 0

    class SlowOracle:
        async def __call__(self, request: OracleRequest) -> MergeDecision:
            nonlocal in_flight, peak
            in_flight += 1
            peak = max(peak, in_flight)
            await asyncio.sleep(0.01)
            in_flight -= 1
            return MergeDecision(keep=request.primary.people_id, remove=())

    result = asyncio.run(MergePlanner(SlowOracle(), concurrency=2).analyze(candidates_of(*entities)))

    assert result.duplicate_groups_count == 4
    assert len(result.grouped) == 4
    assert peak == 2


def test_planner_rejects_non_positive_concurrency() -> None:
    with pytest.raises(ValueError, match="at least 1"):
        MergePlanner(keep_primary_oracle(), concurrency=0)
