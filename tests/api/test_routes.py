from __future__ import annotations

from typing import TYPE_CHECKING

import pytest
from fastapi.testclient import TestClient

from entityfold.api import API_PREFIX, create_app
from entityfold.app import MergeService
from entityfold.domain.model import EntityKind
from entityfold.domain.ports.oracle import MergeDecision, OracleRequest
from tests.helpers.directory import (
    FakeOracle,
    make_address,
    make_entity,
    make_person,
    make_property,
    persist,
)

if TYPE_CHECKING:
    from sqlalchemy.orm import Session

    from entityfold.adapters.sqlalchemy import Database
    from entityfold.domain.model import Entity


def _seed_duplicates(session: Session) -> tuple[Entity, Entity]:
    keep = make_entity(
        "Acme",
        people=[make_person("John", "Doe", email="john@acme.test")],
        addresses=[make_address("1 High St", "Leeds", "LS1", is_primary=True)],
        properties=[make_property(1, "555-0100")],
    )
    other = make_entity(
        "Acme",
        people=[make_person("John", "Doe"), make_person("Mary", "Major")],
        addresses=[make_address("1 high st.", "LEEDS", "ls1"), make_address("9 Low Rd", "York", "YO1")],
        properties=[make_property(1, "555-0100", primary=True), make_property(2, "acme.example")],
    )
    persist(session, keep, other)
    return keep, other


def test_similar_entity_names(client: TestClient, sqlite_session: Session) -> None:
    _seed_duplicates(sqlite_session)

    response = client.get(f"{API_PREFIX}/entities/similar/by-name")

    assert response.status_code == 200
    assert response.json() == {
        "success": True,
        "message": "Duplicate entities grouped by name retrieved successfully",
        "statusCode": 200,
        "data": ["Acme"],
        "error": None,
    }


def test_similar_entity_names_by_type_is_paginated(client: TestClient, sqlite_session: Session) -> None:
    persist(
        sqlite_session,
        *(make_entity(name, kind=EntityKind.INDIVIDUAL) for name in ["A", "A", "B", "B", "C"]),
    )

    response = client.get(f"{API_PREFIX}/entities/similar/by-name/1", params={"page": 2, "limit": 1})

    assert response.status_code == 200
    assert response.json()["data"] == {
        "duplicateGroups": [{"name": "B", "duplicateCount": 2}],
        "pagination": {"limit": 1, "page": 2, "offset": 1, "total": 2},
    }


@pytest.mark.parametrize(
    ("path", "params", "message"),
    [
        ("/entities/similar/by-name/9", {}, "Invalid entity type provided. (9)"),
        ("/entities/similar/by-name/2", {"page": 0}, "'page' must be greater than or equal to 1"),
        ("/entities/similar/by-name/2", {"limit": 0}, "'limit' must be greater than or equal to 1"),
    ],
)
def test_listing_rejects_bad_parameters(
    client: TestClient,
    path: str,
    params: dict[str, int],
    message: str,
) -> None:
    response = client.get(f"{API_PREFIX}{path}", params=params)

    assert response.status_code == 400
    body = response.json()
    assert body["success"] is False
    assert body["statusCode"] == 400
    assert body["message"] == message


def test_non_numeric_page_is_a_bad_request(client: TestClient) -> None:
    response = client.get(f"{API_PREFIX}/entities/similar/by-name/2", params={"page": "two"})

    assert response.status_code == 400
    assert response.json()["message"].startswith("query.page:")


def test_similar_people_names(client: TestClient, sqlite_session: Session) -> None:
    _seed_duplicates(sqlite_session)

    response = client.get(f"{API_PREFIX}/people/similar/by-name")

    assert response.status_code == 200
    assert response.json()["data"] == ["john doe"]
    assert response.json()["message"] == "Duplicate people grouped by full name retrieved successfully"


def test_entities_by_name(client: TestClient, sqlite_session: Session) -> None:
    keep, _ = _seed_duplicates(sqlite_session)

    response = client.get(f"{API_PREFIX}/entities/by-name/acme")

    assert response.status_code == 200
    data = response.json()["data"]
    assert data[0]["entity_id"] == keep.entity_id
    assert len(data) == 2
    assert data[0]["people"][0]["email"] == "john@acme.test"
    assert data[0]["address"][0]["is_primary"] is True
    assert data[0]["entity_property"][0]["property_value"] == "555-0100"
    assert data[0]["type"] == 2


def test_analyze_returns_plans(client: TestClient, sqlite_session: Session) -> None:
    keep, other = _seed_duplicates(sqlite_session)

    response = client.post(f"{API_PREFIX}/entities/duplicates/analyze", params={"name": "John Doe"})

    assert response.status_code == 200
    body = response.json()
    assert body["message"] == "Potential duplicate groups analyzed successfully"
    data = body["data"]
    assert data["totalFound"] == 2
    assert data["duplicateGroupsCount"] == 1
    [group] = data["grouped"]
    assert group["aiDecision"] == {
        "keep": keep.people[0].people_id,
        "remove": [other.people[0].people_id],
        "rationale": "oldest record",
    }
    merged_entity = group["mergedPerson"]["entity"]
    assert group["mergedPerson"]["people_id"] == keep.people[0].people_id
    assert [a["city"] for a in merged_entity["address"]] == ["Leeds", "York"]
    assert [(p["property_id"], p["is_primary"]) for p in merged_entity["entity_property"]] == [
        (1, True),
        (2, False),
    ]
    assert group["deletionPlan"]["retained_entity_id"] == keep.entity_id
    assert group["deletionPlan"]["deleted_people_ids"] == [other.people[0].people_id]
    assert group["deletionPlan"]["tables_to_cleanup"]["entity"] == [other.entity_id]
    plan = group["mergePlan"]
    assert plan["keep_entity_id"] == keep.entity_id
    assert plan["remove_entity_ids"] == [other.entity_id]
    assert [p["first_name"] for p in plan["merged_entity"]["people"]] == ["John", "Mary"]


def test_analysis_plan_can_be_applied(client: TestClient, sqlite_session: Session, database: Database) -> None:
    keep, other = _seed_duplicates(sqlite_session)
    analysis = client.post(
        f"{API_PREFIX}/entities/duplicates/analyze", params={"name": "john doe"}
    ).json()
    plan = analysis["data"]["grouped"][0]["mergePlan"]

    response = client.post(f"{API_PREFIX}/entities/resolve-duplicates", json=plan)

    assert response.status_code == 200
    assert response.json()["data"]["merged_entity_id"] == keep.entity_id
    with database.unit_of_work() as uow:
        kept = uow.repositories.entities.get(keep.entity_id)
        removed = uow.repositories.entities.get(other.entity_id)
        assert kept is not None
        assert removed is not None
        assert sorted(p.first_name or "" for p in kept.active_people) == ["John", "Mary"]
        assert len(kept.active_addresses) == 2
        assert removed.is_deleted is True


def test_analyze_without_matches(client: TestClient) -> None:
    response = client.post(f"{API_PREFIX}/entities/duplicates/analyze", params={"name": "Nobody Here"})

    assert response.status_code == 200
    assert response.json()["message"] == "No people found matching the given name"
    assert response.json()["data"] == {"grouped": [], "totalFound": 0, "duplicateGroupsCount": 0}


def test_analyze_requires_a_name(client: TestClient) -> None:
    response = client.post(f"{API_PREFIX}/entities/duplicates/analyze")

    assert response.status_code == 400
    assert response.json()["message"] == "Query parameter 'name' is required"


def test_analyze_reports_oracle_failures(database: Database, sqlite_session: Session) -> None:
    _seed_duplicates(sqlite_session)

    def unavailable(_request: OracleRequest) -> MergeDecision:
        raise ConnectionError("oracle offline")

    service = MergeService(database, oracle=FakeOracle(decide=unavailable, requests=[]))
    with TestClient(create_app(service)) as client:
        response = client.post(f"{API_PREFIX}/entities/duplicates/analyze", params={"name": "John Doe"})

    assert response.status_code == 503
    assert response.json()["success"] is False
    assert "oracle offline" in response.json()["message"]


def test_analyze_without_oracle_is_unavailable(database: Database, sqlite_session: Session) -> None:
    _seed_duplicates(sqlite_session)
    service = MergeService(database, oracle=None)

    with TestClient(create_app(service)) as client:
        response = client.post(f"{API_PREFIX}/entities/duplicates/analyze", params={"name": "John Doe"})

    assert response.status_code == 503
    assert response.json()["message"] == "Resolution oracle is not configured"


@pytest.mark.parametrize("route", ["/entities/resolve-duplicates", "/entities/resolve-duplicates/manual"])
def test_resolve_duplicates(client: TestClient, sqlite_session: Session, database: Database, route: str) -> None:
    keep, other = _seed_duplicates(sqlite_session)
    body = {
        "keep_entity_id": keep.entity_id,
        "remove_entity_ids": [other.entity_id],
        "merged_entity": {
            "name": "Acme Ltd",
            "people": [{"people_id": keep.people[0].people_id, "phone": "555-0199"}],
            "address": [{"address_line1": "9 Low Rd", "city": "York", "postal_code": "YO1", "is_primary": "No"}],
            "entity_property_entity_property_entity_idToentity": [
                {"property_id": 1, "property_value": "555-0100", "is_primary": "Yes"}
            ],
        },
    }

    response = client.post(f"{API_PREFIX}{route}", json=body)

    assert response.status_code == 200
    payload = response.json()
    assert payload["message"] == "Duplicate merge applied successfully"
    assert payload["data"]["merged_entity_id"] == keep.entity_id
    assert payload["data"]["deleted_entity_ids"] == [other.entity_id]
    assert payload["data"]["applied"] is True
    with database.unit_of_work() as uow:
        kept = uow.repositories.entities.get(keep.entity_id)
        assert kept is not None
        assert kept.name == "Acme Ltd"
        assert kept.people[0].phone == "555-0199"
        assert kept.people[0].email == "john@acme.test"
        assert [(p.property_id, p.is_primary) for p in kept.properties] == [(1, True)]


@pytest.mark.parametrize(
    ("body", "message"),
    [
        ({}, "Field 'keep_entity_id' is required"),
        ({"keep_entity_id": 1, "remove_entity_ids": "2"}, "At least one entity must be in 'remove_entity_ids'"),
        ({"keep_entity_id": 1, "remove_entity_ids": [1]}, "'keep_entity_id' cannot be in 'remove_entity_ids'"),
        (
            {"keep_entity_id": 1, "remove_entity_ids": [2], "merged_entity": {"address": [], "entity_property": []}},
            "'merged_entity.people' must be an array",
        ),
        (
            {"keep_entity_id": 1, "remove_entity_ids": [2], "merged_entity": {"people": [], "entity_property": []}},
            "'merged_entity.address' must be an array",
        ),
    ],
)
def test_resolve_rejects_malformed_plans(client: TestClient, body: dict[str, object], message: str) -> None:
    response = client.post(f"{API_PREFIX}/entities/resolve-duplicates", json=body)

    assert response.status_code == 400
    assert response.json()["message"] == message


def test_resolve_reports_missing_entities(client: TestClient, sqlite_session: Session) -> None:
    keep, _ = _seed_duplicates(sqlite_session)
    body = {
        "keep_entity_id": keep.entity_id,
        "remove_entity_ids": [424242],
        "merged_entity": {"people": [], "address": [], "entity_property": []},
    }

    response = client.post(f"{API_PREFIX}/entities/resolve-duplicates", json=body)

    assert response.status_code == 404
    assert response.json()["message"] == "Invalid entity IDs: 424242 not found or already deleted"
    assert response.json()["error"] == {"missing_ids": [424242]}


def test_resolve_rejects_unparseable_ids(client: TestClient) -> None:
    response = client.post(
        f"{API_PREFIX}/entities/resolve-duplicates",
        json={"keep_entity_id": "first", "remove_entity_ids": [2]},
    )

    assert response.status_code == 400
    assert response.json()["message"].startswith("keep_entity_id:")


def test_unexpected_errors_become_500_envelopes(service: MergeService, monkeypatch: pytest.MonkeyPatch) -> None:
    def explode() -> list[str]:
        raise RuntimeError("kaboom")

    monkeypatch.setattr(service, "similar_entity_names", explode)

    with TestClient(create_app(service), raise_server_exceptions=False) as client:
        response = client.get(f"{API_PREFIX}/entities/similar/by-name")

    assert response.status_code == 500
    assert response.json()["success"] is False
    assert response.json()["message"] == "Something went wrong"
