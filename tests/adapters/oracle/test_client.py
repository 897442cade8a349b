from __future__ import annotations

import asyncio
import json
from typing import TYPE_CHECKING

import httpx
import pytest

from entityfold.adapters.http_resilience import ResilienceConfig, ResilientClient, RetryPolicy
from entityfold.adapters.oracle import HttpResolutionOracle
from entityfold.config import OracleConfig
from entityfold.domain.errors import ExternalServiceError
from entityfold.domain.ports.oracle import MergeDecision, OracleRequest
from tests.helpers.directory import assign_ids, candidates_of, make_entity, make_person

if TYPE_CHECKING:
    from collections.abc import Callable

ORACLE_URL = "https://oracle.test/decide"


def _oracle(
    handler: Callable[[httpx.Request], httpx.Response],
    *,
    retries: int = 0,
) -> HttpResolutionOracle:
    resilience = ResilienceConfig(
        name="oracle",
        retry=RetryPolicy(total=retries, backoff_factor=0.0, backoff_jitter=0.0),
    )

    def factory(config: ResilienceConfig) -> ResilientClient:
        return ResilientClient(config, transport=httpx.MockTransport(handler))

    return HttpResolutionOracle(OracleConfig(url=ORACLE_URL, resilience=resilience), client_factory=factory)


def _request() -> OracleRequest:
    first = make_entity("Doe Co", people=[make_person("John", "Doe", email="john@doe.test")])
    second = make_entity("Doe Company", people=[make_person("John", "Doe")])
    assign_ids(first, second)
    primary, duplicate = candidates_of(first, second)
    return OracleRequest(primary=primary, duplicates=(duplicate,))


def _call(oracle: HttpResolutionOracle, request: OracleRequest) -> MergeDecision:
    async def run() -> MergeDecision:
        try:
            return await oracle(request)
        finally:
            await oracle.aclose()

    return asyncio.run(run())


def test_posts_the_group_and_parses_the_decision() -> None:
    seen: list[dict[str, object]] = []
    request = _request()
    duplicate_id = request.duplicates[0].people_id

    def handler(http_request: httpx.Request) -> httpx.Response:
        assert http_request.method == "POST"
        assert str(http_request.url) == ORACLE_URL
        seen.append(json.loads(http_request.content))
        return httpx.Response(
            200,
            json={"keep": str(request.primary.people_id), "remove": [duplicate_id], "rationale": "email"},
        )

    decision = _call(_oracle(handler), request)

    assert decision == MergeDecision(
        keep=request.primary.people_id,
        remove=(duplicate_id,),
        rationale="email",
    )
    [body] = seen
    primary = body["primary"]
    assert isinstance(primary, dict)
    assert primary["people_id"] == request.primary.people_id
    assert primary["email"] == "john@doe.test"
    assert primary["entity"]["name"] == "Doe Co"
    assert [d["people_id"] for d in body["duplicates"]] == [duplicate_id]  # type: ignore[index, union-attr]


def test_http_errors_become_external_service_errors() -> None:
    def handler(_request: httpx.Request) -> httpx.Response:
        return httpx.Response(502, json={"error": "upstream"})

    with pytest.raises(ExternalServiceError, match="Resolution oracle request failed") as exc:
        _call(_oracle(handler), _request())

    assert exc.value.status_code == 503


def test_invalid_payloads_become_external_service_errors() -> None:
    def handler(_request: httpx.Request) -> httpx.Response:
        return httpx.Response(200, json={"verdict": "keep the first one"})

    with pytest.raises(ExternalServiceError, match="invalid decision"):
        _call(_oracle(handler), _request())


def test_non_json_responses_become_external_service_errors() -> None:
    def handler(_request: httpx.Request) -> httpx.Response:
        return httpx.Response(200, text="<html>maintenance</html>")

    with pytest.raises(ExternalServiceError, match="invalid decision"):
        _call(_oracle(handler), _request())


def test_transient_failures_are_retried() -> None:
    request = _request()
    responses = iter(
        [
            httpx.Response(503),
            httpx.Response(200, json={"keep": request.primary.people_id, "remove": []}),
        ]
    )
    calls: list[httpx.Request] = []

    def handler(http_request: httpx.Request) -> httpx.Response:
        calls.append(http_request)
        return next(responses)

    decision = _call(_oracle(handler, retries=2), request)

    assert decision.keep == request.primary.people_id
    assert len(calls) == 2
