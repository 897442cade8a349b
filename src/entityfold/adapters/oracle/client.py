"""HTTP implementation of the resolution oracle port."""

from __future__ import annotations

from dataclasses import dataclass, field
from logging import getLogger
from typing import TYPE_CHECKING

import httpx

from entityfold.adapters.http_resilience import ResilientClient
from entityfold.domain.errors import ExternalServiceError
from entityfold.domain.ports.oracle import MergeDecision

from .schema import EntityPayload, OracleDecisionPayload, OracleRequestPayload, PersonPayload

if TYPE_CHECKING:
    from collections.abc import Callable

    from entityfold.config.http_resilience import ResilienceConfig
    from entityfold.config.oracle import OracleConfig
    from entityfold.domain.model import PersonCandidate
    from entityfold.domain.ports.oracle import OracleRequest

log = getLogger(__name__)


def _default_client_factory(config: ResilienceConfig) -> ResilientClient:
    return ResilientClient(config)


def candidate_payload(candidate: PersonCandidate) -> PersonPayload:
    person = candidate.person
    return PersonPayload(
        people_id=candidate.people_id,
        first_name=person.first_name,
        middle_name=person.middle_name,
        last_name=person.last_name,
        email=person.email,
        phone=person.phone,
        date_of_birth=person.date_of_birth,
        created_at=person.created_at,
        entity=EntityPayload.model_validate(candidate.entity),
    )


def request_payload(request: OracleRequest) -> OracleRequestPayload:
    return OracleRequestPayload(
        primary=candidate_payload(request.primary),
        duplicates=[candidate_payload(candidate) for candidate in request.duplicates],
    )


@dataclass(slots=True)
class HttpResolutionOracle:
    """POSTs one duplicate group as JSON and reads back ``{keep, remove, rationale}``.

    The underlying client is created on first use and shared by every call made
    from the same event loop; call ``aclose`` on shutdown.
    """

    config: OracleConfig
    client_factory: Callable[[ResilienceConfig], ResilientClient] = field(
        default=_default_client_factory
    )
    _client: ResilientClient | None = field(default=None, init=False, repr=False)

    async def __call__(self, request: OracleRequest) -> MergeDecision:
        body = request_payload(request).model_dump(mode="json")
        client = self._ensure_client()
        try:
            response = await client.post(self.config.url, json=body)
            response.raise_for_status()
        except httpx.HTTPError as exc:
            log.warning("Resolution oracle call failed for %s: %s", request.candidate_ids(), exc)
            raise ExternalServiceError(f"Resolution oracle request failed: {exc}") from exc

        try:
            payload = OracleDecisionPayload.model_validate(response.json())
        except ValueError as exc:
            raise ExternalServiceError(f"Resolution oracle returned an invalid decision: {exc}") from exc

        log.debug("Oracle decision for %s: keep=%s", request.candidate_ids(), payload.keep)
        return MergeDecision(
            keep=payload.keep,
            remove=tuple(payload.remove),
            rationale=payload.rationale,
        )

    async def aclose(self) -> None:
        if self._client is not None:
            await self._client.aclose()
            self._client = None

    def _ensure_client(self) -> ResilientClient:
        if self._client is None:
            self._client = self.client_factory(self.config.resilience)
        return self._client
