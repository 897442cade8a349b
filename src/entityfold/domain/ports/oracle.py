"""Port for the external resolution oracle."""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import TYPE_CHECKING, Protocol, runtime_checkable

if TYPE_CHECKING:
    from entityfold.domain.model import PersonCandidate


@dataclass(slots=True, frozen=True)
class OracleRequest:
    """One duplicate group as presented to the oracle."""

    primary: PersonCandidate
    duplicates: tuple[PersonCandidate, ...]

    def candidate_ids(self) -> list[int]:
        return [self.primary.people_id, *(d.people_id for d in self.duplicates)]


@dataclass(slots=True, frozen=True)
class MergeDecision:
    keep: int
    remove: tuple[int, ...] = field(default_factory=tuple)
    rationale: str | None = None


@runtime_checkable
class ResolutionOracle(Protocol):
    """Decides which member of a group is canonical.

    Implementations may be slow and may fail; failures are raised as
    ``ExternalServiceError``.
    """

    async def __call__(self, request: OracleRequest) -> MergeDecision: ...
