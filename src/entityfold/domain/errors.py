"""Error taxonomy shared by the merge workflow and its adapters."""

from __future__ import annotations

from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from collections.abc import Sequence


class MergeError(RuntimeError):
    """Base class for failures surfaced to callers of the merge engine."""

    status_code: int = 500

    def __init__(self, message: str, *, details: object | None = None) -> None:
        super().__init__(message)
        self.message = message
        self.details = details


class ValidationError(MergeError):
    """Client input is malformed or violates a structural merge invariant."""

    status_code = 400


class NotFoundError(MergeError):
    """A referenced entity does not exist or is already soft-deleted."""

    status_code = 404

    def __init__(self, missing_ids: Sequence[int]) -> None:
        self.missing_ids = tuple(missing_ids)
        joined = ", ".join(str(entity_id) for entity_id in self.missing_ids)
        super().__init__(
            f"Invalid entity IDs: {joined} not found or already deleted",
            details={"missing_ids": list(self.missing_ids)},
        )


class ExternalServiceError(MergeError):
    """The resolution oracle was unreachable or answered with garbage."""

    status_code = 503


class TransactionError(MergeError):
    """The atomic merge failed and was rolled back."""

    status_code = 500

    def __init__(self, cause: str, *, details: object | None = None) -> None:
        self.cause = cause
        super().__init__(f"Failed to apply merge: {cause}", details=details)
