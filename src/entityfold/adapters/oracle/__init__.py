"""Resolution oracle adapters."""

from __future__ import annotations

from .client import HttpResolutionOracle, candidate_payload, request_payload
from .schema import OracleDecisionPayload, OracleRequestPayload

__all__ = [
    "HttpResolutionOracle",
    "OracleDecisionPayload",
    "OracleRequestPayload",
    "candidate_payload",
    "request_payload",
]
