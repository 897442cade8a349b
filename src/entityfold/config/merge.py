"""Merge engine tuning values."""

from __future__ import annotations

from dataclasses import dataclass
from typing import Final

from .env import env_float, env_int

DEFAULT_TRANSACTION_TIMEOUT_SECONDS: Final[float] = 100.0
DEFAULT_ORACLE_CONCURRENCY: Final[int] = 4
DEFAULT_LOCK_WAIT_SECONDS: Final[float] = 30.0


@dataclass(frozen=True, slots=True)
class MergeConfig:
    """Limits applied to merge application and analysis passes."""

    transaction_timeout_seconds: float = DEFAULT_TRANSACTION_TIMEOUT_SECONDS
    lock_wait_seconds: float = DEFAULT_LOCK_WAIT_SECONDS
    oracle_concurrency: int = DEFAULT_ORACLE_CONCURRENCY


def get_merge_config() -> MergeConfig:
    return MergeConfig(
        transaction_timeout_seconds=env_float(
            "ENTITYFOLD_MERGE_TIMEOUT_SECONDS",
            DEFAULT_TRANSACTION_TIMEOUT_SECONDS,
            minimum=0.001,
        ),
        lock_wait_seconds=env_float(
            "ENTITYFOLD_LOCK_WAIT_SECONDS",
            DEFAULT_LOCK_WAIT_SECONDS,
            minimum=0.0,
        ),
        oracle_concurrency=env_int(
            "ENTITYFOLD_ORACLE_CONCURRENCY",
            DEFAULT_ORACLE_CONCURRENCY,
            minimum=1,
        ),
    )
