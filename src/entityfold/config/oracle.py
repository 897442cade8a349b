"""Resolution oracle endpoint configuration."""

from __future__ import annotations

from dataclasses import dataclass

from .env import env_float, env_int, optional_env_var, require_env_vars
from .http_resilience import RateLimit, ResilienceConfig

ORACLE_TIMEOUT_SECONDS = 60.0


@dataclass(frozen=True)
class OracleConfig:
    """Holds the resolution oracle endpoint and its client settings."""

    url: str
    resilience: ResilienceConfig
    token: str | None = None


def get_oracle_config(*, resilience: ResilienceConfig | None = None) -> OracleConfig:
    values = require_env_vars(("ENTITYFOLD_ORACLE_URL",))
    token = optional_env_var("ENTITYFOLD_ORACLE_TOKEN")
    headers = {"Authorization": f"Bearer {token}"} if token else None
    calls_per_second = env_int("ENTITYFOLD_ORACLE_CALLS_PER_SECOND", 0, minimum=0)
    return OracleConfig(
        url=values["ENTITYFOLD_ORACLE_URL"],
        token=token,
        resilience=resilience
        or ResilienceConfig(
            name="oracle",
            timeout_seconds=env_float(
                "ENTITYFOLD_ORACLE_TIMEOUT_SECONDS", ORACLE_TIMEOUT_SECONDS, minimum=0.001
            ),
            ratelimit=(
                RateLimit(max_calls=calls_per_second, per_seconds=1.0)
                if calls_per_second
                else None
            ),
            default_headers=headers,
        ),
    )
