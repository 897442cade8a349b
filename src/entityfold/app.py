"""Application orchestration entry points."""

from __future__ import annotations

import asyncio
from logging import getLogger
from typing import TYPE_CHECKING

from entityfold.adapters.oracle import HttpResolutionOracle
from entityfold.adapters.sqlalchemy import Database
from entityfold.config import (
    MergeConfig,
    MissingConfigurationError,
    get_database_config,
    get_merge_config,
    get_oracle_config,
)
from entityfold.config.errors import ConfigurationError
from entityfold.domain.merge import (
    AnalysisResult,
    EntityLockRegistry,
    MergeExecutor,
    MergePlanner,
)
from entityfold.domain.queries import DEFAULT_PAGE, DEFAULT_PAGE_SIZE, DuplicateQueries

if TYPE_CHECKING:
    from entityfold.adapters.sqlalchemy import SqlAlchemyMergeUnitOfWork
    from entityfold.config import DatabaseConfig, OracleConfig
    from entityfold.domain.merge import MergeProposal, MergeResult
    from entityfold.domain.model import Entity
    from entityfold.domain.ports.oracle import ResolutionOracle
    from entityfold.domain.queries import DuplicateNamePage

log = getLogger(__name__)


class MergeService:
    """Everything the HTTP routes and the CLI need, built once per process.

    Owns the entity lock registry, so all merges that go through one service
    instance are serialised per entity id.
    """

    def __init__(
        self,
        database: Database,
        *,
        config: MergeConfig | None = None,
        oracle: ResolutionOracle | None = None,
        locks: EntityLockRegistry | None = None,
    ) -> None:
        self.database = database
        self.config = config or MergeConfig()
        self.oracle = oracle
        self.locks = locks or EntityLockRegistry()
        self.queries = DuplicateQueries(self.unit_of_work)
        self.executor = MergeExecutor(
            self.unit_of_work,
            locks=self.locks,
            timeout_seconds=self.config.transaction_timeout_seconds,
            lock_wait_seconds=self.config.lock_wait_seconds,
        )
        self.planner = (
            MergePlanner(oracle, concurrency=self.config.oracle_concurrency)
            if oracle is not None
            else None
        )

    def unit_of_work(self) -> SqlAlchemyMergeUnitOfWork:
        return self.database.unit_of_work(
            statement_timeout_seconds=self.config.transaction_timeout_seconds
        )

    def similar_entity_names(self) -> list[str]:
        return self.queries.similar_entity_names()

    def similar_entity_names_page(
        self,
        kind: object,
        *,
        page: int = DEFAULT_PAGE,
        limit: int = DEFAULT_PAGE_SIZE,
    ) -> DuplicateNamePage:
        return self.queries.similar_entity_names_page(kind, page=page, limit=limit)

    def similar_people_names(self) -> list[str]:
        return self.queries.similar_people_names()

    def entities_named(self, name: str) -> list[Entity]:
        return self.queries.entities_named(name)

    async def analyze(self, raw_name: str) -> AnalysisResult:
        """Look up people by name and ask the oracle to resolve each duplicate group."""

        candidates = await asyncio.to_thread(self.queries.analysis_candidates, raw_name)
        if not candidates:
            return AnalysisResult(grouped=[], total_found=0, duplicate_groups_count=0)
        if self.planner is None:
            raise ConfigurationError("Resolution oracle is not configured")
        return await self.planner.analyze(candidates)

    def apply(self, proposal: MergeProposal) -> MergeResult:
        return self.executor.apply(proposal)

    async def aclose(self) -> None:
        close = getattr(self.oracle, "aclose", None)
        if close is not None:
            await close()

    def close(self) -> None:
        self.database.dispose()


def build_oracle(config: OracleConfig | None = None) -> HttpResolutionOracle | None:
    """HTTP oracle from ``config`` or the environment; ``None`` when not configured."""

    if config is None:
        try:
            config = get_oracle_config()
        except MissingConfigurationError as exc:
            log.warning("Duplicate analysis disabled: %s", exc)
            return None
    return HttpResolutionOracle(config)


def build_service(
    *,
    database_config: DatabaseConfig | None = None,
    merge_config: MergeConfig | None = None,
    oracle: ResolutionOracle | None = None,
    create_schema: bool = False,
) -> MergeService:
    """Wire a ``MergeService`` from explicit objects, falling back to the environment."""

    database = Database.from_config(database_config or get_database_config())
    if create_schema:
        database.create_schema()
    effective_oracle = oracle if oracle is not None else build_oracle()
    service = MergeService(
        database,
        config=merge_config or get_merge_config(),
        oracle=effective_oracle,
    )
    log.info(
        "Merge service ready: database=%s, oracle=%s, timeout=%ss",
        database.engine.url.render_as_string(hide_password=True),
        "configured" if effective_oracle is not None else "disabled",
        service.config.transaction_timeout_seconds,
    )
    return service
