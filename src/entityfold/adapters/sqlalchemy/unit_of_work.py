"""SQLAlchemy-backed database handle and units of work."""

from __future__ import annotations

from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from logging import getLogger
from typing import TYPE_CHECKING, Literal

from sqlalchemy import create_engine, make_url, text
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session, sessionmaker
from sqlalchemy.pool import StaticPool

from entityfold.adapters.sqlalchemy.errors import to_transaction_error, translate_storage_errors
from entityfold.adapters.sqlalchemy.mappings import create_all_tables, start_mappers
from entityfold.adapters.sqlalchemy.repositories import (
    SqlAlchemyAuditRepository,
    SqlAlchemyEntityRepository,
    SqlAlchemyPersonRepository,
    SqlAlchemyPropertyRepository,
)
from entityfold.domain.ports.unit_of_work import MergeRepositories, RepositoryCollection

if TYPE_CHECKING:
    from types import TracebackType

    from sqlalchemy.engine import Engine

    from entityfold.config.storage import DatabaseConfig

log = getLogger(__name__)


class StartupError(RuntimeError):
    """Raised when a unit of work is used outside its ``with`` block."""


def _engine_for(config: DatabaseConfig) -> Engine:
    if not config.is_sqlite:
        return create_engine(config.uri, echo=config.echo, pool_pre_ping=True)
    in_memory = make_url(config.uri).database in {None, "", ":memory:"}
    # request handlers run in a thread pool
    connect_args = {"check_same_thread": False}
    if in_memory:
        return create_engine(
            config.uri,
            echo=config.echo,
            connect_args=connect_args,
            poolclass=StaticPool,
        )
    return create_engine(config.uri, echo=config.echo, connect_args=connect_args)


@dataclass(slots=True)
class Database:
    """Engine plus session factory, built once at process start and passed around."""

    engine: Engine
    session_factory: sessionmaker[Session] = field(init=False)

    def __post_init__(self) -> None:
        start_mappers()
        self.session_factory = sessionmaker(bind=self.engine, expire_on_commit=False)

    @classmethod
    def from_config(cls, config: DatabaseConfig) -> Database:
        return cls(engine=_engine_for(config))

    def create_schema(self) -> None:
        log.info("Creating tables on %s", self.engine.url.render_as_string(hide_password=True))
        create_all_tables(self.engine)

    def dispose(self) -> None:
        self.engine.dispose()

    def unit_of_work(self, *, statement_timeout_seconds: float | None = None) -> SqlAlchemyMergeUnitOfWork:
        return SqlAlchemyMergeUnitOfWork(self, statement_timeout_seconds=statement_timeout_seconds)


class BaseSqlAlchemyUnitOfWork[TRepositories: RepositoryCollection](ABC):
    """Generic SQLAlchemy unit of work with pluggable repository collections."""

    def __init__(self, database: Database, *, statement_timeout_seconds: float | None = None) -> None:
        self.session_factory: sessionmaker[Session] = database.session_factory
        self.statement_timeout_seconds = statement_timeout_seconds
        self._session: Session | None = None
        self._repositories: TRepositories | None = None

    @abstractmethod
    def _build_repositories(self, session: Session) -> TRepositories: ...

    def __enter__(self) -> BaseSqlAlchemyUnitOfWork[TRepositories]:
        if self._session is not None:
            raise StartupError("Unit of work session already initialised")
        self._session = self.session_factory()
        self._apply_statement_timeout(self._session)
        self._repositories = self._build_repositories(self._session)
        return self

    def __exit__(
        self,
        exc_type: type[BaseException] | None,
        exc_value: BaseException | None,
        traceback: TracebackType | None,
    ) -> Literal[False]:
        if exc_type is not None:
            self.rollback()
        self.session.close()
        self._session = None
        self._repositories = None
        if isinstance(exc_value, SQLAlchemyError):
            raise to_transaction_error(exc_value) from exc_value
        return False

    def commit(self) -> None:
        with translate_storage_errors():
            self.session.commit()

    def rollback(self) -> None:
        self.session.rollback()

    @property
    def repositories(self) -> TRepositories:
        if self._repositories is None:
            raise StartupError("Unit of work session not initialised")
        return self._repositories

    @property
    def session(self) -> Session:
        if self._session is None:
            raise StartupError("Unit of work session not initialised")
        return self._session

    def _apply_statement_timeout(self, session: Session) -> None:
        if not self.statement_timeout_seconds:
            return
        if session.get_bind().dialect.name != "postgresql":
            return
        milliseconds = max(1, int(self.statement_timeout_seconds * 1000))
        session.execute(text(f"SET LOCAL statement_timeout = {milliseconds}"))


class SqlAlchemyMergeUnitOfWork(BaseSqlAlchemyUnitOfWork[MergeRepositories]):
    """Unit of work for duplicate queries and merge application."""

    def _build_repositories(self, session: Session) -> MergeRepositories:
        return MergeRepositories(
            entities=SqlAlchemyEntityRepository(session),
            people=SqlAlchemyPersonRepository(session),
            properties=SqlAlchemyPropertyRepository(session),
            audits=SqlAlchemyAuditRepository(session),
        )


if TYPE_CHECKING:
    from entityfold.domain.ports.unit_of_work import MergeUnitOfWork

    def _uow_check(database: Database) -> MergeUnitOfWork:
        return SqlAlchemyMergeUnitOfWork(database)
