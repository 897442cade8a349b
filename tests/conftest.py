from __future__ import annotations

import os
from typing import TYPE_CHECKING

import pytest
from sqlalchemy import create_engine
from sqlalchemy.engine import Engine  # noqa: TC002
from sqlalchemy.orm import Session, sessionmaker
from sqlalchemy.pool import StaticPool

from entityfold.adapters.sqlalchemy import Database, create_all_tables, start_mappers
from entityfold.adapters.sqlalchemy.unit_of_work import SqlAlchemyMergeUnitOfWork

os.environ.setdefault("DATABASE_URI", "sqlite+pysqlite:///:memory:")

if TYPE_CHECKING:
    from collections.abc import Callable, Iterator


@pytest.fixture
def sqlite_engine() -> Iterator[Engine]:
    engine = create_engine(
        "sqlite+pysqlite:///:memory:",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    start_mappers()
    create_all_tables(engine)
    try:
        yield engine
    finally:
        engine.dispose()


@pytest.fixture
def sqlite_session(sqlite_engine: Engine) -> Iterator[Session]:
    session_factory = sessionmaker(bind=sqlite_engine, expire_on_commit=False)
    session = session_factory()
    try:
        yield session
    finally:
        session.close()


@pytest.fixture
def database(sqlite_engine: Engine) -> Database:
    return Database(engine=sqlite_engine)


@pytest.fixture
def sqlite_unit_of_work(database: Database) -> Callable[[], SqlAlchemyMergeUnitOfWork]:
    def factory() -> SqlAlchemyMergeUnitOfWork:
        return database.unit_of_work()

    return factory
