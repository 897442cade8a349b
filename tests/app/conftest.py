from __future__ import annotations

from typing import TYPE_CHECKING

import pytest

from entityfold.adapters.sqlalchemy import Database
from entityfold.config import DatabaseConfig

if TYPE_CHECKING:
    from collections.abc import Iterator
    from pathlib import Path


@pytest.fixture
def database_uri(tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> str:
    uri = f"sqlite+pysqlite:///{tmp_path / 'directory.db'}"
    monkeypatch.setenv("DATABASE_URI", uri)
    monkeypatch.delenv("ENTITYFOLD_ORACLE_URL", raising=False)
    monkeypatch.delenv("ENTITYFOLD_MERGE_TIMEOUT_SECONDS", raising=False)
    monkeypatch.delenv("ENTITYFOLD_LOCK_WAIT_SECONDS", raising=False)
    return uri


@pytest.fixture
def file_database(database_uri: str) -> Iterator[Database]:
    database = Database.from_config(DatabaseConfig(uri=database_uri))
    database.create_schema()
    yield database
    database.dispose()
