"""Where the directory database lives."""

from __future__ import annotations

import os
from dataclasses import dataclass
from pathlib import Path
from typing import Final

DEFAULT_DB_FILENAME: Final[str] = "entityfold.db"


@dataclass(frozen=True, slots=True)
class StorageConfig:
    """Local data directory holding the SQLite file used when no URI is configured."""

    data_dir: Path
    database_filename: str = DEFAULT_DB_FILENAME

    def database_uri(self) -> str:
        data_dir = self.data_dir.expanduser().resolve()
        data_dir.mkdir(parents=True, exist_ok=True)
        return f"sqlite+pysqlite:///{data_dir / self.database_filename}"


@dataclass(frozen=True, slots=True)
class DatabaseConfig:
    uri: str
    echo: bool = False

    @property
    def is_sqlite(self) -> bool:
        return self.uri.startswith("sqlite")


def get_storage_config() -> StorageConfig:
    env_dir = os.getenv("ENTITYFOLD_DATA_DIR")
    if env_dir:
        return StorageConfig(data_dir=Path(env_dir))
    xdg_home = os.getenv("XDG_DATA_HOME")
    base = Path(xdg_home) if xdg_home else Path.home() / ".local" / "share"
    return StorageConfig(data_dir=base / "entityfold")


def get_database_config(*, storage: StorageConfig | None = None) -> DatabaseConfig:
    """``DATABASE_URI`` when set, otherwise a SQLite file in the data directory."""

    echo = os.getenv("ENTITYFOLD_SQL_ECHO", "").strip().lower() in {"1", "true", "yes"}
    env_uri = os.getenv("DATABASE_URI")
    if env_uri:
        return DatabaseConfig(uri=env_uri, echo=echo)
    return DatabaseConfig(uri=(storage or get_storage_config()).database_uri(), echo=echo)
