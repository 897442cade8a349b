from __future__ import annotations

from typing import TYPE_CHECKING

import pytest
from fastapi.testclient import TestClient

from entityfold.api import create_app
from entityfold.app import MergeService
from entityfold.config import MergeConfig
from tests.helpers.directory import keep_primary_oracle

if TYPE_CHECKING:
    from collections.abc import Iterator

    from entityfold.adapters.sqlalchemy import Database


@pytest.fixture
def service(database: Database) -> MergeService:
    return MergeService(database, config=MergeConfig(), oracle=keep_primary_oracle())


@pytest.fixture
def client(service: MergeService) -> Iterator[TestClient]:
    with TestClient(create_app(service)) as test_client:
        yield test_client
