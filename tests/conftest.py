from __future__ import annotations

import os
from collections.abc import Generator
from pathlib import Path

import fakeredis
import pytest


@pytest.fixture(scope="session", autouse=True)
def _init_catalog_for_tests() -> None:
    """Initialize the catalog from the repo's `assets/elixirs.csv` and forbid the built-in fallback.

    Loader tests that need a different catalog read `tests/catalog_fixture` directly.
    """

    os.environ["BOOP_STRICT_CATALOG"] = "1"

    from boop.catalog.singleton import init_catalog, reset_catalog_for_tests

    reset_catalog_for_tests()
    init_catalog(project_root=Path(__file__).resolve().parents[1])


@pytest.fixture()
def r() -> fakeredis.FakeRedis:
    return fakeredis.FakeRedis(decode_responses=True)


@pytest.fixture()
def client_and_redis(r: fakeredis.FakeRedis):
    """Shared fixture for tests that need both a FastAPI TestClient and fakeredis."""

    from fastapi.testclient import TestClient

    from boop.api.deps import get_redis
    from boop.main import app

    def _override() -> Generator[fakeredis.FakeRedis, None, None]:
        yield r

    app.dependency_overrides[get_redis] = _override
    with TestClient(app) as c:
        yield c, r
    app.dependency_overrides.clear()
