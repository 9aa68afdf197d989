from __future__ import annotations

import logging
from collections.abc import Generator

import redis

from boop.catalog.registry import ElixirCatalog
from boop.catalog.singleton import get_catalog
from boop.config import EngineSettings
from boop.infra.redis_client import create_redis


logger = logging.getLogger(__name__)


def get_redis() -> Generator[redis.Redis, None, None]:
    client = create_redis()
    try:
        yield client
    finally:
        try:
            client.close()
        except redis.RedisError:
            logger.debug("Ignoring error while closing redis client", exc_info=True)


def get_elixir_catalog() -> ElixirCatalog:
    return get_catalog()


def get_engine_settings() -> EngineSettings:
    return EngineSettings.from_env()
