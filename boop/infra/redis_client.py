from __future__ import annotations

import os

import redis


def get_redis_url() -> str:
    return os.environ.get("REDIS_URL", "redis://localhost:6379/0")


def create_redis(*, url: str | None = None) -> redis.Redis:
    # decode_responses=True => strings in/out; every key and field in this app is text.
    return redis.Redis.from_url(url or get_redis_url(), decode_responses=True)
