from __future__ import annotations

import logging
from datetime import UTC, datetime, timedelta

import redis

from boop.history import latest_activity


logger = logging.getLogger(__name__)

DEFAULT_COOLDOWN = timedelta(minutes=10)


def is_eligible(
    *,
    r: redis.Redis,
    initiator_id: int,
    target_id: int,
    now: datetime | None = None,
    cooldown: timedelta = DEFAULT_COOLDOWN,
) -> bool:
    """Whether `initiator_id` may boop `target_id` at `now`.

    Only the latest activity in this exact direction counts. A failed or
    unreadable lookup denies the boop.
    """

    if initiator_id == target_id:
        return False

    try:
        last = latest_activity(r=r, initiator_id=initiator_id, target_id=target_id)
    except (redis.RedisError, ValueError):
        logger.exception("Cooldown lookup failed for %s -> %s; denying", initiator_id, target_id)
        return False

    if last is None:
        return True

    now = now or datetime.now(tz=UTC)
    return now - last.timestamp >= cooldown
