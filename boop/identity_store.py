from __future__ import annotations

import re
from datetime import UTC, datetime, timedelta

import redis

from boop.api.models import IdentityState


IDENTITY_SEQ_KEY = "boop:identity_seq"
IDENTITY_NAMES_KEY = "boop:identity_names"  # normalized display name -> id
IDENTITY_KEY_PREFIX = "boop:identity:"  # + {id}, a hash

RENAME_INTERVAL = timedelta(days=14)


def _now() -> datetime:
    return datetime.now(tz=UTC)


def identity_key(identity_id: int) -> str:
    return f"{IDENTITY_KEY_PREFIX}{identity_id}"


def _name_key(display_name: str) -> str:
    return re.sub(r"\s+", " ", display_name).strip().casefold()


def register_identity(*, r: redis.Redis, display_name: str, now: datetime | None = None) -> IdentityState:
    name = display_name.strip()
    if not name:
        raise ValueError("display_name must not be blank")

    if r.hexists(IDENTITY_NAMES_KEY, _name_key(name)):
        raise ValueError("Display name already taken")

    identity_id = int(r.incr(IDENTITY_SEQ_KEY))
    # HSETNX closes the race between two registrations of the same name.
    if not r.hsetnx(IDENTITY_NAMES_KEY, _name_key(name), identity_id):
        raise ValueError("Display name already taken")

    ts = (now or _now()).isoformat()
    r.hset(
        identity_key(identity_id),
        mapping={
            "identity_id": identity_id,
            "display_name": name,
            "sent_score": 0,
            "received_score": 0,
            "created_at": ts,
            "last_checked_at": ts,
            "name_updated_at": ts,
        },
    )
    return require_identity(r=r, identity_id=identity_id)


def get_identity(*, r: redis.Redis, identity_id: int) -> IdentityState | None:
    raw = r.hgetall(identity_key(identity_id))
    if not raw:
        return None
    return IdentityState.model_validate(raw)


def require_identity(*, r: redis.Redis, identity_id: int) -> IdentityState:
    identity = get_identity(r=r, identity_id=identity_id)
    if identity is None:
        raise ValueError("Identity not found")
    return identity


def identity_exists(*, r: redis.Redis, identity_id: int) -> bool:
    return bool(r.exists(identity_key(identity_id)))


def rename_identity(
    *,
    r: redis.Redis,
    identity_id: int,
    display_name: str,
    now: datetime | None = None,
) -> IdentityState:
    """Change an identity's display name; allowed once every 14 days."""

    identity = require_identity(r=r, identity_id=identity_id)
    now = now or _now()

    elapsed = now - identity.name_updated_at
    if elapsed < RENAME_INTERVAL:
        days_remaining = (RENAME_INTERVAL - elapsed).days + 1
        raise ValueError(f"Display name can be changed again in {days_remaining} days")

    name = display_name.strip()
    if not name:
        raise ValueError("display_name must not be blank")
    same_name = _name_key(name) == _name_key(identity.display_name)
    if not same_name and not r.hsetnx(IDENTITY_NAMES_KEY, _name_key(name), identity_id):
        raise ValueError("Display name already taken")

    pipe = r.pipeline(transaction=True)
    if not same_name:
        pipe.hdel(IDENTITY_NAMES_KEY, _name_key(identity.display_name))
    pipe.hset(identity_key(identity_id), mapping={"display_name": name, "name_updated_at": now.isoformat()})
    pipe.execute()
    return require_identity(r=r, identity_id=identity_id)


def mark_checked(*, r: redis.Redis, identity_id: int, now: datetime | None = None) -> datetime:
    require_identity(r=r, identity_id=identity_id)
    ts = now or _now()
    r.hset(identity_key(identity_id), "last_checked_at", ts.isoformat())
    return ts


def queue_score_updates(
    *,
    pipe: redis.client.Pipeline,
    initiator_id: int,
    target_id: int,
    initiator_value: int,
    target_value: int,
) -> None:
    """Queue the additive score ledger updates for one boop.

    Values may be negative; the counters are not clamped.
    """

    pipe.hincrby(identity_key(initiator_id), "sent_score", initiator_value)
    pipe.hincrby(identity_key(target_id), "received_score", target_value)
