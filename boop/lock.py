from __future__ import annotations

import time
from collections.abc import Iterator
from contextlib import ExitStack, contextmanager
from uuid import uuid4

import redis


class LockBusyError(ValueError):
    pass


def pair_lock_key(initiator_id: int, target_id: int) -> str:
    return f"lock:boop_pair:{initiator_id}:{target_id}"


def inventory_lock_key(identity_id: int) -> str:
    return f"lock:inventory:{identity_id}"


def _release(*, r: redis.Redis, key: str, token: str) -> None:
    # Only delete the key while it still holds our token; an expired lock may
    # already belong to someone else.
    def _txn(pipe: redis.client.Pipeline) -> None:
        if pipe.get(key) == token:
            pipe.multi()
            pipe.delete(key)

    r.transaction(_txn, key)


@contextmanager
def redis_lock(*, r: redis.Redis, key: str, ttl_ms: int = 5_000, wait_ms: int = 0) -> Iterator[str]:
    """Token-based lock on a single Redis key (SET NX PX).

    Waits up to `wait_ms` with capped exponential backoff, then raises
    LockBusyError. Yields the lock token.
    """

    token = uuid4().hex
    deadline = time.monotonic() + wait_ms / 1000
    delay = 0.005

    while not r.set(key, token, nx=True, px=ttl_ms):
        if time.monotonic() >= deadline:
            raise LockBusyError(f"Resource is busy: {key}")
        time.sleep(delay)
        delay = min(delay * 2, 0.05)

    try:
        yield token
    finally:
        _release(r=r, key=key, token=token)


@contextmanager
def boop_locks(
    *,
    r: redis.Redis,
    initiator_id: int,
    target_id: int,
    ttl_ms: int = 5_000,
    wait_ms: int = 2_000,
) -> Iterator[None]:
    """Serialize one boop against everything that shares its state.

    Holds the ordered-pair lock (closes the cooldown check-then-write window)
    and both parties' inventory locks. Inventory locks are always taken in
    ascending identity order so two boops in opposite directions cannot deadlock.
    """

    with ExitStack() as stack:
        stack.enter_context(redis_lock(r=r, key=pair_lock_key(initiator_id, target_id), ttl_ms=ttl_ms, wait_ms=wait_ms))
        for identity_id in sorted({initiator_id, target_id}):
            stack.enter_context(redis_lock(r=r, key=inventory_lock_key(identity_id), ttl_ms=ttl_ms, wait_ms=wait_ms))
        yield
