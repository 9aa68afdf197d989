from __future__ import annotations

import fakeredis
import pytest

from boop.lock import LockBusyError, boop_locks, inventory_lock_key, pair_lock_key, redis_lock


def test_lock_is_exclusive_and_released(r: fakeredis.FakeRedis) -> None:
    with redis_lock(r=r, key="lock:test") as token:
        assert r.get("lock:test") == token
        with pytest.raises(LockBusyError):
            with redis_lock(r=r, key="lock:test", wait_ms=20):
                pass

    assert r.get("lock:test") is None
    with redis_lock(r=r, key="lock:test"):
        pass


def test_release_leaves_foreign_token_alone(r: fakeredis.FakeRedis) -> None:
    with redis_lock(r=r, key="lock:test"):
        # Simulate expiry followed by another holder taking the key.
        r.set("lock:test", "someone-else")
    assert r.get("lock:test") == "someone-else"


def test_boop_locks_cover_pair_and_both_inventories(r: fakeredis.FakeRedis) -> None:
    with boop_locks(r=r, initiator_id=2, target_id=1, wait_ms=0):
        assert r.exists(pair_lock_key(2, 1))
        assert r.exists(inventory_lock_key(1))
        assert r.exists(inventory_lock_key(2))
        # The reverse pair is a different cooldown key, but inventories are shared.
        assert not r.exists(pair_lock_key(1, 2))
        with pytest.raises(LockBusyError):
            with boop_locks(r=r, initiator_id=1, target_id=2, wait_ms=0):
                pass
        # The failed attempt must not leave its pair lock behind.
        assert not r.exists(pair_lock_key(1, 2))

    for key in (pair_lock_key(2, 1), inventory_lock_key(1), inventory_lock_key(2)):
        assert not r.exists(key)
