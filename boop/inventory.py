from __future__ import annotations

import redis

from boop.api.models import InventoryItem
from boop.catalog.registry import ElixirCatalog


INVENTORY_KEY_PREFIX = "boop:inventory:"  # + {identity_id}: hash elixir_id -> quantity
ACTIVE_KEY_PREFIX = "boop:inventory_active:"  # + {identity_id}: set of active elixir ids


def inventory_key(identity_id: int) -> str:
    return f"{INVENTORY_KEY_PREFIX}{identity_id}"


def active_key(identity_id: int) -> str:
    return f"{ACTIVE_KEY_PREFIX}{identity_id}"


def get_quantity(*, r: redis.Redis, identity_id: int, elixir_id: int) -> int:
    raw = r.hget(inventory_key(identity_id), str(elixir_id))
    return int(raw) if raw else 0


def grant(*, r: redis.Redis, identity_id: int, elixir_id: int, quantity: int) -> int:
    """Insert-or-add `quantity` of an elixir. Returns the new quantity."""

    if quantity <= 0:
        raise ValueError("quantity must be positive")
    return int(r.hincrby(inventory_key(identity_id), str(elixir_id), quantity))


def queue_consume(*, pipe: redis.client.Pipeline, identity_id: int, elixir_id: int, current_quantity: int) -> None:
    """Queue a consume of one unit given the quantity read inside the caller's WATCH.

    The entry (and its active flag) is removed rather than stored at zero.
    """

    field = str(elixir_id)
    if current_quantity <= 1:
        pipe.hdel(inventory_key(identity_id), field)
        pipe.srem(active_key(identity_id), field)
    else:
        pipe.hincrby(inventory_key(identity_id), field, -1)


def consume(*, r: redis.Redis, identity_id: int, elixir_id: int) -> int:
    """Decrement one unit, deleting the entry when it would reach zero.

    Runs as an optimistic WATCH/MULTI transaction so concurrent consumers of the
    same entry never drive it negative. Returns the remaining quantity.
    """

    key = inventory_key(identity_id)

    def _txn(pipe: redis.client.Pipeline) -> int:
        raw = pipe.hget(key, str(elixir_id))
        current = int(raw) if raw else 0
        if current <= 0:
            raise ValueError("Elixir not in inventory")
        pipe.multi()
        queue_consume(pipe=pipe, identity_id=identity_id, elixir_id=elixir_id, current_quantity=current)
        return current - 1

    return int(r.transaction(_txn, key, value_from_callable=True))


def set_active(*, r: redis.Redis, identity_id: int, elixir_id: int, active: bool) -> None:
    # WATCHed so a flag is never raised on an entry a concurrent boop just used up.
    key = inventory_key(identity_id)

    def _txn(pipe: redis.client.Pipeline) -> None:
        if not pipe.hget(key, str(elixir_id)):
            raise ValueError("Elixir not in inventory")
        pipe.multi()
        if active:
            pipe.sadd(active_key(identity_id), str(elixir_id))
        else:
            pipe.srem(active_key(identity_id), str(elixir_id))

    r.transaction(_txn, key)


def active_elixir_ids(*, r: redis.Redis, identity_id: int) -> list[tuple[int, int]]:
    """Active (elixir_id, quantity) pairs, ascending by elixir id.

    The ascending order is part of the resolution contract: amplify and
    percent effects depend on the running value at the time they apply.
    """

    active = r.smembers(active_key(identity_id))
    if not active:
        return []
    quantities = r.hgetall(inventory_key(identity_id))

    out: list[tuple[int, int]] = []
    for field in active:
        qty = int(quantities.get(field) or 0)
        if qty > 0:
            out.append((int(field), qty))
    out.sort(key=lambda pair: pair[0])
    return out


def list_inventory(*, r: redis.Redis, identity_id: int, catalog: ElixirCatalog) -> list[InventoryItem]:
    quantities = r.hgetall(inventory_key(identity_id))
    active = r.smembers(active_key(identity_id))

    items: list[InventoryItem] = []
    for field, raw_qty in quantities.items():
        elixir_id = int(field)
        definition = catalog.get(elixir_id)
        items.append(
            InventoryItem(
                elixir_id=elixir_id,
                quantity=int(raw_qty),
                active=field in active,
                name=definition.name if definition else None,
                description=definition.description if definition else None,
                family=definition.family.value if definition else None,
                tier=definition.tier if definition else None,
            )
        )
    items.sort(key=lambda i: i.elixir_id)
    return items
