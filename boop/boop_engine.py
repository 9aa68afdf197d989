from __future__ import annotations

import logging
import math
import random
from collections.abc import Sequence
from dataclasses import dataclass, field
from datetime import UTC, datetime

import redis

from boop.api.models import (
    ActivityRecord,
    BoopNotification,
    BoopResult,
    ElixirUsageRecord,
    FailureReason,
    IdentityState,
    Reward,
    Side,
)
from boop.catalog.registry import ElixirCatalog
from boop.catalog.singleton import get_catalog
from boop.config import EngineSettings
from boop.cooldown import is_eligible
from boop.effects import EffectContext, applies_on, apply_elixir
from boop.fsm import BoopFSM
from boop.history import queue_activity, queue_usage
from boop.identity_store import get_identity, identity_exists, queue_score_updates
from boop.inventory import active_elixir_ids, grant, inventory_key, queue_consume
from boop.lock import LockBusyError, boop_locks
from boop.rewards import draw_reward
from boop.streams import Mailbox, queue_to_mailbox


logger = logging.getLogger(__name__)

BASELINE = 1.0


def _now() -> datetime:
    return datetime.now(tz=UTC)


def round_half_away(value: float) -> int:
    return int(math.copysign(math.floor(abs(value) + 0.5), value))


@dataclass(slots=True)
class Resolution:
    """Running state of one boop while effects are applied."""

    initiator_id: int
    target_id: int
    timestamp: datetime
    initiator_value: float = BASELINE
    target_value: float = BASELINE
    initiator_used: list[str] = field(default_factory=list)
    target_used: list[str] = field(default_factory=list)
    usage: list[ElixirUsageRecord] = field(default_factory=list)
    # (holder identity, elixir id)
    consumed: list[tuple[int, int]] = field(default_factory=list)


def run_phase(
    *,
    res: Resolution,
    side: Side,
    items: Sequence[tuple[int, int]],
    initiator: IdentityState,
    target: IdentityState,
    catalog: ElixirCatalog,
    rng: random.Random,
) -> None:
    """Apply one party's active elixirs (ascending id) to the running values."""

    holder_id = initiator.identity_id if side == Side.initiator else target.identity_id

    for elixir_id, _quantity in items:
        elixir = catalog.get(elixir_id)
        if elixir is None:
            # Uncatalogued id: treated as tampering. Everything so far is discarded.
            logger.warning(
                "Unknown elixir %s active for identity %s in boop %s -> %s; resetting to baseline",
                elixir_id,
                holder_id,
                res.initiator_id,
                res.target_id,
            )
            res.initiator_value = BASELINE
            res.target_value = BASELINE
            res.consumed.append((holder_id, elixir_id))
            continue

        if not applies_on(elixir.effect, side):
            continue

        ctx = EffectContext(
            initiator_value=res.initiator_value,
            target_value=res.target_value,
            target_received_score=target.received_score,
            initiator_sent_score=initiator.sent_score,
            holder=side,
        )
        outcome = apply_elixir(elixir, ctx, rng=rng)
        if not outcome.fired:
            continue

        res.initiator_value += outcome.initiator_delta
        res.target_value += outcome.target_delta
        res.consumed.append((holder_id, elixir_id))
        res.usage.append(
            ElixirUsageRecord(
                timestamp=res.timestamp,
                initiator_id=res.initiator_id,
                target_id=res.target_id,
                elixir_id=elixir_id,
                side=side,
            )
        )
        if side == Side.initiator:
            res.initiator_used.append(elixir.name)
        else:
            res.target_used.append(elixir.name)


def _commit(*, r: redis.Redis, res: Resolution, initiator_value: int, target_value: int) -> BoopNotification:
    """Write activity, scores, usage history, consumes and the target's
    notification in one MULTI/EXEC.

    The holders' inventories are WATCHed and re-read inside the transaction, so
    a grant or consume landing mid-boop retries the commit instead of being
    overwritten.
    """

    notification = BoopNotification(
        initiator_id=res.initiator_id,
        target_id=res.target_id,
        value=target_value,
        ts=res.timestamp,
    )
    watched = sorted({inventory_key(holder_id) for holder_id, _ in res.consumed})

    def _txn(pipe: redis.client.Pipeline) -> None:
        current: dict[tuple[int, int], int] = {}
        for holder_id, elixir_id in res.consumed:
            raw = pipe.hget(inventory_key(holder_id), str(elixir_id))
            current[(holder_id, elixir_id)] = int(raw) if raw else 0

        pipe.multi()
        queue_activity(
            pipe=pipe,
            record=ActivityRecord(
                initiator_id=res.initiator_id,
                target_id=res.target_id,
                initiator_value=initiator_value,
                target_value=target_value,
                timestamp=res.timestamp,
            ),
        )
        queue_score_updates(
            pipe=pipe,
            initiator_id=res.initiator_id,
            target_id=res.target_id,
            initiator_value=initiator_value,
            target_value=target_value,
        )
        queue_usage(pipe=pipe, records=res.usage)
        for (holder_id, elixir_id), quantity in current.items():
            if quantity <= 0:
                # Removed since the phases read it; nothing left to take.
                continue
            queue_consume(pipe=pipe, identity_id=holder_id, elixir_id=elixir_id, current_quantity=quantity)
        queue_to_mailbox(
            pipe=pipe,
            mailbox=Mailbox(identity_id=notification.target_id),
            fields=notification.model_dump(mode="json"),
        )

    r.transaction(_txn, *watched)
    return notification


def _grant_reward(*, r: redis.Redis, identity_id: int, catalog: ElixirCatalog, rng: random.Random) -> Reward | None:
    reward = draw_reward(rng=rng, catalog=catalog)
    if reward is None:
        return None
    try:
        grant(r=r, identity_id=identity_id, elixir_id=reward.elixir_id, quantity=reward.quantity)
    except redis.RedisError:
        # The boop itself is already committed; only the loot is lost.
        logger.exception("Reward grant of elixir %s failed for identity %s", reward.elixir_id, identity_id)
        return None
    return reward


def _resolve_locked(
    *,
    r: redis.Redis,
    fsm: BoopFSM,
    initiator: IdentityState,
    target: IdentityState,
    timestamp: datetime,
    catalog: ElixirCatalog,
    rng: random.Random,
) -> BoopResult:
    res = Resolution(initiator_id=initiator.identity_id, target_id=target.identity_id, timestamp=timestamp)
    for side, holder_id in ((Side.initiator, initiator.identity_id), (Side.target, target.identity_id)):
        run_phase(
            res=res,
            side=side,
            items=active_elixir_ids(r=r, identity_id=holder_id),
            initiator=initiator,
            target=target,
            catalog=catalog,
            rng=rng,
        )

    # Running values stay fractional until here.
    initiator_value = round_half_away(res.initiator_value)
    target_value = round_half_away(res.target_value)
    notification = _commit(r=r, res=res, initiator_value=initiator_value, target_value=target_value)
    fsm.commit()

    logger.info(
        "boop %s -> %s committed: %s/%s (%d elixirs used)",
        res.initiator_id,
        res.target_id,
        initiator_value,
        target_value,
        len(res.usage),
    )

    return BoopResult(
        status=fsm.status(),
        timestamp=timestamp,
        initiator_value=initiator_value,
        target_value=target_value,
        initiator_elixirs_used=res.initiator_used,
        target_elixirs_used=res.target_used,
        reward=_grant_reward(r=r, identity_id=res.initiator_id, catalog=catalog, rng=rng),
        notification=notification,
    )


def _failed(fsm: BoopFSM, reason: FailureReason) -> BoopResult:
    fsm.abort()
    return BoopResult(status=fsm.status(), reason=reason)


def resolve_boop(
    *,
    r: redis.Redis,
    initiator_id: int,
    target_id: int,
    catalog: ElixirCatalog | None = None,
    rng: random.Random | None = None,
    now: datetime | None = None,
    settings: EngineSettings | None = None,
) -> BoopResult:
    """Resolve one boop from `initiator_id` to `target_id`.

    Never raises: every outcome is a BoopResult (success, cooldown_active, or
    failed with a reason). Nothing is mutated unless the result is success.
    """

    fsm = BoopFSM(initiator_id=initiator_id, target_id=target_id)

    if initiator_id == target_id:
        return _failed(fsm, FailureReason.self_interaction)

    catalog = catalog or get_catalog()
    rng = rng or random.Random()
    settings = settings or EngineSettings()

    try:
        # Early rejection only; both are read again under the locks.
        known = identity_exists(r=r, identity_id=initiator_id) and identity_exists(r=r, identity_id=target_id)
    except (redis.RedisError, ValueError):
        logger.exception("Identity lookup failed for boop %s -> %s", initiator_id, target_id)
        return _failed(fsm, FailureReason.persistence_failure)

    if not known:
        return _failed(fsm, FailureReason.unknown_identity)

    result: BoopResult | None = None
    try:
        with boop_locks(
            r=r,
            initiator_id=initiator_id,
            target_id=target_id,
            ttl_ms=settings.lock_ttl_ms,
            wait_ms=settings.lock_wait_ms,
        ):
            timestamp = now or _now()
            # Scores feed the effects, so they must be the ones current under the lock.
            initiator = get_identity(r=r, identity_id=initiator_id)
            target = get_identity(r=r, identity_id=target_id)

            if initiator is None or target is None:
                result = _failed(fsm, FailureReason.unknown_identity)
            # Checked under the pair lock so two concurrent boops cannot both pass.
            elif not is_eligible(
                r=r,
                initiator_id=initiator_id,
                target_id=target_id,
                now=timestamp,
                cooldown=settings.cooldown,
            ):
                fsm.deny()
                logger.info("boop %s -> %s rejected: cooldown active", initiator_id, target_id)
                result = BoopResult(status=fsm.status())
            else:
                fsm.begin()
                result = _resolve_locked(
                    r=r,
                    fsm=fsm,
                    initiator=initiator,
                    target=target,
                    timestamp=timestamp,
                    catalog=catalog,
                    rng=rng,
                )
    except LockBusyError:
        logger.info("boop %s -> %s rejected: locks busy", initiator_id, target_id)
        return _failed(fsm, FailureReason.busy)
    except (redis.RedisError, ValueError):
        if result is not None:
            # The verdict stands; only the lock release failed and the lock will expire.
            logger.exception("Lock release failed after boop %s -> %s", initiator_id, target_id)
            return result
        logger.exception("Boop %s -> %s aborted", initiator_id, target_id)
        return _failed(fsm, FailureReason.persistence_failure)

    return result
