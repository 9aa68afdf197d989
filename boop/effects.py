"""Effect catalog: pure functions from (tier, running context) to value deltas.

Every handler has the same shape, `handler(tier, ctx, *, rng) -> EffectOutcome`,
and none of them touch storage. Dispatch goes through `EFFECT_HANDLERS`, keyed
by the catalog's effect kind.

Conditional effects (shields, antivenom, percent-boost) report `fired=False`
when they would not change anything in the holder's favor; the orchestrator
neither applies nor consumes those.
"""

from __future__ import annotations

import math
import random
from collections.abc import Callable
from dataclasses import dataclass

from boop.api.models import Side
from boop.catalog.registry import EffectKind, ElixirDefinition


@dataclass(frozen=True, slots=True)
class EffectContext:
    initiator_value: float
    target_value: float
    target_received_score: int = 0
    initiator_sent_score: int = 0
    # Whose active elixir is being applied.
    holder: Side = Side.initiator


@dataclass(frozen=True, slots=True)
class EffectOutcome:
    initiator_delta: float = 0.0
    target_delta: float = 0.0
    fired: bool = True


NOT_FIRED = EffectOutcome(fired=False)

EffectHandler = Callable[..., EffectOutcome]


def _both(delta: float) -> EffectOutcome:
    return EffectOutcome(initiator_delta=delta, target_delta=delta)


def _signed_square(v: float) -> float:
    return v * v if v >= 0 else -(v * v)


# ---- poisons (unconditional) ----


def flat_random(tier: int, ctx: EffectContext, *, rng: random.Random) -> EffectOutcome:
    low, high = (4, 6) if tier >= 2 else (2, 3)
    return _both(-rng.randint(low, high))


def flat_constant(tier: int, ctx: EffectContext, *, rng: random.Random) -> EffectOutcome:
    if tier >= 4:
        damage = 15
    elif tier == 3:
        damage = 10
    else:
        damage = 5
    return _both(-damage)


def percent_of_target(tier: int, ctx: EffectContext, *, rng: random.Random) -> EffectOutcome:
    if tier >= 5:
        p = 0.10
    elif tier == 4:
        p = 0.02
    else:
        p = 0.01
    return _both(-(ctx.target_received_score * p))


def asymmetric_cost(tier: int, ctx: EffectContext, *, rng: random.Random) -> EffectOutcome:
    # The target always pays the larger share.
    p_initiator, p_target = (0.03, 0.07) if tier >= 5 else (0.07, 0.13)
    return EffectOutcome(
        initiator_delta=-(ctx.initiator_sent_score * p_initiator),
        target_delta=-(ctx.target_received_score * p_target),
    )


def drain(tier: int, ctx: EffectContext, *, rng: random.Random) -> EffectOutcome:
    amount = ctx.target_received_score * (0.10 if tier >= 5 else 0.05)
    return EffectOutcome(initiator_delta=amount, target_delta=-amount)


# ---- boosters ----


def amplify(tier: int, ctx: EffectContext, *, rng: random.Random) -> EffectOutcome:
    return EffectOutcome(
        initiator_delta=_signed_square(ctx.initiator_value) - ctx.initiator_value,
        target_delta=_signed_square(ctx.target_value) - ctx.target_value,
    )


def flat_bonus(tier: int, ctx: EffectContext, *, rng: random.Random) -> EffectOutcome:
    if tier >= 3:
        bonus = 8
    elif tier == 2:
        bonus = 4
    else:
        bonus = 2
    return _both(bonus)


def percent_boost(tier: int, ctx: EffectContext, *, rng: random.Random) -> EffectOutcome:
    if tier >= 5:
        p = 0.50
    elif tier == 4:
        p = 0.25
    else:
        p = 0.05
    out = EffectOutcome(initiator_delta=ctx.initiator_value * p, target_delta=ctx.target_value * p)
    # Fires only when the holder's own value grows.
    own_delta = out.initiator_delta if ctx.holder == Side.initiator else out.target_delta
    if own_delta <= 0:
        return NOT_FIRED
    return out


def quarter_plus_ten(tier: int, ctx: EffectContext, *, rng: random.Random) -> EffectOutcome:
    return EffectOutcome(
        initiator_delta=(ctx.initiator_value * 0.25 + 10) - ctx.initiator_value,
        target_delta=(ctx.target_value * 0.25 + 10) - ctx.target_value,
    )


# ---- shields + antivenom (only act on incoming damage) ----

MITIGATION_RATES = {1: 0.10, 2: 0.25, 3: 0.50, 4: 0.75, 5: 0.95}
NEGATION_BUDGETS = {1: 2, 2: 5, 3: 10, 4: 20, 5: 30}
REFLECTION_RATES = {1: 0.05, 2: 0.10, 3: 0.25, 4: 0.50, 5: 0.95}


def _incoming_damage(ctx: EffectContext) -> float:
    return -ctx.target_value if ctx.target_value < 0 else 0.0


def _refund(target_delta: float, initiator_delta: float = 0.0) -> EffectOutcome:
    if target_delta <= 0:
        return NOT_FIRED
    return EffectOutcome(initiator_delta=initiator_delta, target_delta=target_delta)


def mitigation(tier: int, ctx: EffectContext, *, rng: random.Random) -> EffectOutcome:
    return _refund(_incoming_damage(ctx) * MITIGATION_RATES[tier])


def negation(tier: int, ctx: EffectContext, *, rng: random.Random) -> EffectOutcome:
    # Absorbs whole points until the value is no longer negative or the budget runs out.
    damage = _incoming_damage(ctx)
    return _refund(float(min(NEGATION_BUDGETS[tier], math.ceil(damage))))


def reflection(tier: int, ctx: EffectContext, *, rng: random.Random) -> EffectOutcome:
    reflected = _incoming_damage(ctx) * REFLECTION_RATES[tier]
    return _refund(reflected, initiator_delta=-reflected)


def inversion(tier: int, ctx: EffectContext, *, rng: random.Random) -> EffectOutcome:
    return _refund(_incoming_damage(ctx) * (2.0 if tier >= 5 else 1.5))


def antivenom(tier: int, ctx: EffectContext, *, rng: random.Random) -> EffectOutcome:
    return _refund(_incoming_damage(ctx))


EFFECT_HANDLERS: dict[EffectKind, EffectHandler] = {
    EffectKind.flat_random: flat_random,
    EffectKind.flat_constant: flat_constant,
    EffectKind.percent_of_target: percent_of_target,
    EffectKind.asymmetric_cost: asymmetric_cost,
    EffectKind.drain: drain,
    EffectKind.amplify: amplify,
    EffectKind.flat_bonus: flat_bonus,
    EffectKind.percent_boost: percent_boost,
    EffectKind.quarter_plus_ten: quarter_plus_ten,
    EffectKind.mitigation: mitigation,
    EffectKind.negation: negation,
    EffectKind.reflection: reflection,
    EffectKind.inversion: inversion,
    EffectKind.antivenom: antivenom,
}

_INITIATOR_EFFECTS = frozenset(
    {
        EffectKind.flat_random,
        EffectKind.flat_constant,
        EffectKind.percent_of_target,
        EffectKind.asymmetric_cost,
        EffectKind.drain,
        EffectKind.amplify,
        EffectKind.flat_bonus,
        EffectKind.percent_boost,
        EffectKind.quarter_plus_ten,
    }
)
_TARGET_EFFECTS = frozenset(
    {
        EffectKind.mitigation,
        EffectKind.negation,
        EffectKind.reflection,
        EffectKind.inversion,
        EffectKind.antivenom,
        EffectKind.percent_boost,
    }
)


def applies_on(effect: EffectKind, side: Side) -> bool:
    """Whether an active elixir of this kind participates when held by `side`."""

    if side == Side.initiator:
        return effect in _INITIATOR_EFFECTS
    return effect in _TARGET_EFFECTS


def apply_elixir(elixir: ElixirDefinition, ctx: EffectContext, *, rng: random.Random) -> EffectOutcome:
    return EFFECT_HANDLERS[elixir.effect](elixir.tier, ctx, rng=rng)
