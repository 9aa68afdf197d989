from __future__ import annotations

import random
from bisect import bisect_right

from boop.api.models import Reward
from boop.catalog.registry import ElixirCatalog


DRAW_MAX = 100_000

# Upper bounds (exclusive) of each bucket over a draw in [0, DRAW_MAX].
# Bucket 0 grants nothing; bucket n grants a tier-n elixir.
TIER_THRESHOLDS: tuple[int, ...] = (25_000, 50_000, 69_000, 85_000, 94_000)


def tier_for_draw(draw: int) -> int:
    """Map a draw to a reward tier; 0 means nothing."""

    if not 0 <= draw <= DRAW_MAX:
        raise ValueError(f"draw must be within 0..{DRAW_MAX}")
    return bisect_right(TIER_THRESHOLDS, draw)


def draw_reward(*, rng: random.Random, catalog: ElixirCatalog) -> Reward | None:
    tier = tier_for_draw(rng.randint(0, DRAW_MAX))
    if tier == 0:
        return None

    candidates = catalog.ids_for_tier(tier)
    if not candidates:
        return None

    elixir = catalog.get(rng.choice(candidates))
    if elixir is None:
        return None

    return Reward(
        elixir_id=elixir.elixir_id,
        name=elixir.name,
        description=elixir.description,
        quantity=rng.randint(1, 2),
    )
