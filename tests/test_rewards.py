from __future__ import annotations

import random
from collections import Counter

import pytest

from boop.catalog.singleton import get_catalog
from boop.rewards import DRAW_MAX, draw_reward, tier_for_draw


@pytest.mark.parametrize(
    ("draw", "tier"),
    [
        (0, 0),
        (24_999, 0),
        (25_000, 1),
        (49_999, 1),
        (50_000, 2),
        (68_999, 2),
        (69_000, 3),
        (84_999, 3),
        (85_000, 4),
        (93_999, 4),
        (94_000, 5),
        (DRAW_MAX, 5),
    ],
)
def test_tier_boundaries(draw: int, tier: int) -> None:
    assert tier_for_draw(draw) == tier


def test_out_of_range_draw_rejected() -> None:
    with pytest.raises(ValueError):
        tier_for_draw(-1)
    with pytest.raises(ValueError):
        tier_for_draw(DRAW_MAX + 1)


def test_draw_distribution_converges() -> None:
    catalog = get_catalog()
    rng = random.Random(20240501)
    trials = 200_000

    tiers: Counter[int] = Counter()
    quantities: Counter[int] = Counter()
    for _ in range(trials):
        reward = draw_reward(rng=rng, catalog=catalog)
        if reward is None:
            tiers[0] += 1
            continue
        elixir = catalog.get(reward.elixir_id)
        assert elixir is not None
        assert reward.name == elixir.name
        tiers[elixir.tier] += 1
        quantities[reward.quantity] += 1

    expected = {0: 0.25, 1: 0.25, 2: 0.19, 3: 0.16, 4: 0.09, 5: 0.06}
    for tier, p in expected.items():
        assert tiers[tier] / trials == pytest.approx(p, abs=0.01)

    assert set(quantities) == {1, 2}
    assert quantities[1] / sum(quantities.values()) == pytest.approx(0.5, abs=0.01)


def test_nothing_draw_returns_none() -> None:
    class _Zero(random.Random):
        def randint(self, a: int, b: int) -> int:
            return a

    assert draw_reward(rng=_Zero(), catalog=get_catalog()) is None
