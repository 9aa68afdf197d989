from __future__ import annotations

import csv
import re
from dataclasses import dataclass, replace
from enum import StrEnum
from pathlib import Path

from boop.config import strict_catalog


class ElixirFamily(StrEnum):
    poison = "poison"
    booster = "booster"
    shield = "shield"
    antivenom = "antivenom"


class EffectKind(StrEnum):
    flat_random = "flat_random"
    flat_constant = "flat_constant"
    percent_of_target = "percent_of_target"
    asymmetric_cost = "asymmetric_cost"
    drain = "drain"
    amplify = "amplify"
    flat_bonus = "flat_bonus"
    percent_boost = "percent_boost"
    quarter_plus_ten = "quarter_plus_ten"
    mitigation = "mitigation"
    negation = "negation"
    reflection = "reflection"
    inversion = "inversion"
    antivenom = "antivenom"


EFFECT_FAMILIES: dict[EffectKind, ElixirFamily] = {
    EffectKind.flat_random: ElixirFamily.poison,
    EffectKind.flat_constant: ElixirFamily.poison,
    EffectKind.percent_of_target: ElixirFamily.poison,
    EffectKind.asymmetric_cost: ElixirFamily.poison,
    EffectKind.drain: ElixirFamily.poison,
    EffectKind.amplify: ElixirFamily.booster,
    EffectKind.flat_bonus: ElixirFamily.booster,
    EffectKind.percent_boost: ElixirFamily.booster,
    EffectKind.quarter_plus_ten: ElixirFamily.booster,
    EffectKind.mitigation: ElixirFamily.shield,
    EffectKind.negation: ElixirFamily.shield,
    EffectKind.reflection: ElixirFamily.shield,
    EffectKind.inversion: ElixirFamily.shield,
    EffectKind.antivenom: ElixirFamily.antivenom,
}

MIN_TIER = 1
MAX_TIER = 5


def _norm_key(s: str) -> str:
    return re.sub(r"\s+", " ", s).strip().casefold()


@dataclass(frozen=True, slots=True)
class ElixirDefinition:
    elixir_id: int
    family: ElixirFamily
    effect: EffectKind
    tier: int
    name: str
    description: str = ""


@dataclass(frozen=True, slots=True)
class ElixirCatalog:
    """Static elixir definitions.

    Ids are canonical (inventory keys, usage records). Names are for display,
    with a forgiving case/whitespace-insensitive lookup.
    """

    elixirs: tuple[ElixirDefinition, ...]
    _by_id: dict[int, ElixirDefinition]
    _key_to_id: dict[str, int]
    _ids_by_tier: dict[int, tuple[int, ...]]
    # CSV path it was read from, or "builtin".
    source: str = "builtin"

    @staticmethod
    def from_rows(rows: list[ElixirDefinition]) -> "ElixirCatalog":
        by_id: dict[int, ElixirDefinition] = {}
        key_to_id: dict[str, int] = {}
        by_tier_build: dict[int, list[int]] = {}

        for e in sorted(rows, key=lambda d: d.elixir_id):
            if e.elixir_id in by_id:
                raise CatalogLoadError(f"Duplicate elixir id: {e.elixir_id}")
            if not MIN_TIER <= e.tier <= MAX_TIER:
                raise CatalogLoadError(f"Elixir {e.elixir_id} has tier {e.tier} outside {MIN_TIER}..{MAX_TIER}")
            if EFFECT_FAMILIES[e.effect] != e.family:
                raise CatalogLoadError(
                    f"Elixir {e.elixir_id}: effect '{e.effect.value}' does not belong to family '{e.family.value}'"
                )
            by_id[e.elixir_id] = e
            key_to_id[_norm_key(e.name)] = e.elixir_id
            by_tier_build.setdefault(e.tier, []).append(e.elixir_id)

        return ElixirCatalog(
            elixirs=tuple(by_id.values()),
            _by_id=by_id,
            _key_to_id=key_to_id,
            _ids_by_tier={k: tuple(v) for k, v in by_tier_build.items()},
        )

    def get(self, elixir_id: int) -> ElixirDefinition | None:
        return self._by_id.get(elixir_id)

    def resolve_id(self, name: str) -> int | None:
        return self._key_to_id.get(_norm_key(name))

    def ids_for_tier(self, tier: int) -> tuple[int, ...]:
        return self._ids_by_tier.get(tier, ())

    def __contains__(self, item: object) -> bool:
        if isinstance(item, int):
            return item in self._by_id
        return isinstance(item, str) and self.resolve_id(item) is not None

    def __len__(self) -> int:
        return len(self.elixirs)


class CatalogLoadError(RuntimeError):
    pass


def _read_csv_rows(path: Path) -> list[list[str]]:
    try:
        with path.open(encoding="utf-8-sig", newline="") as f:
            rows = [[c.strip() for c in row if c is not None] for row in csv.reader(f)]
    except FileNotFoundError as e:
        raise CatalogLoadError(f"Catalog file not found: {path}") from e

    return [row for row in rows if any(cell.strip() for cell in row)]


def load_elixir_csv(path: Path) -> ElixirCatalog:
    rows = _read_csv_rows(path)
    if not rows:
        raise CatalogLoadError(f"Empty elixir CSV: {path}")

    header = [c.casefold() for c in rows[0]]
    if header[:5] != ["id", "family", "effect", "tier", "name"]:
        raise CatalogLoadError(f"Unexpected header in {path}: {rows[0]}")

    out: list[ElixirDefinition] = []
    for lineno, row in enumerate(rows[1:], start=2):
        if len(row) < 5:
            continue
        try:
            out.append(
                ElixirDefinition(
                    elixir_id=int(row[0]),
                    family=ElixirFamily(row[1].casefold()),
                    effect=EffectKind(row[2].casefold()),
                    tier=int(row[3]),
                    name=row[4],
                    description=row[5] if len(row) > 5 else "",
                )
            )
        except ValueError as e:
            raise CatalogLoadError(f"{path}:{lineno}: {e}") from e

    return replace(ElixirCatalog.from_rows(out), source=str(path))


def _e(elixir_id: int, effect: EffectKind, tier: int, name: str, description: str) -> ElixirDefinition:
    return ElixirDefinition(
        elixir_id=elixir_id,
        family=EFFECT_FAMILIES[effect],
        effect=effect,
        tier=tier,
        name=name,
        description=description,
    )


def default_elixir_catalog() -> ElixirCatalog:
    """Built-in catalog, used when `assets/elixirs.csv` is missing."""

    k = EffectKind
    rows = [
        _e(1, k.flat_random, 1, "Birch Blood", "Does a little random damage to both sides."),
        _e(2, k.flat_random, 2, "Deluxe Birch Blood", "Does some random damage to both sides."),
        _e(3, k.flat_constant, 1, "Glove Cleaner", "Does 5 damage to both sides."),
        _e(4, k.flat_constant, 3, "Deluxe Glove Cleaner", "Does 10 damage to both sides."),
        _e(5, k.flat_constant, 4, "Premium Glove Cleaner", "Does 15 damage to both sides."),
        _e(6, k.percent_of_target, 3, "Altotoxin", "Damage worth 1% of the target's received score."),
        _e(7, k.percent_of_target, 4, "Deluxe Altotoxin", "Damage worth 2% of the target's received score."),
        _e(8, k.percent_of_target, 5, "Premium Altotoxin", "Damage worth 10% of the target's received score."),
        _e(9, k.asymmetric_cost, 4, "Rumpelstiltskin's Decoction", "Costs you 7% of your sent score, costs them 13%."),
        _e(10, k.asymmetric_cost, 5, "Deluxe Rumpelstiltskin's Decoction", "Costs you 3% of your sent score, costs them 7%."),
        _e(11, k.drain, 4, "Vampire Venom", "Steals 5% of the target's received score."),
        _e(12, k.drain, 5, "Deluxe Vampire Venom", "Steals 10% of the target's received score."),
        _e(13, k.amplify, 3, "Eagle Eye", "Squares the magnitude of the boop, keeping its sign."),
        _e(14, k.flat_bonus, 1, "Lite Corn Syrup", "Adds 2 to both sides."),
        _e(15, k.flat_bonus, 2, "Corn Syrup", "Adds 4 to both sides."),
        _e(16, k.flat_bonus, 3, "High Fructose Corn Syrup", "Adds 8 to both sides."),
        _e(17, k.percent_boost, 3, "Super Electrolyte Punch", "Boosts both sides by 5%."),
        _e(18, k.percent_boost, 4, "Deluxe Mega Electrolyte Punch", "Boosts both sides by 25%."),
        _e(19, k.percent_boost, 5, "Premium Mondo Electrolyte Punch", "Boosts both sides by 50%."),
        _e(20, k.quarter_plus_ten, 2, "Discontinued Cereal Sludge", "Quarters the boop, then adds 10."),
        _e(21, k.mitigation, 1, "Wood Mitigation Shield", "Blocks 10% of incoming damage."),
        _e(22, k.mitigation, 2, "Bronze Mitigation Shield", "Blocks 25% of incoming damage."),
        _e(23, k.mitigation, 3, "Iron Mitigation Shield", "Blocks 50% of incoming damage."),
        _e(24, k.mitigation, 4, "Rearden Steel Mitigation Shield", "Blocks 75% of incoming damage."),
        _e(25, k.mitigation, 5, "Diamond Mitigation Shield", "Blocks 95% of incoming damage."),
        _e(26, k.negation, 1, "Wood Negation Shield", "Absorbs up to 2 points of damage."),
        _e(27, k.negation, 2, "Bronze Negation Shield", "Absorbs up to 5 points of damage."),
        _e(28, k.negation, 3, "Iron Negation Shield", "Absorbs up to 10 points of damage."),
        _e(29, k.negation, 4, "Rearden Steel Negation Shield", "Absorbs up to 20 points of damage."),
        _e(30, k.negation, 5, "Diamond Negation Shield", "Absorbs up to 30 points of damage."),
        _e(31, k.reflection, 1, "Wood Reflection Shield", "Reflects 5% of incoming damage."),
        _e(32, k.reflection, 2, "Bronze Reflection Shield", "Reflects 10% of incoming damage."),
        _e(33, k.reflection, 3, "Iron Reflection Shield", "Reflects 25% of incoming damage."),
        _e(34, k.reflection, 4, "Rearden Steel Reflection Shield", "Reflects 50% of incoming damage."),
        _e(35, k.reflection, 5, "Diamond Reflection Shield", "Reflects 95% of incoming damage."),
        _e(36, k.inversion, 4, "Rearden Steel Inversion Shield", "Turns incoming damage into 1.5x points."),
        _e(37, k.inversion, 5, "Diamond Inversion Shield", "Turns incoming damage into 2x points."),
        _e(38, k.antivenom, 4, "Antivenom", "Completely cancels incoming damage."),
    ]
    return ElixirCatalog.from_rows(rows)


def load_elixir_catalog(*, root: Path) -> ElixirCatalog:
    # Missing CSV falls back to the built-in table unless BOOP_STRICT_CATALOG=1.
    try:
        return load_elixir_csv(root / "assets" / "elixirs.csv")
    except CatalogLoadError:
        if strict_catalog():
            raise
        return default_elixir_catalog()
