from __future__ import annotations

import logging
from pathlib import Path

from boop.catalog.registry import MAX_TIER, MIN_TIER, ElixirCatalog, load_elixir_catalog


logger = logging.getLogger(__name__)

# Two levels up from boop/catalog/; holds assets/elixirs.csv.
PROJECT_ROOT = Path(__file__).resolve().parents[2]

_CATALOG: ElixirCatalog | None = None


def init_catalog(*, project_root: Path = PROJECT_ROOT) -> ElixirCatalog:
    """Load the process-wide elixir catalog if it is not loaded yet."""

    global _CATALOG
    if _CATALOG is None:
        catalog = load_elixir_catalog(root=project_root)
        logger.info(
            "Elixir catalog: %d elixirs from %s (per tier: %s)",
            len(catalog),
            catalog.source,
            ", ".join(f"{t}={len(catalog.ids_for_tier(t))}" for t in range(MIN_TIER, MAX_TIER + 1)),
        )
        _CATALOG = catalog
    return _CATALOG


def reset_catalog_for_tests() -> None:
    global _CATALOG
    _CATALOG = None


def get_catalog() -> ElixirCatalog:
    # Scripts and workers that never ran the app's startup hook load on first use.
    return _CATALOG if _CATALOG is not None else init_catalog()
