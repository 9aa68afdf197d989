from __future__ import annotations

import os
from dataclasses import dataclass
from datetime import timedelta
from pathlib import Path


def _env_int(name: str, default: int) -> int:
    raw = os.environ.get(name, "").strip()
    if not raw:
        return default
    try:
        return int(raw)
    except ValueError as e:
        raise ValueError(f"{name} must be an integer (got {raw!r})") from e


def _env_flag(name: str) -> bool:
    return os.environ.get(name, "").strip().lower() in {"1", "true", "yes"}


def load_dotenv_if_present(*, project_root: Path | None = None) -> None:
    """Load `<project_root>/.env` without overriding variables already exported."""

    root = project_root or Path(__file__).resolve().parents[1]
    env_path = root / ".env"
    if env_path.exists():
        from dotenv import load_dotenv

        load_dotenv(dotenv_path=env_path, override=False)


@dataclass(frozen=True, slots=True)
class EngineSettings:
    # Minimum time between two boops sharing the same ordered pair.
    cooldown: timedelta = timedelta(minutes=10)
    # Lock expiry; must comfortably exceed one resolution.
    lock_ttl_ms: int = 5_000
    # How long a resolution waits for a busy pair/inventory lock.
    lock_wait_ms: int = 2_000

    @staticmethod
    def from_env() -> "EngineSettings":
        return EngineSettings(
            cooldown=timedelta(seconds=_env_int("BOOP_COOLDOWN_SECONDS", 600)),
            lock_ttl_ms=_env_int("BOOP_LOCK_TTL_MS", 5_000),
            lock_wait_ms=_env_int("BOOP_LOCK_WAIT_MS", 2_000),
        )


def strict_catalog() -> bool:
    return _env_flag("BOOP_STRICT_CATALOG")


def log_level() -> str:
    return os.environ.get("BOOP_LOG_LEVEL", "INFO").strip().upper() or "INFO"
