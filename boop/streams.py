from __future__ import annotations

from collections.abc import Mapping
from dataclasses import dataclass
from typing import cast

import redis


@dataclass(frozen=True, slots=True)
class Mailbox:
    identity_id: int

    @property
    def key(self) -> str:
        return f"mailbox:{self.identity_id}"


def _fields(fields: Mapping[str, object]) -> dict[str, str]:
    # Stream fields/values are plain strings in this app.
    return {str(k): str(v) for k, v in fields.items()}


def queue_to_mailbox(*, pipe: redis.client.Pipeline, mailbox: Mailbox, fields: Mapping[str, object]) -> None:
    """Append an entry to an identity's notification stream inside a caller-owned transaction."""

    pipe.xadd(mailbox.key, _fields(fields))


def read_mailbox(
    *,
    r: redis.Redis,
    mailbox: Mailbox,
    count: int = 20,
    start: str = "-",
    end: str = "+",
) -> list[tuple[str, dict[str, str]]]:
    return cast(list[tuple[str, dict[str, str]]], r.xrange(mailbox.key, min=start, max=end, count=count))
