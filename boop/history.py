from __future__ import annotations

from collections.abc import Sequence
from datetime import datetime

import redis

from boop.api.models import ActivityRecord, ElixirUsageRecord, HistoryEntry, HistoryResponse
from boop.catalog.registry import ElixirCatalog
from boop.identity_store import require_identity


ACTIVITY_STREAM_KEY = "boop:activities"
LAST_ACTIVITY_PREFIX = "boop:activity_last:"  # + {initiator}:{target}
USAGE_STREAM_PREFIX = "boop:usage:"  # + {identity_id}


def last_activity_key(initiator_id: int, target_id: int) -> str:
    # Ordered: (a, b) and (b, a) are tracked independently.
    return f"{LAST_ACTIVITY_PREFIX}{initiator_id}:{target_id}"


def usage_stream_key(identity_id: int) -> str:
    return f"{USAGE_STREAM_PREFIX}{identity_id}"


def queue_activity(*, pipe: redis.client.Pipeline, record: ActivityRecord) -> None:
    payload = record.model_dump_json()
    pipe.xadd(
        ACTIVITY_STREAM_KEY,
        {
            "initiator_id": str(record.initiator_id),
            "target_id": str(record.target_id),
            "record": payload,
        },
    )
    pipe.set(last_activity_key(record.initiator_id, record.target_id), payload)


def queue_usage(*, pipe: redis.client.Pipeline, records: Sequence[ElixirUsageRecord]) -> None:
    """Append usage records to both parties' history streams."""

    for rec in records:
        payload = {"record": rec.model_dump_json()}
        pipe.xadd(usage_stream_key(rec.initiator_id), payload)
        pipe.xadd(usage_stream_key(rec.target_id), payload)


def latest_activity(*, r: redis.Redis, initiator_id: int, target_id: int) -> ActivityRecord | None:
    raw = r.get(last_activity_key(initiator_id, target_id))
    if not raw:
        return None
    return ActivityRecord.model_validate_json(raw)


def list_activities(
    *,
    r: redis.Redis,
    initiator_id: int | None = None,
    target_id: int | None = None,
) -> list[ActivityRecord]:
    out: list[ActivityRecord] = []
    for _id, fields in r.xrange(ACTIVITY_STREAM_KEY):
        if initiator_id is not None and fields.get("initiator_id") != str(initiator_id):
            continue
        if target_id is not None and fields.get("target_id") != str(target_id):
            continue
        out.append(ActivityRecord.model_validate_json(fields["record"]))
    return out


def usage_since(*, r: redis.Redis, identity_id: int, since: datetime) -> list[ElixirUsageRecord]:
    """Usage records involving `identity_id` with a timestamp strictly after `since`."""

    out: list[ElixirUsageRecord] = []
    for _id, fields in r.xrange(usage_stream_key(identity_id)):
        rec = ElixirUsageRecord.model_validate_json(fields["record"])
        if rec.timestamp > since:
            out.append(rec)
    return out


def unchecked_history(*, r: redis.Redis, identity_id: int, catalog: ElixirCatalog) -> HistoryResponse:
    """Elixir usage involving this identity since it last marked its history checked."""

    identity = require_identity(r=r, identity_id=identity_id)
    entries: list[HistoryEntry] = []
    for rec in usage_since(r=r, identity_id=identity_id, since=identity.last_checked_at):
        elixir = catalog.get(rec.elixir_id)
        entries.append(
            HistoryEntry(
                timestamp=rec.timestamp,
                initiator_id=rec.initiator_id,
                target_id=rec.target_id,
                elixir_id=rec.elixir_id,
                elixir_name=elixir.name if elixir else None,
                side=rec.side,
            )
        )
    return HistoryResponse(identity_id=identity_id, since=identity.last_checked_at, entries=entries)
