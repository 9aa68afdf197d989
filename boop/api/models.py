from __future__ import annotations

from datetime import datetime
from enum import StrEnum
from typing import Literal

from pydantic import BaseModel, Field


class Side(StrEnum):
    initiator = "initiator"
    target = "target"


class BoopStatus(StrEnum):
    success = "success"
    cooldown_active = "cooldown_active"
    failed = "failed"


class FailureReason(StrEnum):
    self_interaction = "self_interaction"
    unknown_identity = "unknown_identity"
    busy = "busy"
    persistence_failure = "persistence_failure"


class IdentityCreateRequest(BaseModel):
    display_name: str = Field(..., min_length=1, max_length=64)


class RenameRequest(BaseModel):
    display_name: str = Field(..., min_length=1, max_length=64)


class IdentityState(BaseModel):
    identity_id: int
    display_name: str
    sent_score: int = 0
    received_score: int = 0
    created_at: datetime
    last_checked_at: datetime
    name_updated_at: datetime


class ActivityRecord(BaseModel):
    initiator_id: int
    target_id: int
    initiator_value: int
    target_value: int
    timestamp: datetime


class ElixirUsageRecord(BaseModel):
    timestamp: datetime
    initiator_id: int
    target_id: int
    elixir_id: int
    side: Side


class Reward(BaseModel):
    elixir_id: int
    name: str
    description: str = ""
    quantity: int = Field(..., ge=1)


class BoopNotification(BaseModel):
    """Sent to the target of a committed boop, over its mailbox stream and WebSocket."""

    type: Literal["booped"] = "booped"
    initiator_id: int
    target_id: int
    value: int
    ts: datetime


class FriendRequestNotification(BaseModel):
    type: Literal["friend_request"] = "friend_request"
    initiator_id: int
    target_id: int


Notification = BoopNotification | FriendRequestNotification


class BoopResult(BaseModel):
    status: BoopStatus
    # Set when status == failed.
    reason: FailureReason | None = None

    timestamp: datetime | None = None
    initiator_value: int | None = None
    target_value: int | None = None
    initiator_elixirs_used: list[str] = Field(default_factory=list)
    target_elixirs_used: list[str] = Field(default_factory=list)

    # Absent when the draw came up empty.
    reward: Reward | None = None

    # What the target was told; not part of the HTTP body.
    notification: BoopNotification | None = Field(default=None, exclude=True)


class GrantRequest(BaseModel):
    elixir_id: int = Field(..., ge=1)
    quantity: int = Field(1, ge=1, le=1000)


class ActiveToggleRequest(BaseModel):
    active: bool


class InventoryItem(BaseModel):
    elixir_id: int
    quantity: int
    active: bool

    # Missing for ids the catalog does not know.
    name: str | None = None
    description: str | None = None
    family: str | None = None
    tier: int | None = None


class InventoryResponse(BaseModel):
    identity_id: int
    items: list[InventoryItem]


class HistoryEntry(BaseModel):
    timestamp: datetime
    initiator_id: int
    target_id: int
    elixir_id: int
    elixir_name: str | None = None
    side: Side


class HistoryResponse(BaseModel):
    identity_id: int
    since: datetime
    entries: list[HistoryEntry]


class ActivityListResponse(BaseModel):
    identity_id: int
    direction: Literal["sent", "received"]
    activities: list[ActivityRecord]


class FriendSummary(BaseModel):
    identity_id: int
    display_name: str
    sent_score: int
    received_score: int


class FriendListResponse(BaseModel):
    identity_id: int
    friends: list[FriendSummary]


class LocationRequest(BaseModel):
    latitude: float = Field(..., ge=-85.05112878, le=85.05112878)
    longitude: float = Field(..., ge=-180, le=180)


class NearbyIdentity(BaseModel):
    identity_id: int
    display_name: str
    distance_miles: float


class NearbyResponse(BaseModel):
    identity_id: int
    nearby: list[NearbyIdentity]
