from __future__ import annotations

from typing import Literal

from fastapi import APIRouter, Depends, HTTPException, Response, WebSocket, WebSocketDisconnect, status
from fastapi.concurrency import run_in_threadpool
import redis

from boop.api.deps import get_elixir_catalog, get_engine_settings, get_redis
from boop.api.models import (
    ActiveToggleRequest,
    ActivityListResponse,
    BoopResult,
    BoopStatus,
    FailureReason,
    FriendListResponse,
    GrantRequest,
    HistoryResponse,
    IdentityCreateRequest,
    IdentityState,
    InventoryResponse,
    LocationRequest,
    NearbyResponse,
    RenameRequest,
)
from boop.boop_engine import resolve_boop
from boop.catalog.registry import ElixirCatalog
from boop.config import EngineSettings
from boop.history import list_activities, unchecked_history
from boop.identity_store import get_identity, mark_checked, register_identity, rename_identity
from boop.inventory import grant, list_inventory, set_active
from boop.social import (
    add_friend,
    delete_location,
    friend_requests,
    list_friends,
    nearby_identities,
    pending_requests,
    remove_friend,
    update_location,
)
from boop.streams import Mailbox, read_mailbox
from boop.websocket_hub import hub

router = APIRouter()

# HTTP status per failure reason for POST .../boop/{target_id}.
_BOOP_FAILURE_STATUS: dict[FailureReason, int] = {
    FailureReason.self_interaction: status.HTTP_422_UNPROCESSABLE_ENTITY,
    FailureReason.unknown_identity: status.HTTP_404_NOT_FOUND,
    FailureReason.busy: status.HTTP_409_CONFLICT,
    FailureReason.persistence_failure: status.HTTP_503_SERVICE_UNAVAILABLE,
}


def _require_identity(r: redis.Redis, identity_id: int) -> IdentityState:
    identity = get_identity(r=r, identity_id=identity_id)
    if identity is None:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Identity not found")
    return identity


@router.websocket("/ws/identity/{identity_id}")
async def identity_updates_ws(websocket: WebSocket, identity_id: int) -> None:
    async with hub.subscription(identity_id, websocket):
        try:
            # Keep the socket open; client can optionally send pings.
            while True:
                await websocket.receive_text()
        except WebSocketDisconnect:
            pass


@router.get("/healthcheck")
async def healthcheck() -> dict[str, str]:
    return {"status": "ok"}


@router.post("/identities", response_model=IdentityState, status_code=status.HTTP_201_CREATED)
async def register_identity_route(payload: IdentityCreateRequest, r: redis.Redis = Depends(get_redis)) -> IdentityState:
    try:
        return register_identity(r=r, display_name=payload.display_name)
    except ValueError as e:
        raise HTTPException(status_code=status.HTTP_409_CONFLICT, detail=str(e)) from e


@router.get("/identities/{identity_id}", response_model=IdentityState)
async def get_identity_route(identity_id: int, r: redis.Redis = Depends(get_redis)) -> IdentityState:
    return _require_identity(r, identity_id)


@router.patch("/identities/{identity_id}/name", response_model=IdentityState)
async def rename_identity_route(
    identity_id: int,
    payload: RenameRequest,
    r: redis.Redis = Depends(get_redis),
) -> IdentityState:
    _require_identity(r, identity_id)
    try:
        return rename_identity(r=r, identity_id=identity_id, display_name=payload.display_name)
    except ValueError as e:
        raise HTTPException(status_code=status.HTTP_422_UNPROCESSABLE_ENTITY, detail=str(e)) from e


@router.post("/identities/{identity_id}/boop/{target_id}", response_model=BoopResult)
async def boop_route(
    identity_id: int,
    target_id: int,
    response: Response,
    r: redis.Redis = Depends(get_redis),
    catalog: ElixirCatalog = Depends(get_elixir_catalog),
    settings: EngineSettings = Depends(get_engine_settings),
) -> BoopResult:
    # Lock waits and Redis round-trips are blocking; keep them off the event loop.
    result = await run_in_threadpool(
        resolve_boop,
        r=r,
        initiator_id=identity_id,
        target_id=target_id,
        catalog=catalog,
        settings=settings,
    )

    if result.status == BoopStatus.cooldown_active:
        response.status_code = status.HTTP_429_TOO_MANY_REQUESTS
    elif result.status == BoopStatus.failed and result.reason is not None:
        response.status_code = _BOOP_FAILURE_STATUS[result.reason]
    elif result.notification is not None:
        await hub.publish(result.notification)
    return result


@router.get("/identities/{identity_id}/inventory", response_model=InventoryResponse)
async def get_inventory_route(
    identity_id: int,
    r: redis.Redis = Depends(get_redis),
    catalog: ElixirCatalog = Depends(get_elixir_catalog),
) -> InventoryResponse:
    _require_identity(r, identity_id)
    return InventoryResponse(identity_id=identity_id, items=list_inventory(r=r, identity_id=identity_id, catalog=catalog))


@router.post("/identities/{identity_id}/inventory", response_model=InventoryResponse)
async def grant_inventory_route(
    identity_id: int,
    payload: GrantRequest,
    r: redis.Redis = Depends(get_redis),
    catalog: ElixirCatalog = Depends(get_elixir_catalog),
) -> InventoryResponse:
    _require_identity(r, identity_id)
    if payload.elixir_id not in catalog:
        raise HTTPException(status_code=status.HTTP_422_UNPROCESSABLE_ENTITY, detail="Unknown elixir")
    grant(r=r, identity_id=identity_id, elixir_id=payload.elixir_id, quantity=payload.quantity)
    return InventoryResponse(identity_id=identity_id, items=list_inventory(r=r, identity_id=identity_id, catalog=catalog))


@router.put("/identities/{identity_id}/inventory/{elixir_id}/active", response_model=InventoryResponse)
async def toggle_active_route(
    identity_id: int,
    elixir_id: int,
    payload: ActiveToggleRequest,
    r: redis.Redis = Depends(get_redis),
    catalog: ElixirCatalog = Depends(get_elixir_catalog),
) -> InventoryResponse:
    _require_identity(r, identity_id)
    try:
        set_active(r=r, identity_id=identity_id, elixir_id=elixir_id, active=payload.active)
    except ValueError as e:
        raise HTTPException(status_code=status.HTTP_422_UNPROCESSABLE_ENTITY, detail=str(e)) from e
    return InventoryResponse(identity_id=identity_id, items=list_inventory(r=r, identity_id=identity_id, catalog=catalog))


@router.get("/identities/{identity_id}/history", response_model=HistoryResponse)
async def history_route(
    identity_id: int,
    r: redis.Redis = Depends(get_redis),
    catalog: ElixirCatalog = Depends(get_elixir_catalog),
) -> HistoryResponse:
    _require_identity(r, identity_id)
    return unchecked_history(r=r, identity_id=identity_id, catalog=catalog)


@router.get("/identities/{identity_id}/activities", response_model=ActivityListResponse)
async def activities_route(
    identity_id: int,
    direction: Literal["sent", "received"] = "sent",
    r: redis.Redis = Depends(get_redis),
) -> ActivityListResponse:
    """Committed boops this identity initiated (sent) or was the target of (received)."""

    _require_identity(r, identity_id)
    if direction == "sent":
        activities = list_activities(r=r, initiator_id=identity_id)
    else:
        activities = list_activities(r=r, target_id=identity_id)
    return ActivityListResponse(identity_id=identity_id, direction=direction, activities=activities)


@router.post("/identities/{identity_id}/history/checked")
async def mark_checked_route(identity_id: int, r: redis.Redis = Depends(get_redis)) -> dict[str, object]:
    _require_identity(r, identity_id)
    ts = mark_checked(r=r, identity_id=identity_id)
    return {"identity_id": identity_id, "last_checked_at": ts.isoformat()}


@router.get("/identities/{identity_id}/friends", response_model=FriendListResponse)
async def list_friends_route(identity_id: int, r: redis.Redis = Depends(get_redis)) -> FriendListResponse:
    _require_identity(r, identity_id)
    return FriendListResponse(identity_id=identity_id, friends=list_friends(r=r, identity_id=identity_id))


@router.get("/identities/{identity_id}/friends/pending", response_model=FriendListResponse)
async def pending_requests_route(identity_id: int, r: redis.Redis = Depends(get_redis)) -> FriendListResponse:
    _require_identity(r, identity_id)
    return FriendListResponse(identity_id=identity_id, friends=pending_requests(r=r, identity_id=identity_id))


@router.get("/identities/{identity_id}/friends/requests", response_model=FriendListResponse)
async def friend_requests_route(identity_id: int, r: redis.Redis = Depends(get_redis)) -> FriendListResponse:
    _require_identity(r, identity_id)
    return FriendListResponse(identity_id=identity_id, friends=friend_requests(r=r, identity_id=identity_id))


@router.post("/identities/{identity_id}/friends/{friend_id}", status_code=status.HTTP_201_CREATED)
async def add_friend_route(identity_id: int, friend_id: int, r: redis.Redis = Depends(get_redis)) -> dict[str, int]:
    _require_identity(r, identity_id)
    try:
        notification = add_friend(r=r, initiator_id=identity_id, target_id=friend_id)
    except ValueError as e:
        raise HTTPException(status_code=status.HTTP_422_UNPROCESSABLE_ENTITY, detail=str(e)) from e
    await hub.publish(notification)
    return {"identity_id": identity_id, "friend_id": friend_id}


@router.delete("/identities/{identity_id}/friends/{friend_id}", status_code=status.HTTP_204_NO_CONTENT)
async def remove_friend_route(identity_id: int, friend_id: int, r: redis.Redis = Depends(get_redis)) -> None:
    _require_identity(r, identity_id)
    remove_friend(r=r, initiator_id=identity_id, target_id=friend_id)


@router.put("/identities/{identity_id}/location", status_code=status.HTTP_204_NO_CONTENT)
async def update_location_route(identity_id: int, payload: LocationRequest, r: redis.Redis = Depends(get_redis)) -> None:
    _require_identity(r, identity_id)
    update_location(r=r, identity_id=identity_id, latitude=payload.latitude, longitude=payload.longitude)


@router.delete("/identities/{identity_id}/location", status_code=status.HTTP_204_NO_CONTENT)
async def delete_location_route(identity_id: int, r: redis.Redis = Depends(get_redis)) -> None:
    _require_identity(r, identity_id)
    delete_location(r=r, identity_id=identity_id)


@router.get("/identities/{identity_id}/nearby", response_model=NearbyResponse)
async def nearby_route(identity_id: int, r: redis.Redis = Depends(get_redis)) -> NearbyResponse:
    _require_identity(r, identity_id)
    try:
        nearby = nearby_identities(r=r, identity_id=identity_id)
    except ValueError as e:
        raise HTTPException(status_code=status.HTTP_422_UNPROCESSABLE_ENTITY, detail=str(e)) from e
    return NearbyResponse(identity_id=identity_id, nearby=nearby)


@router.get("/identities/{identity_id}/mailbox")
async def get_mailbox_route(
    identity_id: int,
    count: int = 20,
    start: str = "-",
    end: str = "+",
    r: redis.Redis = Depends(get_redis),
) -> dict[str, object]:
    """Debug endpoint: read an identity's notification stream.

    Intended for local/dev testing when redis-cli isn't available.
    """

    if count < 1 or count > 200:
        raise HTTPException(status_code=status.HTTP_422_UNPROCESSABLE_ENTITY, detail="count must be between 1 and 200")

    mailbox = Mailbox(identity_id=identity_id)
    try:
        entries = read_mailbox(r=r, mailbox=mailbox, count=count, start=start, end=end)
    except redis.ResponseError as e:
        raise HTTPException(status_code=status.HTTP_422_UNPROCESSABLE_ENTITY, detail=str(e)) from e

    messages = [{"id": mid, "fields": fields} for mid, fields in entries]
    return {"identity_id": identity_id, "stream": mailbox.key, "messages": messages}
