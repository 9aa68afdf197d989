from __future__ import annotations

import logging
from collections.abc import AsyncIterator
from contextlib import asynccontextmanager

from fastapi import WebSocket

from boop.api.models import Notification


logger = logging.getLogger(__name__)


class NotificationHub:
    """Live push of mailbox notifications to connected identities.

    The mailbox stream is the durable record; a notification published here
    reaches only the sockets open at that moment. Everything runs on the
    event loop, so the subscriber sets need no locking.
    """

    def __init__(self) -> None:
        self._subscribers: dict[int, set[WebSocket]] = {}

    @asynccontextmanager
    async def subscription(self, identity_id: int, websocket: WebSocket) -> AsyncIterator[None]:
        await websocket.accept()
        self._subscribers.setdefault(identity_id, set()).add(websocket)
        try:
            yield
        finally:
            self._drop(identity_id, websocket)

    def subscriber_count(self, identity_id: int) -> int:
        return len(self._subscribers.get(identity_id, ()))

    async def publish(self, notification: Notification) -> int:
        """Send to every socket of the recipient. Returns how many got it."""

        recipient = notification.target_id
        payload = notification.model_dump(mode="json")
        delivered = 0
        for ws in list(self._subscribers.get(recipient, ())):
            try:
                await ws.send_json(payload)
            except Exception:
                logger.debug("Dropping websocket for identity %s", recipient, exc_info=True)
                self._drop(recipient, ws)
            else:
                delivered += 1
        return delivered

    def _drop(self, identity_id: int, websocket: WebSocket) -> None:
        conns = self._subscribers.get(identity_id)
        if conns is None:
            return
        conns.discard(websocket)
        if not conns:
            del self._subscribers[identity_id]


hub = NotificationHub()
