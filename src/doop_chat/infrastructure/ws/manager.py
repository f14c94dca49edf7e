"""In-process WebSocket connection manager."""
from __future__ import annotations

import logging
from typing import Any, Iterable

from fastapi import WebSocket

from doop_chat.application.dto.principal import principal_key
from doop_chat.domain.events.message_created import MessageCreated
from doop_chat.domain.events.messages_read import MessagesRead
from doop_chat.infrastructure.ws.protocol import MESSAGE_CREATED, MESSAGES_READ, WsOutbound

logger = logging.getLogger(__name__)


class ConnectionManager:
    """Tracks WebSocket connections per principal.

    A principal may hold several sockets (tabs, devices); every one of them
    receives the principal's events.
    """

    def __init__(self) -> None:
        self._connections: dict[str, set[WebSocket]] = {}

    async def connect(self, ws: WebSocket, pkey: str) -> None:
        await ws.accept()
        self._connections.setdefault(pkey, set()).add(ws)
        logger.debug("WS connected: %s (principals=%d)", pkey, len(self._connections))

    def disconnect(self, ws: WebSocket, pkey: str) -> None:
        conns = self._connections.get(pkey)
        if conns:
            conns.discard(ws)
            if not conns:
                del self._connections[pkey]
        logger.debug("WS disconnected: %s", pkey)

    def is_connected(self, pkey: str) -> bool:
        return bool(self._connections.get(pkey))

    async def send_to_principal(
        self,
        pkey: str,
        event_type: str,
        data: dict[str, Any],
    ) -> None:
        """Send a WS message to every socket of a principal; drop dead sockets."""
        raw = WsOutbound(type=event_type, data=data).model_dump_json()
        dead: list[WebSocket] = []
        for ws in list(self._connections.get(pkey, ())):
            try:
                await ws.send_text(raw)
            except Exception:
                dead.append(ws)
        for ws in dead:
            self.disconnect(ws, pkey)

    async def send_to_users(
        self,
        user_ids: Iterable[int],
        event_type: str,
        data: dict[str, Any],
    ) -> None:
        for user_id in dict.fromkeys(user_ids):
            await self.send_to_principal(principal_key(user_id), event_type, data)

    async def dispatch(self, event_type: str, data: dict[str, Any]) -> None:
        """Route a fan-out event to the sockets of the users it concerns."""
        if event_type == MessageCreated.event_type:
            # Both parties, so the sender's session can confirm its pending entry
            await self.send_to_users(
                (data["sender_id"], data["recipient_id"]),
                MESSAGE_CREATED,
                {"message": data["message"]},
            )
        elif event_type == MessagesRead.event_type:
            await self.send_to_users(
                (data["sender_id"], data["reader_id"]),
                MESSAGES_READ,
                data,
            )
        else:
            logger.debug("Ignoring fan-out event %s", event_type)
