"""WebSocket message envelope models."""
from __future__ import annotations

from typing import Any

from pydantic import BaseModel

# Server -> client
MESSAGE_CREATED = "message.created"
MESSAGES_READ = "messages.read"
MESSAGE_SENT = "message.sent"
PONG = "pong"
ERROR = "error"

# Client -> server
PING = "ping"
MESSAGE_SEND = "message.send"
MARK_READ = "mark_read"
MARK_ALL_READ = "mark_all_read"


class WsInbound(BaseModel):
    """Frame received from a client."""

    type: str
    data: dict[str, Any] = {}


class WsOutbound(BaseModel):
    """Frame pushed to a client."""

    type: str
    data: dict[str, Any] = {}

    @classmethod
    def error(cls, code: str, **extra: Any) -> WsOutbound:
        return cls(type=ERROR, data={"code": code, **extra})
