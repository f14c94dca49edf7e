from __future__ import annotations

from dataclasses import dataclass, field
from uuid import UUID

from doop_chat.domain.entities.message import Message


@dataclass(frozen=True, slots=True)
class SendMessageDTO:
    recipient_id: int
    text: str
    context_id: str | None = None
    client_msg_id: UUID | None = None


@dataclass(frozen=True, slots=True)
class MessagePage:
    """One page of a transcript, oldest first."""

    messages: list[Message] = field(default_factory=list)
    has_more: bool = False
    next_cursor: str | None = None
