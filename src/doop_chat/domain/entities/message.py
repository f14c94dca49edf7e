from __future__ import annotations

from dataclasses import dataclass, replace
from datetime import datetime
from uuid import UUID

from doop_chat.domain.value_objects.ids import PendingId


@dataclass(frozen=True, slots=True)
class Message:
    """A message persisted by the Store."""

    id: UUID
    conversation_key: str
    sender_id: int
    recipient_id: int
    text: str
    read: bool
    created_at: datetime
    context_id: str | None = None
    client_msg_id: UUID | None = None

    @property
    def order_key(self) -> tuple[datetime, UUID]:
        return (self.created_at, self.id)

    def is_visible_to(self, user_id: int) -> bool:
        return user_id in (self.sender_id, self.recipient_id)

    def counterparty_of(self, user_id: int) -> int:
        return self.recipient_id if self.sender_id == user_id else self.sender_id

    def as_read(self) -> Message:
        return self if self.read else replace(self, read=True)


@dataclass(frozen=True, slots=True)
class PendingMessage:
    """Optimistic local echo of a send that the Store has not confirmed yet."""

    local_id: PendingId
    seq: int
    client_msg_id: UUID
    sender_id: int
    recipient_id: int
    text: str
    created_at: datetime
    context_id: str | None = None
    read: bool = True


TranscriptEntry = Message | PendingMessage
