from __future__ import annotations

from typing import Protocol
from uuid import UUID

from doop_chat.application.dto.message import MessagePage
from doop_chat.domain.entities.conversation import ConversationSummary
from doop_chat.domain.entities.message import Message


class MessageStore(Protocol):
    """Durable message log as seen by one authenticated identity.

    ``append`` raises ``ValidationError`` for blank text, ``AuthorizationError``
    when ``sender_id`` is not the authenticated caller and ``Unavailable`` when
    the Store cannot be reached. ``page`` returns messages strictly older than
    ``cursor`` (the newest page when it is ``None``) in ascending order.
    ``mark_read`` and ``mark_all_read`` are idempotent.
    """

    async def append(
        self,
        sender_id: int,
        recipient_id: int,
        text: str,
        context_id: str | None = None,
        client_msg_id: UUID | None = None,
    ) -> Message: ...

    async def page(
        self,
        identity_a: int,
        identity_b: int,
        context_id: str | None = None,
        cursor: str | None = None,
        limit: int = 20,
    ) -> MessagePage: ...

    async def mark_read(self, message_id: UUID) -> None: ...

    async def mark_all_read(self, counterparty_id: int, for_identity: int) -> None: ...

    async def list_conversations(self, identity: int) -> list[ConversationSummary]: ...
