from __future__ import annotations

from typing import Protocol
from uuid import UUID

from doop_chat.application.dto.message import MessagePage
from doop_chat.domain.entities.message import Message


class MessageReader(Protocol):
    async def page(
        self,
        pair_key: str,
        *,
        context_id: str | None = None,
        cursor: str | None = None,
        limit: int = 20,
    ) -> MessagePage:
        """Messages strictly older than ``cursor``, oldest first."""
        ...

    async def get_by_id(self, message_id: UUID) -> Message | None: ...

    async def latest_per_counterparty(self, user_id: int) -> list[Message]:
        """Most recent message of every pair ``user_id`` belongs to."""
        ...


class MessageWriter(Protocol):
    async def create_if_not_exists(self, message: Message) -> tuple[Message, bool]:
        """Insert message. Return (message, created). A retried client_msg_id returns the stored one."""
        ...

    async def get_by_client_msg_id(
        self,
        sender_id: int,
        client_msg_id: UUID,
    ) -> Message | None: ...
