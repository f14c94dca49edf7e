from __future__ import annotations

from typing import Protocol
from uuid import UUID


class ReadStateWriter(Protocol):
    async def mark_read(self, message_id: UUID, recipient_id: int) -> int | None:
        """Flip one unread message addressed to ``recipient_id``.

        Returns the sender id when a row changed, ``None`` otherwise.
        """
        ...

    async def mark_all_read(self, sender_id: int, recipient_id: int) -> list[UUID]:
        """Flip every unread message from ``sender_id`` to ``recipient_id``; return their ids."""
        ...
