from __future__ import annotations

from uuid import UUID

from sqlalchemy import update
from sqlalchemy.ext.asyncio import AsyncSession

from doop_chat.infrastructure.db.models.message import MessageModel


class ReadStateWriterRepo:
    """Read flags live on the message rows; updates only ever set them to true."""

    def __init__(self, session: AsyncSession) -> None:
        self._session = session

    async def mark_read(self, message_id: UUID, recipient_id: int) -> int | None:
        stmt = (
            update(MessageModel)
            .where(
                MessageModel.id == message_id,
                MessageModel.recipient_id == recipient_id,
                MessageModel.read.is_(False),
            )
            .values(read=True)
            .returning(MessageModel.sender_id)
        )
        result = await self._session.execute(stmt)
        return result.scalar_one_or_none()

    async def mark_all_read(self, sender_id: int, recipient_id: int) -> list[UUID]:
        stmt = (
            update(MessageModel)
            .where(
                MessageModel.sender_id == sender_id,
                MessageModel.recipient_id == recipient_id,
                MessageModel.read.is_(False),
            )
            .values(read=True)
            .returning(MessageModel.id)
        )
        result = await self._session.execute(stmt)
        return list(result.scalars().all())
