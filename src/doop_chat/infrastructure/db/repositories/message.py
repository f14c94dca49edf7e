from __future__ import annotations

from uuid import UUID

from sqlalchemy import case, or_, select, tuple_
from sqlalchemy.dialects.postgresql import insert as pg_insert
from sqlalchemy.ext.asyncio import AsyncSession

from doop_chat.application.dto.message import MessagePage
from doop_chat.domain.entities.message import Message
from doop_chat.infrastructure.db.mappers import message as mapper
from doop_chat.infrastructure.db.models.message import MessageModel
from doop_chat.infrastructure.db.repositories._cursor import decode_cursor, encode_cursor


class MessageReaderRepo:
    def __init__(self, session: AsyncSession) -> None:
        self._session = session

    async def page(
        self,
        pair_key: str,
        *,
        context_id: str | None = None,
        cursor: str | None = None,
        limit: int = 20,
    ) -> MessagePage:
        stmt = select(MessageModel).where(MessageModel.pair_key == pair_key)
        if context_id:
            stmt = stmt.where(MessageModel.conversation_key == f"{pair_key}:{context_id}")
        if cursor:
            ts, mid = decode_cursor(cursor)
            # Row comparison so Postgres can walk the timeline indexes backwards
            stmt = stmt.where(tuple_(MessageModel.created_at, MessageModel.id) < tuple_(ts, mid))
        # Newest first with one extra row to learn whether older ones exist
        stmt = stmt.order_by(MessageModel.created_at.desc(), MessageModel.id.desc()).limit(limit + 1)

        result = await self._session.execute(stmt)
        rows = list(result.scalars().all())
        has_more = len(rows) > limit
        messages = [mapper.model_to_entity(m) for m in reversed(rows[:limit])]

        next_cursor = None
        if messages:
            next_cursor = encode_cursor(messages[0].created_at, messages[0].id)
        return MessagePage(messages=messages, has_more=has_more, next_cursor=next_cursor)

    async def get_by_id(self, message_id: UUID) -> Message | None:
        result = await self._session.get(MessageModel, message_id)
        return mapper.model_to_entity(result) if result else None

    async def latest_per_counterparty(self, user_id: int) -> list[Message]:
        counterparty = case(
            (MessageModel.sender_id == user_id, MessageModel.recipient_id),
            else_=MessageModel.sender_id,
        )
        stmt = (
            select(MessageModel)
            .where(or_(MessageModel.sender_id == user_id, MessageModel.recipient_id == user_id))
            .distinct(counterparty)
            .order_by(counterparty, MessageModel.created_at.desc(), MessageModel.id.desc())
        )
        result = await self._session.execute(stmt)
        return [mapper.model_to_entity(m) for m in result.scalars().all()]


class MessageWriterRepo:
    def __init__(self, session: AsyncSession) -> None:
        self._session = session

    async def create_if_not_exists(self, message: Message) -> tuple[Message, bool]:
        """Insert message idempotently. Returns (message, created_flag)."""
        stmt = (
            pg_insert(MessageModel)
            .values(**mapper.entity_to_values(message))
            .on_conflict_do_nothing(constraint="uq_message_idempotency")
            .returning(MessageModel)
        )
        result = await self._session.execute(stmt)
        row = result.scalar_one_or_none()

        if row is not None:
            return mapper.model_to_entity(row), True

        # Only a retried client_msg_id can conflict
        existing = (
            await self.get_by_client_msg_id(message.sender_id, message.client_msg_id)
            if message.client_msg_id is not None
            else None
        )
        if existing is None:
            raise RuntimeError(f"Insert of message {message.id} conflicted without a retry key")
        return existing, False

    async def get_by_client_msg_id(
        self,
        sender_id: int,
        client_msg_id: UUID,
    ) -> Message | None:
        stmt = select(MessageModel).where(
            MessageModel.sender_id == sender_id,
            MessageModel.client_msg_id == client_msg_id,
        )
        result = await self._session.execute(stmt)
        model = result.scalar_one_or_none()
        return mapper.model_to_entity(model) if model else None
