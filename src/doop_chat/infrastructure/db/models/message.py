from __future__ import annotations

import uuid
from datetime import datetime

from sqlalchemy import BigInteger, Boolean, Index, String, Text, UniqueConstraint
from sqlalchemy import text as sa_text
from sqlalchemy.dialects.postgresql import TIMESTAMP, UUID
from sqlalchemy.orm import Mapped, mapped_column

from doop_chat.infrastructure.db.base import Base


class MessageModel(Base):
    __tablename__ = "messages"

    id: Mapped[uuid.UUID] = mapped_column(
        UUID(as_uuid=True),
        primary_key=True,
        default=uuid.uuid4,
        server_default=sa_text("gen_random_uuid()"),
    )
    # "<lo>:<hi>" of the identity pair; conversation_key adds the context
    pair_key: Mapped[str] = mapped_column(String(64), nullable=False)
    conversation_key: Mapped[str] = mapped_column(String(160), nullable=False)
    context_id: Mapped[str | None] = mapped_column(String(64), nullable=True)
    sender_id: Mapped[int] = mapped_column(BigInteger, nullable=False)
    recipient_id: Mapped[int] = mapped_column(BigInteger, nullable=False)
    text: Mapped[str] = mapped_column(Text, nullable=False)
    read: Mapped[bool] = mapped_column(
        Boolean,
        nullable=False,
        default=False,
        server_default=sa_text("false"),
    )
    client_msg_id: Mapped[uuid.UUID] = mapped_column(UUID(as_uuid=True), nullable=False)
    created_at: Mapped[datetime] = mapped_column(
        TIMESTAMP(timezone=True),
        nullable=False,
        server_default=sa_text("now()"),
    )

    __table_args__ = (
        UniqueConstraint(
            "sender_id",
            "client_msg_id",
            name="uq_message_idempotency",
        ),
        Index("ix_messages_pair_timeline", "pair_key", "created_at", "id"),
        Index("ix_messages_conversation_timeline", "conversation_key", "created_at", "id"),
        Index(
            "ix_messages_unread",
            "recipient_id",
            "sender_id",
            postgresql_where=sa_text("NOT read"),
        ),
    )
