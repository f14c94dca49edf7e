from __future__ import annotations

from datetime import datetime
from typing import Any

from sqlalchemy import BigInteger, Index, SmallInteger, String, Text
from sqlalchemy import text as sa_text
from sqlalchemy.dialects.postgresql import JSONB, TIMESTAMP
from sqlalchemy.orm import Mapped, mapped_column

from doop_chat.domain.value_objects.enums import OutboxStatus
from doop_chat.infrastructure.db.base import Base


class OutboxMessageModel(Base):
    """Fan-out events, committed together with the message or read flip they announce."""

    __tablename__ = "outbox_messages"

    id: Mapped[int] = mapped_column(BigInteger, primary_key=True, autoincrement=True)
    event_type: Mapped[str] = mapped_column(String(64), nullable=False)
    payload: Mapped[dict[str, Any]] = mapped_column(JSONB, nullable=False)
    status: Mapped[str] = mapped_column(
        String(16),
        nullable=False,
        default=OutboxStatus.PENDING,
        server_default=sa_text(f"'{OutboxStatus.PENDING}'"),
    )
    attempts: Mapped[int] = mapped_column(SmallInteger, nullable=False, default=0, server_default=sa_text("0"))
    last_error: Mapped[str | None] = mapped_column(Text)
    next_retry_at: Mapped[datetime | None] = mapped_column(TIMESTAMP(timezone=True))
    created_at: Mapped[datetime] = mapped_column(
        TIMESTAMP(timezone=True), nullable=False, server_default=sa_text("now()"),
    )
    updated_at: Mapped[datetime] = mapped_column(
        TIMESTAMP(timezone=True),
        nullable=False,
        server_default=sa_text("now()"),
        onupdate=sa_text("now()"),
    )

    __table_args__ = (
        # Only due records are ever scanned; sent and dead rows stay out of the index
        Index(
            "ix_outbox_due",
            "next_retry_at",
            "created_at",
            postgresql_where=sa_text(f"status IN ('{OutboxStatus.PENDING}', '{OutboxStatus.FAILED}')"),
        ),
    )
