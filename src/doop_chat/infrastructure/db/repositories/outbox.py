from __future__ import annotations

from datetime import datetime
from typing import Any

from sqlalchemy import or_, select, update
from sqlalchemy.ext.asyncio import AsyncSession

from doop_chat.application.ports.clock import utcnow
from doop_chat.application.repositories.outbox import OutboxRecord
from doop_chat.domain.value_objects.enums import OutboxStatus
from doop_chat.infrastructure.db.models.outbox import OutboxMessageModel

MAX_ERROR_LENGTH = 1000

_DUE_STATUSES = (OutboxStatus.PENDING, OutboxStatus.FAILED)


class OutboxWriterRepo:
    def __init__(self, session: AsyncSession) -> None:
        self._session = session

    async def add(self, event_type: str, payload: dict[str, Any]) -> None:
        self._session.add(OutboxMessageModel(event_type=event_type, payload=payload))
        await self._session.flush()

    async def fetch_pending(self, batch_size: int) -> list[OutboxRecord]:
        """Claim due records in one statement; rows locked by another worker are skipped."""
        due = (
            select(OutboxMessageModel.id)
            .where(
                OutboxMessageModel.status.in_(_DUE_STATUSES),
                or_(
                    OutboxMessageModel.next_retry_at.is_(None),
                    OutboxMessageModel.next_retry_at <= utcnow(),
                ),
            )
            .order_by(OutboxMessageModel.created_at, OutboxMessageModel.id)
            .limit(batch_size)
            .with_for_update(skip_locked=True)
            .scalar_subquery()
        )
        claimed = await self._session.execute(
            update(OutboxMessageModel)
            .where(OutboxMessageModel.id.in_(due))
            .values(status=OutboxStatus.PROCESSING)
            .returning(
                OutboxMessageModel.id,
                OutboxMessageModel.event_type,
                OutboxMessageModel.payload,
                OutboxMessageModel.attempts,
            )
            .execution_options(synchronize_session=False)
        )
        records = [
            OutboxRecord(id=row.id, event_type=row.event_type, payload=row.payload, attempts=row.attempts)
            for row in claimed
        ]
        # RETURNING order is unspecified
        records.sort(key=lambda r: r.id)
        return records

    async def mark_sent(self, ids: list[int]) -> None:
        if ids:
            await self._set(ids, status=OutboxStatus.SENT, last_error=None)

    async def mark_failed(
        self,
        record_id: int,
        next_retry_at: datetime,
        error: str | None = None,
    ) -> None:
        await self._set(
            [record_id],
            status=OutboxStatus.FAILED,
            attempts=OutboxMessageModel.attempts + 1,
            next_retry_at=next_retry_at,
            last_error=error[:MAX_ERROR_LENGTH] if error else None,
        )

    async def mark_dead(self, record_id: int) -> None:
        await self._set([record_id], status=OutboxStatus.DEAD)

    async def _set(self, ids: list[int], **values: Any) -> None:
        await self._session.execute(
            update(OutboxMessageModel)
            .where(OutboxMessageModel.id.in_(ids))
            .values(**values)
            .execution_options(synchronize_session=False)
        )
