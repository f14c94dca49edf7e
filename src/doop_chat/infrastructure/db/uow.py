from __future__ import annotations

from contextlib import asynccontextmanager
from types import TracebackType
from typing import AsyncIterator, Self

from sqlalchemy.ext.asyncio import AsyncSession

from doop_chat.infrastructure.db.repositories.message import (
    MessageReaderRepo,
    MessageWriterRepo,
)
from doop_chat.infrastructure.db.repositories.outbox import OutboxWriterRepo
from doop_chat.infrastructure.db.repositories.profile import (
    ProfileReaderRepo,
    ProfileWriterRepo,
)
from doop_chat.infrastructure.db.repositories.read_state import ReadStateWriterRepo
from doop_chat.infrastructure.db.session import AsyncSessionLocal


class SqlAlchemyUoW:
    """Repositories sharing one AsyncSession.

    Services commit explicitly; anything left uncommitted when the block
    exits is rolled back.
    """

    def __init__(self, session: AsyncSession) -> None:
        self._session = session
        self.messages = MessageReaderRepo(session)
        self.messages_w = MessageWriterRepo(session)
        self.read_state_w = ReadStateWriterRepo(session)
        self.profiles = ProfileReaderRepo(session)
        self.profiles_w = ProfileWriterRepo(session)
        self.outbox = OutboxWriterRepo(session)

    async def flush(self) -> None:
        await self._session.flush()

    async def commit(self) -> None:
        await self._session.commit()

    async def rollback(self) -> None:
        await self._session.rollback()

    async def __aenter__(self) -> Self:
        return self

    async def __aexit__(
        self,
        exc_type: type[BaseException] | None,
        exc_val: BaseException | None,
        exc_tb: TracebackType | None,
    ) -> None:
        if exc_type is not None or self._session.in_transaction():
            await self.rollback()


@asynccontextmanager
async def uow_scope() -> AsyncIterator[SqlAlchemyUoW]:
    """Fresh session and UoW for work outside a request (WS frames, workers, scripts)."""
    async with AsyncSessionLocal() as session, SqlAlchemyUoW(session) as uow:
        yield uow
