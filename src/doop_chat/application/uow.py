from __future__ import annotations

from typing import Protocol

from doop_chat.application.repositories.message import MessageReader, MessageWriter
from doop_chat.application.repositories.outbox import OutboxWriter
from doop_chat.application.repositories.profile import ProfileReader, ProfileWriter
from doop_chat.application.repositories.read_state import ReadStateWriter


class UnitOfWork(Protocol):
    messages: MessageReader
    messages_w: MessageWriter
    read_state_w: ReadStateWriter
    profiles: ProfileReader
    profiles_w: ProfileWriter
    outbox: OutboxWriter

    async def commit(self) -> None: ...
    async def rollback(self) -> None: ...
    async def flush(self) -> None: ...
