from __future__ import annotations

import logging
from types import TracebackType

from doop_chat.client.config import ClientSettings
from doop_chat.client.http_store import HttpMessageStore
from doop_chat.client.session import ConversationSession
from doop_chat.client.ws_channel import WebSocketChannel
from doop_chat.domain.entities.conversation import ConversationSummary

logger = logging.getLogger(__name__)


class ChatClient:
    """Entry point for a presentation layer acting as one signed-in user."""

    def __init__(
        self,
        identity: int,
        token: str,
        settings: ClientSettings | None = None,
        *,
        store: HttpMessageStore | None = None,
        channel: WebSocketChannel | None = None,
    ) -> None:
        self.identity = identity
        self.settings = settings or ClientSettings()
        self.store = store or HttpMessageStore(
            self.settings.API_BASE_URL,
            token,
            identity,
            timeout=self.settings.REQUEST_TIMEOUT,
        )
        self.channel = channel or WebSocketChannel(
            self.settings.WS_URL,
            lambda _identity: token,
            open_timeout=self.settings.WS_OPEN_TIMEOUT,
        )
        self._sessions: list[ConversationSession] = []

    async def __aenter__(self) -> ChatClient:
        return self

    async def __aexit__(
        self,
        exc_type: type[BaseException] | None,
        exc: BaseException | None,
        tb: TracebackType | None,
    ) -> None:
        await self.aclose()

    async def inbox(self) -> list[ConversationSummary]:
        return await self.store.list_conversations(self.identity)

    async def open_conversation(
        self,
        counterparty_id: int,
        context_id: str | None = None,
    ) -> ConversationSession:
        session = ConversationSession(
            self.store,
            self.channel,
            self.identity,
            counterparty_id,
            context_id,
            page_size=self.settings.PAGE_SIZE,
            request_timeout=self.settings.REQUEST_TIMEOUT,
        )
        try:
            await session.open()
        except BaseException:
            await session.close()
            raise
        # Sessions the caller closed itself need no tracking
        self._sessions = [s for s in self._sessions if not s.closed]
        self._sessions.append(session)
        return session

    async def aclose(self) -> None:
        for session in self._sessions:
            await session.close()
        self._sessions.clear()
        await self.store.aclose()
        logger.debug("Chat client for %s closed", self.identity)
