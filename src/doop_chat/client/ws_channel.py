"""``EventChannel`` over the chat service WebSocket endpoint."""
from __future__ import annotations

import asyncio
import json
import logging
from typing import Any, Callable
from urllib.parse import urlencode

import websockets
from websockets.exceptions import ConnectionClosed, WebSocketException

from doop_chat.application.exceptions import Unavailable
from doop_chat.application.ports.channel import EventHandler
from doop_chat.domain.events.message_created import message_from_dict
from doop_chat.domain.events.messages_read import MessagesRead
from doop_chat.domain.value_objects.enums import ChannelEvent
from doop_chat.infrastructure.ws.protocol import MESSAGE_CREATED, MESSAGES_READ, PING

logger = logging.getLogger(__name__)

TokenProvider = Callable[[int], str]


class WebSocketChannel:
    """Hands out one shared handle per identity for the whole process."""

    def __init__(
        self,
        url: str,
        token_provider: TokenProvider,
        *,
        open_timeout: float = 10.0,
        ping_interval: float | None = 20.0,
    ) -> None:
        self._url = url
        self._token_provider = token_provider
        self._open_timeout = open_timeout
        self._ping_interval = ping_interval
        self._handles: dict[int, WebSocketChannelHandle] = {}
        self._lock = asyncio.Lock()

    async def connect(self, identity: int) -> WebSocketChannelHandle:
        async with self._lock:
            handle = self._handles.get(identity)
            if handle is None:
                handle = WebSocketChannelHandle(self, identity)
                await handle.open()
                self._handles[identity] = handle
            elif not handle.connected:
                # The server dropped the socket; its subscribers keep their handlers
                await handle.reconnect()
            handle.refs += 1
            return handle

    def _url_for(self, identity: int) -> str:
        sep = "&" if "?" in self._url else "?"
        return f"{self._url}{sep}{urlencode({'token': self._token_provider(identity)})}"

    def _forget(self, handle: WebSocketChannelHandle) -> None:
        if self._handles.get(handle.identity) is handle:
            del self._handles[handle.identity]


class WebSocketChannelHandle:
    def __init__(self, channel: WebSocketChannel, identity: int) -> None:
        self.identity = identity
        self.refs = 0
        self._channel = channel
        self._handlers: dict[ChannelEvent, list[EventHandler]] = {e: [] for e in ChannelEvent}
        self._ws: Any = None
        self._reader: asyncio.Task[None] | None = None

    @property
    def connected(self) -> bool:
        return self._reader is not None and not self._reader.done()

    def on(self, event: ChannelEvent, handler: EventHandler) -> None:
        self._handlers[ChannelEvent(event)].append(handler)

    def off(self, event: ChannelEvent, handler: EventHandler) -> None:
        handlers = self._handlers[ChannelEvent(event)]
        if handler in handlers:
            handlers.remove(handler)

    async def open(self) -> None:
        try:
            self._ws = await websockets.connect(
                self._channel._url_for(self.identity),
                open_timeout=self._channel._open_timeout,
                ping_interval=self._channel._ping_interval,
            )
        except (OSError, asyncio.TimeoutError, WebSocketException) as exc:
            raise Unavailable(f"Event channel unreachable: {exc}") from exc
        self._reader = asyncio.create_task(self._read_loop())
        logger.debug("Event channel open for user %s", self.identity)

    async def reconnect(self) -> None:
        await self._shutdown()
        await self.open()

    async def release(self) -> None:
        self.refs -= 1
        if self.refs > 0:
            return
        self._channel._forget(self)
        await self._shutdown()

    async def ping(self) -> None:
        if self._ws is not None:
            await self._ws.send(json.dumps({"type": PING, "data": {}}))

    async def _shutdown(self) -> None:
        if self._reader is not None:
            self._reader.cancel()
            try:
                await self._reader
            except asyncio.CancelledError:
                pass
            self._reader = None
        if self._ws is not None:
            await self._ws.close()
            self._ws = None

    async def _read_loop(self) -> None:
        try:
            async for raw in self._ws:
                self._handle_frame(raw)
        except ConnectionClosed as exc:
            logger.info("Event channel closed for user %s: %s", self.identity, exc)
        else:
            logger.info("Event channel closed for user %s", self.identity)

    def _handle_frame(self, raw: str | bytes) -> None:
        try:
            frame = json.loads(raw)
            event_type = frame["type"]
            data = frame.get("data") or {}
            if event_type == MESSAGE_CREATED:
                self._emit(ChannelEvent.MESSAGE_CREATED, message_from_dict(data["message"]))
            elif event_type == MESSAGES_READ:
                self._emit(ChannelEvent.MESSAGES_READ, MessagesRead.from_payload(data))
        except (ValueError, KeyError, TypeError):
            logger.warning("Dropping malformed frame: %r", raw)

    def _emit(self, event: ChannelEvent, payload: Any) -> None:
        for handler in list(self._handlers[event]):
            try:
                handler(payload)
            except Exception:
                logger.exception("Channel handler for %s failed", event)
