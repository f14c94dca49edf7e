"""Client-side engine for one open conversation.

A session owns the transcript shown to the user: it loads the newest page
from the Store, merges live events from the Event Channel, shows optimistic
pending entries while sends are in flight and acknowledges reads.
"""
from __future__ import annotations

import asyncio
import itertools
import logging
from typing import Any, Awaitable, Callable, TypeVar
from uuid import UUID, uuid4

from doop_chat.application.dto.message import MessagePage
from doop_chat.application.exceptions import (
    AppError,
    SendFailedError,
    SessionClosedError,
    Unavailable,
)
from doop_chat.application.policies.validation import (
    validate_context_id,
    validate_identity,
    validate_recipient,
    validate_text,
)
from doop_chat.application.ports.channel import ChannelHandle, EventChannel
from doop_chat.application.ports.clock import Clock, SystemClock
from doop_chat.application.ports.store import MessageStore
from doop_chat.client.transcript import Transcript, TranscriptChange
from doop_chat.domain.entities.message import Message, PendingMessage, TranscriptEntry
from doop_chat.domain.events.messages_read import MessagesRead
from doop_chat.domain.value_objects.enums import ChannelEvent, SessionState, TranscriptChangeKind
from doop_chat.domain.value_objects.ids import pending_id
from doop_chat.domain.value_objects.limits import PAGE_SIZE

logger = logging.getLogger(__name__)

T = TypeVar("T")
ChangeListener = Callable[[TranscriptChange], None]


class ConversationSession:
    def __init__(
        self,
        store: MessageStore,
        channel: EventChannel,
        self_id: int,
        counterparty_id: int,
        context_id: str | None = None,
        *,
        page_size: int = PAGE_SIZE,
        request_timeout: float | None = None,
        clock: Clock | None = None,
    ) -> None:
        self.self_id = validate_identity(self_id, field="self_id")
        self.counterparty_id = validate_recipient(self.self_id, counterparty_id)
        self.context_id = validate_context_id(context_id)
        self._store = store
        self._channel = channel
        self._page_size = page_size
        self._timeout = request_timeout
        self._clock = clock or SystemClock()

        self._state = SessionState.LOADING
        self._transcript = Transcript()
        self._cursor: str | None = None
        self._has_more_older = False
        self._seq = itertools.count(1)
        # Serializes open/load_older and the network leg of sends
        self._io_lock = asyncio.Lock()
        self._handle: ChannelHandle | None = None
        self._listeners: list[ChangeListener] = []
        self._background: set[asyncio.Task[Any]] = set()

    # -- observable state ----------------------------------------------------

    @property
    def state(self) -> SessionState:
        return self._state

    @property
    def transcript(self) -> tuple[TranscriptEntry, ...]:
        return self._transcript.entries

    @property
    def pending_sends(self) -> tuple[PendingMessage, ...]:
        return self._transcript.pending

    @property
    def has_more_older(self) -> bool:
        return self._has_more_older

    @property
    def pagination_cursor(self) -> str | None:
        return self._cursor

    @property
    def closed(self) -> bool:
        return self._state is SessionState.CLOSED

    def subscribe(self, listener: ChangeListener) -> Callable[[], None]:
        """Register a transcript change listener; returns an unsubscribe callable."""
        self._listeners.append(listener)

        def unsubscribe() -> None:
            if listener in self._listeners:
                self._listeners.remove(listener)

        return unsubscribe

    # -- operations ----------------------------------------------------------

    async def open(self, timeout: float | None = None) -> None:
        """Load the newest page and start following the conversation live.

        Calling it again reloads the newest page; pending sends are kept.
        """
        self._ensure_open()
        async with self._io_lock:
            self._ensure_open()
            self._state = SessionState.LOADING
            # Subscribe before fetching so nothing created meanwhile is missed
            await self._attach_channel()
            try:
                page = await self._fetch_page(None, timeout)
            finally:
                if not self.closed:
                    self._state = SessionState.READY
            if self.closed:
                return
            added = self._transcript.reset(page.messages)
            self._has_more_older = page.has_more
            self._cursor = page.next_cursor
            self._emit(TranscriptChangeKind.RESET, tuple(added))
            self._ack_unread(page.messages, bulk=True)

    async def load_older(self, timeout: float | None = None) -> list[Message]:
        """Fetch the next older page; a no-op unless ready with more to load."""
        self._ensure_open()
        if (
            self._state is not SessionState.READY
            or not self._has_more_older
            or self._io_lock.locked()
        ):
            return []
        async with self._io_lock:
            self._state = SessionState.LOADING_OLDER
            try:
                page = await self._fetch_page(self._cursor, timeout)
            finally:
                if not self.closed:
                    self._state = SessionState.READY
            if self.closed:
                return []
            added = self._transcript.prepend(page.messages)
            self._has_more_older = page.has_more
            if page.next_cursor is not None:
                self._cursor = page.next_cursor
            if added:
                self._emit(TranscriptChangeKind.PREPEND, tuple(added))
            self._ack_unread(page.messages, bulk=True)
            return added

    async def send(self, text: str, timeout: float | None = None) -> Message:
        """Send ``text`` with an optimistic pending entry.

        On failure the pending entry is removed and ``SendFailedError`` carries
        the original text back so the caller can restore the draft. On success
        the pending entry is dropped unless the live echo already replaced it;
        the returned message is not inserted, the echo does that.
        """
        self._ensure_open()
        validate_text(text)
        seq = next(self._seq)
        pending = PendingMessage(
            local_id=pending_id(seq),
            seq=seq,
            client_msg_id=uuid4(),
            sender_id=self.self_id,
            recipient_id=self.counterparty_id,
            text=text,
            created_at=self._clock.now(),
            context_id=self.context_id,
        )
        self._transcript.add_pending(pending)
        self._emit(TranscriptChangeKind.APPEND, (pending,))

        try:
            async with self._io_lock:
                self._ensure_open()
                self._state = SessionState.SENDING
                try:
                    message = await self._call(
                        self._store.append(
                            self.self_id,
                            self.counterparty_id,
                            text,
                            self.context_id,
                            pending.client_msg_id,
                        ),
                        timeout,
                    )
                finally:
                    if not self.closed:
                        self._state = SessionState.READY
        except asyncio.CancelledError:
            self._drop_pending(pending)
            raise
        except Exception as exc:
            self._drop_pending(pending)
            logger.info("Send to %s failed: %s", self.counterparty_id, exc)
            raise SendFailedError(text, exc) from exc
        self._drop_pending(pending)
        return message

    def receive(self, message: Message) -> bool:
        """Merge a live message; returns True if the transcript changed."""
        if self.closed or not self._belongs(message):
            return False
        if self._transcript.contains(message.id):
            if message.read:
                self._mark_read_locally([message.id])
            return False

        if message.sender_id == self.self_id:
            pending = self._transcript.match_pending(message)
            if pending is not None:
                self._transcript.replace_pending(pending, message)
                self._emit(TranscriptChangeKind.REPLACE, (pending, message))
                return True

        self._transcript.insert(message)
        kind = (
            TranscriptChangeKind.APPEND
            if self._transcript.is_tail(message.id)
            else TranscriptChangeKind.INSERT
        )
        self._emit(kind, (message,))
        self._ack_unread((message,), bulk=False)
        return True

    async def close(self) -> None:
        if self.closed:
            return
        self._state = SessionState.CLOSED
        handle, self._handle = self._handle, None
        if handle is not None:
            handle.off(ChannelEvent.MESSAGE_CREATED, self.receive)
            handle.off(ChannelEvent.MESSAGES_READ, self._on_messages_read)
            await handle.release()
        self._listeners.clear()
        logger.debug("Session %s<->%s closed", self.self_id, self.counterparty_id)

    async def drain(self) -> None:
        """Wait for outstanding read acknowledgements."""
        while self._background:
            await asyncio.gather(*list(self._background), return_exceptions=True)

    # -- internals -----------------------------------------------------------

    def _ensure_open(self) -> None:
        if self.closed:
            raise SessionClosedError("Session is closed")

    async def _attach_channel(self) -> None:
        if self._handle is not None:
            if not self._handle.connected:
                await self._reconnect_channel(self._handle)
            return
        try:
            handle = await self._channel.connect(self.self_id)
        except AppError as exc:
            # Live updates are lost until the next open; the transcript still loads
            logger.warning("Event channel unavailable for %s: %s", self.self_id, exc)
            return
        handle.on(ChannelEvent.MESSAGE_CREATED, self.receive)
        handle.on(ChannelEvent.MESSAGES_READ, self._on_messages_read)
        self._handle = handle

    async def _reconnect_channel(self, handle: ChannelHandle) -> None:
        try:
            await handle.reconnect()
        except AppError as exc:
            logger.warning("Event channel still unavailable for %s: %s", self.self_id, exc)
            return
        logger.info("Event channel reconnected for %s", self.self_id)

    async def _fetch_page(self, cursor: str | None, timeout: float | None) -> MessagePage:
        return await self._call(
            self._store.page(
                self.self_id,
                self.counterparty_id,
                self.context_id,
                cursor,
                self._page_size,
            ),
            timeout,
        )

    async def _call(self, awaitable: Awaitable[T], timeout: float | None = None) -> T:
        timeout = timeout if timeout is not None else self._timeout
        try:
            if timeout is None:
                return await awaitable
            return await asyncio.wait_for(awaitable, timeout)
        except asyncio.TimeoutError as exc:
            raise Unavailable("Store request timed out") from exc
        except AppError:
            raise
        except Exception as exc:
            raise Unavailable(f"Store request failed: {exc}") from exc

    def _belongs(self, message: Message) -> bool:
        parties = {message.sender_id, message.recipient_id}
        if parties != {self.self_id, self.counterparty_id}:
            return False
        return self.context_id is None or message.context_id == self.context_id

    def _drop_pending(self, pending: PendingMessage) -> None:
        if self._transcript.remove_pending(pending.local_id) is not None:
            self._emit(TranscriptChangeKind.REMOVE, (pending,))

    def _ack_unread(self, messages: tuple[Message, ...] | list[Message], *, bulk: bool) -> None:
        unread = [m.id for m in messages if m.recipient_id == self.self_id and not m.read]
        if not unread:
            return
        if bulk:
            self._spawn(self._store.mark_all_read(self.counterparty_id, self.self_id))
        else:
            for message_id in unread:
                self._spawn(self._store.mark_read(message_id))
        self._mark_read_locally(unread)

    def _on_messages_read(self, event: MessagesRead) -> None:
        if self.closed:
            return
        if {event.reader_id, event.sender_id} != {self.self_id, self.counterparty_id}:
            return
        self._mark_read_locally(event.message_ids)

    def _mark_read_locally(self, message_ids: list[UUID]) -> None:
        changed = self._transcript.mark_read(message_ids)
        if changed:
            self._emit(TranscriptChangeKind.READ, tuple(changed))

    def _spawn(self, awaitable: Awaitable[None]) -> None:
        task = asyncio.create_task(self._ack(awaitable))
        self._background.add(task)
        task.add_done_callback(self._background.discard)

    async def _ack(self, awaitable: Awaitable[None]) -> None:
        try:
            await self._call(awaitable)
        except AppError as exc:
            logger.warning("Read acknowledgement failed: %s", exc)

    def _emit(self, kind: TranscriptChangeKind, entries: tuple[TranscriptEntry, ...]) -> None:
        change = TranscriptChange(kind=kind, entries=entries)
        for listener in list(self._listeners):
            try:
                listener(change)
            except Exception:
                logger.exception("Transcript listener failed")
