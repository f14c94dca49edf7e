"""Shared test fixtures."""
from __future__ import annotations

import asyncio
import itertools
import uuid
from dataclasses import dataclass, field
from datetime import datetime, timedelta, timezone
from typing import Any, Iterable
from uuid import UUID

import pytest

from doop_chat.application.dto.message import MessagePage
from doop_chat.application.dto.principal import Principal
from doop_chat.application.exceptions import AuthorizationError, NotFoundError, Unavailable
from doop_chat.application.policies.validation import validate_text
from doop_chat.application.repositories.outbox import OutboxRecord
from doop_chat.domain.entities.conversation import (
    ConversationSummary,
    CounterpartyInfo,
    conversation_key,
    pair_key,
)
from doop_chat.domain.entities.message import Message
from doop_chat.domain.entities.profile import Profile
from doop_chat.domain.events.messages_read import MessagesRead
from doop_chat.domain.value_objects.enums import ChannelEvent
from doop_chat.infrastructure.db.repositories._cursor import decode_cursor, encode_cursor

BUYER_ID = 42
SELLER_ID = 7
OTHER_ID = 99

T0 = datetime(2026, 3, 1, 12, 0, tzinfo=timezone.utc)


@pytest.fixture
def user_principal() -> Principal:
    return Principal(subject_id=BUYER_ID)


@pytest.fixture
def seller_principal() -> Principal:
    return Principal(subject_id=SELLER_ID)


def make_message(
    *,
    sender_id: int = SELLER_ID,
    recipient_id: int = BUYER_ID,
    text: str = "hello",
    read: bool = False,
    created_at: datetime | None = None,
    context_id: str | None = None,
    client_msg_id: UUID | None = None,
    message_id: UUID | None = None,
) -> Message:
    return Message(
        id=message_id or uuid.uuid4(),
        conversation_key=conversation_key(sender_id, recipient_id, context_id),
        sender_id=sender_id,
        recipient_id=recipient_id,
        text=text,
        read=read,
        created_at=created_at or datetime.now(timezone.utc),
        context_id=context_id,
        client_msg_id=client_msg_id,
    )


class StepClock:
    """Clock that advances one second per reading."""

    def __init__(self, start: datetime = T0) -> None:
        self._ticks = itertools.count()
        self._start = start

    def now(self) -> datetime:
        return self._start + timedelta(seconds=next(self._ticks))


async def settle() -> None:
    """Let fire-and-forget tasks run."""
    for _ in range(5):
        await asyncio.sleep(0)


def _page(messages: Iterable[Message], *, cursor: str | None, limit: int) -> MessagePage:
    rows = sorted(messages, key=lambda m: m.order_key, reverse=True)
    if cursor is not None:
        boundary = decode_cursor(cursor)
        rows = [m for m in rows if m.order_key < boundary]
    has_more = len(rows) > limit
    rows = rows[:limit]
    rows.reverse()
    next_cursor = encode_cursor(rows[0].created_at, rows[0].id) if has_more and rows else None
    return MessagePage(messages=rows, has_more=has_more, next_cursor=next_cursor)


# -- server-side fakes ------------------------------------------------------


@dataclass
class FakeMessageReader:
    _messages: list[Message] = field(default_factory=list)

    async def page(
        self,
        pair_key_: str,
        *,
        context_id: str | None = None,
        cursor: str | None = None,
        limit: int = 20,
    ) -> MessagePage:
        rows = [
            m
            for m in self._messages
            if pair_key(m.sender_id, m.recipient_id) == pair_key_
            and (context_id is None or m.context_id == context_id)
        ]
        return _page(rows, cursor=cursor, limit=limit)

    async def get_by_id(self, message_id: UUID) -> Message | None:
        return next((m for m in self._messages if m.id == message_id), None)

    async def latest_per_counterparty(self, user_id: int) -> list[Message]:
        latest: dict[str, Message] = {}
        for m in self._messages:
            if not m.is_visible_to(user_id):
                continue
            key = m.conversation_key
            if key not in latest or m.order_key > latest[key].order_key:
                latest[key] = m
        return list(latest.values())


@dataclass
class FakeMessageWriter:
    _reader: FakeMessageReader

    async def create_if_not_exists(self, message: Message) -> tuple[Message, bool]:
        existing = await self.get_by_client_msg_id(message.sender_id, message.client_msg_id)
        if existing is not None:
            return existing, False
        self._reader._messages.append(message)
        return message, True

    async def get_by_client_msg_id(self, sender_id: int, client_msg_id: UUID) -> Message | None:
        for m in self._reader._messages:
            if m.sender_id == sender_id and m.client_msg_id == client_msg_id:
                return m
        return None


@dataclass
class FakeReadStateWriter:
    _reader: FakeMessageReader

    async def mark_read(self, message_id: UUID, recipient_id: int) -> int | None:
        for i, m in enumerate(self._reader._messages):
            if m.id == message_id and m.recipient_id == recipient_id and not m.read:
                self._reader._messages[i] = m.as_read()
                return m.sender_id
        return None

    async def mark_all_read(self, sender_id: int, recipient_id: int) -> list[UUID]:
        ids: list[UUID] = []
        for i, m in enumerate(self._reader._messages):
            if m.sender_id == sender_id and m.recipient_id == recipient_id and not m.read:
                self._reader._messages[i] = m.as_read()
                ids.append(m.id)
        return ids


@dataclass
class FakeProfileRepo:
    _profiles: dict[int, Profile] = field(default_factory=dict)

    async def get(self, user_id: int) -> Profile | None:
        return self._profiles.get(user_id)

    async def get_many(self, user_ids: Iterable[int]) -> dict[int, Profile]:
        return {uid: self._profiles[uid] for uid in user_ids if uid in self._profiles}

    async def upsert(self, profile: Profile) -> None:
        current = self._profiles.get(profile.user_id)
        if current is None or current.updated_at <= profile.updated_at:
            self._profiles[profile.user_id] = profile


@dataclass
class FakeOutboxWriter:
    _records: list[dict[str, Any]] = field(default_factory=list)
    pending: list[OutboxRecord] = field(default_factory=list)
    sent: list[int] = field(default_factory=list)
    failed: list[tuple[int, datetime, str | None]] = field(default_factory=list)
    dead: list[int] = field(default_factory=list)

    async def add(self, event_type: str, payload: dict[str, Any]) -> None:
        self._records.append({"event_type": event_type, "payload": payload})
        self.pending.append(
            OutboxRecord(id=len(self._records), event_type=event_type, payload=payload, attempts=0)
        )

    async def fetch_pending(self, batch_size: int) -> list[OutboxRecord]:
        batch, self.pending = self.pending[:batch_size], self.pending[batch_size:]
        return batch

    async def mark_sent(self, ids: list[int]) -> None:
        self.sent.extend(ids)

    async def mark_failed(
        self,
        record_id: int,
        next_retry_at: datetime,
        error: str | None = None,
    ) -> None:
        self.failed.append((record_id, next_retry_at, error))

    async def mark_dead(self, record_id: int) -> None:
        self.dead.append(record_id)


@dataclass
class FakeUoW:
    """In-memory UoW for unit tests."""

    messages: FakeMessageReader = field(default_factory=FakeMessageReader)
    messages_w: FakeMessageWriter | None = None
    read_state_w: FakeReadStateWriter | None = None
    profiles: FakeProfileRepo = field(default_factory=FakeProfileRepo)
    profiles_w: FakeProfileRepo | None = None
    outbox: FakeOutboxWriter = field(default_factory=FakeOutboxWriter)
    commits: int = 0

    def __post_init__(self) -> None:
        if self.messages_w is None:
            self.messages_w = FakeMessageWriter(self.messages)
        if self.read_state_w is None:
            self.read_state_w = FakeReadStateWriter(self.messages)
        if self.profiles_w is None:
            self.profiles_w = self.profiles

    @property
    def _committed(self) -> bool:
        return self.commits > 0

    async def flush(self) -> None:
        pass

    async def commit(self) -> None:
        self.commits += 1

    async def rollback(self) -> None:
        pass


@pytest.fixture
def uow() -> FakeUoW:
    return FakeUoW()


# -- client-side fakes ------------------------------------------------------


class FakeHandle:
    def __init__(self, hub: FakeChannelHub, identity: int) -> None:
        self.identity = identity
        self.refs = 0
        self.connected = True
        self.reconnects = 0
        self._hub = hub
        self._handlers: dict[ChannelEvent, list[Any]] = {e: [] for e in ChannelEvent}

    def on(self, event: ChannelEvent, handler: Any) -> None:
        self._handlers[event].append(handler)

    def off(self, event: ChannelEvent, handler: Any) -> None:
        if handler in self._handlers[event]:
            self._handlers[event].remove(handler)

    def handler_count(self) -> int:
        return sum(len(h) for h in self._handlers.values())

    async def reconnect(self) -> None:
        self.reconnects += 1
        self.connected = True

    async def release(self) -> None:
        self.refs -= 1
        if self.refs <= 0:
            self._hub.handles.pop(self.identity, None)

    def deliver(self, event: ChannelEvent, payload: Any) -> None:
        if not self.connected:
            return
        for handler in list(self._handlers[event]):
            handler(payload)


class FakeChannelHub:
    """In-process ``EventChannel``: one handle per identity, synchronous delivery."""

    def __init__(self) -> None:
        self.handles: dict[int, FakeHandle] = {}
        self.connects = 0
        self.fail_connect = False

    async def connect(self, identity: int) -> FakeHandle:
        if self.fail_connect:
            raise Unavailable("channel down")
        self.connects += 1
        handle = self.handles.get(identity)
        if handle is None:
            handle = self.handles[identity] = FakeHandle(self, identity)
        handle.refs += 1
        return handle

    def publish_created(self, message: Message) -> None:
        for uid in dict.fromkeys((message.sender_id, message.recipient_id)):
            handle = self.handles.get(uid)
            if handle is not None:
                handle.deliver(ChannelEvent.MESSAGE_CREATED, message)

    def publish_read(self, event: MessagesRead) -> None:
        for uid in dict.fromkeys((event.sender_id, event.reader_id)):
            handle = self.handles.get(uid)
            if handle is not None:
                handle.deliver(ChannelEvent.MESSAGES_READ, event)


class FakeMessageStore:
    """In-memory Store shared by every identity in a test.

    Appends are echoed on the hub before ``append`` returns unless
    ``echo`` is switched off; ``gate`` holds appends and page reads until it is set.
    """

    def __init__(self, hub: FakeChannelHub | None = None, clock: StepClock | None = None) -> None:
        self.hub = hub
        self.clock = clock or StepClock()
        self.messages: list[Message] = []
        self.echo = True
        self.gate: asyncio.Event | None = None
        self.fail_with: BaseException | None = None
        self.page_calls: list[str | None] = []
        self.appends: list[tuple[int, int, str]] = []
        self.mark_read_calls: list[UUID] = []
        self.mark_all_read_calls: list[tuple[int, int]] = []

    def seed(self, *messages: Message) -> None:
        self.messages.extend(messages)

    async def append(
        self,
        sender_id: int,
        recipient_id: int,
        text: str,
        context_id: str | None = None,
        client_msg_id: UUID | None = None,
    ) -> Message:
        validate_text(text)
        if self.gate is not None:
            await self.gate.wait()
        if self.fail_with is not None:
            raise self.fail_with
        self.appends.append((sender_id, recipient_id, text))
        msg = make_message(
            sender_id=sender_id,
            recipient_id=recipient_id,
            text=text,
            created_at=self.clock.now(),
            context_id=context_id,
            client_msg_id=client_msg_id,
        )
        self.messages.append(msg)
        if self.echo and self.hub is not None:
            self.hub.publish_created(msg)
        return msg

    async def page(
        self,
        identity_a: int,
        identity_b: int,
        context_id: str | None = None,
        cursor: str | None = None,
        limit: int = 20,
    ) -> MessagePage:
        self.page_calls.append(cursor)
        if self.gate is not None:
            await self.gate.wait()
        if self.fail_with is not None:
            raise self.fail_with
        key = pair_key(identity_a, identity_b)
        rows = [
            m
            for m in self.messages
            if pair_key(m.sender_id, m.recipient_id) == key
            and (context_id is None or m.context_id == context_id)
        ]
        return _page(rows, cursor=cursor, limit=limit)

    async def mark_read(self, message_id: UUID) -> None:
        self.mark_read_calls.append(message_id)
        for i, m in enumerate(self.messages):
            if m.id == message_id:
                self.messages[i] = m.as_read()
                return
        raise NotFoundError("Message not found")

    async def mark_all_read(self, counterparty_id: int, for_identity: int) -> None:
        if counterparty_id == for_identity:
            raise AuthorizationError("Cannot read your own messages")
        self.mark_all_read_calls.append((counterparty_id, for_identity))
        ids: list[UUID] = []
        for i, m in enumerate(self.messages):
            if m.sender_id == counterparty_id and m.recipient_id == for_identity and not m.read:
                self.messages[i] = m.as_read()
                ids.append(m.id)
        if ids and self.hub is not None:
            self.hub.publish_read(
                MessagesRead(reader_id=for_identity, sender_id=counterparty_id, message_ids=ids)
            )

    async def list_conversations(self, identity: int) -> list[ConversationSummary]:
        latest: dict[int, Message] = {}
        for m in self.messages:
            if not m.is_visible_to(identity):
                continue
            other = m.counterparty_of(identity)
            if other not in latest or m.order_key > latest[other].order_key:
                latest[other] = m
        return sorted(
            (
                ConversationSummary(
                    counterparty_id=other,
                    counterparty=CounterpartyInfo(),
                    last_message_text=m.text,
                    last_message_time=m.created_at,
                )
                for other, m in latest.items()
            ),
            key=lambda s: s.last_message_time,
            reverse=True,
        )


@pytest.fixture
def hub() -> FakeChannelHub:
    return FakeChannelHub()


@pytest.fixture
def store(hub: FakeChannelHub) -> FakeMessageStore:
    return FakeMessageStore(hub)
