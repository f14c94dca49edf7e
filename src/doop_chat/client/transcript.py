"""Ordered, de-duplicated transcript of one open conversation."""
from __future__ import annotations

import bisect
from dataclasses import dataclass
from datetime import datetime
from typing import Iterable, Iterator
from uuid import UUID

from doop_chat.domain.entities.message import Message, PendingMessage, TranscriptEntry
from doop_chat.domain.value_objects.enums import TranscriptChangeKind
from doop_chat.domain.value_objects.ids import PendingId


@dataclass(frozen=True, slots=True)
class TranscriptChange:
    """What the last mutation did, for presentation layers that anchor scrolling."""

    kind: TranscriptChangeKind
    entries: tuple[TranscriptEntry, ...] = ()


def _order_key(message: Message) -> tuple[datetime, UUID]:
    return message.order_key


class Transcript:
    """Confirmed messages in authoritative order, followed by pending sends.

    Confirmed entries are sorted by ``(created_at, id)``; pending entries sit
    after every confirmed one, in the order they were created.
    """

    def __init__(self) -> None:
        self._confirmed: list[Message] = []
        self._pending: list[PendingMessage] = []
        self._ids: set[UUID] = set()
        # Everything ever seen as read; a reload must not un-read it
        self._read_ids: set[UUID] = set()

    def __len__(self) -> int:
        return len(self._confirmed) + len(self._pending)

    def __iter__(self) -> Iterator[TranscriptEntry]:
        yield from self._confirmed
        yield from self._pending

    @property
    def entries(self) -> tuple[TranscriptEntry, ...]:
        return (*self._confirmed, *self._pending)

    @property
    def confirmed(self) -> tuple[Message, ...]:
        return tuple(self._confirmed)

    @property
    def pending(self) -> tuple[PendingMessage, ...]:
        return tuple(self._pending)

    @property
    def oldest(self) -> Message | None:
        return self._confirmed[0] if self._confirmed else None

    def contains(self, message_id: UUID) -> bool:
        return message_id in self._ids

    def get(self, message_id: UUID) -> Message | None:
        if message_id not in self._ids:
            return None
        return next(m for m in self._confirmed if m.id == message_id)

    def reset(self, messages: Iterable[Message]) -> list[Message]:
        """Rebuild confirmed entries from a newest page; returns them all.

        Pending sends survive, and so do confirmed messages newer than the
        page: they arrived live after the Store took its snapshot.
        """
        page = sorted(messages, key=_order_key)
        if page:
            newest = _order_key(page[-1])
            self._confirmed = [m for m in self._confirmed if _order_key(m) > newest]
        self._ids = {m.id for m in self._confirmed}
        self._merge(page)
        return list(self._confirmed)

    def prepend(self, messages: Iterable[Message]) -> list[Message]:
        """Merge an older page; entries already present are skipped."""
        return self._merge(messages)

    def insert(self, message: Message) -> bool:
        if message.id in self._ids:
            return False
        self._insort(message)
        return True

    def is_tail(self, message_id: UUID) -> bool:
        return bool(self._confirmed) and self._confirmed[-1].id == message_id

    def add_pending(self, pending: PendingMessage) -> None:
        self._pending.append(pending)

    def remove_pending(self, local_id: PendingId) -> PendingMessage | None:
        for i, pending in enumerate(self._pending):
            if pending.local_id == local_id:
                return self._pending.pop(i)
        return None

    def match_pending(self, message: Message) -> PendingMessage | None:
        """Find the pending send ``message`` confirms.

        An echo carrying an idempotency key matches only that key, since the
        same words may have been sent from another device. An unkeyed echo
        matches on equal text, oldest pending first.
        """
        if message.client_msg_id is not None:
            return next((p for p in self._pending if p.client_msg_id == message.client_msg_id), None)
        for pending in self._pending:
            if pending.text == message.text:
                return pending
        return None

    def replace_pending(self, pending: PendingMessage, message: Message) -> bool:
        if self.remove_pending(pending.local_id) is None:
            return False
        return self.insert(message)

    def mark_read(self, message_ids: Iterable[UUID]) -> list[Message]:
        """Flip known messages to read; return the entries that changed."""
        wanted = set(message_ids)
        self._read_ids |= wanted
        changed: list[Message] = []
        for i, message in enumerate(self._confirmed):
            if message.id in wanted and not message.read:
                self._confirmed[i] = message.as_read()
                changed.append(self._confirmed[i])
        return changed

    def _merge(self, messages: Iterable[Message]) -> list[Message]:
        added: list[Message] = []
        for message in messages:
            if message.id in self._ids:
                continue
            self._insort(message)
            added.append(message)
        added.sort(key=_order_key)
        return added

    def _insort(self, message: Message) -> None:
        if message.id in self._read_ids:
            message = message.as_read()
        elif message.read:
            self._read_ids.add(message.id)
        bisect.insort(self._confirmed, message, key=_order_key)
        self._ids.add(message.id)
