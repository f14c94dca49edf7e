from __future__ import annotations

from typing import Any, Callable, Protocol

from doop_chat.domain.value_objects.enums import ChannelEvent

EventHandler = Callable[[Any], None]


class ChannelHandle(Protocol):
    """Live push session bound to one identity.

    ``message.created`` handlers receive a ``Message`` for every message the
    identity sent or received; ``messages.read`` handlers receive a
    ``MessagesRead``. Delivery is at-most-once while connected.
    """

    identity: int

    @property
    def connected(self) -> bool: ...

    def on(self, event: ChannelEvent, handler: EventHandler) -> None: ...

    def off(self, event: ChannelEvent, handler: EventHandler) -> None: ...

    async def reconnect(self) -> None: ...

    async def release(self) -> None: ...


class EventChannel(Protocol):
    async def connect(self, identity: int) -> ChannelHandle:
        """Return the process-wide handle for ``identity``, opening it if needed."""
        ...
