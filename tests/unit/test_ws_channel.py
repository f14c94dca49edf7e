from __future__ import annotations

import asyncio
import json

import pytest

from doop_chat.application.exceptions import Unavailable
from doop_chat.client import ws_channel
from doop_chat.client.ws_channel import WebSocketChannel
from doop_chat.domain.events.message_created import message_to_dict
from doop_chat.domain.value_objects.enums import ChannelEvent
from tests.conftest import BUYER_ID, SELLER_ID, make_message, settle


class FakeConnection:
    def __init__(self, url: str) -> None:
        self.url = url
        self.closed = False
        self.sent: list[str] = []
        self._frames: asyncio.Queue[str | None] = asyncio.Queue()

    def push(self, frame: dict | str) -> None:
        self._frames.put_nowait(frame if isinstance(frame, str) else json.dumps(frame))

    async def send(self, raw: str) -> None:
        self.sent.append(raw)

    async def close(self) -> None:
        self.closed = True
        self._frames.put_nowait(None)

    def drop(self) -> None:
        """Server side hang-up: the stream ends without a local close."""
        self._frames.put_nowait(None)

    def __aiter__(self):
        return self

    async def __anext__(self) -> str:
        frame = await self._frames.get()
        if frame is None:
            raise StopAsyncIteration
        return frame


@pytest.fixture
def connections(monkeypatch) -> list[FakeConnection]:
    opened: list[FakeConnection] = []

    async def _connect(url: str, **kwargs) -> FakeConnection:
        conn = FakeConnection(url)
        opened.append(conn)
        return conn

    monkeypatch.setattr(ws_channel.websockets, "connect", _connect)
    return opened


def _channel() -> WebSocketChannel:
    return WebSocketChannel("ws://chat.test/ws/chat", lambda identity: f"token-{identity}")


@pytest.mark.asyncio
async def test_one_connection_per_identity(connections):
    channel = _channel()

    first = await channel.connect(BUYER_ID)
    second = await channel.connect(BUYER_ID)

    assert first is second
    assert len(connections) == 1
    assert connections[0].url == "ws://chat.test/ws/chat?token=token-42"

    await first.release()
    assert not connections[0].closed
    await second.release()
    assert connections[0].closed


@pytest.mark.asyncio
async def test_frames_are_dispatched_as_domain_objects(connections):
    channel = _channel()
    handle = await channel.connect(BUYER_ID)
    created, read = [], []
    handle.on(ChannelEvent.MESSAGE_CREATED, created.append)
    handle.on(ChannelEvent.MESSAGES_READ, read.append)
    msg = make_message()

    connections[0].push({"type": "message.created", "data": {"message": message_to_dict(msg)}})
    connections[0].push("not json")
    connections[0].push(
        {
            "type": "messages.read",
            "data": {"reader_id": SELLER_ID, "sender_id": BUYER_ID, "message_ids": [str(msg.id)]},
        }
    )
    connections[0].push({"type": "pong", "data": {}})
    await settle()

    assert created == [msg]
    assert read[0].message_ids == [msg.id]
    await handle.release()


@pytest.mark.asyncio
async def test_off_stops_delivery(connections):
    channel = _channel()
    handle = await channel.connect(BUYER_ID)
    created = []
    handle.on(ChannelEvent.MESSAGE_CREATED, created.append)
    handle.off(ChannelEvent.MESSAGE_CREATED, created.append)

    connections[0].push({"type": "message.created", "data": {"message": message_to_dict(make_message())}})
    await settle()

    assert created == []
    await handle.release()


@pytest.mark.asyncio
async def test_reconnect_opens_fresh_connection(connections):
    channel = _channel()
    handle = await channel.connect(BUYER_ID)

    await handle.reconnect()

    assert len(connections) == 2
    assert connections[0].closed
    assert handle.connected
    await handle.release()


@pytest.mark.asyncio
async def test_connect_revives_handle_after_server_hangup(connections):
    channel = _channel()
    first = await channel.connect(BUYER_ID)
    created = []
    first.on(ChannelEvent.MESSAGE_CREATED, created.append)

    connections[0].drop()
    await settle()
    assert first.connected is False

    second = await channel.connect(BUYER_ID)
    msg = make_message()
    connections[1].push({"type": "message.created", "data": {"message": message_to_dict(msg)}})
    await settle()

    assert second is first
    assert second.connected is True
    assert second.refs == 2
    assert created == [msg]
    await first.release()
    await second.release()
    assert connections[1].closed

@pytest.mark.asyncio
async def test_unreachable_server(monkeypatch):
    async def _refuse(url: str, **kwargs):
        raise OSError("connection refused")

    monkeypatch.setattr(ws_channel.websockets, "connect", _refuse)

    with pytest.raises(Unavailable):
        await _channel().connect(BUYER_ID)
