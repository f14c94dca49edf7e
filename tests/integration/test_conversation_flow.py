"""Two client sessions talking through the real REST API."""
from __future__ import annotations

import httpx
import jwt
import pytest

from doop_chat.api.deps import get_uow
from doop_chat.app import create_app
from doop_chat.application.exceptions import SendFailedError, Unavailable
from doop_chat.client.chat_client import ChatClient
from doop_chat.client.config import ClientSettings
from doop_chat.client.http_store import HttpMessageStore
from doop_chat.client.session import ConversationSession
from doop_chat.config import settings
from doop_chat.domain.entities.message import Message, PendingMessage
from doop_chat.domain.events.message_created import MessageCreated, message_from_dict
from doop_chat.domain.events.messages_read import MessagesRead
from doop_chat.workers.outbox_worker import process_batch
from tests.conftest import FakeChannelHub, FakeUoW, settle

ALICE_ID = 101
BOB_ID = 202


class HubPublisher:
    """Stands in for Redis fan-out: hands outbox events straight to the channel hub."""

    def __init__(self, hub: FakeChannelHub) -> None:
        self.hub = hub

    async def publish(self, channel: str, event_type: str, payload: dict) -> None:
        if event_type == MessageCreated.event_type:
            self.hub.publish_created(message_from_dict(payload["message"]))
        elif event_type == MessagesRead.event_type:
            self.hub.publish_read(MessagesRead.from_payload(payload))


def _store(app, identity: int) -> HttpMessageStore:
    token = jwt.encode({"sub": str(identity)}, settings.JWT_SECRET, algorithm=settings.JWT_ALGORITHM)
    return HttpMessageStore(
        "http://chat.test", token, identity, transport=httpx.ASGITransport(app=app),
    )


@pytest.fixture
def world():
    app = create_app()
    uow = FakeUoW()

    async def _override():
        yield uow

    app.dependency_overrides[get_uow] = _override
    return app, uow, FakeChannelHub()


@pytest.mark.asyncio
async def test_first_message_between_strangers(world):
    app, uow, hub = world
    fanout = HubPublisher(hub)

    async with _store(app, ALICE_ID) as alice_store, _store(app, BOB_ID) as bob_store:
        alice = ConversationSession(alice_store, hub, ALICE_ID, BOB_ID)
        bob = ConversationSession(bob_store, hub, BOB_ID, ALICE_ID)
        await alice.open()
        await bob.open()

        assert alice.transcript == ()
        assert alice.has_more_older is False

        changes = []
        alice.subscribe(changes.append)
        await alice.send("hey")
        # Shown optimistically, then dropped once the Store confirmed it
        assert isinstance(changes[0].entries[0], PendingMessage)
        assert alice.transcript == ()

        await process_batch(uow, fanout, channel="test")

        [confirmed] = alice.transcript
        assert isinstance(confirmed, Message)
        assert confirmed.text == "hey"
        [received] = bob.transcript
        assert received.id == confirmed.id
        assert received.read is True

        await settle()
        await bob.drain()
        assert uow.messages._messages[0].read is True

        # Read receipt fans out back to the sender
        await process_batch(uow, fanout, channel="test")
        assert alice.transcript[0].read is True

        [summary] = await bob_store.list_conversations(BOB_ID)
        assert summary.counterparty_id == ALICE_ID
        assert summary.last_message_text == "hey"

        await alice.close()
        await bob.close()


@pytest.mark.asyncio
async def test_store_outage_restores_draft(world):
    app, uow, hub = world

    async def _down():
        raise Unavailable("database unreachable")
        yield

    async with _store(app, ALICE_ID) as alice_store:
        alice = ConversationSession(alice_store, hub, ALICE_ID, BOB_ID, context_id="listing-1")
        await alice.open()
        app.dependency_overrides[get_uow] = _down

        with pytest.raises(SendFailedError) as exc_info:
            await alice.send("keep me")

        assert exc_info.value.draft == "keep me"
        assert isinstance(exc_info.value.cause, Unavailable)
        assert alice.pending_sends == ()
        assert alice.transcript == ()
        assert uow.messages._messages == []
        await alice.close()


@pytest.mark.asyncio
async def test_chat_client_opens_inbox_conversation(world):
    app, uow, hub = world

    async with _store(app, BOB_ID) as bob_store:
        for text in ("one", "two", "three"):
            await bob_store.append(BOB_ID, ALICE_ID, text)

    client = ChatClient(
        ALICE_ID,
        "unused",
        ClientSettings(PAGE_SIZE=2),
        store=_store(app, ALICE_ID),
        channel=hub,
    )
    async with client:
        [summary] = await client.inbox()
        assert summary.counterparty_id == BOB_ID

        session = await client.open_conversation(BOB_ID)
        assert [m.text for m in session.transcript] == ["two", "three"]
        assert session.has_more_older is True

        older = await session.load_older()
        assert [m.text for m in older] == ["one"]
        await session.drain()

    assert session.closed is True
    assert all(m.read for m in uow.messages._messages)


@pytest.mark.asyncio
async def test_chat_client_forgets_sessions_closed_by_caller(world):
    app, _, hub = world

    async with ChatClient(ALICE_ID, "unused", store=_store(app, ALICE_ID), channel=hub) as client:
        first = await client.open_conversation(BOB_ID)
        await first.close()
        second = await client.open_conversation(BOB_ID, context_id="listing-1")

        assert client._sessions == [second]
