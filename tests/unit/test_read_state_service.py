from __future__ import annotations

import uuid

import pytest

from doop_chat.application.exceptions import NotFoundError, ValidationError
from doop_chat.services import read_state_service
from tests.conftest import BUYER_ID, OTHER_ID, SELLER_ID, FakeUoW, make_message


@pytest.mark.asyncio
async def test_mark_read_flips_message_and_notifies_sender(user_principal):
    uow = FakeUoW()
    msg = make_message()
    uow.messages._messages.append(msg)

    await read_state_service.mark_read(user_principal, msg.id, uow)

    assert uow.messages._messages[0].read is True
    assert uow.outbox._records == [
        {
            "event_type": "chat.messages_read",
            "payload": {
                "reader_id": BUYER_ID,
                "sender_id": SELLER_ID,
                "message_ids": [str(msg.id)],
            },
        }
    ]


@pytest.mark.asyncio
async def test_mark_read_is_idempotent(user_principal):
    uow = FakeUoW()
    msg = make_message()
    uow.messages._messages.append(msg)

    await read_state_service.mark_read(user_principal, msg.id, uow)
    await read_state_service.mark_read(user_principal, msg.id, uow)

    assert len(uow.outbox._records) == 1
    assert uow.commits == 1


@pytest.mark.asyncio
async def test_mark_read_by_sender_is_noop(seller_principal):
    uow = FakeUoW()
    msg = make_message()
    uow.messages._messages.append(msg)

    await read_state_service.mark_read(seller_principal, msg.id, uow)

    assert uow.messages._messages[0].read is False
    assert uow.outbox._records == []


@pytest.mark.asyncio
async def test_mark_read_unknown_message(user_principal):
    with pytest.raises(NotFoundError):
        await read_state_service.mark_read(user_principal, uuid.uuid4(), FakeUoW())


@pytest.mark.asyncio
async def test_mark_read_hidden_from_outsiders():
    from doop_chat.application.dto.principal import Principal

    uow = FakeUoW()
    msg = make_message()
    uow.messages._messages.append(msg)

    with pytest.raises(NotFoundError):
        await read_state_service.mark_read(Principal(subject_id=OTHER_ID), msg.id, uow)

    assert uow.messages._messages[0].read is False


@pytest.mark.asyncio
async def test_mark_all_read_only_touches_counterparty_messages(user_principal):
    uow = FakeUoW()
    from_seller = [make_message(), make_message(context_id="listing-3")]
    mine = make_message(sender_id=BUYER_ID, recipient_id=SELLER_ID)
    from_other = make_message(sender_id=OTHER_ID)
    uow.messages._messages.extend([*from_seller, mine, from_other])

    ids = await read_state_service.mark_all_read(user_principal, SELLER_ID, uow)

    assert ids == [m.id for m in from_seller]
    by_id = {m.id: m for m in uow.messages._messages}
    assert by_id[mine.id].read is False
    assert by_id[from_other.id].read is False
    assert len(uow.outbox._records) == 1


@pytest.mark.asyncio
async def test_mark_all_read_nothing_unread(user_principal):
    uow = FakeUoW()

    assert await read_state_service.mark_all_read(user_principal, SELLER_ID, uow) == []
    assert uow.outbox._records == []
    assert uow.commits == 0


@pytest.mark.asyncio
async def test_mark_all_read_self_rejected(user_principal):
    with pytest.raises(ValidationError):
        await read_state_service.mark_all_read(user_principal, BUYER_ID, FakeUoW())
