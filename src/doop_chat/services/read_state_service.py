from __future__ import annotations

import uuid

from doop_chat.application.dto.principal import Principal
from doop_chat.application.policies.permissions import assert_message_access
from doop_chat.application.policies.validation import validate_recipient
from doop_chat.application.uow import UnitOfWork
from doop_chat.domain.events.messages_read import MessagesRead


async def mark_read(
    principal: Principal,
    message_id: uuid.UUID,
    uow: UnitOfWork,
) -> None:
    """Mark one message read by its recipient. No-op if already read or sent by the caller."""
    message = await uow.messages.get_by_id(message_id)
    assert_message_access(principal, message)

    sender_id = await uow.read_state_w.mark_read(message_id, principal.subject_id)
    if sender_id is None:
        return

    event = MessagesRead(reader_id=principal.subject_id, sender_id=sender_id, message_ids=[message_id])
    await uow.outbox.add(event.event_type, event.to_payload())
    await uow.commit()


async def mark_all_read(
    principal: Principal,
    counterparty_id: int,
    uow: UnitOfWork,
) -> list[uuid.UUID]:
    """Mark everything the counterparty sent to the caller as read."""
    validate_recipient(principal.subject_id, counterparty_id)
    ids = await uow.read_state_w.mark_all_read(counterparty_id, principal.subject_id)
    if not ids:
        return []

    event = MessagesRead(reader_id=principal.subject_id, sender_id=counterparty_id, message_ids=ids)
    await uow.outbox.add(event.event_type, event.to_payload())
    await uow.commit()
    return ids
