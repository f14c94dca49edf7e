from __future__ import annotations

import logging
import uuid

from doop_chat.application.dto.conversation import PageRequestDTO
from doop_chat.application.dto.message import MessagePage, SendMessageDTO
from doop_chat.application.dto.principal import Principal
from doop_chat.application.policies.validation import (
    validate_context_id,
    validate_recipient,
    validate_text,
)
from doop_chat.application.ports.clock import Clock, SystemClock
from doop_chat.application.uow import UnitOfWork
from doop_chat.domain.entities.conversation import conversation_key, pair_key
from doop_chat.domain.entities.message import Message
from doop_chat.domain.events.message_created import MessageCreated

logger = logging.getLogger(__name__)

_clock: Clock = SystemClock()


async def send_message(
    principal: Principal,
    dto: SendMessageDTO,
    uow: UnitOfWork,
    clock: Clock = _clock,
) -> tuple[Message, bool]:
    """Persist a message from the caller idempotently.

    Returns (message, created). If a message with the same client_msg_id
    already exists for this sender the existing one is returned with
    created=False and nothing is published.
    """
    text = validate_text(dto.text)
    recipient_id = validate_recipient(principal.subject_id, dto.recipient_id)
    context_id = validate_context_id(dto.context_id)

    msg = Message(
        id=uuid.uuid4(),
        conversation_key=conversation_key(principal.subject_id, recipient_id, context_id),
        sender_id=principal.subject_id,
        recipient_id=recipient_id,
        text=text,
        read=False,
        created_at=clock.now(),
        context_id=context_id,
        client_msg_id=dto.client_msg_id or uuid.uuid4(),
    )

    msg, created = await uow.messages_w.create_if_not_exists(msg)

    if created:
        event = MessageCreated(msg)
        await uow.outbox.add(event.event_type, event.to_payload())
        await uow.commit()
        logger.debug("Message %s stored (%d -> %d)", msg.id, msg.sender_id, msg.recipient_id)

    return msg, created


async def list_messages(
    principal: Principal,
    request: PageRequestDTO,
    uow: UnitOfWork,
) -> MessagePage:
    """Page through the caller's transcript with one counterparty, newest page first."""
    counterparty_id = validate_recipient(principal.subject_id, request.counterparty_id)
    return await uow.messages.page(
        pair_key(principal.subject_id, counterparty_id),
        context_id=validate_context_id(request.context_id),
        cursor=request.cursor,
        limit=request.limit,
    )
