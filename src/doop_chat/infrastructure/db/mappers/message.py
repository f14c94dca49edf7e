from __future__ import annotations

from doop_chat.domain.entities.conversation import pair_key
from doop_chat.domain.entities.message import Message
from doop_chat.infrastructure.db.models.message import MessageModel


def model_to_entity(model: MessageModel) -> Message:
    return Message(
        id=model.id,
        conversation_key=model.conversation_key,
        sender_id=model.sender_id,
        recipient_id=model.recipient_id,
        text=model.text,
        read=model.read,
        created_at=model.created_at,
        context_id=model.context_id,
        client_msg_id=model.client_msg_id,
    )


def entity_to_values(entity: Message) -> dict:
    return {
        "id": entity.id,
        "pair_key": pair_key(entity.sender_id, entity.recipient_id),
        "conversation_key": entity.conversation_key,
        "context_id": entity.context_id,
        "sender_id": entity.sender_id,
        "recipient_id": entity.recipient_id,
        "text": entity.text,
        "read": entity.read,
        "client_msg_id": entity.client_msg_id,
        "created_at": entity.created_at,
    }
