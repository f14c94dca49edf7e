from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime
from typing import Any
from uuid import UUID

from doop_chat.domain.entities.message import Message


@dataclass(frozen=True, slots=True)
class MessageCreated:
    message: Message

    event_type = "chat.message_created"

    def to_payload(self) -> dict[str, Any]:
        return {
            "sender_id": self.message.sender_id,
            "recipient_id": self.message.recipient_id,
            "message": message_to_dict(self.message),
        }

    @classmethod
    def from_payload(cls, payload: dict[str, Any]) -> MessageCreated:
        return cls(message=message_from_dict(payload["message"]))


def message_to_dict(msg: Message) -> dict[str, Any]:
    return {
        "id": str(msg.id),
        "conversation_key": msg.conversation_key,
        "sender_id": msg.sender_id,
        "recipient_id": msg.recipient_id,
        "text": msg.text,
        "read": msg.read,
        "created_at": msg.created_at.isoformat(),
        "context_id": msg.context_id,
        "client_msg_id": str(msg.client_msg_id) if msg.client_msg_id else None,
    }


def message_from_dict(data: dict[str, Any]) -> Message:
    client_msg_id = data.get("client_msg_id")
    return Message(
        id=UUID(str(data["id"])),
        conversation_key=data["conversation_key"],
        sender_id=int(data["sender_id"]),
        recipient_id=int(data["recipient_id"]),
        text=data["text"],
        read=bool(data.get("read", False)),
        created_at=datetime.fromisoformat(data["created_at"]),
        context_id=data.get("context_id"),
        client_msg_id=UUID(str(client_msg_id)) if client_msg_id else None,
    )
