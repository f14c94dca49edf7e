from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any
from uuid import UUID


@dataclass(frozen=True, slots=True)
class MessagesRead:
    reader_id: int
    sender_id: int
    message_ids: list[UUID] = field(default_factory=list)

    event_type = "chat.messages_read"

    def to_payload(self) -> dict[str, Any]:
        return {
            "reader_id": self.reader_id,
            "sender_id": self.sender_id,
            "message_ids": [str(mid) for mid in self.message_ids],
        }

    @classmethod
    def from_payload(cls, payload: dict[str, Any]) -> MessagesRead:
        return cls(
            reader_id=int(payload["reader_id"]),
            sender_id=int(payload["sender_id"]),
            message_ids=[UUID(str(mid)) for mid in payload.get("message_ids", ())],
        )
