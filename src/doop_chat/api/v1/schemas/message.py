from __future__ import annotations

from datetime import datetime
from uuid import UUID

from pydantic import BaseModel, Field

from doop_chat.domain.value_objects.limits import MAX_TEXT_LENGTH


class SendMessageRequest(BaseModel):
    text: str = Field(max_length=MAX_TEXT_LENGTH)
    context_id: str | None = Field(default=None, max_length=64)
    client_msg_id: UUID | None = None


class MessageResponse(BaseModel):
    id: UUID
    conversation_key: str
    sender_id: int
    recipient_id: int
    text: str
    read: bool
    created_at: datetime
    context_id: str | None
    client_msg_id: UUID | None

    model_config = {"from_attributes": True}


class MessagePageResponse(BaseModel):
    messages: list[MessageResponse]
    has_more: bool
    next_cursor: str | None = None

    model_config = {"from_attributes": True}
