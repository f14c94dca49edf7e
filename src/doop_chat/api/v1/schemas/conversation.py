from __future__ import annotations

from datetime import datetime

from pydantic import BaseModel


class CounterpartyResponse(BaseModel):
    username: str | None
    profile_pic: str | None

    model_config = {"from_attributes": True}


class ConversationSummaryResponse(BaseModel):
    counterparty_id: int
    counterparty: CounterpartyResponse
    last_message_text: str
    last_message_time: datetime

    model_config = {"from_attributes": True}
