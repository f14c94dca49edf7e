from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime


def pair_key(user_a: int, user_b: int) -> str:
    """Key of the unordered identity pair."""
    lo, hi = sorted((user_a, user_b))
    return f"{lo}:{hi}"


def conversation_key(user_a: int, user_b: int, context_id: str | None = None) -> str:
    key = pair_key(user_a, user_b)
    if context_id:
        return f"{key}:{context_id}"
    return key


@dataclass(frozen=True, slots=True)
class CounterpartyInfo:
    username: str | None = None
    profile_pic: str | None = None


@dataclass(frozen=True, slots=True)
class ConversationSummary:
    counterparty_id: int
    counterparty: CounterpartyInfo
    last_message_text: str
    last_message_time: datetime
