from __future__ import annotations

from doop_chat.application.dto.principal import Principal
from doop_chat.application.uow import UnitOfWork
from doop_chat.domain.entities.conversation import ConversationSummary, CounterpartyInfo
from doop_chat.domain.entities.message import Message


async def list_conversations(
    principal: Principal,
    uow: UnitOfWork,
) -> list[ConversationSummary]:
    """One summary per counterparty, most recently active first."""
    me = principal.subject_id
    latest = await uow.messages.latest_per_counterparty(me)

    # Several contexts with one counterparty collapse into one entry
    by_counterparty: dict[int, Message] = {}
    for msg in latest:
        other = msg.counterparty_of(me)
        current = by_counterparty.get(other)
        if current is None or msg.order_key > current.order_key:
            by_counterparty[other] = msg

    profiles = await uow.profiles.get_many(by_counterparty.keys())

    summaries: list[ConversationSummary] = []
    for other, msg in by_counterparty.items():
        profile = profiles.get(other)
        summaries.append(
            ConversationSummary(
                counterparty_id=other,
                counterparty=CounterpartyInfo(
                    username=profile.username if profile else None,
                    profile_pic=profile.profile_pic if profile else None,
                ),
                last_message_text=msg.text,
                last_message_time=msg.created_at,
            )
        )
    summaries.sort(key=lambda s: s.last_message_time, reverse=True)
    return summaries
