"""Seed development data: two marketplace profiles and a short conversation."""
from __future__ import annotations

import asyncio
import logging
import uuid

from doop_chat.application.dto.message import SendMessageDTO
from doop_chat.application.dto.principal import Principal
from doop_chat.infrastructure.db.session import create_tables
from doop_chat.infrastructure.db.uow import uow_scope
from doop_chat.services import message_service, profile_service

logger = logging.getLogger(__name__)

SEEKER_ID = 42
PROVIDER_ID = 7
LISTING_ID = "listing-1001"


async def seed() -> None:
    await create_tables()

    async with uow_scope() as uow:
        await profile_service.upsert_profile(SEEKER_ID, "maria", None, uow)
        await profile_service.upsert_profile(
            PROVIDER_ID, "fixit_tom", "https://cdn.example.com/u/7.png", uow,
        )

        conversation = [
            (SEEKER_ID, PROVIDER_ID, "Hi! Is the plumbing repair offer still available?"),
            (PROVIDER_ID, SEEKER_ID, "Yes, I can come by tomorrow morning."),
            (SEEKER_ID, PROVIDER_ID, "Great, 9am works for me."),
        ]
        for sender_id, recipient_id, text in conversation:
            await message_service.send_message(
                Principal(subject_id=sender_id),
                SendMessageDTO(
                    recipient_id=recipient_id,
                    text=text,
                    context_id=LISTING_ID,
                    client_msg_id=uuid.uuid4(),
                ),
                uow,
            )

    logger.info("Seeded profiles %d, %d with %d messages", SEEKER_ID, PROVIDER_ID, len(conversation))


def main() -> None:
    logging.basicConfig(level=logging.INFO)
    asyncio.run(seed())


if __name__ == "__main__":
    main()
