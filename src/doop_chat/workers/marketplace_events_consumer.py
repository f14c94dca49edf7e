"""Consumer for marketplace user events via Redis Streams.

Keeps the profile directory (username, profile picture) that the inbox and
the chat header show for a counterparty.
"""
from __future__ import annotations

import asyncio
import logging
import uuid
from datetime import datetime
from typing import Any

import redis.asyncio as aioredis

from doop_chat.application.exceptions import ValidationError
from doop_chat.config import settings
from doop_chat.infrastructure.bus.redis_streams import RedisStreamConsumer
from doop_chat.infrastructure.db.uow import uow_scope
from doop_chat.services import profile_service

logger = logging.getLogger(__name__)

PROFILE_EVENTS = frozenset({"user.created", "user.updated"})


async def handle_event(event_type: str, fields: dict[str, Any]) -> None:
    """Dispatch a stream event to the appropriate handler."""
    if event_type in PROFILE_EVENTS:
        await _handle_profile_changed(fields)
    else:
        logger.debug("Ignoring unknown event: %s", event_type)


async def _handle_profile_changed(fields: dict[str, Any]) -> None:
    try:
        user_id = int(fields["user_id"])
    except (KeyError, TypeError, ValueError):
        logger.warning("Profile event without a usable user_id: %r", fields)
        return

    updated_at_raw = fields.get("updated_at")
    updated_at = datetime.fromisoformat(updated_at_raw) if updated_at_raw else None

    async with uow_scope() as uow:
        try:
            await profile_service.upsert_profile(
                user_id,
                fields.get("username") or "",
                fields.get("profile_pic"),
                uow,
                updated_at=updated_at,
            )
        except ValidationError as exc:
            logger.warning("Skipping profile event for user %d: %s", user_id, exc.detail)
            return

    logger.debug("Profile %d synced", user_id)


async def run_consumer() -> None:
    redis = aioredis.from_url(settings.REDIS_URL, decode_responses=True)
    consumer_name = f"consumer-{uuid.uuid4().hex[:8]}"

    consumer = RedisStreamConsumer(
        redis=redis,
        stream=settings.MARKETPLACE_EVENTS_STREAM,
        group=settings.MARKETPLACE_EVENTS_GROUP,
        consumer=consumer_name,
        callback=handle_event,
    )
    await consumer.start()
    logger.info("Marketplace events consumer started (%s)", consumer_name)

    try:
        while True:
            await asyncio.sleep(3600)
    except asyncio.CancelledError:
        pass
    finally:
        await consumer.stop()
        await redis.aclose()


def main() -> None:
    logging.basicConfig(level=logging.INFO, format="%(asctime)s %(levelname)s %(name)s: %(message)s")
    asyncio.run(run_consumer())


if __name__ == "__main__":
    main()
