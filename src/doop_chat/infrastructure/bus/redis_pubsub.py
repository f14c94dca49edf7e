"""Redis Pub/Sub fan-out between the outbox worker and the API processes.

Pub/Sub has no replay: events published while a subscriber is disconnected
are lost. Clients recover them by reopening their conversations.
"""
from __future__ import annotations

import asyncio
import logging
from typing import Any, Callable, Coroutine

import redis.asyncio as aioredis

from doop_chat.infrastructure.bus.serializer import deserialize_event, serialize_event

logger = logging.getLogger(__name__)

RESUBSCRIBE_DELAY_SECONDS = 2.0
POLL_TIMEOUT_SECONDS = 1.0

OnEventCallback = Callable[[str, dict[str, Any]], Coroutine[Any, Any, None]]


class RedisPubSubPublisher:
    """Implements application.ports.bus.EventPublisher."""

    def __init__(self, redis: aioredis.Redis) -> None:
        self._redis = redis

    async def publish(self, channel: str, event_type: str, payload: dict[str, Any]) -> None:
        receivers = await self._redis.publish(channel, serialize_event(event_type, payload))
        if not receivers:
            logger.debug("No API process subscribed to %s for %s", channel, event_type)


class RedisPubSubSubscriber:
    """Keeps one subscription to ``channel`` alive and hands each event to ``callback``."""

    def __init__(
        self,
        redis: aioredis.Redis,
        channel: str,
        callback: OnEventCallback,
    ) -> None:
        self._redis = redis
        self._channel = channel
        self._callback = callback
        self._task: asyncio.Task[None] | None = None

    @property
    def running(self) -> bool:
        return self._task is not None and not self._task.done()

    async def start(self) -> None:
        self._task = asyncio.create_task(self._run(), name=f"pubsub:{self._channel}")
        logger.info("Listening for fan-out events on %s", self._channel)

    async def stop(self) -> None:
        if self._task is None:
            return
        self._task.cancel()
        try:
            await self._task
        except asyncio.CancelledError:
            pass
        self._task = None
        logger.info("Stopped listening on %s", self._channel)

    async def handle(self, raw: str | bytes) -> None:
        """Decode and dispatch one published event; a bad event is logged and dropped."""
        try:
            event_type, data = deserialize_event(raw)
            await self._callback(event_type, data)
        except Exception:
            logger.exception("Dropping fan-out event from %s", self._channel)

    async def _run(self) -> None:
        while True:
            try:
                await self._listen()
            except asyncio.CancelledError:
                raise
            except Exception:
                logger.exception("Lost %s subscription, retrying in %.0fs", self._channel, RESUBSCRIBE_DELAY_SECONDS)
                await asyncio.sleep(RESUBSCRIBE_DELAY_SECONDS)

    async def _listen(self) -> None:
        async with self._redis.pubsub(ignore_subscribe_messages=True) as pubsub:
            await pubsub.subscribe(self._channel)
            while True:
                message = await pubsub.get_message(timeout=POLL_TIMEOUT_SECONDS)
                if message is not None and message["type"] == "message":
                    await self.handle(message["data"])
