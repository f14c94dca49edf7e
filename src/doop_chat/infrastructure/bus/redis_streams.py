"""Marketplace event intake over a Redis Stream consumer group."""
from __future__ import annotations

import asyncio
import logging
from typing import Any, Callable, Coroutine

import redis.asyncio as aioredis

from doop_chat.infrastructure.bus.serializer import decode_stream_fields

logger = logging.getLogger(__name__)

OnStreamEventCallback = Callable[[str, dict[str, Any]], Coroutine[Any, Any, None]]

RETRY_DELAY_SECONDS = 5
# Stream id that reads this consumer's own delivered-but-unacked entries
PENDING_ENTRIES = "0"
NEW_ENTRIES = ">"


class RedisStreamConsumer:
    """Reads one stream as one member of a consumer group.

    Entries are acknowledged only after the callback returns. On start, and
    after every failed entry, the consumer re-reads its own pending list
    before asking for new entries, so a failure is retried rather than lost.
    """

    def __init__(
        self,
        redis: aioredis.Redis,
        stream: str,
        group: str,
        consumer: str,
        callback: OnStreamEventCallback,
        *,
        batch_size: int = 10,
        block_ms: int = 5000,
    ) -> None:
        self._redis = redis
        self._stream = stream
        self._group = group
        self._consumer = consumer
        self._callback = callback
        self._batch_size = batch_size
        self._block_ms = block_ms
        self._task: asyncio.Task[None] | None = None
        self._backlog = True

    async def ensure_group(self) -> None:
        try:
            await self._redis.xgroup_create(self._stream, self._group, id="$", mkstream=True)
        except aioredis.ResponseError as exc:
            if "BUSYGROUP" not in str(exc):
                raise
            return
        logger.info("Created consumer group %s on %s", self._group, self._stream)

    async def start(self) -> None:
        await self.ensure_group()
        self._task = asyncio.create_task(self._run(), name=f"stream:{self._stream}")
        logger.info("Consuming %s as %s/%s", self._stream, self._group, self._consumer)

    async def stop(self) -> None:
        if self._task is None:
            return
        self._task.cancel()
        try:
            await self._task
        except asyncio.CancelledError:
            pass
        self._task = None
        logger.info("Stopped consuming %s", self._stream)

    async def poll(self) -> int:
        """Read and handle one batch; returns how many entries were acknowledged."""
        stream_id = PENDING_ENTRIES if self._backlog else NEW_ENTRIES
        response = await self._redis.xreadgroup(
            groupname=self._group,
            consumername=self._consumer,
            streams={self._stream: stream_id},
            count=self._batch_size,
            block=None if self._backlog else self._block_ms,
        )
        entries = [entry for _stream, batch in response or [] for entry in batch]
        if self._backlog and not entries:
            self._backlog = False
            logger.debug("Pending list of %s drained", self._consumer)

        acked = 0
        for entry_id, fields in entries:
            if await self._handle(entry_id, fields):
                acked += 1
            else:
                self._backlog = True
        return acked

    async def _handle(self, entry_id: str, fields: dict[str, Any] | None) -> bool:
        # Trimmed entries come back from the pending list with no fields
        if fields:
            try:
                event_type, payload = decode_stream_fields(fields)
                await self._callback(event_type, payload)
            except Exception:
                logger.exception("Failed to handle %s entry %s", self._stream, entry_id)
                return False
        await self._redis.xack(self._stream, self._group, entry_id)
        return True

    async def _run(self) -> None:
        while True:
            try:
                await self.poll()
            except asyncio.CancelledError:
                raise
            except Exception:
                logger.exception("Reading %s failed, retrying in %ds", self._stream, RETRY_DELAY_SECONDS)
                await asyncio.sleep(RETRY_DELAY_SECONDS)
