"""Redis transport for cross-process delivery."""

from __future__ import annotations

import logging
from typing import Any, Optional, Tuple

import redis.asyncio as redis

from ..contracts import EventEnvelope
from ..errors import UnknownEventError
from .base import BaseTransport

logger = logging.getLogger(__name__)

RawDelivery = Tuple[str, str]


class RedisTransport(BaseTransport[RawDelivery]):
    """Redis-based transport for distributed delivery.

    Each topic is a list ``<prefix>:<topic>``. ``receive`` atomically moves the
    next entry onto ``<prefix>:<topic>:processing`` where it stays until acked,
    so an envelope is never lost between pop and processing.
    """

    def __init__(
        self,
        host: str = "localhost",
        port: int = 6379,
        db: int = 0,
        password: Optional[str] = None,
        key_prefix: str = "lumi",
    ) -> None:
        self.host = host
        self.port = port
        self.db = db
        self.password = password
        self.key_prefix = key_prefix
        self._redis: Optional[Any] = None

    def _queue(self, topic: str) -> str:
        return f"{self.key_prefix}:{topic}"

    def _processing(self, topic: str) -> str:
        return f"{self._queue(topic)}:processing"

    async def connect(self) -> None:
        """Connect to Redis."""
        self._redis = redis.Redis(
            host=self.host,
            port=self.port,
            db=self.db,
            password=self.password,
            decode_responses=True,
        )
        # Test connection
        await self._redis.ping()

    async def disconnect(self) -> None:
        """Disconnect from Redis."""
        if self._redis:
            await self._redis.aclose()
            self._redis = None

    async def publish(self, topic: str, envelope: EventEnvelope) -> None:
        """Publish envelope to Redis list (acting as queue)."""
        if not self._redis:
            await self.connect()
        await self._redis.lpush(self._queue(topic), envelope.to_json())

    async def receive(
        self, topic: str, timeout: float = 1.0
    ) -> Optional[Tuple[RawDelivery, EventEnvelope]]:
        if not self._redis:
            await self.connect()

        if timeout > 0:
            body = await self._redis.blmove(
                self._queue(topic), self._processing(topic), timeout, "RIGHT", "LEFT"
            )
        else:
            # BLMOVE treats 0 as "block forever".
            body = await self._redis.lmove(
                self._queue(topic), self._processing(topic), "RIGHT", "LEFT"
            )
        if body is None:
            return None
        try:
            envelope = EventEnvelope.from_json(body)
        except (ValueError, UnknownEventError) as e:
            logger.error(f"Dropping malformed envelope on {topic}: {e}")
            await self._redis.lrem(self._processing(topic), 1, body)
            return None
        return (topic, body), envelope

    async def ack(self, raw_message: RawDelivery) -> None:
        topic, body = raw_message
        await self._redis.lrem(self._processing(topic), 1, body)

    async def nack(self, raw_message: RawDelivery, requeue: bool = True) -> None:
        topic, body = raw_message
        await self._redis.lrem(self._processing(topic), 1, body)
        if requeue:
            await self._redis.rpush(self._queue(topic), body)

    async def recover(self, topic: str) -> int:
        """Requeue deliveries left in processing by a crashed worker, oldest first."""
        if not self._redis:
            await self.connect()
        moved = 0
        while await self._redis.lmove(
            self._processing(topic), self._queue(topic), "LEFT", "RIGHT"
        ):
            moved += 1
        if moved:
            logger.warning(f"Requeued {moved} unacknowledged deliveries on {topic}")
        return moved
