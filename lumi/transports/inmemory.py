"""In-memory transport for testing."""

from __future__ import annotations

import asyncio
from collections import defaultdict, deque
from typing import Deque, Dict, Optional, Tuple

from ..contracts import EventEnvelope
from .base import BaseTransport

RawDelivery = Tuple[str, str]


class InMemoryTransport(BaseTransport[RawDelivery]):
    """Simple in-process queue for unit tests.

    Raw messages are ``(topic, json)`` pairs; unacknowledged deliveries are
    kept in ``inflight`` until ``ack`` or ``nack``.
    """

    def __init__(self) -> None:
        self._queues: Dict[str, Deque[str]] = defaultdict(deque)
        self.inflight: Dict[str, Deque[str]] = defaultdict(deque)
        self._lock = asyncio.Lock()

    async def publish(self, topic: str, envelope: EventEnvelope) -> None:
        """Publish envelope to in-memory queue."""
        async with self._lock:
            self._queues[topic].append(envelope.to_json())

    async def receive(
        self, topic: str, timeout: float = 1.0
    ) -> Optional[Tuple[RawDelivery, EventEnvelope]]:
        async with self._lock:
            if self._queues[topic]:
                body = self._queues[topic].popleft()
                self.inflight[topic].append(body)
                return (topic, body), EventEnvelope.from_json(body)
        await asyncio.sleep(min(timeout, 0.01))
        return None

    async def ack(self, raw_message: RawDelivery) -> None:
        topic, body = raw_message
        async with self._lock:
            if body in self.inflight[topic]:
                self.inflight[topic].remove(body)

    async def nack(self, raw_message: RawDelivery, requeue: bool = True) -> None:
        topic, body = raw_message
        async with self._lock:
            if body in self.inflight[topic]:
                self.inflight[topic].remove(body)
            if requeue:
                self._queues[topic].append(body)

    async def recover(self, topic: str) -> int:
        async with self._lock:
            stranded = self.inflight.pop(topic, None) or deque()
            self._queues[topic].extendleft(reversed(stranded))
            return len(stranded)

    def pending(self, topic: str) -> int:
        """Number of deliveries waiting on ``topic``."""
        return len(self._queues[topic])

    def envelopes(self, topic: str) -> list[EventEnvelope]:
        """Envelopes waiting on ``topic`` without consuming them."""
        return [EventEnvelope.from_json(body) for body in self._queues[topic]]
