"""Base transport interface for lumi event delivery."""

from __future__ import annotations

import abc
import asyncio
from typing import AsyncIterator, Generic, Optional, Tuple, TypeVar

from ..contracts import EventEnvelope

RawMessageT = TypeVar("RawMessageT")


class BaseTransport(Generic[RawMessageT], metaclass=abc.ABCMeta):
    """Abstract base transport for message brokers.

    A published envelope stays recorded until it is acknowledged, so a
    delivery interrupted by a crash is handed out again.
    """

    async def connect(self) -> None:
        """Open connection to broker (no-op by default)."""
        pass

    async def disconnect(self) -> None:
        """Close connection to broker (no-op by default)."""
        pass

    @abc.abstractmethod
    async def publish(self, topic: str, envelope: EventEnvelope) -> None:
        """Record an envelope on a topic/queue."""
        raise NotImplementedError

    @abc.abstractmethod
    async def receive(
        self, topic: str, timeout: float = 1.0
    ) -> Optional[Tuple[RawMessageT, EventEnvelope]]:
        """Take the next delivery from ``topic`` or ``None`` after ``timeout``."""
        raise NotImplementedError

    async def subscribe(
        self, topic: str, lifespan: Optional[float] = None
    ) -> AsyncIterator[Tuple[RawMessageT, EventEnvelope]]:
        """Yield raw transport message and envelope pairs.

        Args:
            topic: The topic to subscribe to
            lifespan: Maximum time in seconds to keep connection open. If None, runs indefinitely.
        """
        loop = asyncio.get_running_loop()
        start_time = loop.time()

        while True:
            if lifespan is not None and loop.time() - start_time >= lifespan:
                break
            delivery = await self.receive(topic, timeout=0.1)
            if delivery is None:
                continue
            yield delivery

    async def recover(self, topic: str) -> int:
        """Requeue deliveries taken but never acknowledged; returns how many.

        Brokers that redeliver on their own keep the default no-op.
        """
        return 0

    @abc.abstractmethod
    async def ack(self, raw_message: RawMessageT) -> None:
        """Acknowledge successful processing."""
        raise NotImplementedError

    async def nack(self, raw_message: RawMessageT, requeue: bool = True) -> None:
        """Negatively acknowledge (default to ack if unsupported)."""
        await self.ack(raw_message)
