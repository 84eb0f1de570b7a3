"""Per-key serialization of workflow runs."""

from __future__ import annotations

import asyncio
import logging
import uuid
from collections import deque
from contextlib import asynccontextmanager
from dataclasses import dataclass, field
from typing import AsyncIterator, Deque, Dict, Optional

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class LeaseToken:
    """Proof that the holder owns ``key`` until released."""

    key: str
    id: str = field(default_factory=lambda: uuid.uuid4().hex)


class ConcurrencyLimiter:
    """Serializes runs that share a concurrency key (limit 1 per key).

    Waiters are granted the key in arrival order. A key entry exists only
    while it is held or waited on.
    """

    def __init__(self) -> None:
        self._holders: Dict[str, LeaseToken] = {}
        self._waiters: Dict[str, Deque[asyncio.Future[LeaseToken]]] = {}

    def acquire(self, key: str) -> Optional[LeaseToken]:
        """Take ``key`` if free; ``None`` means the caller must queue."""
        if key in self._holders or self._waiters.get(key):
            return None
        token = LeaseToken(key)
        self._holders[key] = token
        return token

    async def wait(self, key: str) -> LeaseToken:
        """Acquire ``key``, queueing behind the current holder if needed."""
        token = self.acquire(key)
        if token is not None:
            return token

        future: asyncio.Future[LeaseToken] = asyncio.get_running_loop().create_future()
        self._waiters.setdefault(key, deque()).append(future)
        logger.debug(f"Queued behind concurrency key {key}")
        try:
            return await future
        except asyncio.CancelledError:
            queue = self._waiters.get(key)
            if queue is not None and future in queue:
                queue.remove(future)
                if not queue:
                    del self._waiters[key]
            elif future.done() and not future.cancelled():
                # Granted just before cancellation; pass the key on.
                self.release(future.result())
            raise

    def release(self, token: LeaseToken) -> None:
        """Release ``token`` and hand the key to the next waiter, if any."""
        if self._holders.get(token.key) != token:
            raise ValueError(f"Token does not hold concurrency key {token.key}")

        queue = self._waiters.get(token.key)
        while queue:
            future = queue.popleft()
            if future.cancelled():
                continue
            successor = LeaseToken(token.key)
            self._holders[token.key] = successor
            if not queue:
                del self._waiters[token.key]
            future.set_result(successor)
            return

        self._waiters.pop(token.key, None)
        del self._holders[token.key]

    def is_held(self, key: str) -> bool:
        return key in self._holders

    @asynccontextmanager
    async def hold(self, key: Optional[str]) -> AsyncIterator[Optional[LeaseToken]]:
        """Hold ``key`` for the duration of the block; ``None`` keys are free."""
        if key is None:
            yield None
            return
        token = await self.wait(key)
        try:
            yield token
        finally:
            self.release(token)
