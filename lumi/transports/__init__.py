"""Transports that record envelopes until a handler acknowledges them."""

from __future__ import annotations

from typing import Optional

from ..config import LumiConfig, RedisConfig, load_config
from .base import BaseTransport
from .inmemory import InMemoryTransport

BACKENDS = ("inmemory", "redis")


def _redis_transport(conf: RedisConfig) -> BaseTransport:
    from .redis import RedisTransport

    return RedisTransport(**conf.model_dump())


def get_transport(
    backend: Optional[str] = None, config: Optional[LumiConfig] = None
) -> BaseTransport:
    """Build the transport named by ``backend`` or by ``config.transport``.

    ``LUMI_TRANSPORT`` is applied by :func:`lumi.config.load_config`.
    """
    config = config or load_config()
    name = (backend or config.transport.backend).lower()
    if name not in BACKENDS:
        raise ValueError(f"Unsupported transport backend: {name} (expected one of {', '.join(BACKENDS)})")
    if name == "redis":
        return _redis_transport(config.transport.redis)
    return InMemoryTransport()


__all__ = ["BACKENDS", "BaseTransport", "InMemoryTransport", "get_transport"]
