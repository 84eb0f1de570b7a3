"""FastAPI app factory.

Handlers translate inbound HTTP signals into bus envelopes or answer tool
calls straight from the record store.
"""

from __future__ import annotations

import asyncio
import logging
from contextlib import asynccontextmanager, suppress
from datetime import datetime
from typing import AsyncIterator, Callable, Optional

from fastapi import FastAPI

from .. import __version__
from ..bus import EventBus
from ..config import LumiConfig, load_config
from ..execute import WorkflowExecutor
from ..persistence.models import utcnow
from ..store import RecordStore, get_store
from ..transports import get_transport
from .conversations import router as conversations_router
from .responses import install_exception_handlers
from .tools import router as tools_router
from .webhooks import router as webhooks_router

logger = logging.getLogger(__name__)


def create_app(
    config: Optional[LumiConfig] = None,
    store: Optional[RecordStore] = None,
    bus: Optional[EventBus] = None,
    executor: Optional[WorkflowExecutor] = None,
    clock: Callable[[], datetime] = utcnow,
) -> FastAPI:
    """Build the HTTP surface.

    With ``executor`` given, its consumer loops run for the lifetime of the
    app so envelopes emitted by handlers are processed in-process.
    """
    config = config or load_config()
    store = store or get_store(config)
    bus = bus or EventBus(get_transport(config=config))

    @asynccontextmanager
    async def lifespan(app: FastAPI) -> AsyncIterator[None]:
        if executor is None:
            yield
            return
        task = asyncio.create_task(executor.start())
        logger.info("In-process workflow executor started")
        try:
            yield
        finally:
            task.cancel()
            with suppress(asyncio.CancelledError):
                await task

    app = FastAPI(
        title="Lumi",
        version=__version__,
        description="Guest conversation workflows for Aro Hā.",
        openapi_url="/api/openapi.json",
        docs_url="/api/docs",
        lifespan=lifespan,
    )
    app.state.config = config
    app.state.store = store
    app.state.bus = bus
    app.state.clock = clock

    install_exception_handlers(app)
    app.include_router(webhooks_router)
    app.include_router(tools_router)
    app.include_router(conversations_router)

    @app.get("/api/health")
    def health() -> dict[str, str]:
        return {"status": "ok"}

    return app
