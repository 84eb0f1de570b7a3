"""Shared response helpers and exception handlers."""

from __future__ import annotations

import logging
from typing import Any

from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse

from ..constants import DEGRADED_MESSAGE
from ..errors import ValidationFailed

logger = logging.getLogger(__name__)


def invalid_request(details: list[dict[str, Any]]) -> JSONResponse:
    return JSONResponse({"error": "Invalid request", "details": details}, status_code=400)


def degraded(request: Request, exc: Exception, **fields: Any) -> JSONResponse:
    """500 response carrying the hand-off message for the calling agent.

    The error text is only exposed in development.
    """
    logger.error(f"{request.url.path} failed: {exc!r}")
    body: dict[str, Any] = {"action": "error", **fields, "message": DEGRADED_MESSAGE}
    if request.app.state.config.is_development:
        body["error"] = str(exc)
    return JSONResponse(body, status_code=500)


def install_exception_handlers(app: FastAPI) -> None:
    @app.exception_handler(RequestValidationError)
    async def _request_validation(request: Request, exc: RequestValidationError) -> JSONResponse:
        details = [
            {
                "path": [str(part) for part in err.get("loc", ())[1:]],
                "message": err.get("msg", ""),
                "code": err.get("type", "invalid"),
            }
            for err in exc.errors()
        ]
        return invalid_request(details)

    @app.exception_handler(ValidationFailed)
    async def _validation_failed(request: Request, exc: ValidationFailed) -> JSONResponse:
        return invalid_request(exc.issues or [{"path": [], "message": str(exc), "code": "invalid"}])
