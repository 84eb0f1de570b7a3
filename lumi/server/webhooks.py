"""Inbound voice-provider webhook."""

from __future__ import annotations

import json
import logging
import time
from typing import Any

from fastapi import APIRouter, Request
from fastapi.responses import JSONResponse
from pydantic import ValidationError

from ..constants import SIGNATURE_HEADER
from ..contracts import CONVERSATION_ENDED, ConversationEnded, EventEnvelope
from ..errors import ValidationFailed, validation_issues
from ..persistence.models import utcnow
from .responses import invalid_request
from .signature import verify_signature

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/webhooks")

FORWARDED_FIELDS = (
    "conversation_id",
    "agent_id",
    "status",
    "transcript",
    "transcript_object",
    "metadata",
    "analysis",
)


@router.post("/elevenlabs")
async def elevenlabs_webhook(request: Request) -> JSONResponse:
    started = time.monotonic()
    config = request.app.state.config
    raw_body = await request.body()

    secret = config.webhook_secret
    if config.is_production or secret:
        if not secret:
            logger.error("ELEVENLABS_WEBHOOK_SECRET not configured")
            return JSONResponse({"error": "Webhook secret not configured"}, status_code=500)
        signature = request.headers.get(SIGNATURE_HEADER)
        if not verify_signature(signature, raw_body, secret):
            logger.warning(f"Invalid webhook signature ({len(raw_body)} byte body)")
            return JSONResponse({"error": "Invalid signature"}, status_code=401)

    try:
        payload: Any = json.loads(raw_body)
    except ValueError:
        return invalid_request([{"path": [], "message": "Body is not valid JSON", "code": "json_invalid"}])
    if not isinstance(payload, dict):
        return invalid_request([{"path": [], "message": "Body must be a JSON object", "code": "object_type"}])

    if not payload.get("conversation_id") or not payload.get("agent_id"):
        return invalid_request(
            [
                {"path": [name], "message": "Field required", "code": "missing"}
                for name in ("conversation_id", "agent_id")
                if not payload.get(name)
            ]
        )

    if payload.get("type") != CONVERSATION_ENDED:
        logger.info(f"Ignoring webhook type: {payload.get('type')}")
        return JSONResponse({"received": True, "processed": False})

    data = {name: payload[name] for name in FORWARDED_FIELDS if payload.get(name) is not None}
    try:
        ended = ConversationEnded.model_validate(data)
        envelope = EventEnvelope.create(
            CONVERSATION_ENDED, ended.model_copy(update={"transcript": ended.transcript_text()})
        )
    except ValidationError as exc:
        return invalid_request(validation_issues(exc))
    except ValidationFailed as exc:
        return invalid_request(exc.issues)

    try:
        await request.app.state.bus.emit(envelope)
    except Exception as exc:
        logger.exception("ElevenLabs webhook error")
        body = {"error": "Internal server error"}
        if config.is_development:
            body["message"] = str(exc)
        return JSONResponse(body, status_code=500)

    logger.info(
        f"ElevenLabs webhook processed: conversation={ended.conversation_id} "
        f"status={ended.status} has_transcript={bool(envelope.data.get('transcript'))} "
        f"took={(time.monotonic() - started) * 1000:.0f}ms"
    )
    return JSONResponse(
        {"received": True, "processed": True, "conversation_id": ended.conversation_id}
    )


@router.get("/elevenlabs")
async def elevenlabs_webhook_health() -> dict[str, str]:
    return {
        "status": "ok",
        "endpoint": "elevenlabs-webhook",
        "timestamp": utcnow().isoformat(),
    }
