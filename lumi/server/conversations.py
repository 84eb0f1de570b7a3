"""Client-side creation of check-in entries when a conversation starts."""

from __future__ import annotations

import logging

from fastapi import APIRouter, Request
from fastapi.responses import JSONResponse
from pydantic import BaseModel, ConfigDict, EmailStr, Field

from ..store import CheckinEntry

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api")


class CreateConversationRequest(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    conversation_id: str = Field(min_length=1, alias="conversationId")
    first_name: str = Field(min_length=1, alias="firstName")
    last_name: str = Field(min_length=1, alias="lastName")
    email: EmailStr


@router.post("/conversations")
async def create_conversation(body: CreateConversationRequest, request: Request) -> JSONResponse:
    store = request.app.state.store
    try:
        existing = await store.find_checkin_by_conversation_id(body.conversation_id)
        if existing is not None:
            return JSONResponse({"success": True, "record_id": existing.id, "created": False})
        entry = await store.create_checkin_entry(
            CheckinEntry(
                conversation_id=body.conversation_id,
                first_name=body.first_name,
                last_name=body.last_name,
                email=body.email.lower(),
            )
        )
    except Exception as exc:
        logger.exception(f"Failed to create conversation record {body.conversation_id}")
        content = {"error": "Failed to create conversation record"}
        if request.app.state.config.is_development:
            content["details"] = str(exc)
        return JSONResponse(content, status_code=500)

    logger.info(f"Created check-in entry {entry.id} for conversation {body.conversation_id}")
    return JSONResponse({"success": True, "record_id": entry.id, "created": True})
