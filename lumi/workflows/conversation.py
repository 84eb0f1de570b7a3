"""Voice conversation lifecycle: the conversation-ended signal."""

from __future__ import annotations

import logging
from typing import Any, Dict, List, Optional

from ..contracts import ANALYZE_REQUESTED, CONVERSATION_ENDED, STAFF_ALERT, ConversationEnded, EventEnvelope
from ..store import CheckinEntry
from ..store.status import check_transition
from ..workflow import Workflow, WorkflowContext
from .deps import WorkflowDeps, conversation_key

logger = logging.getLogger(__name__)


def conversation_workflows(deps: WorkflowDeps) -> List[Workflow]:
    store = deps.store

    async def create_entry(conversation_id: str, transcript: str) -> CheckinEntry:
        return await store.create_checkin_entry(
            CheckinEntry(
                conversation_id=conversation_id,
                transcript=transcript,
                analysis_status="pending",
            )
        )

    async def update_entry(
        entry: CheckinEntry, transcript: str, status: str, summary: Optional[str]
    ) -> CheckinEntry:
        target = "pending" if status == "done" else "failed"
        check_transition(entry.analysis_status, target)
        fields: Dict[str, Any] = {"transcript": transcript, "analysis_status": target}
        if summary:
            fields["insights"] = summary
        return await store.update_checkin_entry(entry.id, **fields)

    async def conversation_ended(ctx: WorkflowContext) -> Dict[str, Any]:
        data: ConversationEnded = ctx.payload
        transcript = data.transcript_text()
        analyzable = data.status == "done" and bool(transcript)

        existing = await ctx.step.run(
            "find-existing-record",
            store.find_checkin_by_conversation_id,
            data.conversation_id,
            returns=Optional[CheckinEntry],
        )

        if existing is None:
            logger.info(f"No existing record for conversation {data.conversation_id}, creating new entry")
            entry = await ctx.step.run(
                "create-checkin-entry",
                create_entry,
                data.conversation_id,
                transcript,
                returns=CheckinEntry,
            )
            if analyzable:
                await ctx.step.send_event(
                    "trigger-analysis",
                    EventEnvelope.create(
                        ANALYZE_REQUESTED,
                        {
                            "record_id": entry.id,
                            "transcript": transcript,
                            "conversation_type": "checkin",
                        },
                    ),
                )
            return {"record_id": entry.id, "status": "created", "analysis_requested": analyzable}

        summary = data.analysis.transcript_summary if data.analysis else None
        entry = await ctx.step.run(
            "update-with-transcript",
            update_entry,
            existing,
            transcript,
            data.status,
            summary,
            returns=CheckinEntry,
        )

        if analyzable:
            await ctx.step.send_event(
                "trigger-analysis",
                EventEnvelope.create(
                    ANALYZE_REQUESTED,
                    {
                        "record_id": entry.id,
                        "transcript": transcript,
                        "guest_email": existing.email,
                        "conversation_type": "checkin",
                    },
                ),
            )

        if data.status in ("error", "timeout"):
            await ctx.step.send_event(
                "notify-error",
                EventEnvelope.create(
                    STAFF_ALERT,
                    {
                        "record_id": entry.id,
                        "reason": f"Conversation ended with status: {data.status}",
                        "severity": "medium",
                        "guest_email": existing.email,
                    },
                ),
            )

        return {
            "record_id": entry.id,
            "status": "updated",
            "conversation_status": data.status,
            "analysis_requested": analyzable,
        }

    return [
        Workflow(
            id="conversation-ended",
            event=CONVERSATION_ENDED,
            fn=conversation_ended,
            max_attempts=3,
            concurrency_key=conversation_key,
        )
    ]
