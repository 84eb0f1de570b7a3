"""Analysis pipeline: pending -> processing -> completed | failed."""

from __future__ import annotations

import logging
from typing import Any, Dict, List

from ..analysis import ConversationAnalysis, derive_follow_ups
from ..contracts import ANALYZE_REQUESTED, AnalyzeRequested
from ..errors import NonRetryableError
from ..store import CheckinEntry
from ..store.status import check_transition
from ..workflow import Workflow, WorkflowContext
from .deps import WorkflowDeps

logger = logging.getLogger(__name__)


def analysis_workflows(deps: WorkflowDeps) -> List[Workflow]:
    store = deps.store
    analyzer = deps.analyzer

    async def mark_processing(record_id: str) -> CheckinEntry:
        entry = await store.get_checkin_entry(record_id)
        if entry is None:
            raise NonRetryableError(f"Check-in entry {record_id} not found")
        check_transition(entry.analysis_status, "processing")
        return await store.update_checkin_entry(record_id, analysis_status="processing")

    async def save_analysis(record_id: str, analysis: ConversationAnalysis) -> str:
        entry = await store.get_checkin_entry(record_id)
        if entry is None:
            raise NonRetryableError(f"Check-in entry {record_id} not found")
        check_transition(entry.analysis_status, "completed")
        await store.update_checkin_entry(
            record_id,
            insights=analysis.insights_json(),
            sentiment=analysis.sentiment,
            action_items="; ".join(analysis.action_items),
            analysis_status="completed",
        )
        return "completed"

    async def analyze(ctx: WorkflowContext) -> Dict[str, Any]:
        data: AnalyzeRequested = ctx.payload

        entry = await ctx.step.run(
            "mark-processing", mark_processing, data.record_id, returns=CheckinEntry
        )
        analysis = await ctx.step.run(
            "analyze-transcript",
            analyzer,
            data.transcript,
            data.conversation_type,
            returns=ConversationAnalysis,
            timeout=deps.config.analysis.timeout_seconds,
        )
        await ctx.step.run("save-analysis", save_analysis, data.record_id, analysis)

        guest_email = data.guest_email or entry.email
        guest_name = f"{entry.first_name or ''} {entry.last_name or ''}".strip()
        events = derive_follow_ups(
            data.record_id,
            analysis,
            data.conversation_type,
            data.transcript,
            guest_email=guest_email,
            guest_name=guest_name,
        )
        if events:
            await ctx.step.send_event("follow-up-events", *events)

        return {
            "success": True,
            "record_id": data.record_id,
            "analysis_summary": analysis.summary,
            "sentiment": analysis.sentiment,
            "requires_attention": analysis.requires_attention,
            "events_triggered": [event.name for event in events],
        }

    wf = Workflow(
        id="conversation-analyze",
        event=ANALYZE_REQUESTED,
        fn=analyze,
        max_attempts=2,
    )

    @wf.failure_handler
    async def mark_failed(ctx: WorkflowContext, error: BaseException) -> None:
        record_id = ctx.payload.record_id
        entry = await store.get_checkin_entry(record_id)
        if entry is None or entry.analysis_status not in ("pending", "processing"):
            return
        await store.update_checkin_entry(record_id, analysis_status="failed")
        logger.warning(f"Analysis of {record_id} failed: {error}")

    return [wf]
