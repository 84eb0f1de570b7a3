"""Daily check-in completion."""

from __future__ import annotations

from typing import Any, Dict, List, Optional

from ..contracts import DAILY_CHECKIN_COMPLETED, DailyCheckinCompleted
from ..guests import MergeResult, TrustLevel
from ..store.status import check_transition
from ..workflow import Workflow, WorkflowContext
from .deps import WorkflowDeps, guest_key


def insights_line(insights: Optional[Dict[str, Any]]) -> Optional[str]:
    """One-line note summarising check-in insights."""
    if not insights:
        return None
    summary = insights.get("summary")
    sentiment = insights.get("sentiment")
    parts = []
    if summary:
        parts.append(f"Check-in: {summary.rstrip('.')}")
    if sentiment:
        parts.append(f"Sentiment: {sentiment}")
    return ". ".join(parts) or None


def checkin_workflows(deps: WorkflowDeps) -> List[Workflow]:
    store = deps.store
    guests = deps.guests

    async def mark_completed(record_id: str) -> bool:
        entry = await store.get_checkin_entry(record_id)
        if entry is None:
            return False
        check_transition(entry.analysis_status, "completed")
        if entry.analysis_status != "completed":
            await store.update_checkin_entry(record_id, analysis_status="completed")
        return True

    async def daily_completed(ctx: WorkflowContext) -> Dict[str, Any]:
        data: DailyCheckinCompleted = ctx.payload
        fields_updated: List[str] = []

        if data.guest_email:
            counted = await ctx.step.run(
                "record-checkin",
                guests.record_checkin,
                data.guest_email,
                None,
                data.guest_name,
                returns=MergeResult,
            )
            fields_updated += counted.fields_changed

            line = insights_line(data.insights)
            if line:
                noted = await ctx.step.run(
                    "append-insights",
                    guests.merge_update,
                    data.guest_email,
                    {"notes": line},
                    TrustLevel.CHECKIN_DERIVED,
                    returns=MergeResult,
                )
                fields_updated += noted.fields_changed

        entry_found = await ctx.step.run("mark-completed", mark_completed, data.record_id)
        return {
            "success": True,
            "record_id": data.record_id,
            "entry_found": entry_found,
            "fields_updated": sorted(set(fields_updated)),
        }

    return [
        Workflow(
            id="checkin-daily-completed",
            event=DAILY_CHECKIN_COMPLETED,
            fn=daily_completed,
            max_attempts=2,
            concurrency_key=guest_key,
        )
    ]
