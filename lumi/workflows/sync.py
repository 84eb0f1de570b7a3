"""Guest profile synchronisation and enrichment."""

from __future__ import annotations

import logging
from typing import Any, Dict, List, Optional

from ..contracts import GUEST_UPDATED, PROFILE_ENRICHED, ExtractedProfileData, GuestUpdated, ProfileEnriched
from ..guests import SOURCE_TRUST, MergeResult, TrustLevel
from ..workflow import Workflow, WorkflowContext
from .deps import WorkflowDeps, guest_key

logger = logging.getLogger(__name__)


def enrichment_update(extracted: ExtractedProfileData) -> Dict[str, Any]:
    """Checkin-derived update carrying goals and a dated insights note.

    Dietary mentions from a conversation are recorded in the note only;
    restrictions are owned by retreat-context sources.
    """
    update: Dict[str, Any] = {}
    if extracted.wellness_goals:
        update["wellness_goals"] = extracted.wellness_goals

    insights: List[str] = []
    if extracted.sleep_patterns:
        insights.append(f"Sleep: {extracted.sleep_patterns}")
    if extracted.stress_indicators:
        insights.append(f"Stress: {extracted.stress_indicators}")
    if extracted.preferences_mentioned:
        insights.append(f"Preferences: {', '.join(extracted.preferences_mentioned)}")
    if extracted.dietary_preferences:
        insights.append(f"Dietary mentions: {', '.join(extracted.dietary_preferences)}")
    if insights:
        update["notes"] = ". ".join(insights)
    return update


def sync_workflows(deps: WorkflowDeps) -> List[Workflow]:
    guests = deps.guests

    async def guest_updated(ctx: WorkflowContext) -> Dict[str, Any]:
        data: GuestUpdated = ctx.payload
        trust = SOURCE_TRUST[data.source_base]
        result = await ctx.step.run(
            "merge-updates",
            guests.merge_update,
            data.guest_email,
            data.updates,
            trust,
            returns=MergeResult,
        )
        if not result.found:
            logger.info(f"Guest {data.guest_email} not found in master guest base")
            return {"success": False, "reason": "guest_not_found"}
        return {
            "success": True,
            "guest_email": result.email,
            "source_base": data.source_base,
            "fields_updated": result.fields_changed,
        }

    async def profile_enriched(ctx: WorkflowContext) -> Dict[str, Any]:
        data: ProfileEnriched = ctx.payload
        update = enrichment_update(data.extracted_data)
        result: Optional[MergeResult] = None
        if update:
            result = await ctx.step.run(
                "apply-enrichment",
                guests.merge_update,
                data.guest_email,
                update,
                TrustLevel.CHECKIN_DERIVED,
                returns=MergeResult,
            )
            if not result.found:
                return {"success": False, "reason": "guest_not_found"}
        return {
            "success": True,
            "guest_email": data.guest_email,
            "fields_enriched": result.fields_changed if result else [],
        }

    return [
        Workflow(
            id="sync-guest-updated",
            event=GUEST_UPDATED,
            fn=guest_updated,
            max_attempts=3,
            concurrency_key=guest_key,
        ),
        Workflow(
            id="sync-profile-enrichment",
            event=PROFILE_ENRICHED,
            fn=profile_enriched,
            max_attempts=2,
            concurrency_key=guest_key,
        ),
    ]
