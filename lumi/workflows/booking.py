"""Room booking inquiries and treatment requests."""

from __future__ import annotations

import logging
from datetime import date, datetime
from typing import Any, Dict, List, Optional

from ..constants import URGENT_ARRIVAL_WINDOW_DAYS
from ..contracts import (
    BOOKING_INQUIRY_RECEIVED,
    SEND_EMAIL,
    STAFF_ALERT,
    TREATMENT_REQUESTED,
    BookingInquiryReceived,
    EventEnvelope,
    TreatmentRequested,
)
from ..guests import MergeResult, TrustLevel
from ..store import RoomAvailability
from ..workflow import Workflow, WorkflowContext
from .deps import WorkflowDeps, guest_key

logger = logging.getLogger(__name__)


def is_urgent_arrival(arrival: Optional[str], now: datetime) -> bool:
    """``True`` when ``arrival`` is less than a week away."""
    if not arrival:
        return False
    try:
        arrival_day = date.fromisoformat(arrival[:10])
    except ValueError:
        logger.warning(f"Unparseable arrival date {arrival!r}")
        return False
    return (arrival_day - now.date()).days < URGENT_ARRIVAL_WINDOW_DAYS


def inquiry_email_body(guest_name: str, has_availability: bool) -> str:
    first_name = guest_name.split(" ")[0] if guest_name else "there"
    if has_availability:
        middle = (
            "We have availability for your requested dates and our reservations team "
            "will be in touch shortly with personalized recommendations."
        )
    else:
        middle = (
            "While your requested dates may not be available, our reservations team "
            "will reach out with alternative options that may suit you."
        )
    return (
        f"Dear {first_name},\n\n"
        f"Thank you for your interest in Aro Hā. {middle}\n\n"
        "Warm regards,\nThe Aro Hā Team"
    )


def booking_workflows(deps: WorkflowDeps) -> List[Workflow]:
    store = deps.store
    guests = deps.guests
    alerts_config = deps.config.alerts

    async def inquiry_received(ctx: WorkflowContext) -> Dict[str, Any]:
        data: BookingInquiryReceived = ctx.payload
        dates = data.requested_dates

        rooms: List[RoomAvailability] = []
        if dates and dates.arrival and dates.departure:
            room_type = data.room_preferences[0] if data.room_preferences else None
            rooms = await ctx.step.run(
                "check-availability",
                store.check_availability,
                dates.arrival,
                dates.departure,
                room_type,
                returns=List[RoomAvailability],
            )

        profile = await ctx.step.run(
            "ensure-guest-profile",
            guests.merge_update,
            data.guest_email,
            {"room_preferences": data.room_preferences or []},
            TrustLevel.RETREAT_CONTEXT,
            True,
            data.guest_name,
            returns=MergeResult,
        )
        if data.notes:
            await ctx.step.run(
                "append-inquiry-note",
                guests.merge_update,
                data.guest_email,
                {"notes": f"Inquiry: {data.notes}"},
                TrustLevel.CHECKIN_DERIVED,
                returns=MergeResult,
            )

        has_availability = bool(rooms)
        urgent = is_urgent_arrival(dates.arrival if dates else None, deps.clock())
        availability_text = (
            f"{len(rooms)} rooms available."
            if has_availability
            else "No availability for requested dates."
        )

        await ctx.step.send_event(
            "notify-reservations",
            EventEnvelope.create(
                STAFF_ALERT,
                {
                    "record_id": data.conversation_id,
                    "reason": f"New booking inquiry from {data.guest_name}. {availability_text}",
                    "severity": "high" if urgent else "medium",
                    "guest_email": data.guest_email,
                    "assigned_to": alerts_config.reservations,
                },
            ),
        )
        await ctx.step.send_event(
            "send-guest-email",
            EventEnvelope.create(
                SEND_EMAIL,
                {
                    "to": data.guest_email,
                    "subject": "Thank you for your inquiry - Aro Hā",
                    "body": inquiry_email_body(data.guest_name, has_availability),
                    "template": "booking_inquiry_confirmation",
                    "metadata": {
                        "conversation_id": data.conversation_id,
                        "has_availability": has_availability,
                    },
                },
            ),
        )

        return {
            "success": True,
            "guest_created": profile.created,
            "available_rooms": len(rooms),
            "urgent": urgent,
            "follow_up_sent": True,
        }

    async def treatment_requested(ctx: WorkflowContext) -> Dict[str, Any]:
        data: TreatmentRequested = ctx.payload
        when = ""
        if data.preferred_date:
            when = f" for {data.preferred_date}"
            if data.preferred_time:
                when += f" around {data.preferred_time}"
        reason = f"{data.guest_name} would like to book {data.treatment_name}{when}."
        if data.notes:
            reason += f" Notes: {data.notes}"

        await ctx.step.send_event(
            "notify-spa",
            EventEnvelope.create(
                STAFF_ALERT,
                {
                    "record_id": data.treatment_id,
                    "reason": reason,
                    "severity": "medium",
                    "guest_email": data.guest_email,
                    "assigned_to": alerts_config.spa,
                },
            ),
        )
        return {"success": True, "treatment_id": data.treatment_id, "assigned_to": alerts_config.spa}

    return [
        Workflow(
            id="booking-inquiry-received",
            event=BOOKING_INQUIRY_RECEIVED,
            fn=inquiry_received,
            max_attempts=3,
            concurrency_key=guest_key,
        ),
        Workflow(
            id="booking-treatment-requested",
            event=TREATMENT_REQUESTED,
            fn=treatment_requested,
            max_attempts=2,
        ),
    ]
