"""Synchronous tool endpoints called by the voice agent mid-conversation."""

from __future__ import annotations

import logging
from datetime import date, datetime
from typing import Any, Dict, List, Literal, Optional

from fastapi import APIRouter, Request
from fastapi.responses import JSONResponse
from pydantic import BaseModel, EmailStr

from ..constants import CURRENCY
from ..contracts import TREATMENT_REQUESTED
from ..store import GuestProfile, MenuItem, RoomAvailability, Treatment
from .responses import degraded

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/tools")


class CheckAvailabilityRequest(BaseModel):
    arrival_date: date
    departure_date: date
    room_type: Optional[str] = None
    guests: Optional[int] = None


class GuestProfileRequest(BaseModel):
    email: EmailStr


class MenuRequest(BaseModel):
    meal_type: Optional[Literal["breakfast", "lunch", "dinner", "snack"]] = None
    dietary_filter: Optional[List[str]] = None
    guest_email: Optional[EmailStr] = None


class BookTreatmentRequest(BaseModel):
    guest_email: EmailStr
    treatment_id: Optional[str] = None
    treatment_name: Optional[str] = None
    preferred_date: Optional[str] = None
    preferred_time: Optional[str] = None
    notes: Optional[str] = None


def _money(amount: float) -> str:
    return f"${amount:g}"


def _today(request: Request) -> date:
    return request.app.state.clock().date()


# ----------------------------------------------------------------------
# check-availability
def validate_stay(arrival: date, departure: date, today: date) -> Optional[str]:
    """Message explaining why the stay is invalid, or ``None``."""
    if arrival < today:
        return "The arrival date cannot be in the past. What dates would work for you?"
    if departure <= arrival:
        return "The departure date must be after the arrival date. Could you confirm your dates?"
    return None


def availability_summary(
    rooms: List[RoomAvailability], nights: int, room_type: Optional[str]
) -> Dict[str, Any]:
    if not rooms:
        message = (
            f"Unfortunately, we don't have any {room_type} rooms available for those dates. "
            "Would you like me to check other room types, or perhaps suggest alternative dates?"
            if room_type
            else "Unfortunately, we're fully booked for those dates. Would you like me to check "
            "alternative dates, or would you like to join our waitlist?"
        )
        return {
            "action": "no_availability",
            "available": False,
            "message": message,
            "suggestions": ["Check alternative dates", "View other room types", "Join waitlist"],
        }

    room_types = list(dict.fromkeys(room.room_type for room in rooms))
    low = min(room.price_per_night for room in rooms)
    high = max(room.price_per_night for room in rooms)
    if len(rooms) == 1:
        message = (
            f"Great news! We have one {rooms[0].room_type} room available for your dates, at "
            f"{_money(low)} per night. That would be approximately {_money(low * nights)} "
            f"for your {nights}-night stay."
        )
    else:
        types_text = (
            f"Room types include {' and '.join(room_types)}. " if len(room_types) > 1 else ""
        )
        message = (
            f"Wonderful! We have {len(rooms)} rooms available for your dates. {types_text}"
            f"Prices start from {_money(low)} per night, which would be approximately "
            f"{_money(low * nights)} for your {nights}-night stay. Would you like me to tell "
            "you more about our room options?"
        )
    return {
        "action": "rooms_available",
        "available": True,
        "availability": {
            "rooms_available": len(rooms),
            "room_types": room_types,
            "price_range": {"from": low, "to": high, "currency": CURRENCY},
            "estimated_total": {"from": low * nights, "to": high * nights, "currency": CURRENCY},
        },
        "message": message,
    }


@router.post("/check-availability")
async def check_availability(body: CheckAvailabilityRequest, request: Request) -> JSONResponse:
    problem = validate_stay(body.arrival_date, body.departure_date, _today(request))
    if problem:
        return JSONResponse({"action": "invalid_dates", "available": False, "message": problem})

    nights = (body.departure_date - body.arrival_date).days
    requested = {
        "arrival_date": body.arrival_date.isoformat(),
        "departure_date": body.departure_date.isoformat(),
        "nights": nights,
        "room_type": body.room_type,
        "guests": body.guests,
    }
    try:
        rooms = await request.app.state.store.check_availability(
            body.arrival_date.isoformat(), body.departure_date.isoformat(), body.room_type
        )
    except Exception as exc:
        return degraded(request, exc, available=False)

    if body.guests:
        rooms = [room for room in rooms if room.capacity >= body.guests]
    return JSONResponse({**availability_summary(rooms, nights, body.room_type), "requested": requested})


# ----------------------------------------------------------------------
# get-guest-profile
def context_message(guest: GuestProfile, now: datetime) -> str:
    """Natural-language summary of ``guest`` for the calling agent."""
    parts: List[str] = []

    if guest.past_visits == 1:
        parts.append(f"{guest.first_name} has visited Aro Hā once before.")
    elif guest.past_visits > 1:
        parts.append(
            f"{guest.first_name} is a returning guest who has visited {guest.past_visits} times."
        )

    if guest.last_checkin_date:
        try:
            last = datetime.fromisoformat(guest.last_checkin_date.replace("Z", "+00:00"))
        except ValueError:
            last = None
        if last is not None:
            if last.tzinfo is None:
                last = last.replace(tzinfo=now.tzinfo)
            days_since = (now - last).days
            if 0 <= days_since < 7:
                parts.append(f"They last checked in {days_since} days ago.")

    dietary = guest.dietary_restrictions + [f"{a} allergy" for a in guest.allergies]
    if dietary:
        parts.append(f"Dietary considerations: {', '.join(dietary)}.")
    if guest.room_preferences:
        parts.append(f"Room preferences: {', '.join(guest.room_preferences)}.")
    if guest.wellness_goals:
        parts.append(f"Wellness goals: {', '.join(guest.wellness_goals)}.")

    if not parts:
        return f"{guest.first_name} is connecting with us for the first time."
    return " ".join(parts)


@router.post("/get-guest-profile")
async def get_guest_profile(body: GuestProfileRequest, request: Request) -> JSONResponse:
    try:
        guest = await request.app.state.store.get_guest_by_email(body.email)
    except Exception as exc:
        return degraded(request, exc, found=False)

    if guest is None:
        return JSONResponse(
            {
                "action": "new_guest",
                "found": False,
                "is_new_guest": True,
                "message": "It looks like this is your first time connecting with us! "
                "I'm excited to help you learn about Aro Hā.",
            }
        )

    context = context_message(guest, request.app.state.clock())
    return JSONResponse(
        {
            "action": "returning_guest",
            "found": True,
            "is_new_guest": False,
            "guest": {
                "first_name": guest.first_name,
                "last_name": guest.last_name,
                "past_visits": guest.past_visits,
                "total_checkins": guest.total_checkins,
            },
            "preferences": {
                "dietary_restrictions": guest.dietary_restrictions,
                "allergies": guest.allergies,
                "room_preferences": guest.room_preferences,
                "wellness_goals": guest.wellness_goals,
            },
            "context": context,
            "message": context,
        }
    )


# ----------------------------------------------------------------------
# get-menu
def matches_filters(item: MenuItem, filters: List[str]) -> bool:
    """Every filter must match some tag, by substring either way."""
    tags = [tag.lower() for tag in item.dietary_tags]
    return all(any(tag in f or f in tag for tag in tags) for f in filters)


def menu_message(
    grouped: Dict[str, List[MenuItem]],
    filters: List[str],
    guest_dietary: List[str],
    meal_type: Optional[str],
) -> str:
    total = sum(len(items) for items in grouped.values())
    if total == 0:
        if filters:
            return (
                f"I couldn't find menu items matching your dietary preferences ({', '.join(filters)}). "
                "However, our kitchen is always happy to accommodate special requests. "
                "Would you like me to note your dietary needs for the team?"
            )
        if meal_type:
            return (
                f"I don't have {meal_type} menu items available right now. "
                "Would you like to see our other meal options?"
            )
        return "I'm having trouble loading the menu. Let me connect you with our team who can help."

    if meal_type:
        items = grouped.get(meal_type, [])
        return (
            f"For {meal_type}, we have {len(items)} delicious options: "
            f"{', '.join(i.name for i in items)}. Would you like details on any of these dishes?"
        )

    personalised = (
        f"I've filtered based on your dietary preferences ({', '.join(guest_dietary)}). "
        if guest_dietary
        else ""
    )
    return (
        f"We have {total} items available across {', '.join(grouped)}. "
        f"{personalised}Would you like to hear about a specific meal?"
    )


@router.post("/get-menu")
async def get_menu(body: MenuRequest, request: Request) -> JSONResponse:
    store = request.app.state.store
    try:
        guest_dietary: List[str] = []
        if body.guest_email:
            guest = await store.get_guest_by_email(body.guest_email)
            if guest is not None:
                guest_dietary = guest.dietary_restrictions + [f"{a}-free" for a in guest.allergies]
        items = await store.get_menu(body.meal_type)
    except Exception as exc:
        return degraded(request, exc, menu={}, total_items=0)

    filters = [f.lower() for f in (body.dietary_filter or []) + guest_dietary]
    available = [item for item in items if item.available]
    if filters:
        available = [item for item in available if matches_filters(item, filters)]

    grouped: Dict[str, List[MenuItem]] = {}
    for item in available:
        grouped.setdefault(item.meal_type, []).append(item)

    return JSONResponse(
        {
            "action": "menu",
            "menu": {
                meal: [item.model_dump(mode="json") for item in meal_items]
                for meal, meal_items in grouped.items()
            },
            "total_items": len(available),
            "meal_types": list(grouped),
            "filters_applied": filters,
            "guest_dietary_preferences": guest_dietary,
            "message": menu_message(grouped, filters, guest_dietary, body.meal_type),
            "items": [
                {
                    "name": item.name,
                    "description": item.description,
                    "meal_type": item.meal_type,
                    "dietary_tags": item.dietary_tags,
                }
                for item in available
            ],
        }
    )


# ----------------------------------------------------------------------
# book-treatment
def _treatment_summary(t: Treatment) -> Dict[str, Any]:
    return {
        "id": t.id,
        "name": t.name,
        "description": t.description,
        "duration": t.duration_minutes,
        "price": t.price,
        "category": t.category,
    }


def find_treatment(
    treatments: List[Treatment], treatment_id: Optional[str], treatment_name: Optional[str]
) -> Optional[Treatment]:
    if treatment_id:
        return next((t for t in treatments if t.id == treatment_id), None)
    wanted = (treatment_name or "").lower()
    return next((t for t in treatments if wanted in t.name.lower()), None)


@router.post("/book-treatment")
async def book_treatment(body: BookTreatmentRequest, request: Request) -> JSONResponse:
    store = request.app.state.store
    try:
        treatments = await store.get_treatments()
        available = [t for t in treatments if t.available]

        if not body.treatment_id and not body.treatment_name:
            categories = list(dict.fromkeys(t.category for t in available))
            return JSONResponse(
                {
                    "action": "list_treatments",
                    "treatments": [_treatment_summary(t) for t in available],
                    "categories": categories,
                    "message": f"We offer a wonderful range of treatments across {len(categories)} "
                    f"categories: {', '.join(categories)}. Would you like me to describe any "
                    "specific treatment, or tell you more about a particular category?",
                }
            )

        treatment = find_treatment(treatments, body.treatment_id, body.treatment_name)
        if treatment is None:
            names = [t.name for t in available]
            return JSONResponse(
                {
                    "action": "treatment_not_found",
                    "available_treatments": names,
                    "message": "I couldn't find that specific treatment. Here are our available "
                    f"treatments: {', '.join(names)}. Which one would you like to know more about?",
                }
            )

        if not treatment.available:
            alternatives = [t for t in available if t.category == treatment.category]
            return JSONResponse(
                {
                    "action": "treatment_unavailable",
                    "treatment_name": treatment.name,
                    "alternatives": [
                        {"name": t.name, "duration": t.duration_minutes, "price": t.price}
                        for t in alternatives
                    ],
                    "message": f"The {treatment.name} is currently unavailable. However, we have "
                    f"other wonderful {treatment.category} treatments: "
                    f"{', '.join(t.name for t in alternatives)}. Would any of these interest you?",
                }
            )

        guest = await store.get_guest_by_email(body.guest_email)
        await request.app.state.bus.send(
            TREATMENT_REQUESTED,
            {
                "guest_email": body.guest_email,
                "guest_name": guest.full_name if guest and guest.full_name else "Guest",
                "treatment_id": treatment.id,
                "treatment_name": treatment.name,
                "preferred_date": body.preferred_date,
                "preferred_time": body.preferred_time,
                "notes": body.notes,
            },
        )
    except Exception as exc:
        return degraded(request, exc)

    when = ""
    if body.preferred_date:
        when = f" for {body.preferred_date}"
        if body.preferred_time:
            when += f" around {body.preferred_time}"
    return JSONResponse(
        {
            "action": "booking_requested",
            "treatment": {k: v for k, v in _treatment_summary(treatment).items() if k != "id"},
            "booking_details": {
                "guest_email": body.guest_email,
                "preferred_date": body.preferred_date,
                "preferred_time": body.preferred_time,
                "notes": body.notes,
            },
            "message": f"Wonderful choice! The {treatment.name} is a {treatment.duration_minutes}-minute "
            f"treatment priced at {_money(treatment.price)}. {treatment.description} I've noted "
            f"your interest{when}. Our spa team will confirm your booking and reach out with "
            "available time slots. Is there anything else you'd like to know about this treatment?",
            "confirmation_pending": True,
        }
    )
