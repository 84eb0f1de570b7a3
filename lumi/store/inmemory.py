"""In-memory record store used for development and tests."""

from __future__ import annotations

import asyncio
import uuid
from typing import Any, Dict, List, Optional

from .models import CheckinEntry, GuestProfile, MenuItem, RoomAvailability, Treatment


def _record_id() -> str:
    return f"rec{uuid.uuid4().hex[:14]}"


class InMemoryRecordStore:
    """Dict-backed :class:`~lumi.store.base.RecordStore`.

    ``queries`` lists the name of every store call, in order, so tests can
    assert which lookups a code path issued.
    """

    def __init__(
        self,
        rooms: Optional[List[RoomAvailability]] = None,
        treatments: Optional[List[Treatment]] = None,
        menu: Optional[List[MenuItem]] = None,
    ) -> None:
        self._checkins: Dict[str, CheckinEntry] = {}
        self._guests: Dict[str, GuestProfile] = {}
        self.rooms: List[RoomAvailability] = list(rooms or [])
        self.treatments: List[Treatment] = list(treatments or [])
        self.menu: List[MenuItem] = list(menu or [])
        self.queries: List[str] = []
        self._lock = asyncio.Lock()

    # ------------------------------------------------------------------
    # Check-in entries
    async def create_checkin_entry(self, entry: CheckinEntry) -> CheckinEntry:
        self.queries.append("create_checkin_entry")
        async with self._lock:
            record = entry.model_copy(update={"id": entry.id or _record_id()})
            self._checkins[record.id] = record
            return record.model_copy()

    async def update_checkin_entry(self, record_id: str, **fields: Any) -> CheckinEntry:
        self.queries.append("update_checkin_entry")
        async with self._lock:
            current = self._checkins.get(record_id)
            if current is None:
                raise KeyError(f"Check-in entry {record_id} not found")
            updated = CheckinEntry.model_validate({**current.model_dump(), **fields})
            self._checkins[record_id] = updated
            return updated.model_copy()

    async def get_checkin_entry(self, record_id: str) -> CheckinEntry | None:
        self.queries.append("get_checkin_entry")
        entry = self._checkins.get(record_id)
        return entry.model_copy() if entry else None

    async def find_checkin_by_conversation_id(self, conversation_id: str) -> CheckinEntry | None:
        self.queries.append("find_checkin_by_conversation_id")
        for entry in self._checkins.values():
            if entry.conversation_id == conversation_id:
                return entry.model_copy()
        return None

    # ------------------------------------------------------------------
    # Guests
    async def get_guest_by_email(self, email: str) -> GuestProfile | None:
        self.queries.append("get_guest_by_email")
        wanted = email.strip().lower()
        for guest in self._guests.values():
            if guest.email.lower() == wanted:
                return guest.model_copy(deep=True)
        return None

    async def create_guest(self, guest: GuestProfile) -> GuestProfile:
        self.queries.append("create_guest")
        async with self._lock:
            record = guest.model_copy(update={"id": guest.id or _record_id()}, deep=True)
            self._guests[record.id] = record
            return record.model_copy(deep=True)

    async def update_guest(self, record_id: str, **fields: Any) -> GuestProfile:
        self.queries.append("update_guest")
        async with self._lock:
            current = self._guests.get(record_id)
            if current is None:
                raise KeyError(f"Guest {record_id} not found")
            updated = GuestProfile.model_validate({**current.model_dump(), **fields})
            self._guests[record_id] = updated
            return updated.model_copy(deep=True)

    # ------------------------------------------------------------------
    # Current retreat
    async def check_availability(
        self, arrival: str, departure: str, room_type: Optional[str] = None
    ) -> list[RoomAvailability]:
        self.queries.append("check_availability")
        return [
            room
            for room in self.rooms
            if room.available_from <= arrival
            and room.available_to >= departure
            and (room_type is None or room.room_type == room_type)
        ]

    async def get_treatments(self, category: Optional[str] = None) -> list[Treatment]:
        self.queries.append("get_treatments")
        return [t for t in self.treatments if category is None or t.category == category]

    async def get_menu(self, meal_type: Optional[str] = None) -> list[MenuItem]:
        self.queries.append("get_menu")
        return [m for m in self.menu if meal_type is None or m.meal_type == meal_type]

    @property
    def checkins(self) -> list[CheckinEntry]:
        return [entry.model_copy() for entry in self._checkins.values()]

    @property
    def guests(self) -> list[GuestProfile]:
        return [guest.model_copy(deep=True) for guest in self._guests.values()]
