"""Record store abstraction for check-in entries, guests and retreat data."""

from __future__ import annotations

from typing import Any, Optional, Protocol

from .models import CheckinEntry, GuestProfile, MenuItem, RoomAvailability, Treatment


class RecordStore(Protocol):
    """Protocol for the external record store."""

    async def create_checkin_entry(self, entry: CheckinEntry) -> CheckinEntry:
        """Persist a new entry and return it with its record id."""

    async def update_checkin_entry(self, record_id: str, **fields: Any) -> CheckinEntry:
        """Apply ``fields`` to the entry and return the updated record."""

    async def get_checkin_entry(self, record_id: str) -> CheckinEntry | None:
        ...

    async def find_checkin_by_conversation_id(self, conversation_id: str) -> CheckinEntry | None:
        ...

    async def get_guest_by_email(self, email: str) -> GuestProfile | None:
        """Look up a guest; email matching is case-insensitive."""

    async def create_guest(self, guest: GuestProfile) -> GuestProfile:
        ...

    async def update_guest(self, record_id: str, **fields: Any) -> GuestProfile:
        ...

    async def check_availability(
        self, arrival: str, departure: str, room_type: Optional[str] = None
    ) -> list[RoomAvailability]:
        """Rooms available for the whole ``arrival``..``departure`` stay."""

    async def get_treatments(self, category: Optional[str] = None) -> list[Treatment]:
        ...

    async def get_menu(self, meal_type: Optional[str] = None) -> list[MenuItem]:
        ...
