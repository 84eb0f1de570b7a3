"""External record store: check-in entries, guest profiles, retreat data."""

from __future__ import annotations

from typing import Optional

from ..config import LumiConfig, load_config
from .base import RecordStore
from .inmemory import InMemoryRecordStore
from .models import CheckinEntry, GuestProfile, MenuItem, RoomAvailability, Treatment


def get_store(config: Optional[LumiConfig] = None) -> RecordStore:
    """Factory function to get the configured record store."""

    config = config or load_config()
    if config.store == "airtable":
        from .airtable import AirtableRecordStore

        return AirtableRecordStore(config.airtable)
    return InMemoryRecordStore()


__all__ = [
    "CheckinEntry",
    "GuestProfile",
    "InMemoryRecordStore",
    "MenuItem",
    "RecordStore",
    "RoomAvailability",
    "Treatment",
    "get_store",
]
