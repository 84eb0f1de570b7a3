"""Trust-weighted reconciliation of guest profile updates."""

from __future__ import annotations

import logging
from datetime import datetime
from enum import Enum
from typing import Any, Callable, Dict, FrozenSet, List, Mapping, Optional, Tuple

from pydantic import BaseModel, ConfigDict

from ..persistence.models import utcnow
from ..store.base import RecordStore
from ..store.models import GuestProfile

logger = logging.getLogger(__name__)


class TrustLevel(str, Enum):
    CHECKIN_DERIVED = "checkin_derived"
    RETREAT_CONTEXT = "retreat_context"
    AUTHORITATIVE = "authoritative"


# source_base of a guest.updated event -> trust level of its updates
SOURCE_TRUST: Dict[str, TrustLevel] = {
    "ai_knowledge": TrustLevel.CHECKIN_DERIVED,
    "current_retreat": TrustLevel.RETREAT_CONTEXT,
    "master_guest": TrustLevel.AUTHORITATIVE,
}

SET_FIELDS: FrozenSet[str] = frozenset(
    {"dietary_restrictions", "allergies", "room_preferences", "wellness_goals"}
)

PERMITTED_FIELDS: Dict[TrustLevel, FrozenSet[str]] = {
    TrustLevel.CHECKIN_DERIVED: frozenset({"wellness_goals", "notes", "last_checkin_date"}),
    TrustLevel.RETREAT_CONTEXT: frozenset(
        {"dietary_restrictions", "allergies", "room_preferences", "past_visits"}
    ),
    TrustLevel.AUTHORITATIVE: frozenset(
        {
            "first_name",
            "last_name",
            "phone",
            "dietary_restrictions",
            "allergies",
            "room_preferences",
            "wellness_goals",
            "past_visits",
            "total_checkins",
            "last_checkin_date",
            "notes",
        }
    ),
}


class GuestUpdate(BaseModel):
    """Partial profile update; unknown keys are ignored."""

    model_config = ConfigDict(extra="ignore")

    first_name: Optional[str] = None
    last_name: Optional[str] = None
    phone: Optional[str] = None
    dietary_restrictions: Optional[List[str]] = None
    allergies: Optional[List[str]] = None
    room_preferences: Optional[List[str]] = None
    wellness_goals: Optional[List[str]] = None
    past_visits: Optional[int] = None
    total_checkins: Optional[int] = None
    last_checkin_date: Optional[str] = None
    notes: Optional[str] = None


class MergeResult(BaseModel):
    email: str
    found: bool = True
    created: bool = False
    fields_changed: List[str] = []


def split_name(full_name: Optional[str]) -> Tuple[str, str]:
    """Split ``"First Middle Last"`` into ``("First", "Middle Last")``."""
    parts = (full_name or "").split()
    if not parts:
        return "", ""
    return parts[0], " ".join(parts[1:])


def union(existing: List[str], incoming: List[str]) -> List[str]:
    """Set union that keeps existing members first."""
    merged = list(dict.fromkeys(existing))
    for item in incoming:
        if item not in merged:
            merged.append(item)
    return merged


def append_note(notes: str, text: str, day: str) -> str:
    line = f"[{day}] {text.strip()}"
    if line in notes.splitlines():
        return notes
    return f"{notes}\n{line}".strip() if notes else line


def permitted(update: GuestUpdate, trust: TrustLevel) -> Dict[str, Any]:
    """Fields of ``update`` that ``trust`` may merge; the rest are dropped."""
    allowed = PERMITTED_FIELDS[trust]
    values = update.model_dump(exclude_none=True)
    dropped = sorted(set(values) - allowed)
    if dropped:
        logger.debug(f"Dropping fields {dropped} not permitted at {trust.value} level")
    return {k: v for k, v in values.items() if k in allowed}


def plan_merge(
    current: GuestProfile,
    update: GuestUpdate | Mapping[str, Any],
    trust: TrustLevel,
    now: Optional[datetime] = None,
) -> Dict[str, Any]:
    """Compute the field writes that merging ``update`` into ``current`` needs.

    Set-valued fields are unioned (replaced at authoritative level), notes
    get a dated line appended, and scalars are overwritten. Fields whose
    value would not change are omitted.
    """
    if not isinstance(update, GuestUpdate):
        update = GuestUpdate.model_validate(update)
    day = (now or utcnow()).date().isoformat()

    changes: Dict[str, Any] = {}
    for name, value in permitted(update, trust).items():
        existing = getattr(current, name)
        if name in SET_FIELDS:
            new = list(dict.fromkeys(value)) if trust is TrustLevel.AUTHORITATIVE else union(existing, value)
            if set(new) == set(existing):
                continue
        elif name == "notes":
            if not value.strip():
                continue
            new = append_note(existing, value, day)
        else:
            new = value
        if new != existing:
            changes[name] = new
    return changes


class GuestMergeEngine:
    """Sole writer of guest profiles.

    Callers must hold the guest's concurrency key: merges are
    read-modify-write against the store with no further locking.
    """

    def __init__(self, store: RecordStore, clock: Callable[[], datetime] = utcnow) -> None:
        self._store = store
        self._clock = clock

    async def get_guest(self, email: str) -> Optional[GuestProfile]:
        return await self._store.get_guest_by_email(email.strip().lower())

    async def ensure_guest(self, email: str, full_name: Optional[str] = None) -> Tuple[GuestProfile, bool]:
        """Return the guest for ``email``, provisioning a minimal profile if absent."""
        guest = await self.get_guest(email)
        if guest is not None:
            return guest, False
        first_name, last_name = split_name(full_name)
        guest = await self._store.create_guest(
            GuestProfile(email=email.strip().lower(), first_name=first_name, last_name=last_name)
        )
        logger.info(f"Provisioned guest profile for {guest.email}")
        return guest, True

    async def merge_update(
        self,
        email: str,
        update: GuestUpdate | Mapping[str, Any],
        trust: TrustLevel,
        create_if_missing: bool = False,
        full_name: Optional[str] = None,
    ) -> MergeResult:
        """Merge ``update`` into the guest's profile at ``trust`` level."""
        created = False
        if create_if_missing:
            guest, created = await self.ensure_guest(email, full_name)
        else:
            guest = await self.get_guest(email)
            if guest is None:
                logger.info(f"Guest {email} not found; update skipped")
                return MergeResult(email=email, found=False)

        changes = plan_merge(guest, update, trust, self._clock())
        if changes:
            await self._store.update_guest(guest.id, **changes)
            logger.info(f"Merged {sorted(changes)} into guest {guest.email} ({trust.value})")
        return MergeResult(
            email=guest.email, created=created, fields_changed=sorted(changes)
        )

    async def record_checkin(
        self,
        email: str,
        at: Optional[datetime] = None,
        full_name: Optional[str] = None,
    ) -> MergeResult:
        """Count one completed check-in and stamp its date."""
        guest, created = await self.ensure_guest(email, full_name)
        when = (at or self._clock()).isoformat()
        changes = {"total_checkins": guest.total_checkins + 1, "last_checkin_date": when}
        await self._store.update_guest(guest.id, **changes)
        return MergeResult(email=guest.email, created=created, fields_changed=sorted(changes))
