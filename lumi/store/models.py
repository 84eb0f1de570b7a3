"""Records held by the external record store."""

from __future__ import annotations

from typing import List, Literal, Optional

from pydantic import BaseModel, Field

from ..persistence.models import utcnow

AnalysisStatus = Literal["pending", "processing", "completed", "failed"]


class CheckinEntry(BaseModel):
    """One record per conversation, keyed by ``conversation_id``."""

    id: Optional[str] = None
    conversation_id: str
    transcript: Optional[str] = None
    first_name: Optional[str] = None
    last_name: Optional[str] = None
    email: Optional[str] = None
    insights: Optional[str] = None
    sentiment: Optional[str] = None
    action_items: Optional[str] = None
    created_at: str = Field(default_factory=lambda: utcnow().isoformat())
    analysis_status: AnalysisStatus = "pending"


class GuestProfile(BaseModel):
    """Canonical guest record keyed by email (case-insensitive)."""

    id: Optional[str] = None
    email: str
    first_name: str = ""
    last_name: str = ""
    phone: Optional[str] = None
    dietary_restrictions: List[str] = Field(default_factory=list)
    allergies: List[str] = Field(default_factory=list)
    room_preferences: List[str] = Field(default_factory=list)
    wellness_goals: List[str] = Field(default_factory=list)
    past_visits: int = 0
    total_checkins: int = 0
    last_checkin_date: Optional[str] = None
    notes: str = ""

    @property
    def full_name(self) -> str:
        return f"{self.first_name} {self.last_name}".strip()


class RoomAvailability(BaseModel):
    id: str
    room_name: str
    room_type: str
    capacity: int = 1
    available_from: str
    available_to: str
    price_per_night: float


class Treatment(BaseModel):
    id: str
    name: str
    description: str = ""
    duration_minutes: int = 60
    price: float = 0.0
    category: str = ""
    available: bool = True


class MenuItem(BaseModel):
    id: str
    name: str
    description: str = ""
    meal_type: str
    dietary_tags: List[str] = Field(default_factory=list)
    available: bool = True
