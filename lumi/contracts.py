"""Core event contracts: the envelope and the payload schema per event name."""

from __future__ import annotations

import logging
import uuid
from datetime import datetime, timezone
from types import MappingProxyType
from typing import Any, Dict, List, Literal, Mapping, Optional, Type

from pydantic import (
    BaseModel,
    ConfigDict,
    EmailStr,
    Field,
    ValidationError,
    field_serializer,
    field_validator,
    model_validator,
)

from .errors import UnknownEventError, ValidationFailed, validation_issues

logger = logging.getLogger(__name__)

ConversationStatus = Literal["done", "error", "timeout"]
ConversationType = Literal["checkin", "inquiry", "support"]
Severity = Literal["low", "medium", "high", "urgent"]
SourceBase = Literal["ai_knowledge", "current_retreat", "master_guest"]


class EventPayload(BaseModel):
    """Base class for event payloads; unknown fields are rejected."""

    model_config = ConfigDict(extra="forbid")


class TranscriptTurn(BaseModel):
    role: str
    message: str
    timestamp: Optional[float] = None


SPEAKER_LABELS = {"user": "Guest", "agent": "Lumi"}


def render_transcript(turns: List[TranscriptTurn]) -> str:
    """Join turns as ``Speaker: message`` lines in conversation order."""
    return "\n".join(
        f"{SPEAKER_LABELS.get(turn.role, turn.role)}: {turn.message}" for turn in turns
    )


class ProviderAnalysis(BaseModel):
    """Analysis block the voice provider attaches to its webhook."""

    transcript_summary: Optional[str] = None
    call_successful: Optional[str] = None
    data_collected: Optional[Dict[str, Any]] = None


class ConversationEnded(EventPayload):
    conversation_id: str
    agent_id: str
    status: ConversationStatus
    transcript: str = ""
    transcript_object: Optional[List[TranscriptTurn]] = None
    metadata: Optional[Dict[str, Any]] = None
    analysis: Optional[ProviderAnalysis] = None

    def transcript_text(self) -> str:
        """Transcript, rendered from ``transcript_object`` when absent."""
        if self.transcript:
            return self.transcript
        return render_transcript(self.transcript_object or [])


class AnalyzeRequested(EventPayload):
    record_id: str
    transcript: str
    guest_email: Optional[str] = None
    conversation_type: ConversationType = "checkin"


class DailyCheckinCompleted(EventPayload):
    record_id: str
    guest_email: Optional[str] = None
    guest_name: str = ""
    transcript: str = ""
    insights: Optional[Dict[str, Any]] = None


class RequestedDates(BaseModel):
    arrival: Optional[str] = None
    departure: Optional[str] = None


class BookingInquiryReceived(EventPayload):
    conversation_id: str
    guest_email: EmailStr
    guest_name: str
    requested_dates: Optional[RequestedDates] = None
    room_preferences: Optional[List[str]] = None
    notes: Optional[str] = None


class TreatmentRequested(EventPayload):
    guest_email: EmailStr
    guest_name: str = "Guest"
    treatment_id: str
    treatment_name: str
    preferred_date: Optional[str] = None
    preferred_time: Optional[str] = None
    notes: Optional[str] = None


class GuestUpdated(EventPayload):
    guest_email: EmailStr
    updates: Dict[str, Any] = Field(default_factory=dict)
    source_base: SourceBase


class ExtractedProfileData(BaseModel):
    dietary_preferences: Optional[List[str]] = None
    wellness_goals: Optional[List[str]] = None
    sleep_patterns: Optional[str] = None
    stress_indicators: Optional[str] = None
    preferences_mentioned: Optional[List[str]] = None


class ProfileEnriched(EventPayload):
    guest_email: EmailStr
    extracted_data: ExtractedProfileData


class StaffAlert(EventPayload):
    record_id: str
    reason: str
    severity: Severity
    guest_email: Optional[str] = None
    assigned_to: Optional[str] = None


class SendEmail(EventPayload):
    to: str
    subject: str
    body: str
    template: Optional[str] = None
    metadata: Optional[Dict[str, Any]] = None


CONVERSATION_ENDED = "conversation.ended"
ANALYZE_REQUESTED = "conversation.analyze.requested"
DAILY_CHECKIN_COMPLETED = "checkin.daily.completed"
BOOKING_INQUIRY_RECEIVED = "booking.inquiry.received"
TREATMENT_REQUESTED = "booking.treatment.requested"
GUEST_UPDATED = "guest.updated"
PROFILE_ENRICHED = "profile.enriched"
STAFF_ALERT = "staff.alert"
SEND_EMAIL = "send.email"

EVENT_SCHEMAS: Dict[str, Type[EventPayload]] = {
    CONVERSATION_ENDED: ConversationEnded,
    ANALYZE_REQUESTED: AnalyzeRequested,
    DAILY_CHECKIN_COMPLETED: DailyCheckinCompleted,
    BOOKING_INQUIRY_RECEIVED: BookingInquiryReceived,
    TREATMENT_REQUESTED: TreatmentRequested,
    GUEST_UPDATED: GuestUpdated,
    PROFILE_ENRICHED: ProfileEnriched,
    STAFF_ALERT: StaffAlert,
    SEND_EMAIL: SendEmail,
}


def _freeze(value: Any) -> Any:
    if isinstance(value, Mapping):
        return MappingProxyType({key: _freeze(item) for key, item in value.items()})
    return value


def _thaw(value: Any) -> Any:
    if isinstance(value, Mapping):
        return {key: _thaw(item) for key, item in value.items()}
    if isinstance(value, (list, tuple)):
        return [_thaw(item) for item in value]
    return value


def schema_for(name: str) -> Type[EventPayload]:
    """Return the payload schema registered for ``name``."""
    try:
        return EVENT_SCHEMAS[name]
    except KeyError:
        raise UnknownEventError(f"Unknown event name: {name}") from None


class EventEnvelope(BaseModel):
    """Immutable named event placed on the bus.

    ``data`` is validated against the schema registered for ``name`` and
    stored in its JSON form so the envelope survives any transport. Its
    mappings are read-only views; ``payload`` hands out a fresh model.
    """

    model_config = ConfigDict(frozen=True)

    id: str = Field(default_factory=lambda: str(uuid.uuid4()))
    name: str
    data: Mapping[str, Any] = Field(default_factory=dict)
    emitted_at: datetime = Field(default_factory=lambda: datetime.now(timezone.utc))

    @model_validator(mode="before")
    @classmethod
    def _validate_payload(cls, values: Any) -> Any:
        if not isinstance(values, dict):
            return values
        schema = schema_for(values.get("name", ""))
        data = values.get("data") or {}
        if isinstance(data, BaseModel):
            data = data.model_dump(mode="json")
        payload = schema.model_validate(_thaw(data))
        return {**values, "data": payload.model_dump(mode="json", exclude_none=True)}

    @field_validator("data", mode="after")
    @classmethod
    def _read_only(cls, data: Mapping[str, Any]) -> Mapping[str, Any]:
        return _freeze(data)

    @field_serializer("data")
    def _serialize_data(self, data: Mapping[str, Any]) -> Dict[str, Any]:
        return _thaw(data)

    @classmethod
    def create(cls, name: str, data: BaseModel | Dict[str, Any]) -> "EventEnvelope":
        """Build an envelope, raising ``ValidationFailed`` for bad payloads."""
        schema = schema_for(name)
        try:
            payload = data if isinstance(data, schema) else schema.model_validate(data)
        except ValidationError as exc:
            raise ValidationFailed(
                f"Invalid payload for event {name}",
                issues=validation_issues(exc),
            ) from exc
        return cls(name=name, data=payload)

    @property
    def payload(self) -> EventPayload:
        """Typed view of ``data``."""
        return schema_for(self.name).model_validate(_thaw(self.data))

    def to_json(self) -> str:
        """Serialize envelope to JSON."""
        return self.model_dump_json()

    @classmethod
    def from_json(cls, data: str | bytes) -> "EventEnvelope":
        """Deserialize envelope from JSON."""
        return cls.model_validate_json(data)
