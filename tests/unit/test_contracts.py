import pytest
from pydantic import ValidationError

from lumi.contracts import (
    CONVERSATION_ENDED,
    GUEST_UPDATED,
    ConversationEnded,
    EventEnvelope,
    TranscriptTurn,
    render_transcript,
)
from lumi.errors import UnknownEventError, ValidationFailed


def test_unknown_event_name_is_rejected():
    with pytest.raises(UnknownEventError):
        EventEnvelope.create("guest.teleported", {})


def test_invalid_payload_reports_field_issues():
    with pytest.raises(ValidationFailed) as exc_info:
        EventEnvelope.create(GUEST_UPDATED, {"guest_email": "not-an-email", "source_base": "crm"})

    paths = {tuple(issue["path"]) for issue in exc_info.value.issues}
    assert ("guest_email",) in paths
    assert ("source_base",) in paths


def test_unexpected_fields_are_rejected():
    with pytest.raises(ValidationFailed):
        EventEnvelope.create(
            CONVERSATION_ENDED,
            {"conversation_id": "c1", "agent_id": "a1", "status": "done", "mood": "sunny"},
        )


def test_envelope_survives_json_transport():
    envelope = EventEnvelope.create(
        CONVERSATION_ENDED, {"conversation_id": "c1", "agent_id": "a1", "status": "done"}
    )
    restored = EventEnvelope.from_json(envelope.to_json())

    assert restored == envelope
    assert isinstance(restored.payload, ConversationEnded)
    assert restored.payload.transcript == ""


def test_envelope_is_immutable():
    envelope = EventEnvelope.create(
        CONVERSATION_ENDED, {"conversation_id": "c1", "agent_id": "a1", "status": "done"}
    )
    with pytest.raises(ValidationError):
        envelope.name = "send.email"


def test_envelope_data_is_read_only():
    envelope = EventEnvelope.create(
        GUEST_UPDATED,
        {"guest_email": "ana@example.com", "updates": {"notes": "Vegan"}, "source_base": "master_guest"},
    )

    with pytest.raises(TypeError):
        envelope.data["guest_email"] = "ben@example.com"
    with pytest.raises(TypeError):
        envelope.data["updates"]["notes"] = "Changed"

    payload = envelope.payload
    payload.updates["notes"] = "Changed"
    assert envelope.data["updates"]["notes"] == "Vegan"
    assert EventEnvelope.from_json(envelope.to_json()).data == envelope.data
    assert envelope.model_dump(mode="json")["data"]["updates"] == {"notes": "Vegan"}


def test_render_transcript_labels_speakers():
    turns = [
        TranscriptTurn(role="agent", message="Kia ora! How did you sleep?"),
        TranscriptTurn(role="user", message="Not very well."),
    ]
    assert render_transcript(turns) == "Lumi: Kia ora! How did you sleep?\nGuest: Not very well."


def test_transcript_text_prefers_flat_transcript():
    ended = ConversationEnded(
        conversation_id="c1",
        agent_id="a1",
        status="done",
        transcript="Guest: hello",
        transcript_object=[TranscriptTurn(role="user", message="ignored")],
    )
    assert ended.transcript_text() == "Guest: hello"

    ended = ended.model_copy(update={"transcript": ""})
    assert ended.transcript_text() == "Guest: ignored"
