"""End to end: voice webhook -> check-in entry -> analysis -> follow-ups."""

import json

import httpx
import pytest

from lumi.analysis import ConversationAnalysis
from lumi.config import LumiConfig
from lumi.contracts import ANALYZE_REQUESTED
from lumi.persistence import RunStatus
from lumi.server import create_app

TRANSCRIPT = "Guest: I slept poorly.\nLumi: I'm sorry to hear that."


def _client(system) -> httpx.AsyncClient:
    app = create_app(LumiConfig(environment="test"), store=system.store, bus=system.bus)
    return httpx.AsyncClient(transport=httpx.ASGITransport(app=app), base_url="http://lumi.test")


def _webhook(conversation_id: str = "conv_42", status: str = "done") -> dict:
    return {
        "type": "conversation.ended",
        "conversation_id": conversation_id,
        "agent_id": "agent_lumi",
        "status": status,
        "transcript": TRANSCRIPT,
    }


@pytest.mark.asyncio
async def test_new_conversation_creates_pending_entry_and_requests_analysis(system):
    async with _client(system) as client:
        response = await client.post(
            "/api/webhooks/elevenlabs", content=json.dumps(_webhook()).encode()
        )
    assert response.status_code == 200

    conversation = system.bus.get_workflow("conversation-ended")
    run = await system.executor.process_next(conversation)

    assert run.status is RunStatus.SUCCEEDED
    assert run.output["status"] == "created"
    entry = await system.store.find_checkin_by_conversation_id("conv_42")
    assert entry.analysis_status == "pending"
    assert entry.transcript == TRANSCRIPT
    (request,) = system.transport.envelopes("conversation-analyze")
    assert request.name == ANALYZE_REQUESTED
    assert request.data["record_id"] == entry.id
    assert request.data["transcript"] == TRANSCRIPT


@pytest.mark.asyncio
async def test_registered_conversation_runs_to_completed_checkin(system):
    async with _client(system) as client:
        created = await client.post(
            "/api/conversations",
            json={"conversationId": "conv_42", "firstName": "Ana", "lastName": "Lopez", "email": "ana@example.com"},
        )
        assert created.json()["created"] is True
        await client.post("/api/webhooks/elevenlabs", content=json.dumps(_webhook()).encode())

    runs = await system.executor.drain()

    assert {run.handler_id for run in runs} == {
        "conversation-ended",
        "conversation-analyze",
        "checkin-daily-completed",
    }
    assert all(run.status is RunStatus.SUCCEEDED for run in runs)
    assert system.analyzer.calls == [(TRANSCRIPT, "checkin")]

    entry = await system.store.find_checkin_by_conversation_id("conv_42")
    assert entry.analysis_status == "completed"
    assert entry.sentiment == "positive"

    (guest,) = system.store.guests
    assert (guest.email, guest.first_name, guest.last_name) == ("ana@example.com", "Ana", "Lopez")
    assert guest.total_checkins == 1
    assert "Check-in: Guest is settling in well" in guest.notes


@pytest.mark.asyncio
async def test_negative_conversation_escalates_to_staff(make_system, fake_analyzer):
    analysis = ConversationAnalysis(
        summary="Guest slept poorly and feels unwell.",
        sentiment="negative",
        requires_attention=True,
        attention_reason="Guest reports feeling unwell",
    )
    system = make_system(analyzer=fake_analyzer(analysis))
    async with _client(system) as client:
        await client.post(
            "/api/conversations",
            json={"conversationId": "conv_42", "firstName": "Ana", "lastName": "Lopez", "email": "ana@example.com"},
        )
        await client.post("/api/webhooks/elevenlabs", content=json.dumps(_webhook()).encode())

    runs = {run.handler_id: run for run in await system.executor.drain()}

    assert "checkin-daily-completed" not in runs
    alert = runs["notification-staff-alert"].output
    assert alert["severity"] == "high"
    assert alert["recipients"] == ["alerts@aro-ha.com", "wellness@aro-ha.com"]
    assert sorted(system.notifier.recipients) == ["alerts@aro-ha.com", "wellness@aro-ha.com"]
    assert "Guest reports feeling unwell" in system.notifier.sent[0].body
    (audit,) = system.deps.audit.entries
    assert audit["type"] == "staff_alert"
    assert system.store.guests == []


@pytest.mark.asyncio
async def test_redelivered_webhook_does_not_duplicate_entries(system):
    async with _client(system) as client:
        for _ in range(2):
            await client.post("/api/webhooks/elevenlabs", content=json.dumps(_webhook()).encode())

    await system.executor.drain()

    assert len(system.store.checkins) == 1
    assert (await system.store.find_checkin_by_conversation_id("conv_42")).analysis_status == "completed"
