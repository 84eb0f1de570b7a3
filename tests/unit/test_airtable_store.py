import json

import httpx
import pytest

from lumi.config import AirtableConfig
from lumi.errors import ConfigurationError, TransientError
from lumi.store import CheckinEntry
from lumi.store.airtable import AirtableRecordStore


def _store(handler, **config) -> AirtableRecordStore:
    config.setdefault("api_key", "key123")
    config.setdefault("ai_knowledge_base_id", "appKnowledge")
    config.setdefault("master_guest_base_id", "appGuests")
    config.setdefault("current_retreat_base_id", "appRetreat")
    client = httpx.AsyncClient(transport=httpx.MockTransport(handler))
    return AirtableRecordStore(AirtableConfig(**config), client=client)


@pytest.mark.asyncio
async def test_find_checkin_by_conversation_id_uses_formula():
    seen = []

    def handler(request: httpx.Request) -> httpx.Response:
        seen.append(request)
        return httpx.Response(
            200,
            json={
                "records": [
                    {
                        "id": "recA",
                        "fields": {
                            "conversation_id": 'conv_"1"',
                            "First name": "Ana",
                            "Last Name": "Lopez",
                            "analysis_status": "processing",
                        },
                    }
                ]
            },
        )

    entry = await _store(handler).find_checkin_by_conversation_id('conv_"1"')

    assert entry.id == "recA"
    assert (entry.first_name, entry.last_name) == ("Ana", "Lopez")
    assert entry.analysis_status == "processing"
    request = seen[0]
    assert request.url.path == "/v0/appKnowledge/CHECKIN_ENTRIES"
    assert request.url.params["filterByFormula"] == '{conversation_id} = "conv_\\"1\\""'
    assert request.url.params["maxRecords"] == "1"
    assert request.headers["authorization"] == "Bearer key123"


@pytest.mark.asyncio
async def test_create_checkin_maps_columns():
    bodies = []

    def handler(request: httpx.Request) -> httpx.Response:
        body = json.loads(request.content)
        bodies.append(body)
        return httpx.Response(200, json={"id": "recNew", "fields": body["fields"]})

    entry = await _store(handler).create_checkin_entry(
        CheckinEntry(conversation_id="conv_1", first_name="Ana", email="ana@example.com")
    )

    fields = bodies[0]["fields"]
    assert fields["First name"] == "Ana"
    assert "first_name" not in fields
    assert "last_name" not in fields and "Last Name" not in fields
    assert entry.id == "recNew"
    assert entry.first_name == "Ana"


@pytest.mark.asyncio
async def test_missing_record_and_update_of_missing_record():
    store = _store(lambda request: httpx.Response(404, json={"error": "NOT_FOUND"}))

    assert await store.get_checkin_entry("recGone") is None
    with pytest.raises(KeyError):
        await store.update_checkin_entry("recGone", analysis_status="failed")


@pytest.mark.asyncio
@pytest.mark.parametrize("status", [429, 500, 503])
async def test_rate_limits_and_server_errors_are_transient(status):
    store = _store(lambda request: httpx.Response(status))
    with pytest.raises(TransientError) as exc_info:
        await store.get_treatments()
    assert exc_info.value.status_code == status


@pytest.mark.asyncio
async def test_timeouts_are_transient():
    def handler(request):
        raise httpx.ReadTimeout("slow", request=request)

    with pytest.raises(TransientError):
        await _store(handler).get_menu("lunch")


@pytest.mark.asyncio
async def test_credentials_and_bases_are_required():
    with pytest.raises(ConfigurationError):
        await _store(lambda r: httpx.Response(401)).get_guest_by_email("ana@example.com")
    with pytest.raises(ConfigurationError):
        await _store(lambda r: httpx.Response(200, json={}), api_key=None).get_treatments()
    with pytest.raises(ConfigurationError):
        await _store(lambda r: httpx.Response(200, json={}), master_guest_base_id=None).get_guest_by_email(
            "ana@example.com"
        )


@pytest.mark.asyncio
async def test_check_availability_filters_in_formula():
    seen = []

    def handler(request: httpx.Request) -> httpx.Response:
        seen.append(request.url.params["filterByFormula"])
        return httpx.Response(
            200,
            json={
                "records": [
                    {
                        "id": "recRoom",
                        "fields": {
                            "room_name": "Kahu Suite",
                            "room_type": "suite",
                            "capacity": 2,
                            "available_from": "2025-01-01",
                            "available_to": "2025-12-31",
                            "price_per_night": 850,
                        },
                    }
                ]
            },
        )

    rooms = await _store(handler).check_availability("2025-04-01", "2025-04-04", "suite")

    assert [room.room_name for room in rooms] == ["Kahu Suite"]
    assert seen == [
        'AND({available_from} <= "2025-04-01", {available_to} >= "2025-04-04", {room_type} = "suite")'
    ]
