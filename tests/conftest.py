"""Shared fixtures: an in-process Lumi system wired to fakes."""

from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Optional

import pytest

from lumi.analysis import ConversationAnalysis
from lumi.bus import EventBus
from lumi.config import LumiConfig
from lumi.execute import WorkflowExecutor
from lumi.notifications import AuditLog, RecordingNotifier
from lumi.persistence import InMemoryRunRepository
from lumi.store import InMemoryRecordStore, MenuItem, RoomAvailability, Treatment
from lumi.transports import InMemoryTransport
from lumi.utils.retry import RetryPolicy
from lumi.workflows import WorkflowDeps, register_workflows

FIXED_NOW = datetime(2025, 3, 10, 9, 0, tzinfo=timezone.utc)


class FakeAnalyzer:
    """Returns a canned analysis and records every transcript it saw."""

    def __init__(self, analysis: Optional[ConversationAnalysis] = None, error: Optional[Exception] = None):
        self.analysis = analysis or ConversationAnalysis(
            summary="Guest is settling in well.", sentiment="positive"
        )
        self.error = error
        self.calls = []

    async def __call__(self, transcript: str, conversation_type: str = "checkin") -> ConversationAnalysis:
        self.calls.append((transcript, conversation_type))
        if self.error is not None:
            raise self.error
        return self.analysis


def sample_store() -> InMemoryRecordStore:
    return InMemoryRecordStore(
        rooms=[
            RoomAvailability(
                id="recRoomKahu",
                room_name="Kahu Suite",
                room_type="suite",
                capacity=2,
                available_from="2025-01-01",
                available_to="2025-12-31",
                price_per_night=850,
            ),
            RoomAvailability(
                id="recRoomAlpine",
                room_name="Alpine Studio",
                room_type="studio",
                capacity=1,
                available_from="2025-03-01",
                available_to="2025-06-30",
                price_per_night=600,
            ),
        ],
        treatments=[
            Treatment(
                id="recDeepTissue",
                name="Deep Tissue Massage",
                description="Releases chronic tension.",
                duration_minutes=90,
                price=180,
                category="massage",
            ),
            Treatment(
                id="recHotStone",
                name="Hot Stone Therapy",
                duration_minutes=75,
                price=200,
                category="massage",
                available=False,
            ),
            Treatment(
                id="recFacial",
                name="Restorative Facial",
                duration_minutes=60,
                price=150,
                category="facial",
            ),
        ],
        menu=[
            MenuItem(id="m1", name="Coconut Chia Pudding", meal_type="breakfast", dietary_tags=["vegan", "gluten-free"]),
            MenuItem(id="m2", name="Kumara Salad", meal_type="lunch", dietary_tags=["vegetarian", "gluten-free"]),
            MenuItem(id="m3", name="Miso Glazed Eggplant", meal_type="dinner", dietary_tags=["vegan"]),
            MenuItem(id="m4", name="Wild Salmon", meal_type="dinner", dietary_tags=["pescatarian", "gluten-free"]),
            MenuItem(id="m5", name="Slow Roast Lamb", meal_type="dinner", dietary_tags=[], available=False),
        ],
    )


@dataclass
class LumiSystem:
    transport: InMemoryTransport
    bus: EventBus
    repository: InMemoryRunRepository
    executor: WorkflowExecutor
    deps: WorkflowDeps
    store: InMemoryRecordStore
    notifier: RecordingNotifier
    analyzer: FakeAnalyzer


def build_system(
    analyzer: Optional[FakeAnalyzer] = None,
    notifier: Optional[RecordingNotifier] = None,
    store: Optional[InMemoryRecordStore] = None,
    config: Optional[LumiConfig] = None,
) -> LumiSystem:
    transport = InMemoryTransport()
    bus = EventBus(transport)
    repository = InMemoryRunRepository()
    store = store or sample_store()
    notifier = notifier or RecordingNotifier()
    analyzer = analyzer or FakeAnalyzer()
    deps = WorkflowDeps(
        store=store,
        notifier=notifier,
        analyzer=analyzer,
        config=config or LumiConfig(environment="test"),
        audit=AuditLog(),
        clock=lambda: FIXED_NOW,
    )
    register_workflows(bus, deps)
    executor = WorkflowExecutor(bus, repository, retry_policy=RetryPolicy(initial=0.0))
    return LumiSystem(transport, bus, repository, executor, deps, store, notifier, analyzer)


@pytest.fixture
def fixed_now() -> datetime:
    return FIXED_NOW


@pytest.fixture
def store() -> InMemoryRecordStore:
    return sample_store()


@pytest.fixture
def system() -> LumiSystem:
    return build_system()


@pytest.fixture(autouse=True)
def _isolated_config(monkeypatch, tmp_path):
    """Keep a developer's config file and credentials out of the tests."""
    monkeypatch.setenv("LUMI_CONFIG", str(tmp_path / "missing-config.yaml"))
    for name in (
        "LUMI_ENV",
        "LUMI_TRANSPORT",
        "LUMI_DATABASE_URL",
        "DATABASE_URL",
        "ELEVENLABS_WEBHOOK_SECRET",
        "RESEND_API_KEY",
        "AIRTABLE_API_KEY",
    ):
        monkeypatch.delenv(name, raising=False)


@pytest.fixture
def make_system():
    return build_system


@pytest.fixture
def fake_analyzer():
    return FakeAnalyzer
