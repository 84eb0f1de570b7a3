"""Writers of one guest profile never overlap, across different workflows."""

import asyncio

import pytest

from lumi.bus import EventBus
from lumi.contracts import GUEST_UPDATED, PROFILE_ENRICHED, EventEnvelope
from lumi.execute import WorkflowExecutor
from lumi.persistence import InMemoryRunRepository, RunStatus
from lumi.transports import InMemoryTransport
from lumi.utils.retry import RetryPolicy
from lumi.workflow import workflow
from lumi.workflows import guest_key


class Tracker:
    def __init__(self) -> None:
        self.active = 0
        self.peak = 0

    async def hold(self) -> None:
        self.active += 1
        self.peak = max(self.peak, self.active)
        await asyncio.sleep(0.05)
        self.active -= 1


def _executor(tracker: Tracker):
    @workflow("test-guest-updated", GUEST_UPDATED, concurrency_key=guest_key)
    async def on_update(ctx):
        await ctx.step.run("write", tracker.hold)

    @workflow("test-profile-enriched", PROFILE_ENRICHED, concurrency_key=guest_key)
    async def on_enrich(ctx):
        await ctx.step.run("write", tracker.hold)

    bus = EventBus(InMemoryTransport())
    bus.register_all([on_update, on_enrich])
    executor = WorkflowExecutor(bus, InMemoryRunRepository(), retry_policy=RetryPolicy(initial=0.0))
    return executor, on_update, on_enrich


def _envelopes(first_email: str, second_email: str):
    update = EventEnvelope.create(
        GUEST_UPDATED, {"guest_email": first_email, "updates": {}, "source_base": "master_guest"}
    )
    enrich = EventEnvelope.create(
        PROFILE_ENRICHED, {"guest_email": second_email, "extracted_data": {}}
    )
    return update, enrich


@pytest.mark.asyncio
async def test_same_guest_runs_one_at_a_time():
    tracker = Tracker()
    executor, on_update, on_enrich = _executor(tracker)
    update, enrich = _envelopes("ana@example.com", "ANA@example.com")

    runs = await asyncio.gather(
        executor.execute(update, on_update),
        executor.execute(enrich, on_enrich),
    )

    assert [run.status for run in runs] == [RunStatus.SUCCEEDED, RunStatus.SUCCEEDED]
    assert runs[0].concurrency_key == runs[1].concurrency_key == "guest:ana@example.com"
    assert tracker.peak == 1


@pytest.mark.asyncio
async def test_different_guests_run_in_parallel():
    tracker = Tracker()
    executor, on_update, on_enrich = _executor(tracker)
    update, enrich = _envelopes("ana@example.com", "ben@example.com")

    await asyncio.gather(
        executor.execute(update, on_update),
        executor.execute(enrich, on_enrich),
    )

    assert tracker.peak == 2
