"""Workflow execution engine for lumi."""

from __future__ import annotations

import asyncio
import logging
from typing import Any, Optional, Set

from pydantic import ValidationError

from .bus import EventBus
from .concurrency import ConcurrencyLimiter
from .constants import DEFAULT_STEP_TIMEOUT_SECONDS
from .contracts import EventEnvelope
from .persistence import InMemoryRunRepository, RunStatus, WorkflowRepository, WorkflowRun
from .utils.retry import RetryPolicy
from .workflow import StepContext, Workflow, WorkflowContext, to_jsonable

logger = logging.getLogger(__name__)


def run_id_for(workflow: Workflow, envelope: EventEnvelope) -> str:
    """Deterministic run id so a redelivered envelope resumes its run."""
    return f"{workflow.id}:{envelope.id}"


class WorkflowExecutor:
    """Executes workflow runs for deliveries taken from the bus transport."""

    def __init__(
        self,
        bus: EventBus,
        repository: WorkflowRepository | None = None,
        limiter: ConcurrencyLimiter | None = None,
        retry_policy: RetryPolicy | None = None,
        step_timeout: float = DEFAULT_STEP_TIMEOUT_SECONDS,
        max_concurrent_runs: int = 32,
    ) -> None:
        self._bus = bus
        self._transport = bus.transport
        self._repository = repository or InMemoryRunRepository()
        self._limiter = limiter or ConcurrencyLimiter()
        self._retry = retry_policy or RetryPolicy()
        self._step_timeout = step_timeout
        self._slots = asyncio.Semaphore(max_concurrent_runs)

    @property
    def repository(self) -> WorkflowRepository:
        return self._repository

    @property
    def limiter(self) -> ConcurrencyLimiter:
        return self._limiter

    # ------------------------------------------------------------------
    # Delivery handling
    async def handle(self, raw_message: Any, envelope: EventEnvelope, workflow: Workflow) -> WorkflowRun:
        """Run ``workflow`` for one delivery and acknowledge it.

        Internal failures (e.g. the repository being unreachable) requeue the
        delivery and propagate.
        """
        try:
            run = await self.execute(envelope, workflow)
        except Exception:
            await self._transport.nack(raw_message, requeue=True)
            raise
        await self._transport.ack(raw_message)
        return run

    async def execute(self, envelope: EventEnvelope, workflow: Workflow) -> WorkflowRun:
        """Create or resume the run of ``workflow`` for ``envelope``.

        Duplicate deliveries of one envelope queue on the run's own key and
        see the state the first delivery left behind.
        """
        run_id = run_id_for(workflow, envelope)
        async with self._limiter.hold(f"run:{run_id}"):
            run = await self._load_run(envelope, workflow)
            if run.status.is_terminal:
                logger.info(f"Run {run_id} already {run.status.value}; skipping redelivery")
                return run

            async with self._limiter.hold(run.concurrency_key):
                return await self._attempt_loop(run, envelope, workflow)

    async def _load_run(self, envelope: EventEnvelope, workflow: Workflow) -> WorkflowRun:
        run_id = run_id_for(workflow, envelope)
        existing = await self._repository.get_run(run_id)
        if existing is not None:
            return existing

        try:
            key = workflow.key_for(envelope.payload)
        except ValidationError as exc:
            logger.error(f"Malformed {envelope.name} payload for {workflow.id}: {exc}")
            run = WorkflowRun(
                run_id=run_id,
                handler_id=workflow.id,
                event_name=envelope.name,
                envelope=envelope.model_dump(mode="json"),
                max_attempts=workflow.max_attempts,
                status=RunStatus.FAILED,
                error=f"Malformed payload: {exc}",
            )
            return await self._repository.create_run(run)

        run = WorkflowRun(
            run_id=run_id,
            handler_id=workflow.id,
            event_name=envelope.name,
            envelope=envelope.model_dump(mode="json"),
            concurrency_key=key,
            max_attempts=workflow.max_attempts,
        )
        return await self._repository.create_run(run)

    async def _attempt_loop(
        self, run: WorkflowRun, envelope: EventEnvelope, workflow: Workflow
    ) -> WorkflowRun:
        run_id = run.run_id
        attempt = run.attempt_count

        if attempt >= workflow.max_attempts:
            # Interrupted during its final attempt; the budget is spent.
            error = RuntimeError(f"Attempt budget of {workflow.max_attempts} exhausted")
            await self._fail(run, envelope, workflow, error, attempt)
            return await self._reload(run_id)

        while True:
            attempt += 1
            await self._repository.record_attempt(run_id, attempt)
            current = await self._reload(run_id)
            ctx = self._context(current, envelope, attempt)
            logger.info(f"Running {workflow.id} attempt {attempt}/{workflow.max_attempts} (run {run_id})")

            try:
                output = await workflow(ctx)
            except Exception as exc:
                if self._retry.should_retry(exc, attempt, workflow.max_attempts):
                    delay = self._retry.backoff(attempt)
                    logger.warning(
                        f"Run {run_id} attempt {attempt} failed: {exc!r}; retrying in {delay:.1f}s"
                    )
                    await self._repository.set_status(run_id, RunStatus.RETRYING, error=str(exc))
                    await self._retry.wait(attempt)
                    continue
                await self._fail(current, envelope, workflow, exc, attempt, ctx)
                return await self._reload(run_id)

            await self._repository.set_status(
                run_id, RunStatus.SUCCEEDED, output=to_jsonable(output)
            )
            logger.info(f"Run {run_id} succeeded after {attempt} attempt(s)")
            return await self._reload(run_id)

    async def _fail(
        self,
        run: WorkflowRun,
        envelope: EventEnvelope,
        workflow: Workflow,
        error: BaseException,
        attempt: int,
        ctx: Optional[WorkflowContext] = None,
    ) -> None:
        logger.error(f"Run {run.run_id} failed fatally after {attempt} attempt(s): {error!r}")
        await self._repository.set_status(
            run.run_id, RunStatus.FAILED, error=f"{type(error).__name__}: {error}"
        )
        if workflow.on_failure is None:
            return
        ctx = ctx or self._context(run, envelope, attempt)
        try:
            await workflow.on_failure(ctx, error)
        except Exception:
            logger.exception(f"Failure handler of {workflow.id} raised for run {run.run_id}")

    def _context(self, run: WorkflowRun, envelope: EventEnvelope, attempt: int) -> WorkflowContext:
        step = StepContext(run, self._repository, self._bus, attempt, timeout=self._step_timeout)
        return WorkflowContext(
            event=envelope,
            payload=envelope.payload,
            step=step,
            run=run,
            attempt=attempt,
        )

    async def _reload(self, run_id: str) -> WorkflowRun:
        run = await self._repository.get_run(run_id)
        if run is None:
            raise RuntimeError(f"Run {run_id} disappeared from the repository")
        return run

    # ------------------------------------------------------------------
    # Consumption
    async def process_next(self, workflow: Workflow, timeout: float = 0.0) -> Optional[WorkflowRun]:
        """Handle the next pending delivery for ``workflow``, if any."""
        delivery = await self._transport.receive(workflow.id, timeout=timeout)
        if delivery is None:
            return None
        raw_message, envelope = delivery
        return await self.handle(raw_message, envelope, workflow)

    async def drain(self) -> list[WorkflowRun]:
        """Process deliveries until every handler topic is empty.

        Follow-up envelopes emitted by runs are processed too.
        """
        runs: list[WorkflowRun] = []
        progressed = True
        while progressed:
            progressed = False
            for wf in self._bus.workflows:
                while (run := await self.process_next(wf)) is not None:
                    runs.append(run)
                    progressed = True
        return runs

    async def start(self, lifespan: Optional[float] = None, recover: bool = True) -> None:
        """Consume every registered workflow topic until ``lifespan`` expires.

        With ``recover`` set, deliveries a previous worker took but never
        acknowledged are requeued before consumption begins.
        """
        workflows = self._bus.workflows
        if not workflows:
            raise ValueError("No workflows registered on the bus.")

        await self._transport.connect()
        tasks: Set[asyncio.Task] = set()
        try:
            if recover:
                for wf in workflows:
                    await self._transport.recover(wf.id)
            await asyncio.gather(
                *(self._consume(wf, lifespan, tasks) for wf in workflows)
            )
            if tasks:
                await asyncio.gather(*tasks, return_exceptions=True)
        finally:
            await self._transport.disconnect()

    async def _consume(self, workflow: Workflow, lifespan: Optional[float], tasks: Set[asyncio.Task]) -> None:
        logger.info(f"Listening for {workflow.event} on topic {workflow.id}")
        async for raw_message, envelope in self._transport.subscribe(workflow.id, lifespan=lifespan):
            await self._slots.acquire()
            task = asyncio.create_task(self._guarded(raw_message, envelope, workflow))
            tasks.add(task)
            task.add_done_callback(tasks.discard)

    async def _guarded(self, raw_message: Any, envelope: EventEnvelope, workflow: Workflow) -> None:
        try:
            await self.handle(raw_message, envelope, workflow)
        except Exception:
            logger.exception(f"Delivery of {envelope.id} to {workflow.id} requeued")
        finally:
            self._slots.release()
