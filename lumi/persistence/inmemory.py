"""In-memory implementation of the workflow repository."""

from __future__ import annotations

from typing import Any, Dict, Optional

from .models import RunStatus, StepRecord, WorkflowRun, utcnow
from .repository import WorkflowRepository


class InMemoryRunRepository(WorkflowRepository):
    """Store workflow runs in local memory.

    Useful for tests or when no database is configured. Data is not
    persisted across process restarts.
    """

    def __init__(self) -> None:
        self._runs: Dict[str, WorkflowRun] = {}

    # ------------------------------------------------------------------
    async def create_run(self, run: WorkflowRun) -> WorkflowRun:
        existing = self._runs.get(run.run_id)
        if existing is not None:
            return existing.model_copy(deep=True)
        self._runs[run.run_id] = run.model_copy(deep=True)
        return run

    async def get_run(self, run_id: str) -> WorkflowRun | None:
        run = self._runs.get(run_id)
        return run.model_copy(deep=True) if run else None

    async def list_runs(self, status: Optional[RunStatus] = None) -> list[WorkflowRun]:
        return [
            run.model_copy(deep=True)
            for run in self._runs.values()
            if status is None or run.status == status
        ]

    async def record_attempt(self, run_id: str, attempt: int) -> None:
        run = self._runs.get(run_id)
        if run:
            run.attempt_count = attempt
            run.status = RunStatus.RUNNING
            run.updated_at = utcnow()

    async def set_status(
        self,
        run_id: str,
        status: RunStatus,
        error: str | None = None,
        output: Any = None,
    ) -> None:
        run = self._runs.get(run_id)
        if run:
            run.status = status
            run.error = error
            if output is not None:
                run.output = output
            run.updated_at = utcnow()

    def _find_step(self, run: WorkflowRun, step_name: str) -> StepRecord | None:
        for step in run.steps:
            if step.step_name == step_name:
                return step
        return None

    async def record_step(
        self, run_id: str, step_name: str, result: Any, attempt: int
    ) -> None:
        run = self._runs.get(run_id)
        if not run:
            return
        step = self._find_step(run, step_name)
        if step is not None and step.is_completed:
            return
        record = StepRecord(step_name=step_name, result=result, attempt=attempt)
        if step is None:
            run.steps.append(record)
        else:
            run.steps[run.steps.index(step)] = record

    async def record_step_error(
        self, run_id: str, step_name: str, error: str, attempt: int
    ) -> None:
        run = self._runs.get(run_id)
        if not run:
            return
        step = self._find_step(run, step_name)
        record = StepRecord(
            step_name=step_name, status="failed", error=error, attempt=attempt
        )
        if step is None:
            run.steps.append(record)
        elif not step.is_completed:
            run.steps[run.steps.index(step)] = record
