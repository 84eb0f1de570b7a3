"""Repository abstraction for workflow run persistence."""

from __future__ import annotations

from typing import Any, Optional, Protocol

from .models import RunStatus, WorkflowRun


class WorkflowRepository(Protocol):
    """Protocol for workflow run persistence backends."""

    async def create_run(self, run: WorkflowRun) -> WorkflowRun:
        """Persist a new run; return the existing one if ``run_id`` is known."""

    async def get_run(self, run_id: str) -> WorkflowRun | None:
        """Retrieve the run with its step records."""

    async def list_runs(self, status: Optional[RunStatus] = None) -> list[WorkflowRun]:
        """Return persisted runs, optionally filtered by status."""

    async def record_attempt(self, run_id: str, attempt: int) -> None:
        """Store the attempt counter and mark the run running."""

    async def set_status(
        self,
        run_id: str,
        status: RunStatus,
        error: str | None = None,
        output: Any = None,
    ) -> None:
        """Move the run to ``status``."""

    async def record_step(
        self, run_id: str, step_name: str, result: Any, attempt: int
    ) -> None:
        """Record a completed step and its JSON result."""

    async def record_step_error(
        self, run_id: str, step_name: str, error: str, attempt: int
    ) -> None:
        """Record a failed step attempt; never overwrites a completed step."""
