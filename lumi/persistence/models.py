"""Data models for persisted workflow runs."""

from __future__ import annotations

from datetime import datetime, timezone
from enum import Enum
from typing import Any, Optional

from pydantic import BaseModel, Field


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


class RunStatus(str, Enum):
    RUNNING = "running"
    RETRYING = "retrying"
    SUCCEEDED = "succeeded"
    FAILED = "failed"

    @property
    def is_terminal(self) -> bool:
        return self in (RunStatus.SUCCEEDED, RunStatus.FAILED)


class StepRecord(BaseModel):
    """Durable outcome of one named step within a run.

    A ``completed`` record is replayed on every later attempt instead of
    re-running the step body.
    """

    step_name: str
    status: str = "completed"  # completed, failed
    result: Any = None
    error: Optional[str] = None
    attempt: int = 1
    completed_at: datetime = Field(default_factory=utcnow)

    @property
    def is_completed(self) -> bool:
        return self.status == "completed"


class WorkflowRun(BaseModel):
    """One execution of a handler against one envelope."""

    run_id: str
    handler_id: str
    event_name: str
    envelope: dict[str, Any] = Field(default_factory=dict)
    concurrency_key: Optional[str] = None
    attempt_count: int = 0
    max_attempts: int = 1
    status: RunStatus = RunStatus.RUNNING
    steps: list[StepRecord] = Field(default_factory=list)
    output: Any = None
    error: Optional[str] = None
    created_at: datetime = Field(default_factory=utcnow)
    updated_at: datetime = Field(default_factory=utcnow)

    def completed_steps(self) -> dict[str, StepRecord]:
        return {step.step_name: step for step in self.steps if step.is_completed}
