"""Workflow definitions and the step context handed to their bodies."""

from __future__ import annotations

import asyncio
import inspect
import logging
from dataclasses import dataclass, field
from typing import (
    TYPE_CHECKING,
    Any,
    Awaitable,
    Callable,
    Dict,
    List,
    Optional,
    Set,
)

from pydantic import TypeAdapter
from pydantic_core import to_jsonable_python

from .constants import DEFAULT_MAX_ATTEMPTS, DEFAULT_STEP_TIMEOUT_SECONDS
from .contracts import EventEnvelope, EventPayload
from .errors import TransientError
from .persistence.models import StepRecord, WorkflowRun
from .persistence.repository import WorkflowRepository

if TYPE_CHECKING:
    from .bus import EventBus

logger = logging.getLogger(__name__)

WorkflowFn = Callable[["WorkflowContext"], Awaitable[Any]]
FailureFn = Callable[["WorkflowContext", BaseException], Awaitable[None]]
ConcurrencyKeyFn = Callable[[Any], Optional[str]]


def to_jsonable(value: Any) -> Any:
    """Normalise a step or run result to plain JSON types."""
    return to_jsonable_python(value)


@dataclass
class Workflow:
    """A handler bound to one event name."""

    id: str
    event: str
    fn: WorkflowFn
    max_attempts: int = DEFAULT_MAX_ATTEMPTS
    concurrency_key: Optional[ConcurrencyKeyFn] = None
    on_failure: Optional[FailureFn] = None

    def __post_init__(self) -> None:
        if self.max_attempts < 1:
            raise ValueError("max_attempts must be at least 1")

    def key_for(self, payload: EventPayload) -> Optional[str]:
        """Concurrency key of the run handling ``payload``.

        Keys are global across workflows so every writer of one guest shares
        a single queue.
        """
        if self.concurrency_key is None:
            return None
        return self.concurrency_key(payload) or None

    def failure_handler(self, fn: FailureFn) -> FailureFn:
        """Register ``fn`` to run once the workflow fails fatally."""
        self.on_failure = fn
        return fn

    async def __call__(self, ctx: "WorkflowContext") -> Any:
        return await self.fn(ctx)


def workflow(
    id: str,
    event: str,
    max_attempts: int = DEFAULT_MAX_ATTEMPTS,
    concurrency_key: Optional[ConcurrencyKeyFn] = None,
) -> Callable[[WorkflowFn], Workflow]:
    """Decorator turning an async function into a :class:`Workflow`."""

    def decorator(fn: WorkflowFn) -> Workflow:
        return Workflow(
            id=id,
            event=event,
            fn=fn,
            max_attempts=max_attempts,
            concurrency_key=concurrency_key,
        )

    return decorator


class StepContext:
    """Runs named steps, replaying results recorded by earlier attempts."""

    def __init__(
        self,
        run: WorkflowRun,
        repository: WorkflowRepository,
        bus: "EventBus",
        attempt: int,
        timeout: float = DEFAULT_STEP_TIMEOUT_SECONDS,
    ) -> None:
        self._run_id = run.run_id
        self._completed: Dict[str, StepRecord] = run.completed_steps()
        self._repository = repository
        self._bus = bus
        self._attempt = attempt
        self._timeout = timeout
        self._seen: Set[str] = set()
        self.executed: List[str] = []
        self.replayed: List[str] = []

    async def run(
        self,
        name: str,
        fn: Callable[..., Any],
        *args: Any,
        returns: Any = None,
        timeout: Optional[float] = None,
    ) -> Any:
        """Execute ``fn(*args)`` as step ``name`` unless already recorded.

        The recorded JSON value is returned both on first execution and on
        replay; pass ``returns`` to re-validate it into a richer type.
        """
        if name in self._seen:
            raise ValueError(f"Duplicate step name {name!r} in run {self._run_id}")
        self._seen.add(name)

        record = self._completed.get(name)
        if record is not None:
            logger.debug(f"Replaying step {name} for run {self._run_id}")
            self.replayed.append(name)
            return self._coerce(record.result, returns)

        limit = timeout or self._timeout
        try:
            result = fn(*args)
            if inspect.isawaitable(result):
                result = await asyncio.wait_for(result, timeout=limit)
        except asyncio.TimeoutError as exc:
            error = TransientError(f"Step {name} timed out after {limit}s")
            await self._repository.record_step_error(
                self._run_id, name, str(error), self._attempt
            )
            raise error from exc
        except Exception as exc:
            await self._repository.record_step_error(
                self._run_id, name, f"{type(exc).__name__}: {exc}", self._attempt
            )
            raise

        value = to_jsonable(result)
        await self._repository.record_step(self._run_id, name, value, self._attempt)
        self.executed.append(name)
        logger.debug(f"Completed step {name} for run {self._run_id}")
        return self._coerce(value, returns)

    async def send_event(self, name: str, *envelopes: EventEnvelope) -> List[str]:
        """Emit ``envelopes`` as step ``name``; replay never re-emits."""

        async def _emit() -> List[str]:
            return await self._bus.emit(*envelopes)

        return await self.run(name, _emit)

    @staticmethod
    def _coerce(value: Any, returns: Any) -> Any:
        if returns is None or value is None:
            return value
        return TypeAdapter(returns).validate_python(value)


@dataclass
class WorkflowContext:
    """Everything a workflow body sees for one attempt."""

    event: EventEnvelope
    payload: Any
    step: StepContext
    run: WorkflowRun
    attempt: int
    extra: Dict[str, Any] = field(default_factory=dict)

    @property
    def data(self) -> Any:
        """Alias of ``payload``."""
        return self.payload

    @property
    def run_id(self) -> str:
        return self.run.run_id
