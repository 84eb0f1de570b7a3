"""Lumi: event-driven guest conversation workflows."""

__version__ = "0.1.0"

from .bus import EventBus
from .concurrency import ConcurrencyLimiter
from .contracts import EventEnvelope
from .execute import WorkflowExecutor
from .persistence import get_repository
from .transports import get_transport
from .utils.retry import RetryPolicy
from .workflow import StepContext, Workflow, WorkflowContext, workflow

__all__ = [
    "ConcurrencyLimiter",
    "EventBus",
    "EventEnvelope",
    "RetryPolicy",
    "StepContext",
    "Workflow",
    "WorkflowContext",
    "WorkflowExecutor",
    "get_repository",
    "get_transport",
    "workflow",
]
