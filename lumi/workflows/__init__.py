"""Domain workflows registered on the event bus."""

from __future__ import annotations

from typing import List

from ..bus import EventBus
from ..workflow import Workflow
from .analysis import analysis_workflows
from .booking import booking_workflows
from .checkin import checkin_workflows
from .conversation import conversation_workflows
from .deps import WorkflowDeps, conversation_key, guest_key
from .notifications import notification_workflows
from .sync import sync_workflows


def build_workflows(deps: WorkflowDeps) -> List[Workflow]:
    """Every workflow of the system, bound to ``deps``."""
    return [
        *conversation_workflows(deps),
        *analysis_workflows(deps),
        *checkin_workflows(deps),
        *booking_workflows(deps),
        *sync_workflows(deps),
        *notification_workflows(deps),
    ]


def register_workflows(bus: EventBus, deps: WorkflowDeps) -> List[Workflow]:
    workflows = build_workflows(deps)
    bus.register_all(workflows)
    return workflows


__all__ = [
    "WorkflowDeps",
    "build_workflows",
    "conversation_key",
    "guest_key",
    "register_workflows",
]
