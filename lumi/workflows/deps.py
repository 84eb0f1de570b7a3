"""Collaborators injected into every workflow."""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime
from functools import cached_property
from typing import Callable, Optional

from ..analysis import Analyzer
from ..config import LumiConfig
from ..guests import GuestMergeEngine
from ..notifications import AlertDispatcher, AuditLog, Notifier
from ..persistence.models import utcnow
from ..store import RecordStore


@dataclass
class WorkflowDeps:
    store: RecordStore
    notifier: Notifier
    analyzer: Analyzer
    config: LumiConfig = field(default_factory=LumiConfig)
    audit: Optional[AuditLog] = None
    clock: Callable[[], datetime] = utcnow

    @cached_property
    def guests(self) -> GuestMergeEngine:
        return GuestMergeEngine(self.store, clock=self.clock)

    @cached_property
    def alerts(self) -> AlertDispatcher:
        return AlertDispatcher(
            self.notifier,
            self.config.alerts,
            audit=self.audit,
            from_email=self.config.email.alerts_from_email,
        )


def guest_key(payload) -> Optional[str]:
    """Concurrency key shared by every writer of one guest profile."""
    email = getattr(payload, "guest_email", None)
    return f"guest:{email.strip().lower()}" if email else None


def conversation_key(payload) -> Optional[str]:
    return f"conversation:{payload.conversation_id}"
