"""Wiring of the configured collaborators into a runnable system."""

from __future__ import annotations

from dataclasses import dataclass
from typing import Optional

from .analysis import TranscriptAnalyzer
from .bus import EventBus
from .config import LumiConfig, load_config
from .execute import WorkflowExecutor
from .notifications import AuditLog, get_notifier
from .persistence import WorkflowRepository, get_repository
from .store import RecordStore, get_store
from .transports import get_transport
from .utils.retry import RetryPolicy
from .workflows import WorkflowDeps, register_workflows


@dataclass
class Runtime:
    config: LumiConfig
    bus: EventBus
    repository: WorkflowRepository
    store: RecordStore
    deps: WorkflowDeps
    executor: WorkflowExecutor


def build_runtime(config: Optional[LumiConfig] = None) -> Runtime:
    """Assemble bus, repository, store and workflows from ``config``."""
    config = config or load_config()
    bus = EventBus(get_transport(config=config))
    repository = get_repository(config.database_url)
    store = get_store(config)
    deps = WorkflowDeps(
        store=store,
        notifier=get_notifier(config.email),
        analyzer=TranscriptAnalyzer(config.analysis.model),
        config=config,
        audit=AuditLog(config.alerts.audit_log_path),
    )
    register_workflows(bus, deps)
    executor = WorkflowExecutor(
        bus,
        repository,
        retry_policy=RetryPolicy(
            base=config.backoff.base, initial=config.backoff.initial, cap=config.backoff.cap
        ),
        step_timeout=config.step_timeout_seconds,
    )
    return Runtime(config, bus, repository, store, deps, executor)
