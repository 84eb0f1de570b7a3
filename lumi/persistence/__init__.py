"""Persistence layer for lumi workflow runs."""

from __future__ import annotations

from typing import Optional

from ..config import LumiConfig, load_config
from .inmemory import InMemoryRunRepository
from .models import RunStatus, StepRecord, WorkflowRun
from .repository import WorkflowRepository
from .sqlite import SQLiteRunRepository


def get_repository(
    database_url: Optional[str] = None, config: Optional[LumiConfig] = None
) -> WorkflowRepository:
    """Factory function to obtain a workflow run repository.

    The backend is selected from ``database_url``, which can be provided
    explicitly or through configuration (``LUMI_DATABASE_URL`` and
    ``DATABASE_URL`` are applied by :func:`lumi.config.load_config`). When no
    database is configured, an in-memory repository is returned.
    """

    if database_url is None:
        config = config or load_config()
        database_url = config.database_url

    if not database_url:
        return InMemoryRunRepository()

    if database_url.startswith("sqlite://"):
        path = database_url.replace("sqlite://", "", 1)
        return SQLiteRunRepository(path)
    if database_url.startswith(("postgres://", "postgresql://")):
        from .postgres import PostgresRunRepository

        return PostgresRunRepository(database_url)
    raise ValueError(f"Unsupported database backend: {database_url}")


__all__ = [
    "RunStatus",
    "StepRecord",
    "WorkflowRun",
    "WorkflowRepository",
    "SQLiteRunRepository",
    "InMemoryRunRepository",
    "get_repository",
]
