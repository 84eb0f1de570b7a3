"""Audit trail for escalated staff alerts."""

from __future__ import annotations

import asyncio
import json
import logging
from pathlib import Path
from typing import Any, Optional

from ..persistence.models import utcnow

audit_logger = logging.getLogger("lumi.audit")


class AuditLog:
    """Records audit entries as JSON objects.

    Every entry goes to the ``lumi.audit`` logger; with ``path`` set it is
    also appended to that file as one JSON line.
    """

    def __init__(self, path: Optional[str] = None) -> None:
        self._path = Path(path) if path else None
        self.entries: list[dict[str, Any]] = []

    async def record(self, event: str, details: Any) -> dict[str, Any]:
        """Persist an audit log entry."""
        entry = {"type": event, **details, "timestamp": utcnow().isoformat()}
        line = json.dumps(entry, default=str)
        audit_logger.info(line)
        self.entries.append(entry)
        if self._path is not None:
            await asyncio.to_thread(self._append, line)
        return entry

    def _append(self, line: str) -> None:
        self._path.parent.mkdir(parents=True, exist_ok=True)
        with self._path.open("a", encoding="utf-8") as fh:
            fh.write(line + "\n")
