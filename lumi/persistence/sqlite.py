"""SQLite implementation of the workflow repository."""

from __future__ import annotations

import asyncio
import json
import sqlite3
from datetime import datetime
from pathlib import Path
from typing import Any, Optional

from .models import RunStatus, StepRecord, WorkflowRun, utcnow
from .repository import WorkflowRepository

_RUN_COLUMNS = (
    "run_id, handler_id, event_name, envelope, concurrency_key, attempt_count, "
    "max_attempts, status, output, error, created_at, updated_at"
)


class SQLiteRunRepository(WorkflowRepository):
    """Persist workflow runs using SQLite."""

    def __init__(self, db_path: str | Path):
        self.db_path = str(db_path)
        self._conn = sqlite3.connect(self.db_path, check_same_thread=False)
        self._conn.row_factory = sqlite3.Row
        self._ensure_schema()

    # ------------------------------------------------------------------
    # Schema management
    def _ensure_schema(self) -> None:
        cur = self._conn.cursor()
        cur.execute(
            """
            CREATE TABLE IF NOT EXISTS workflow_runs (
                run_id TEXT PRIMARY KEY,
                handler_id TEXT NOT NULL,
                event_name TEXT NOT NULL,
                envelope TEXT NOT NULL,
                concurrency_key TEXT,
                attempt_count INTEGER NOT NULL DEFAULT 0,
                max_attempts INTEGER NOT NULL DEFAULT 1,
                status TEXT NOT NULL,
                output TEXT,
                error TEXT,
                created_at TEXT NOT NULL,
                updated_at TEXT NOT NULL
            )
            """
        )
        cur.execute(
            """
            CREATE TABLE IF NOT EXISTS step_records (
                run_id TEXT NOT NULL,
                step_name TEXT NOT NULL,
                status TEXT NOT NULL,
                result TEXT,
                error TEXT,
                attempt INTEGER NOT NULL,
                completed_at TEXT NOT NULL,
                seq INTEGER NOT NULL,
                PRIMARY KEY (run_id, step_name)
            )
            """
        )
        self._conn.commit()

    # ------------------------------------------------------------------
    # Helper methods
    def _execute(self, query: str, *params: Any) -> None:
        cur = self._conn.cursor()
        cur.execute(query, params)
        self._conn.commit()

    def _fetchone(self, query: str, *params: Any) -> sqlite3.Row | None:
        cur = self._conn.cursor()
        cur.execute(query, params)
        return cur.fetchone()

    def _fetchall(self, query: str, *params: Any) -> list[sqlite3.Row]:
        cur = self._conn.cursor()
        cur.execute(query, params)
        return cur.fetchall()

    @staticmethod
    def _row_to_run(row: sqlite3.Row, steps: list[StepRecord]) -> WorkflowRun:
        return WorkflowRun(
            run_id=row["run_id"],
            handler_id=row["handler_id"],
            event_name=row["event_name"],
            envelope=json.loads(row["envelope"]),
            concurrency_key=row["concurrency_key"],
            attempt_count=row["attempt_count"],
            max_attempts=row["max_attempts"],
            status=RunStatus(row["status"]),
            output=json.loads(row["output"]) if row["output"] else None,
            error=row["error"],
            created_at=datetime.fromisoformat(row["created_at"]),
            updated_at=datetime.fromisoformat(row["updated_at"]),
            steps=steps,
        )

    # ------------------------------------------------------------------
    # Repository API
    async def create_run(self, run: WorkflowRun) -> WorkflowRun:
        existing = await self.get_run(run.run_id)
        if existing is not None:
            return existing
        await asyncio.to_thread(
            self._execute,
            f"INSERT INTO workflow_runs ({_RUN_COLUMNS}) VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?)",
            run.run_id,
            run.handler_id,
            run.event_name,
            json.dumps(run.envelope),
            run.concurrency_key,
            run.attempt_count,
            run.max_attempts,
            run.status.value,
            json.dumps(run.output) if run.output is not None else None,
            run.error,
            run.created_at.isoformat(),
            run.updated_at.isoformat(),
        )
        return run

    async def get_run(self, run_id: str) -> WorkflowRun | None:
        row = await asyncio.to_thread(
            self._fetchone,
            f"SELECT {_RUN_COLUMNS} FROM workflow_runs WHERE run_id = ?",
            run_id,
        )
        if not row:
            return None
        step_rows = await asyncio.to_thread(
            self._fetchall,
            "SELECT step_name, status, result, error, attempt, completed_at FROM step_records WHERE run_id = ? ORDER BY seq",
            run_id,
        )
        steps = [
            StepRecord(
                step_name=r["step_name"],
                status=r["status"],
                result=json.loads(r["result"]) if r["result"] else None,
                error=r["error"],
                attempt=r["attempt"],
                completed_at=datetime.fromisoformat(r["completed_at"]),
            )
            for r in step_rows
        ]
        return self._row_to_run(row, steps)

    async def list_runs(self, status: Optional[RunStatus] = None) -> list[WorkflowRun]:
        if status is None:
            rows = await asyncio.to_thread(
                self._fetchall,
                f"SELECT {_RUN_COLUMNS} FROM workflow_runs ORDER BY created_at",
            )
        else:
            rows = await asyncio.to_thread(
                self._fetchall,
                f"SELECT {_RUN_COLUMNS} FROM workflow_runs WHERE status = ? ORDER BY created_at",
                status.value,
            )
        return [self._row_to_run(row, []) for row in rows]

    async def record_attempt(self, run_id: str, attempt: int) -> None:
        await asyncio.to_thread(
            self._execute,
            "UPDATE workflow_runs SET attempt_count = ?, status = ?, updated_at = ? WHERE run_id = ?",
            attempt,
            RunStatus.RUNNING.value,
            utcnow().isoformat(),
            run_id,
        )

    async def set_status(
        self,
        run_id: str,
        status: RunStatus,
        error: str | None = None,
        output: Any = None,
    ) -> None:
        await asyncio.to_thread(
            self._execute,
            """
            UPDATE workflow_runs
            SET status = ?, error = ?, output = COALESCE(?, output), updated_at = ?
            WHERE run_id = ?
            """,
            status.value,
            error,
            json.dumps(output) if output is not None else None,
            utcnow().isoformat(),
            run_id,
        )

    async def _upsert_step(
        self,
        run_id: str,
        step_name: str,
        status: str,
        result: Any,
        error: str | None,
        attempt: int,
    ) -> None:
        await asyncio.to_thread(
            self._execute,
            """
            INSERT INTO step_records (run_id, step_name, status, result, error, attempt, completed_at, seq)
            VALUES (?, ?, ?, ?, ?, ?, ?,
                    (SELECT COALESCE(MAX(seq), 0) + 1 FROM step_records WHERE run_id = ?))
            ON CONFLICT (run_id, step_name) DO UPDATE SET
                status = excluded.status,
                result = excluded.result,
                error = excluded.error,
                attempt = excluded.attempt,
                completed_at = excluded.completed_at
            WHERE step_records.status != 'completed'
            """,
            run_id,
            step_name,
            status,
            json.dumps(result) if result is not None else None,
            error,
            attempt,
            utcnow().isoformat(),
            run_id,
        )

    async def record_step(
        self, run_id: str, step_name: str, result: Any, attempt: int
    ) -> None:
        await self._upsert_step(run_id, step_name, "completed", result, None, attempt)

    async def record_step_error(
        self, run_id: str, step_name: str, error: str, attempt: int
    ) -> None:
        await self._upsert_step(run_id, step_name, "failed", None, error, attempt)
