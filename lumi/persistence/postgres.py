"""PostgreSQL implementation of the workflow repository."""

from __future__ import annotations

import json
from typing import Any, Optional

import asyncpg

from .models import RunStatus, StepRecord, WorkflowRun, utcnow
from .repository import WorkflowRepository

_RUN_COLUMNS = (
    "run_id, handler_id, event_name, envelope, concurrency_key, attempt_count, "
    "max_attempts, status, output, error, created_at, updated_at"
)


class PostgresRunRepository(WorkflowRepository):
    """Persist workflow runs using PostgreSQL."""

    def __init__(self, dsn: str):
        self._dsn = dsn
        self._initialized = False

    async def _connect(self) -> asyncpg.Connection:
        conn = await asyncpg.connect(self._dsn)
        if not self._initialized:
            await self._ensure_schema(conn)
            self._initialized = True
        return conn

    async def _ensure_schema(self, conn: asyncpg.Connection) -> None:
        await conn.execute(
            """
            CREATE TABLE IF NOT EXISTS workflow_runs (
                run_id TEXT PRIMARY KEY,
                handler_id TEXT NOT NULL,
                event_name TEXT NOT NULL,
                envelope JSONB NOT NULL,
                concurrency_key TEXT,
                attempt_count INTEGER NOT NULL DEFAULT 0,
                max_attempts INTEGER NOT NULL DEFAULT 1,
                status TEXT NOT NULL,
                output JSONB,
                error TEXT,
                created_at TIMESTAMPTZ NOT NULL,
                updated_at TIMESTAMPTZ NOT NULL
            )
            """
        )
        await conn.execute(
            """
            CREATE TABLE IF NOT EXISTS step_records (
                id SERIAL,
                run_id TEXT NOT NULL,
                step_name TEXT NOT NULL,
                status TEXT NOT NULL,
                result JSONB,
                error TEXT,
                attempt INTEGER NOT NULL,
                completed_at TIMESTAMPTZ NOT NULL,
                PRIMARY KEY (run_id, step_name)
            )
            """
        )

    @staticmethod
    def _row_to_run(row: asyncpg.Record, steps: list[StepRecord]) -> WorkflowRun:
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
            created_at=row["created_at"],
            updated_at=row["updated_at"],
            steps=steps,
        )

    # ------------------------------------------------------------------
    async def create_run(self, run: WorkflowRun) -> WorkflowRun:
        conn = await self._connect()
        try:
            inserted = await conn.execute(
                f"""
                INSERT INTO workflow_runs ({_RUN_COLUMNS})
                VALUES ($1, $2, $3, $4, $5, $6, $7, $8, $9, $10, $11, $12)
                ON CONFLICT (run_id) DO NOTHING
                """,
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
                run.created_at,
                run.updated_at,
            )
        finally:
            await conn.close()
        if inserted.endswith(" 0"):
            existing = await self.get_run(run.run_id)
            if existing is not None:
                return existing
        return run

    async def get_run(self, run_id: str) -> WorkflowRun | None:
        conn = await self._connect()
        try:
            row = await conn.fetchrow(
                f"SELECT {_RUN_COLUMNS} FROM workflow_runs WHERE run_id = $1",
                run_id,
            )
            if not row:
                return None
            step_rows = await conn.fetch(
                "SELECT step_name, status, result, error, attempt, completed_at FROM step_records WHERE run_id = $1 ORDER BY id",
                run_id,
            )
        finally:
            await conn.close()
        steps = [
            StepRecord(
                step_name=r["step_name"],
                status=r["status"],
                result=json.loads(r["result"]) if r["result"] else None,
                error=r["error"],
                attempt=r["attempt"],
                completed_at=r["completed_at"],
            )
            for r in step_rows
        ]
        return self._row_to_run(row, steps)

    async def list_runs(self, status: Optional[RunStatus] = None) -> list[WorkflowRun]:
        conn = await self._connect()
        try:
            if status is None:
                rows = await conn.fetch(
                    f"SELECT {_RUN_COLUMNS} FROM workflow_runs ORDER BY created_at"
                )
            else:
                rows = await conn.fetch(
                    f"SELECT {_RUN_COLUMNS} FROM workflow_runs WHERE status = $1 ORDER BY created_at",
                    status.value,
                )
        finally:
            await conn.close()
        return [self._row_to_run(r, []) for r in rows]

    async def record_attempt(self, run_id: str, attempt: int) -> None:
        conn = await self._connect()
        try:
            await conn.execute(
                "UPDATE workflow_runs SET attempt_count = $1, status = $2, updated_at = $3 WHERE run_id = $4",
                attempt,
                RunStatus.RUNNING.value,
                utcnow(),
                run_id,
            )
        finally:
            await conn.close()

    async def set_status(
        self,
        run_id: str,
        status: RunStatus,
        error: str | None = None,
        output: Any = None,
    ) -> None:
        conn = await self._connect()
        try:
            await conn.execute(
                """
                UPDATE workflow_runs
                SET status = $1, error = $2, output = COALESCE($3::jsonb, output), updated_at = $4
                WHERE run_id = $5
                """,
                status.value,
                error,
                json.dumps(output) if output is not None else None,
                utcnow(),
                run_id,
            )
        finally:
            await conn.close()

    async def _upsert_step(
        self,
        run_id: str,
        step_name: str,
        status: str,
        result: Any,
        error: str | None,
        attempt: int,
    ) -> None:
        conn = await self._connect()
        try:
            await conn.execute(
                """
                INSERT INTO step_records (run_id, step_name, status, result, error, attempt, completed_at)
                VALUES ($1, $2, $3, $4, $5, $6, $7)
                ON CONFLICT (run_id, step_name) DO UPDATE SET
                    status = EXCLUDED.status,
                    result = EXCLUDED.result,
                    error = EXCLUDED.error,
                    attempt = EXCLUDED.attempt,
                    completed_at = EXCLUDED.completed_at
                WHERE step_records.status <> 'completed'
                """,
                run_id,
                step_name,
                status,
                json.dumps(result) if result is not None else None,
                error,
                attempt,
                utcnow(),
            )
        finally:
            await conn.close()

    async def record_step(
        self, run_id: str, step_name: str, result: Any, attempt: int
    ) -> None:
        await self._upsert_step(run_id, step_name, "completed", result, None, attempt)

    async def record_step_error(
        self, run_id: str, step_name: str, error: str, attempt: int
    ) -> None:
        await self._upsert_step(run_id, step_name, "failed", None, error, attempt)
