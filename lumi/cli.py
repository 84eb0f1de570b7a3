"""Command line interface for running Lumi workers and the HTTP app."""

from __future__ import annotations

import asyncio
import json
import logging
from typing import Optional

import typer

from lumi.config import load_config
from lumi.contracts import EventEnvelope
from lumi.errors import LumiError, ValidationFailed
from lumi.persistence import RunStatus, get_repository
from lumi.runtime import build_runtime

app = typer.Typer(help="CLI for Lumi workflows")

# Command groups
runs_app = typer.Typer(help="Inspect persisted workflow runs")
events_app = typer.Typer(help="Emit events onto the bus")

app.add_typer(runs_app, name="runs")
app.add_typer(events_app, name="events")


@app.callback()
def main(
    log_level: str = typer.Option("INFO", "--log-level", help="Root logging level"),
) -> None:
    """Lumi CLI entry point."""
    logging.basicConfig(
        level=log_level.upper(),
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )


@app.command("worker")
def worker(lifespan: Optional[float] = None) -> None:
    """
    Run the workflow executor over the configured transport.

    Example:
        lumi worker
        lumi worker --lifespan 300
    """
    runtime = build_runtime()
    names = ", ".join(wf.id for wf in runtime.bus.workflows)
    typer.echo(f"Starting worker for: {names}")
    asyncio.run(runtime.executor.start(lifespan=lifespan))


@app.command("serve")
def serve(
    host: str = "0.0.0.0",
    port: int = 8000,
    with_worker: Optional[bool] = typer.Option(
        None,
        "--with-worker/--no-worker",
        help="Run workflows in-process (default: only with the in-memory transport)",
    ),
) -> None:
    """Serve the webhook and tool endpoints with uvicorn."""
    import uvicorn

    from lumi.server import create_app

    runtime = build_runtime()
    if with_worker is None:
        with_worker = runtime.config.transport.backend == "inmemory"
    api = create_app(
        runtime.config,
        store=runtime.store,
        bus=runtime.bus,
        executor=runtime.executor if with_worker else None,
    )
    uvicorn.run(api, host=host, port=port)


@runs_app.command("list")
def runs_list(
    status: Optional[RunStatus] = typer.Option(None, help="Only runs in this status"),
) -> None:
    """
    List workflow runs with their status and attempt count.

    Example:
        lumi runs list --status failed
    """
    repo = get_repository(config=load_config())
    runs = asyncio.run(repo.list_runs(status))
    if not runs:
        typer.echo("No runs found")
        return
    for run in runs:
        typer.echo(f"{run.run_id}\t{run.status.value}\t{run.attempt_count}/{run.max_attempts}")


@runs_app.command("show")
def runs_show(run_id: str) -> None:
    """Show a run, its outcome and every step record."""
    repo = get_repository(config=load_config())
    run = asyncio.run(repo.get_run(run_id))
    if run is None:
        typer.echo("Run not found")
        raise typer.Exit(code=1)
    typer.echo(f"Run {run.run_id}: {run.status.value} ({run.attempt_count}/{run.max_attempts} attempts)")
    typer.echo(f"Event: {run.event_name}")
    if run.concurrency_key:
        typer.echo(f"Concurrency key: {run.concurrency_key}")
    if run.error:
        typer.echo(f"Error: {run.error}")
    if run.output is not None:
        typer.echo(f"Output: {json.dumps(run.output)}")
    for step in run.steps:
        detail = step.error if step.error else json.dumps(step.result)
        typer.echo(f"- {step.step_name}: {step.status} (attempt {step.attempt}) {detail}")


@events_app.command("emit")
def events_emit(
    name: str,
    data: str = typer.Option("{}", "--data", help="Event payload as JSON"),
) -> None:
    """
    Emit an envelope for NAME onto the configured transport.

    Example:
        lumi events emit guest.updated --data '{"guest_email": "a@b.co", "updates": {}, "source_base": "master_guest"}'
    """
    try:
        payload = json.loads(data)
    except ValueError as exc:
        typer.secho(f"Invalid JSON: {exc}", fg=typer.colors.RED)
        raise typer.Exit(code=1)

    runtime = build_runtime()
    try:
        envelope = EventEnvelope.create(name, payload)
    except ValidationFailed as exc:
        typer.secho(f"Invalid event: {exc}", fg=typer.colors.RED)
        for issue in exc.issues:
            typer.echo(f"  {'.'.join(issue['path'])}: {issue['message']}")
        raise typer.Exit(code=1)

    async def _emit() -> None:
        transport = runtime.bus.transport
        await transport.connect()
        try:
            await runtime.bus.emit(envelope)
        finally:
            await transport.disconnect()

    try:
        asyncio.run(_emit())
    except LumiError as exc:
        typer.secho(f"Emit failed: {exc}", fg=typer.colors.RED)
        raise typer.Exit(code=1)
    typer.echo(envelope.id)


if __name__ == "__main__":
    app()
