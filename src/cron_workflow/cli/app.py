"""
Root Typer application for the ``cron-workflow`` CLI.

Commands:
    validate EXPR      check a cron expression
    next EXPR          preview upcoming run times
    run MODULE:ATTR    run a job's chain on the local SQLite substrate
    instances          list recorded instances
"""

from __future__ import annotations

import sys
from datetime import datetime

import typer

from cron_workflow.cli.utils import (
    console,
    err_console,
    get_connection,
    load_job,
    output_instances,
    output_json,
)
from cron_workflow.core.logging import configure_logging
from cron_workflow.core.settings import get_settings
from cron_workflow.core.timestamps import from_iso8601, to_iso8601, utc_now
from cron_workflow.scheduling.cron import CroniterProvider, validate_cron_expression

app = typer.Typer(
    name="cron-workflow",
    help="cron-workflow: durable, self-rescheduling cron jobs.",
    no_args_is_help=True,
    rich_markup_mode="rich",
)


# ── Version callback ─────────────────────────────────────────────────────


def _version_callback(value: bool) -> None:
    if value:
        from importlib.metadata import PackageNotFoundError
        from importlib.metadata import version as pkg_version

        from cron_workflow import __version__

        try:
            v = pkg_version("cron-workflow")
        except PackageNotFoundError:
            v = __version__
        typer.echo(f"cron-workflow {v}")
        raise typer.Exit()


@app.callback()
def main(
    version: bool | None = typer.Option(
        None,
        "--version",
        "-V",
        help="Show version and exit.",
        callback=_version_callback,
        is_eager=True,
    ),
    log_level: str | None = typer.Option(None, "--log-level", help="Override CRON_WORKFLOW_LOG_LEVEL."),
) -> None:
    """cron-workflow CLI: preview schedules, run chains locally, inspect instances."""
    settings = get_settings()
    try:
        configure_logging(
            level=log_level or settings.log_level,
            json_format=settings.json_logs,
            stream=sys.stderr,
        )
    except ValueError as exc:
        raise typer.BadParameter(str(exc), param_hint="--log-level") from exc


# ── Schedule commands ────────────────────────────────────────────────────


@app.command("validate")
def validate(
    expression: str = typer.Argument(..., help="Cron expression"),
    tz: str = typer.Option("UTC", "--tz", help="Evaluation timezone"),
) -> None:
    """Exit 0 if the expression is valid, 1 otherwise."""
    error = validate_cron_expression(expression, tz)
    if error:
        err_console.print(f"[red]invalid[/red] {error}")
        raise typer.Exit(code=1)
    console.print(f"[green]valid[/green] {expression}")


@app.command("next")
def next_runs(
    expression: str = typer.Argument(..., help="Cron expression"),
    count: int = typer.Option(5, "--count", "-n", min=1, help="How many run times"),
    after: str | None = typer.Option(None, "--after", help="ISO-8601 reference time (default: now)"),
    tz: str = typer.Option("UTC", "--tz", help="Evaluation timezone"),
    json_out: bool = typer.Option(False, "--json"),
) -> None:
    """Preview upcoming run times."""
    error = validate_cron_expression(expression, tz)
    if error:
        err_console.print(f"[red]invalid[/red] {error}")
        raise typer.Exit(code=1)

    try:
        reference: datetime = from_iso8601(after) if after else utc_now()
    except ValueError as e:
        raise typer.BadParameter(f"--after is not ISO-8601: {after!r}") from e

    occurrences = CroniterProvider().parse(expression, tz).iter(reference, count)
    if json_out:
        output_json([to_iso8601(o) for o in occurrences])
        return
    for occurrence in occurrences:
        console.print(to_iso8601(occurrence))


# ── Local substrate commands ─────────────────────────────────────────────


@app.command("run")
def run_chain(
    target: str = typer.Argument(..., help="MODULE:ATTR of a CronJob"),
    database: str | None = typer.Option(None, "--db", "-d", help="SQLite file (default from settings)"),
    instances: int = typer.Option(1, "--instances", "-n", min=1, help="Stop after this many finished instances"),
    no_wait: bool = typer.Option(False, "--no-wait", help="Simulate time instead of sleeping until due"),
    json_out: bool = typer.Option(False, "--json"),
) -> None:
    """Run a job's chain on the local SQLite substrate."""
    from cron_workflow.orchestration.cron_workflow import CronWorkflow
    from cron_workflow.substrate import LocalHost, SQLiteInstanceRegistry, SQLiteStepStore
    from cron_workflow.testing import FakeClock

    job = load_job(target)
    conn = get_connection(database)
    try:
        if no_wait:
            fake = FakeClock(utc_now())
            clock, sleeper = fake, fake.sleep
        else:
            import time

            clock, sleeper = utc_now, time.sleep

        store = SQLiteStepStore(conn, clock=clock)
        registry = SQLiteInstanceRegistry(conn, job.name, clock=clock)
        workflow = CronWorkflow(job, registry, clock=clock)
        host = LocalHost(workflow, registry, store, clock=clock, sleeper=sleeper)

        for record in host.recover():
            console.print(f"resuming interrupted instance [cyan]{record.id}[/cyan]")
        if registry.next_pending() is None:
            handle = host.start()
            console.print(f"started chain for [cyan]{job.name}[/cyan]: {handle.id}")

        finished = host.run(max_instances=instances)
        output_instances(finished, as_json=json_out, title=f"{job.name}: finished instances")
    finally:
        conn.close()


@app.command("instances")
def list_instances(
    database: str | None = typer.Option(None, "--db", "-d", help="SQLite file (default from settings)"),
    job_name: str | None = typer.Option(None, "--job", help="Only this job"),
    status: str | None = typer.Option(None, "--status", help="PENDING, RUNNING, COMPLETE or FAILED"),
    json_out: bool = typer.Option(False, "--json"),
) -> None:
    """List recorded instances."""
    from cron_workflow.substrate.instances import InstanceStatus, list_all_instances

    status_filter = None
    if status:
        try:
            status_filter = InstanceStatus(status.upper())
        except ValueError as e:
            raise typer.BadParameter(f"Unknown status: {status!r}") from e

    conn = get_connection(database)
    try:
        records = list_all_instances(conn, job_name=job_name, status=status_filter)
    finally:
        conn.close()
    output_instances(records, as_json=json_out)
