"""
CLI utility helpers: job loading, database connections, output formatting.
"""

from __future__ import annotations

import importlib
import json
import sqlite3
from pathlib import Path
from typing import Any

import typer
from rich.console import Console
from rich.table import Table

from cron_workflow.core.settings import get_settings
from cron_workflow.orchestration.job import CronJob
from cron_workflow.substrate.instances import InstanceRecord

console = Console()
err_console = Console(stderr=True)


# ── Connection helper ────────────────────────────────────────────────────


def get_connection(database: str | None = None) -> sqlite3.Connection:
    """Open the local substrate database. Defaults to ``settings.database_path``."""
    path = Path(database) if database else get_settings().database_path
    path.parent.mkdir(parents=True, exist_ok=True)
    return sqlite3.connect(str(path))


# ── Job loading ──────────────────────────────────────────────────────────


def load_job(target: str) -> CronJob:
    """Resolve ``module:attr`` to a CronJob (or a zero-arg factory returning one)."""
    module_name, sep, attr = target.partition(":")
    if not sep or not module_name or not attr:
        raise typer.BadParameter(f"Expected MODULE:ATTR, got {target!r}")
    try:
        module = importlib.import_module(module_name)
    except ImportError as e:
        raise typer.BadParameter(f"Cannot import {module_name!r}: {e}") from e

    obj: Any = module
    for part in attr.split("."):
        try:
            obj = getattr(obj, part)
        except AttributeError as e:
            raise typer.BadParameter(f"{module_name!r} has no attribute {attr!r}") from e

    if not isinstance(obj, CronJob) and callable(obj):
        obj = obj()
    if not isinstance(obj, CronJob):
        raise typer.BadParameter(f"{target!r} is not a CronJob")
    return obj


# ── Output helpers ───────────────────────────────────────────────────────


def output_json(data: Any) -> None:
    typer.echo(json.dumps(data, indent=2, default=str))


def output_instances(records: list[InstanceRecord], *, as_json: bool = False, title: str = "Instances") -> None:
    """Render instance records as a table (or JSON)."""
    if as_json:
        output_json([r.to_dict() for r in records])
        return
    if not records:
        console.print(f"[dim]{title}: none[/dim]")
        return

    table = Table(title=title)
    table.add_column("ID", style="cyan", no_wrap=True)
    table.add_column("Job")
    table.add_column("Run time")
    table.add_column("Status")
    table.add_column("Attempts", justify="right")
    table.add_column("Error")

    status_styles = {"COMPLETE": "green", "FAILED": "red", "RUNNING": "yellow", "PENDING": "dim"}
    for r in records:
        style = status_styles.get(r.status.value, "")
        run_time = r.params.next_run_time.isoformat() if r.params.next_run_time else "-"
        error = (r.error or {}).get("message", "") if r.error else ""
        table.add_row(
            r.id,
            r.job_name,
            run_time,
            f"[{style}]{r.status.value}[/{style}]" if style else r.status.value,
            str(r.attempts),
            error,
        )
    console.print(table)
