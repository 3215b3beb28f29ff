"""Test Harness: deterministic time and a ready-wired local substrate.

ARCHITECTURE
────────────
::

    FakeClock          → callable clock; .sleep() advances it instead of blocking
    LocalHarness       → workflow + registry + store + host sharing one FakeClock
    make_harness(job)  → LocalHarness over in-memory substrate

Example::

    from cron_workflow import CronJob
    from cron_workflow.testing import make_harness

    job = CronJob("demo", schedule="*/5 * * * *", on_tick=lambda ctx: "ok")
    harness = make_harness(job, start="2024-01-15T12:03:00+00:00")
    harness.host.start()
    harness.host.run(max_instances=3)
    assert harness.clock.now.isoformat() == "2024-01-15T12:15:00+00:00"

Tags:
    cron-workflow, testing, harness, fake-clock
"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime, timedelta

from cron_workflow.core.timestamps import ensure_utc, from_iso8601
from cron_workflow.orchestration.cron_workflow import CronWorkflow
from cron_workflow.orchestration.job import CronJob
from cron_workflow.substrate.host import LocalHost
from cron_workflow.substrate.instances import MemoryInstanceRegistry
from cron_workflow.substrate.retry import NoRetry, RetryStrategy
from cron_workflow.substrate.store import MemoryStepStore


class FakeClock:
    """Manually driven UTC clock."""

    def __init__(self, start: datetime | str) -> None:
        if isinstance(start, str):
            start = from_iso8601(start)
        self.now = ensure_utc(start)
        self.sleeps: list[float] = []

    def __call__(self) -> datetime:
        return self.now

    def advance(self, seconds: float = 0.0, **kwargs: float) -> datetime:
        """Move forward by ``seconds`` plus any ``timedelta`` keyword parts."""
        self.now += timedelta(seconds=seconds, **kwargs)
        return self.now

    def set(self, when: datetime | str) -> datetime:
        if isinstance(when, str):
            when = from_iso8601(when)
        self.now = ensure_utc(when)
        return self.now

    def sleep(self, seconds: float) -> None:
        """Stand-in for ``time.sleep``: record and advance."""
        self.sleeps.append(seconds)
        if seconds > 0:
            self.now += timedelta(seconds=seconds)

    def __repr__(self) -> str:
        return f"FakeClock({self.now.isoformat()})"


@dataclass
class LocalHarness:
    """Everything needed to drive a job locally in a test."""

    clock: FakeClock
    store: MemoryStepStore
    registry: MemoryInstanceRegistry
    workflow: CronWorkflow
    host: LocalHost


def make_harness(
    job: CronJob,
    start: datetime | str = "2024-01-15T12:00:00+00:00",
    retry: RetryStrategy | None = None,
) -> LocalHarness:
    """Wire a job to an in-memory substrate driven by a FakeClock."""
    clock = FakeClock(start)
    store = MemoryStepStore()
    registry = MemoryInstanceRegistry(job.name, clock=clock)
    workflow = CronWorkflow(job, registry, clock=clock)
    host = LocalHost(
        workflow,
        registry,
        store,
        retry=retry or NoRetry(),
        clock=clock,
        sleeper=clock.sleep,
    )
    return LocalHarness(clock=clock, store=store, registry=registry, workflow=workflow, host=host)


__all__ = ["FakeClock", "LocalHarness", "make_harness"]
