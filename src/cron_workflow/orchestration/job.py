"""Cron job definition: a schedule plus three hook slots.

Hooks are plain callables. ``on_tick`` is mandatory; ``on_init`` and
``on_finalize`` are optional and ``None`` means "not supplied", in which
case the engine does not create a step for them at all.

Example::

    from cron_workflow import CronJob

    job = CronJob("uuid-checker", schedule="* * * * *")

    @job.init
    def check_in(ctx):
        ctx.step.do("send check-in", lambda: monitor.check_in("in_progress"))

    @job.tick
    def check(ctx):
        return ctx.step.do("fetch uuid", fetch_uuid)

    @job.finalize
    def report(ctx):
        status = "error" if ctx.error else "ok"
        ctx.step.do("send outcome", lambda: monitor.check_in(status))
"""

from __future__ import annotations

from collections.abc import Callable
from dataclasses import dataclass, field
from typing import Any

from cron_workflow.core.errors import InvalidJobError
from cron_workflow.core.settings import get_settings
from cron_workflow.orchestration.context import CronContext, CronFinalizeContext
from cron_workflow.orchestration.models import ScheduleSpec

Hook = Callable[[CronContext], Any]
FinalizeHook = Callable[[CronFinalizeContext], Any]


@dataclass
class CronJob:
    """
    A recurring job.

    Attributes:
        name: Stable job identifier (step naming / observability)
        schedule: Cron expression; defaults to ``settings.default_schedule``
        timezone: Evaluation timezone; defaults to ``settings.timezone``
        on_init: Runs before tick; a failure skips tick
        on_tick: Main body, once per run (required)
        on_finalize: Runs after init/tick, with their error if any
    """

    name: str
    schedule: str | None = None
    timezone: str | None = None
    on_init: Hook | None = None
    on_tick: Hook | None = None
    on_finalize: FinalizeHook | None = None
    _spec: ScheduleSpec = field(init=False, repr=False, compare=False)

    def __post_init__(self):
        if not isinstance(self.name, str) or not self.name.strip():
            raise InvalidJobError("CronJob requires a non-empty name")
        settings = get_settings()
        if self.schedule is None:
            self.schedule = settings.default_schedule
        if self.timezone is None:
            self.timezone = settings.timezone
        self._spec = ScheduleSpec(
            cron_expression=self.schedule,
            job_name=self.name,
            timezone=self.timezone,
        )

    @property
    def spec(self) -> ScheduleSpec:
        return self._spec

    # ── decorator registration ───────────────────────────────────

    def init(self, fn: Hook) -> Hook:
        self.on_init = fn
        return fn

    def tick(self, fn: Hook) -> Hook:
        self.on_tick = fn
        return fn

    def finalize(self, fn: FinalizeHook) -> FinalizeHook:
        self.on_finalize = fn
        return fn


__all__ = ["CronJob", "Hook", "FinalizeHook"]
