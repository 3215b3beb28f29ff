"""Context objects handed to lifecycle hooks."""

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime
from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from cron_workflow.orchestration.models import ScheduleSpec
    from cron_workflow.orchestration.protocols import StepRunner
    from cron_workflow.orchestration.step_result import ErrorInfo


@dataclass(frozen=True)
class CronContext:
    """
    What a hook sees.

    Attributes:
        name: Name of the cron job
        step: Durable step handle; use ``ctx.step.do(...)`` for nested
            steps. Step names share one namespace per instance, so avoid
            the engine's own names (``run-on-tick`` etc.).
        schedule: The job's schedule
        run_time: The time this instance fired for
    """

    name: str
    step: StepRunner
    schedule: ScheduleSpec
    run_time: datetime


@dataclass(frozen=True)
class CronFinalizeContext(CronContext):
    """Finalize context; ``error`` is the init/tick failure, if any."""

    error: ErrorInfo | None = None

    @property
    def failed(self) -> bool:
        return self.error is not None


__all__ = ["CronContext", "CronFinalizeContext"]
