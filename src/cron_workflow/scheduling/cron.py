"""Cron expression provider backed by croniter.

┌──────────────────────────────────────────────────────────────────────────────┐
│  CRON EXPRESSION PROVIDER                                                     │
│                                                                               │
│  The lifecycle engine never parses cron text itself. It asks a provider:     │
│                                                                               │
│      provider.next_occurrence("*/5 * * * *", after, tz="UTC") -> datetime    │
│                                                                               │
│  ┌────────────────────┐   parse(expr, tz)   ┌────────────────────┐           │
│  │  CronWorkflow      │ ──────────────────► │  CroniterProvider  │           │
│  │  (resolve / next)  │ ◄────────────────── │  (croniter)        │           │
│  └────────────────────┘    CronSchedule     └────────────────────┘           │
│                                                                               │
│  Rules:                                                                       │
│  - Expressions are validated on every call; nothing is cached, so a bad      │
│    expression fails every run attempt identically                            │
│  - Evaluation happens in the schedule's timezone, results are always UTC     │
│  - next(after) is strictly greater than after                                │
└──────────────────────────────────────────────────────────────────────────────┘
"""

from __future__ import annotations

import zoneinfo
from datetime import datetime, tzinfo
from typing import Protocol, runtime_checkable

from croniter import croniter

from cron_workflow.core.errors import ScheduleComputationError
from cron_workflow.core.logging import get_logger
from cron_workflow.core.timestamps import ensure_utc

logger = get_logger(__name__)


def _resolve_timezone(name: str) -> tzinfo:
    try:
        return zoneinfo.ZoneInfo(name)
    except (zoneinfo.ZoneInfoNotFoundError, ValueError) as e:
        raise ScheduleComputationError(f"Unknown timezone: {name!r}", cause=e) from e


class CronSchedule:
    """A parsed cron expression bound to an evaluation timezone."""

    def __init__(self, expression: str, timezone: str = "UTC") -> None:
        self.expression = expression
        self.timezone = timezone
        self._tz = _resolve_timezone(timezone)

    def next(self, after: datetime) -> datetime:
        """Return the first occurrence strictly after ``after``, in UTC."""
        after_utc = ensure_utc(after)
        itr = croniter(self.expression, after_utc.astimezone(self._tz))
        next_run = ensure_utc(itr.get_next(datetime))
        while next_run <= after_utc:
            next_run = ensure_utc(itr.get_next(datetime))
        return next_run

    def iter(self, after: datetime, count: int) -> list[datetime]:
        """Return the next ``count`` occurrences after ``after``."""
        occurrences: list[datetime] = []
        current = after
        for _ in range(count):
            current = self.next(current)
            occurrences.append(current)
        return occurrences

    def __repr__(self) -> str:
        return f"CronSchedule({self.expression!r}, timezone={self.timezone!r})"


@runtime_checkable
class CronExpressionProvider(Protocol):
    """Parses schedule strings and yields next occurrences.

    Implementations must reject malformed expressions deterministically
    by raising ScheduleComputationError.
    """

    def parse(self, expression: str, timezone: str = "UTC") -> CronSchedule:
        ...

    def next_occurrence(
        self,
        expression: str,
        after: datetime,
        timezone: str = "UTC",
    ) -> datetime:
        ...


class CroniterProvider:
    """Default provider using the croniter library."""

    name = "croniter"

    def parse(self, expression: str, timezone: str = "UTC") -> CronSchedule:
        """Validate and bind an expression.

        Raises:
            ScheduleComputationError: expression or timezone is invalid
        """
        if not isinstance(expression, str) or not expression.strip():
            raise ScheduleComputationError(f"Invalid cron expression: {expression!r}")
        expression = expression.strip()
        if not croniter.is_valid(expression):
            raise ScheduleComputationError(f"Invalid cron expression: {expression!r}")
        return CronSchedule(expression, timezone)

    def next_occurrence(
        self,
        expression: str,
        after: datetime,
        timezone: str = "UTC",
    ) -> datetime:
        """Compute the next run time after ``after``.

        Args:
            expression: Cron expression (5-part, or 6-part with seconds)
            after: Compute next run strictly after this time
            timezone: Timezone for evaluation

        Returns:
            Next run datetime in UTC
        """
        schedule = self.parse(expression, timezone)
        try:
            return schedule.next(after)
        except (ValueError, KeyError, TypeError) as e:
            logger.warning("cron_next_failed", expression=expression, error=str(e))
            raise ScheduleComputationError(
                f"Could not compute next occurrence of {expression!r}: {e}", cause=e
            ) from e


def validate_cron_expression(expression: str, timezone: str = "UTC") -> str | None:
    """Return None if valid, error message if invalid."""
    try:
        CroniterProvider().parse(expression, timezone)
        return None
    except ScheduleComputationError as e:
        return e.message


__all__ = [
    "CronExpressionProvider",
    "CronSchedule",
    "CroniterProvider",
    "validate_cron_expression",
]
