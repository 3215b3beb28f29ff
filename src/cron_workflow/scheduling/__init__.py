"""Schedule evaluation -- cron expressions in, UTC run times out.

The lifecycle engine depends only on the ``CronExpressionProvider``
protocol; ``CroniterProvider`` is the default implementation.
"""

from __future__ import annotations

from .cron import (
    CronExpressionProvider,
    CroniterProvider,
    CronSchedule,
    validate_cron_expression,
)

__all__ = [
    "CronExpressionProvider",
    "CroniterProvider",
    "CronSchedule",
    "validate_cron_expression",
]
