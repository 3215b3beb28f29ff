"""Core primitives -- errors, logging, settings and timestamps.

Layer 1 of cron-workflow. Nothing here knows about cron expressions,
step runners or hooks; the orchestration and substrate packages build on
these pieces.

Architecture::

    errors.py       Structured error hierarchy (CronWorkflowError, TerminalRunError)
    logging.py      structlog configuration + LogContext
    settings.py     CronWorkflowSettings (pydantic-settings, CRON_WORKFLOW_ prefix)
    timestamps.py   utc_now / ISO helpers / ULID ids (stdlib-only)
"""

from cron_workflow.core.errors import (
    CronWorkflowError,
    DuplicateInstanceError,
    ErrorCategory,
    ErrorContext,
    HookError,
    InvalidJobError,
    ScheduleComputationError,
    SuccessorSchedulingError,
    SuspendTimeTravelError,
    TerminalRunError,
    categorize_error,
    is_retryable,
)
from cron_workflow.core.logging import LogContext, configure_logging, get_logger
from cron_workflow.core.settings import CronWorkflowSettings, get_settings, reset_settings
from cron_workflow.core.timestamps import (
    ensure_utc,
    from_iso8601,
    generate_ulid,
    to_iso8601,
    utc_now,
)

__all__ = [
    "CronWorkflowError",
    "DuplicateInstanceError",
    "ErrorCategory",
    "ErrorContext",
    "HookError",
    "InvalidJobError",
    "ScheduleComputationError",
    "SuccessorSchedulingError",
    "SuspendTimeTravelError",
    "TerminalRunError",
    "categorize_error",
    "is_retryable",
    "LogContext",
    "configure_logging",
    "get_logger",
    "CronWorkflowSettings",
    "get_settings",
    "reset_settings",
    "ensure_utc",
    "from_iso8601",
    "generate_ulid",
    "to_iso8601",
    "utc_now",
]
