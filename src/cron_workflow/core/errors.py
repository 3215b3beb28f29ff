"""
Structured error types for cron-workflow.

Every error the lifecycle engine raises carries a category, an explicit
retry flag, structured context and an optional chained cause, so that a
host can decide between "record as failed" and "retry the instance"
without string matching.

Manifesto:
    - **Typed Error Hierarchy:** One error type per failure domain
    - **Explicit Retry Semantics:** Each error knows if it's retryable
    - **Rich Context:** job_name, instance_id and step travel with the error
    - **Error Chaining:** Original exceptions are preserved as ``cause``

Architecture:
    ::

        ┌─────────────────────────────────────────────────────────────────┐
        │                    CronWorkflowError                             │
        │  (category, retryable, context, cause)                          │
        ├─────────────────────────────────────────────────────────────────┤
        │                                                                  │
        │  HookError               ScheduleComputationError               │
        │  (HOOK)                  (SCHEDULE, never retryable)            │
        │     │                                                            │
        │  TerminalRunError        SuccessorSchedulingError               │
        │  (HOOK, never retryable) (SUBSTRATE, retryable if cause is)     │
        │                               │                                  │
        │                          DuplicateInstanceError                 │
        │                                                                  │
        │  SuspendTimeTravelError  InvalidJobError                        │
        │  (SUBSTRATE, recovered)  (CONFIG)                               │
        └─────────────────────────────────────────────────────────────────┘

Examples:
    >>> error = TerminalRunError.from_error_info(ErrorInfo("boom", "ValueError"))
    >>> error.retryable
    False
    >>> error.to_dict()["category"]
    'HOOK'

Tags:
    error-handling, exception-hierarchy, retry-logic, cron-workflow

Doc-Types:
    - API Reference
    - Error Handling Guide
"""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from typing import TYPE_CHECKING, Any

if TYPE_CHECKING:
    from cron_workflow.orchestration.step_result import ErrorInfo


class ErrorCategory(str, Enum):
    """
    Error categories for classification and retry decisions.

    - HOOK: user-supplied init/tick/finalize code failed
    - SCHEDULE: the cron configuration is broken
    - SUBSTRATE: the durable step runner or instance factory misbehaved
    - CONFIG: the job definition itself is invalid
    - NETWORK: transport failures (usually retryable)
    - INTERNAL / UNKNOWN: everything else
    """

    HOOK = "HOOK"
    SCHEDULE = "SCHEDULE"
    SUBSTRATE = "SUBSTRATE"
    CONFIG = "CONFIG"
    NETWORK = "NETWORK"
    INTERNAL = "INTERNAL"
    UNKNOWN = "UNKNOWN"


@dataclass
class ErrorContext:
    """Structured metadata attached to an error."""

    job_name: str | None = None
    instance_id: str | None = None
    step: str | None = None
    metadata: dict[str, Any] = field(default_factory=dict)

    def to_dict(self) -> dict[str, Any]:
        """Convert to dictionary, excluding None values."""
        result: dict[str, Any] = {}
        if self.job_name:
            result["job_name"] = self.job_name
        if self.instance_id:
            result["instance_id"] = self.instance_id
        if self.step:
            result["step"] = self.step
        if self.metadata:
            result.update(self.metadata)
        return result


class CronWorkflowError(Exception):
    """
    Base exception for all cron-workflow errors.

    Subclasses set ``default_category`` and ``default_retryable`` so that
    raising code rarely has to pass them explicitly.

    Examples:
        >>> error = CronWorkflowError("Something went wrong")
        >>> error.category
        <ErrorCategory.INTERNAL: 'INTERNAL'>
        >>> error.with_context(job_name="nightly", step="run-on-tick").context.step
        'run-on-tick'
    """

    default_category: ErrorCategory = ErrorCategory.INTERNAL
    default_retryable: bool = False

    def __init__(
        self,
        message: str,
        *,
        category: ErrorCategory | None = None,
        retryable: bool | None = None,
        context: ErrorContext | None = None,
        cause: BaseException | None = None,
    ):
        super().__init__(message)
        self.message = message
        self.category = category or self.default_category
        self.retryable = retryable if retryable is not None else self.default_retryable
        self.context = context or ErrorContext()
        self.cause = cause

        if cause is not None:
            self.__cause__ = cause

    def with_context(self, **kwargs: Any) -> CronWorkflowError:
        """
        Add context to this error (fluent API).

        Usage:
            raise ScheduleComputationError("bad cron").with_context(
                job_name="nightly", step="resolve-run-time"
            )
        """
        for key, value in kwargs.items():
            if key != "metadata" and hasattr(self.context, key):
                setattr(self.context, key, value)
            else:
                self.context.metadata[key] = value
        return self

    def to_dict(self) -> dict[str, Any]:
        """Convert error to dictionary for logging/serialization."""
        result: dict[str, Any] = {
            "error_type": self.__class__.__name__,
            "message": self.message,
            "category": self.category.value,
            "retryable": self.retryable,
        }
        context_dict = self.context.to_dict()
        if context_dict:
            result["context"] = context_dict
        if self.cause is not None:
            result["cause"] = str(self.cause)
        return result

    def __repr__(self) -> str:
        return f"{self.__class__.__name__}({self.message!r}, category={self.category.value})"


# =============================================================================
# HOOK ERRORS
# =============================================================================


class HookError(CronWorkflowError):
    """
    A user-supplied lifecycle hook raised.

    Hook exceptions never escape their step: the engine wraps each one with
    :meth:`wrap` for the ``cron_hook_failed`` log event, and records it in
    the hook's StepResult as ``ErrorInfo(kind=<original class name>)``.
    ``TerminalRunError`` is the HookError that ``run`` raises once per
    failed instance.
    """

    default_category = ErrorCategory.HOOK
    default_retryable = False

    @classmethod
    def wrap(cls, exc: Exception, step: str, **context: Any) -> HookError:
        error = cls(str(exc), cause=exc)
        error.with_context(step=step, **context)
        return error


class TerminalRunError(HookError):
    """
    Raised once per instance, after finalize has run, when any hook failed.

    Always non-retryable: the instance is permanently failed and the
    schedule continues only through the already-created successor.
    """

    def __init__(
        self,
        message: str,
        *,
        kind: str = "Error",
        context: ErrorContext | None = None,
        cause: BaseException | None = None,
    ):
        super().__init__(message, retryable=False, context=context, cause=cause)
        self.kind = kind

    @classmethod
    def from_error_info(cls, info: ErrorInfo, **context: Any) -> TerminalRunError:
        error = cls(info.message, kind=info.kind)
        if context:
            error.with_context(**context)
        return error

    @property
    def error_info(self) -> ErrorInfo:
        from cron_workflow.orchestration.step_result import ErrorInfo

        return ErrorInfo(message=self.message, kind=self.kind)

    def to_dict(self) -> dict[str, Any]:
        result = super().to_dict()
        result["kind"] = self.kind
        return result


# =============================================================================
# SCHEDULE / CONFIG ERRORS
# =============================================================================


class ScheduleComputationError(CronWorkflowError):
    """Cron expression invalid, or run-time resolution failed."""

    default_category = ErrorCategory.SCHEDULE
    default_retryable = False


class InvalidJobError(CronWorkflowError):
    """Job definition is unusable (missing tick hook, empty name)."""

    default_category = ErrorCategory.CONFIG
    default_retryable = False


# =============================================================================
# SUBSTRATE ERRORS
# =============================================================================


class SuspendTimeTravelError(CronWorkflowError):
    """sleep_until was asked to wait for a deadline that already passed."""

    default_category = ErrorCategory.SUBSTRATE
    default_retryable = False


class SuccessorSchedulingError(CronWorkflowError):
    """
    Creating the successor instance failed.

    Retryable when the underlying cause is, so a host may re-attempt the
    instance; memoized steps make that re-attempt skip finished work.
    """

    default_category = ErrorCategory.SUBSTRATE
    default_retryable = True

    def __init__(
        self,
        message: str,
        *,
        retryable: bool | None = None,
        context: ErrorContext | None = None,
        cause: BaseException | None = None,
    ):
        if retryable is None and cause is not None:
            retryable = is_retryable(cause)
        super().__init__(message, retryable=retryable, context=context, cause=cause)


class DuplicateInstanceError(SuccessorSchedulingError):
    """An instance with the requested id already exists."""

    default_retryable = False

    def __init__(self, message: str, **kwargs: Any):
        kwargs["retryable"] = False
        super().__init__(message, **kwargs)


# =============================================================================
# UTILITY FUNCTIONS
# =============================================================================


def is_retryable(error: BaseException) -> bool:
    """Check if an error is retryable."""
    if isinstance(error, CronWorkflowError):
        return error.retryable
    retryable_types = (
        ConnectionError,
        TimeoutError,
        OSError,
    )
    return isinstance(error, retryable_types)


def categorize_error(error: BaseException) -> ErrorCategory:
    """Get the category of an error."""
    if isinstance(error, CronWorkflowError):
        return error.category
    if isinstance(error, (ConnectionError, TimeoutError, OSError)):
        return ErrorCategory.NETWORK
    if isinstance(error, (KeyError, AttributeError)):
        return ErrorCategory.CONFIG
    return ErrorCategory.UNKNOWN


__all__ = [
    "ErrorCategory",
    "ErrorContext",
    "CronWorkflowError",
    "HookError",
    "TerminalRunError",
    "ScheduleComputationError",
    "InvalidJobError",
    "SuspendTimeTravelError",
    "SuccessorSchedulingError",
    "DuplicateInstanceError",
    "is_retryable",
    "categorize_error",
]
