"""Step Result: envelope for hook and bookkeeping step outcomes.

Manifesto:
    A hook that raises must not unwind the run before ``finalize`` has had
    a chance to observe the failure. Each hook body therefore runs inside
    its durable step, catches its own exception, and *returns* a
    ``StepResult`` instead. Durable steps record return values, so the
    envelope also has to survive a trip through JSON: ``to_dict`` is what
    the step runner stores and ``from_dict`` is what the engine reads back
    on replay.

ARCHITECTURE
────────────
::

    StepResult
      ├── .ok(output)               → success
      ├── .fail(error_info)         → failure
      ├── .from_exception(exc)      → failure from a caught exception
      ├── .to_dict() / .from_dict() → durable-step wire form
      └── first_error(*results)     → first ErrorInfo among results

    ErrorInfo ── {message, kind}

Example::

    from cron_workflow.orchestration.step_result import StepResult, first_error

    init = StepResult.ok({"checked_in": True})
    tick = StepResult.from_exception(ValueError("boom"))
    first_error(init, tick)  # ErrorInfo(message='boom', kind='ValueError')

Tags:
    cron-workflow, orchestration, step-result, envelope, success-failure
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any

from cron_workflow.core.errors import CronWorkflowError, TerminalRunError


@dataclass(frozen=True)
class ErrorInfo:
    """Serializable description of a failure: message plus error kind."""

    message: str
    kind: str = "Error"

    @classmethod
    def from_exception(cls, exc: BaseException) -> ErrorInfo:
        """Normalize any exception into ``{message, kind}``.

        ``kind`` is the exception class name, except for a TerminalRunError
        being re-wrapped, which keeps the kind it already carries.
        """
        if isinstance(exc, TerminalRunError):
            return cls(message=exc.message, kind=exc.kind)
        if isinstance(exc, CronWorkflowError):
            return cls(message=exc.message, kind=type(exc).__name__)
        message = str(exc) or f"Unknown error thrown: {exc!r}"
        return cls(message=message, kind=type(exc).__name__)

    def to_dict(self) -> dict[str, str]:
        return {"message": self.message, "kind": self.kind}

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> ErrorInfo:
        return cls(message=str(data.get("message", "")), kind=str(data.get("kind", "Error")))


@dataclass
class StepResult:
    """
    Result of one durable step.

    Attributes:
        success: Whether the step completed successfully
        output: Return value of the step body (meaningful when success=True)
        error: Failure description (meaningful when success=False)
    """

    success: bool
    output: Any = None
    error: ErrorInfo | None = None

    def __post_init__(self):
        # Exactly one of output / error is meaningful
        if self.success:
            self.error = None
        else:
            self.output = None
            if self.error is None:
                self.error = ErrorInfo("Step failed without error message")

    # =========================================================================
    # Factories
    # =========================================================================

    @classmethod
    def ok(cls, output: Any = None) -> StepResult:
        """Create a successful result."""
        return cls(success=True, output=output)

    @classmethod
    def fail(cls, error: ErrorInfo | str) -> StepResult:
        """Create a failed result from an ErrorInfo (or a bare message)."""
        if isinstance(error, str):
            error = ErrorInfo(error)
        return cls(success=False, error=error)

    @classmethod
    def from_exception(cls, exc: BaseException) -> StepResult:
        return cls.fail(ErrorInfo.from_exception(exc))

    # =========================================================================
    # Serialization
    # =========================================================================

    def to_dict(self) -> dict[str, Any]:
        """Serialize for the durable step record."""
        if self.success:
            return {"success": True, "output": self.output}
        assert self.error is not None
        return {"success": False, "error": self.error.to_dict()}

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> StepResult:
        """Rebuild a result recorded by ``to_dict``."""
        if data.get("success"):
            return cls.ok(data.get("output"))
        error = data.get("error")
        return cls.fail(ErrorInfo.from_dict(error) if isinstance(error, dict) else ErrorInfo(str(error)))

    def __repr__(self) -> str:
        if self.success:
            return f"StepResult(OK, output={self.output!r})"
        assert self.error is not None
        return f"StepResult(FAIL({self.error.kind}), error={self.error.message!r})"


def first_error(*results: StepResult | None) -> ErrorInfo | None:
    """Return the error of the first failed result, skipping missing ones."""
    for result in results:
        if result is not None and not result.success:
            return result.error
    return None


__all__ = [
    "ErrorInfo",
    "StepResult",
    "first_error",
]
