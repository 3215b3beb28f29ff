"""Data model for one cron chain: schedule, instance payload, run outcome.

ARCHITECTURE
────────────
::

    ScheduleSpec     frozen, one per job type, shared by the whole chain
    InstanceParams   frozen payload handed to the Instance Factory
    InstanceHandle   what the Instance Factory returns ({id})
    RunState         per-instance state machine
    RunOutcome       in-memory aggregate of one instance execution

    PENDING_RUNTIME_RESOLUTION → WAITING_UNTIL_DUE → RUNNING_INIT
      → RUNNING_TICK (conditional) → RUNNING_FINALIZE (conditional)
      → SCHEDULING_SUCCESSOR → SUCCEEDED | FAILED
"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime
from enum import Enum
from typing import Any

from cron_workflow.core.timestamps import ensure_utc, from_iso8601, to_iso8601
from cron_workflow.orchestration.step_result import ErrorInfo, StepResult


@dataclass(frozen=True)
class ScheduleSpec:
    """Immutable schedule of one job type."""

    cron_expression: str
    job_name: str
    timezone: str = "UTC"


@dataclass(frozen=True)
class InstanceParams:
    """Payload an instance is created with.

    ``next_run_time`` is absent only for the first instance of a chain;
    every successor carries the time computed by its predecessor.
    """

    next_run_time: datetime | None = None

    def __post_init__(self):
        if self.next_run_time is not None:
            object.__setattr__(self, "next_run_time", ensure_utc(self.next_run_time))

    def to_payload(self) -> dict[str, Any]:
        """JSON-safe wire form."""
        return {"next_run_time": to_iso8601(self.next_run_time)}

    @classmethod
    def from_payload(cls, payload: dict[str, Any] | None) -> InstanceParams:
        if not payload:
            return cls()
        return cls(next_run_time=from_iso8601(payload.get("next_run_time")))


@dataclass(frozen=True)
class InstanceHandle:
    """Reference to a created instance."""

    id: str


class RunState(str, Enum):
    """Lifecycle state of one instance execution."""

    PENDING_RUNTIME_RESOLUTION = "PENDING_RUNTIME_RESOLUTION"
    WAITING_UNTIL_DUE = "WAITING_UNTIL_DUE"
    RUNNING_INIT = "RUNNING_INIT"
    RUNNING_TICK = "RUNNING_TICK"
    RUNNING_FINALIZE = "RUNNING_FINALIZE"
    SCHEDULING_SUCCESSOR = "SCHEDULING_SUCCESSOR"
    SUCCEEDED = "SUCCEEDED"
    FAILED = "FAILED"

    @property
    def is_terminal(self) -> bool:
        return self in (RunState.SUCCEEDED, RunState.FAILED)


@dataclass
class RunOutcome:
    """Aggregate of one instance execution. Built during the run, never persisted."""

    state: RunState = RunState.PENDING_RUNTIME_RESOLUTION
    run_time: datetime | None = None
    init_result: StepResult | None = None
    tick_result: StepResult | None = None
    finalize_result: StepResult | None = None
    terminal_error: ErrorInfo | None = None
    successor_time: datetime | None = None
    successor_id: str | None = None

    @property
    def succeeded(self) -> bool:
        return self.state == RunState.SUCCEEDED

    def hook_results_to_dict(self) -> dict[str, Any]:
        """Wire form of the hook results, recorded by the umbrella step."""
        return {
            "init": self.init_result.to_dict() if self.init_result else None,
            "tick": self.tick_result.to_dict() if self.tick_result else None,
            "finalize": self.finalize_result.to_dict() if self.finalize_result else None,
        }

    def load_hook_results(self, data: dict[str, Any]) -> None:
        """Restore hook results from the umbrella step's record (replay)."""
        for key, attr in (("init", "init_result"), ("tick", "tick_result"), ("finalize", "finalize_result")):
            value = data.get(key)
            setattr(self, attr, StepResult.from_dict(value) if value else None)


__all__ = [
    "ScheduleSpec",
    "InstanceParams",
    "InstanceHandle",
    "RunState",
    "RunOutcome",
]
