"""Orchestration -- the lifecycle engine and its data model.

ARCHITECTURE
────────────
::

    job.py            CronJob (schedule + hook slots, decorator registration)
    models.py         ScheduleSpec, InstanceParams, InstanceHandle, RunState, RunOutcome
    step_result.py    StepResult / ErrorInfo / first_error
    context.py        CronContext / CronFinalizeContext handed to hooks
    protocols.py      StepRunner / InstanceFactory contracts
    cron_workflow.py  CronWorkflow engine (resolve → wait → hooks → reschedule)
"""

from cron_workflow.orchestration.context import CronContext, CronFinalizeContext
from cron_workflow.orchestration.cron_workflow import STEP_NAMES, CronWorkflow
from cron_workflow.orchestration.job import CronJob
from cron_workflow.orchestration.models import (
    InstanceHandle,
    InstanceParams,
    RunOutcome,
    RunState,
    ScheduleSpec,
)
from cron_workflow.orchestration.protocols import InstanceFactory, StepRunner
from cron_workflow.orchestration.step_result import ErrorInfo, StepResult, first_error

__all__ = [
    "CronContext",
    "CronFinalizeContext",
    "CronWorkflow",
    "STEP_NAMES",
    "CronJob",
    "InstanceHandle",
    "InstanceParams",
    "RunOutcome",
    "RunState",
    "ScheduleSpec",
    "InstanceFactory",
    "StepRunner",
    "ErrorInfo",
    "StepResult",
    "first_error",
]
