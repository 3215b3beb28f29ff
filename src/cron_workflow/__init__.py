"""cron-workflow -- durable, self-perpetuating cron jobs over durable steps.

Manifesto:
    A cron job on a durable-execution substrate should be written as three
    plain hooks and nothing else. The engine turns them into a chain of
    short-lived instances: each one resolves its run time, suspends until
    due, runs init → tick → finalize as memoized steps with error
    containment, and always creates its successor before it ends. A run
    that fails is recorded as failed; the schedule keeps going.

Architecture::

    core/           errors, structlog logging, settings, timestamps
    scheduling/     CronExpressionProvider + croniter implementation
    orchestration/  CronJob, StepResult, CronWorkflow lifecycle engine
    substrate/      local step stores, step runner, instance registries, host
    testing.py      FakeClock + in-memory harness
    cli/            ``cron-workflow`` Typer app

Example::

    from cron_workflow import CronJob, CronWorkflow

    job = CronJob("uuid-checker", schedule="* * * * *")

    @job.tick
    def check(ctx):
        return ctx.step.do("check uuid.rocks", fetch_uuid)

    workflow = CronWorkflow(job, instance_factory=my_platform_factory)
    workflow.run(params, step)   # called by the host per instance
"""

from cron_workflow.core.errors import (
    CronWorkflowError,
    InvalidJobError,
    ScheduleComputationError,
    SuccessorSchedulingError,
    SuspendTimeTravelError,
    TerminalRunError,
)
from cron_workflow.orchestration import (
    CronContext,
    CronFinalizeContext,
    CronJob,
    CronWorkflow,
    ErrorInfo,
    InstanceHandle,
    InstanceParams,
    RunOutcome,
    RunState,
    ScheduleSpec,
    StepResult,
    first_error,
)
from cron_workflow.scheduling import CroniterProvider, validate_cron_expression

__version__ = "0.1.0"

__all__ = [
    "CronWorkflowError",
    "InvalidJobError",
    "ScheduleComputationError",
    "SuccessorSchedulingError",
    "SuspendTimeTravelError",
    "TerminalRunError",
    "CronContext",
    "CronFinalizeContext",
    "CronJob",
    "CronWorkflow",
    "ErrorInfo",
    "InstanceHandle",
    "InstanceParams",
    "RunOutcome",
    "RunState",
    "ScheduleSpec",
    "StepResult",
    "first_error",
    "CroniterProvider",
    "validate_cron_expression",
    "__version__",
]
