"""CronWorkflow: the lifecycle engine for one instance of a cron chain.

Manifesto:
    A recurring job on a durable substrate is a chain of short-lived
    instances, not a long-lived loop. Each instance does exactly one
    resolve → wait → run hooks → reschedule pass and terminates. The
    successor is created before the instance ends, whether its hooks
    succeeded or not, so one bad run never stops the schedule.

ARCHITECTURE
────────────
::

    run(params, step)
      │
      ├── step.do("resolve-run-time")          params.next_run_time or cron.next(now)
      ├── step.sleep_until("wait-until-due")   time-travel rejection ⇒ re-check clock
      │
      ├── step.do("run-user-steps")            umbrella
      │     ├── step.do("run-on-init")         if supplied; errors captured
      │     ├── step.do("run-on-tick")         only if init succeeded
      │     ├── step.do("run-on-finalize")     if supplied; sees init/tick error
      │     └── raise TerminalRunError         if any hook failed (non-retryable)
      │
      └── always:
            ├── step.do("calculate-next-run-time")   cron.next(run_time)
            └── step.do("create-next-instance")      factory.create(...)

Error precedence:
    hook failure + successor failure → hook failure raised, successor
    failure logged and attached as ``successor_error`` context.
    successor failure alone           → SuccessorSchedulingError raised.

Every step body returns a JSON-friendly dict (``StepResult.to_dict``),
so the records survive a durable store and replays rebuild the same
``RunOutcome``.

Tags:
    cron-workflow, orchestration, lifecycle, durable-steps, self-rescheduling
"""

from __future__ import annotations

from collections.abc import Callable
from datetime import datetime
from typing import Any

from cron_workflow.core.errors import (
    CronWorkflowError,
    HookError,
    InvalidJobError,
    ScheduleComputationError,
    SuccessorSchedulingError,
    SuspendTimeTravelError,
    TerminalRunError,
)
from cron_workflow.core.logging import LogContext, get_logger
from cron_workflow.core.timestamps import from_iso8601, to_iso8601, utc_now
from cron_workflow.orchestration.context import CronContext, CronFinalizeContext
from cron_workflow.orchestration.job import CronJob
from cron_workflow.orchestration.models import (
    InstanceParams,
    RunOutcome,
    RunState,
    ScheduleSpec,
)
from cron_workflow.orchestration.protocols import InstanceFactory, StepRunner
from cron_workflow.orchestration.step_result import StepResult, first_error
from cron_workflow.scheduling.cron import CronExpressionProvider, CroniterProvider

logger = get_logger(__name__)

# Durable step names. Stable across releases: renaming one breaks replay
# of instances that are in flight.
RESOLVE_RUN_TIME = "resolve-run-time"
WAIT_UNTIL_DUE = "wait-until-due"
RUN_USER_STEPS = "run-user-steps"
RUN_ON_INIT = "run-on-init"
RUN_ON_TICK = "run-on-tick"
RUN_ON_FINALIZE = "run-on-finalize"
CALCULATE_NEXT_RUN_TIME = "calculate-next-run-time"
CREATE_NEXT_INSTANCE = "create-next-instance"

STEP_NAMES = (
    RESOLVE_RUN_TIME,
    WAIT_UNTIL_DUE,
    RUN_USER_STEPS,
    RUN_ON_INIT,
    RUN_ON_TICK,
    RUN_ON_FINALIZE,
    CALCULATE_NEXT_RUN_TIME,
    CREATE_NEXT_INSTANCE,
)


class CronWorkflow:
    """Drives one instance of a cron job through its lifecycle.

    Args:
        job: The job definition (schedule + hooks)
        instance_factory: Creates the successor instance
        cron: Cron expression provider (default: CroniterProvider)
        clock: Returns the current aware UTC time
    """

    def __init__(
        self,
        job: CronJob,
        instance_factory: InstanceFactory,
        cron: CronExpressionProvider | None = None,
        clock: Callable[[], datetime] = utc_now,
    ) -> None:
        if job.on_tick is None or not callable(job.on_tick):
            raise InvalidJobError(
                f"CronJob {job.name!r} has no tick hook. Set on_tick or decorate a function with @job.tick."
            )
        self.job = job
        self.instance_factory = instance_factory
        self.cron = cron or CroniterProvider()
        self._clock = clock

    @property
    def name(self) -> str:
        return self.job.name

    @property
    def schedule(self) -> ScheduleSpec:
        return self.job.spec

    # =========================================================================
    # Entry points
    # =========================================================================

    def entrypoint(self, payload: dict[str, Any] | None, step: StepRunner) -> RunOutcome:
        """Run from a raw event payload, as a host dispatcher receives it."""
        return self.run(InstanceParams.from_payload(payload), step)

    def run(self, params: InstanceParams, step: StepRunner) -> RunOutcome:
        """Execute one instance.

        Returns:
            RunOutcome of a successful run

        Raises:
            ScheduleComputationError: the run time could not be resolved
            TerminalRunError: a hook failed (after finalize and rescheduling ran)
            SuccessorSchedulingError: hooks succeeded but chaining failed
        """
        outcome = RunOutcome()
        log_context: dict[str, Any] = {"job_name": self.name}
        instance_id = getattr(step, "instance_id", None)
        if instance_id:
            log_context["instance_id"] = instance_id

        with LogContext(**log_context):
            outcome.run_time = self._resolve_run_time(params, step)
            logger.info("cron_run_started", run_time=to_iso8601(outcome.run_time))

            self._transition(outcome, RunState.WAITING_UNTIL_DUE)
            self._wait_until_due(outcome.run_time, step)

            try:
                self._run_user_steps(step, outcome)
            except BaseException as exc:
                self._schedule_successor(step, outcome, pending=exc)
                self._transition(outcome, RunState.FAILED)
                logger.error(
                    "cron_run_failed",
                    error=str(exc),
                    kind=getattr(exc, "kind", type(exc).__name__),
                    successor_id=outcome.successor_id,
                )
                raise

            self._schedule_successor(step, outcome, pending=None)
            self._transition(outcome, RunState.SUCCEEDED)
            logger.info(
                "cron_run_completed",
                run_time=to_iso8601(outcome.run_time),
                successor_id=outcome.successor_id,
                successor_time=to_iso8601(outcome.successor_time),
            )
            return outcome

    # =========================================================================
    # Phase 1: resolve run time
    # =========================================================================

    def _resolve_run_time(self, params: InstanceParams, step: StepRunner) -> datetime:
        spec = self.schedule

        def resolve() -> dict[str, Any]:
            if params.next_run_time is not None:
                run_time = params.next_run_time
            else:
                run_time = self.cron.next_occurrence(spec.cron_expression, self._clock(), spec.timezone)
            return StepResult.ok(to_iso8601(run_time)).to_dict()

        try:
            recorded = StepResult.from_dict(step.do(RESOLVE_RUN_TIME, resolve))
        except ScheduleComputationError as e:
            e.with_context(job_name=self.name, step=RESOLVE_RUN_TIME)
            logger.error(
                "cron_schedule_invalid",
                expression=spec.cron_expression,
                timezone=spec.timezone,
                error=e.message,
            )
            raise

        run_time = from_iso8601(recorded.output)
        if run_time is None:
            raise ScheduleComputationError(
                f"{RESOLVE_RUN_TIME} recorded no run time for {self.name!r}"
            ).with_context(job_name=self.name, step=RESOLVE_RUN_TIME)
        return run_time

    # =========================================================================
    # Phase 2: suspend until due
    # =========================================================================

    def _wait_until_due(self, run_time: datetime, step: StepRunner) -> None:
        if self._clock() >= run_time:
            return
        try:
            step.sleep_until(WAIT_UNTIL_DUE, run_time)
        except SuspendTimeTravelError:
            # the substrate says the deadline has passed; its clock wins
            if self._clock() < run_time:
                logger.warning("cron_wait_clock_skew", run_time=to_iso8601(run_time), now=to_iso8601(self._clock()))
            else:
                logger.debug("cron_wait_time_travel", run_time=to_iso8601(run_time))

    # =========================================================================
    # Phase 3: hooks with error containment
    # =========================================================================

    def _run_user_steps(self, step: StepRunner, outcome: RunOutcome) -> None:
        job = self.job
        assert outcome.run_time is not None
        ctx = CronContext(name=self.name, step=step, schedule=self.schedule, run_time=outcome.run_time)

        def user_steps() -> dict[str, Any]:
            if job.on_init is not None:
                self._transition(outcome, RunState.RUNNING_INIT)
                outcome.init_result = self._run_hook(step, RUN_ON_INIT, job.on_init, ctx)

            if outcome.init_result is None or outcome.init_result.success:
                self._transition(outcome, RunState.RUNNING_TICK)
                outcome.tick_result = self._run_hook(step, RUN_ON_TICK, job.on_tick, ctx)
            else:
                logger.warning("cron_tick_skipped", reason="init failed")

            if job.on_finalize is not None:
                self._transition(outcome, RunState.RUNNING_FINALIZE)
                finalize_ctx = CronFinalizeContext(
                    name=ctx.name,
                    step=step,
                    schedule=ctx.schedule,
                    run_time=ctx.run_time,
                    error=first_error(outcome.init_result, outcome.tick_result),
                )
                outcome.finalize_result = self._run_hook(step, RUN_ON_FINALIZE, job.on_finalize, finalize_ctx)

            # finalize's own failure overrides an earlier one
            outcome.terminal_error = first_error(
                outcome.finalize_result, outcome.init_result, outcome.tick_result
            )
            if outcome.terminal_error is not None:
                raise TerminalRunError.from_error_info(
                    outcome.terminal_error, job_name=self.name, step=RUN_USER_STEPS
                )
            return StepResult.ok(outcome.hook_results_to_dict()).to_dict()

        recorded = StepResult.from_dict(step.do(RUN_USER_STEPS, user_steps))
        if recorded.success and isinstance(recorded.output, dict):
            outcome.load_hook_results(recorded.output)

    def _run_hook(
        self,
        step: StepRunner,
        name: str,
        hook: Callable[[Any], Any],
        ctx: CronContext,
    ) -> StepResult:
        def body() -> dict[str, Any]:
            logger.debug("cron_hook_started", step=name)
            try:
                output = hook(ctx)
            except Exception as exc:
                logger.warning(
                    "cron_hook_failed",
                    step=name,
                    kind=type(exc).__name__,
                    error=HookError.wrap(exc, name, job_name=self.name).to_dict(),
                    exc_info=True,
                )
                return StepResult.from_exception(exc).to_dict()
            logger.debug("cron_hook_completed", step=name)
            return StepResult.ok(output).to_dict()

        return StepResult.from_dict(step.do(name, body))

    # =========================================================================
    # Phase 4: always reschedule
    # =========================================================================

    def _schedule_successor(
        self,
        step: StepRunner,
        outcome: RunOutcome,
        pending: BaseException | None,
    ) -> None:
        self._transition(outcome, RunState.SCHEDULING_SUCCESSOR)
        assert outcome.run_time is not None
        current_step = CALCULATE_NEXT_RUN_TIME
        try:
            outcome.successor_time = self._calculate_next_run_time(step, outcome.run_time)
            current_step = CREATE_NEXT_INSTANCE
            outcome.successor_id = self._create_next_instance(step, outcome.successor_time)
        except Exception as exc:
            if isinstance(exc, SuccessorSchedulingError):
                error = exc
            else:
                error = SuccessorSchedulingError(
                    f"Failed to schedule successor of {self.name!r}: {exc}", cause=exc
                )
            error.with_context(job_name=self.name, step=current_step)
            logger.error(
                "successor_scheduling_failed",
                step=current_step,
                error=str(exc),
                retryable=error.retryable,
                pending_error=str(pending) if pending is not None else None,
            )
            if pending is None:
                if error is exc:
                    raise
                raise error from exc
            # the hook failure stays the raised error
            if isinstance(pending, CronWorkflowError):
                pending.with_context(successor_error=error.message)
            return

        logger.info(
            "cron_successor_created",
            successor_id=outcome.successor_id,
            successor_time=to_iso8601(outcome.successor_time),
        )

    def _calculate_next_run_time(self, step: StepRunner, run_time: datetime) -> datetime:
        spec = self.schedule

        def calculate() -> dict[str, Any]:
            next_time = self.cron.next_occurrence(spec.cron_expression, run_time, spec.timezone)
            return StepResult.ok(to_iso8601(next_time)).to_dict()

        recorded = StepResult.from_dict(step.do(CALCULATE_NEXT_RUN_TIME, calculate))
        next_time = from_iso8601(recorded.output)
        if next_time is None:
            raise ScheduleComputationError(f"{CALCULATE_NEXT_RUN_TIME} recorded no run time")
        return next_time

    def _create_next_instance(self, step: StepRunner, next_time: datetime) -> str:
        def create() -> dict[str, Any]:
            handle = self.instance_factory.create(InstanceParams(next_run_time=next_time))
            return StepResult.ok({"id": handle.id}).to_dict()

        recorded = StepResult.from_dict(step.do(CREATE_NEXT_INSTANCE, create))
        return str(recorded.output["id"])

    # =========================================================================
    # Helpers
    # =========================================================================

    @staticmethod
    def _transition(outcome: RunOutcome, state: RunState) -> None:
        previous = outcome.state
        outcome.state = state
        logger.debug("cron_state_changed", previous=previous.value, state=state.value)


__all__ = [
    "CronWorkflow",
    "STEP_NAMES",
    "RESOLVE_RUN_TIME",
    "WAIT_UNTIL_DUE",
    "RUN_USER_STEPS",
    "RUN_ON_INIT",
    "RUN_ON_TICK",
    "RUN_ON_FINALIZE",
    "CALCULATE_NEXT_RUN_TIME",
    "CREATE_NEXT_INSTANCE",
]
