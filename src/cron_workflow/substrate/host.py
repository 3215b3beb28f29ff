"""LocalHost: per-instance dispatch for a cron chain on one machine.

The engine does one pass per instance and creates the successor; the
host is what turns that continuation into a running schedule. It claims
the oldest PENDING instance, runs the workflow with a step runner bound
to that instance, and records the result:

    success                           → COMPLETE
    non-retryable error               → FAILED   (TerminalRunError, bad cron, ...)
    retryable error, retries left     → PENDING  (replayed later; memoized steps skip)
    retryable error, retries used up  → FAILED

An instance left RUNNING by a process that was killed mid-run is put
back to PENDING when the next ``run`` starts, so the chain resumes
where it stopped instead of being orphaned.
"""

from __future__ import annotations

import time
from collections.abc import Callable
from datetime import datetime
from typing import Any

from cron_workflow.core.errors import CronWorkflowError, is_retryable
from cron_workflow.core.logging import get_logger
from cron_workflow.core.settings import get_settings
from cron_workflow.core.timestamps import utc_now
from cron_workflow.orchestration.cron_workflow import CronWorkflow
from cron_workflow.orchestration.models import InstanceHandle, InstanceParams
from cron_workflow.substrate.instances import InstanceRecord, InstanceRegistry, InstanceStatus
from cron_workflow.substrate.retry import ExponentialBackoff, RetryStrategy
from cron_workflow.substrate.runner import DurableStepRunner
from cron_workflow.substrate.store import StepStore

logger = get_logger(__name__)


def _error_payload(exc: BaseException) -> dict[str, Any]:
    if isinstance(exc, CronWorkflowError):
        return exc.to_dict()
    return {"error_type": type(exc).__name__, "message": str(exc), "retryable": is_retryable(exc)}


class LocalHost:
    """Runs a job's chain of instances against a local substrate.

    Args:
        workflow: Engine for the job; its instance factory should be ``registry``
        registry: Instance table for the job
        store: Step memo store shared by all instances
        retry: Policy for retryable failures (default from settings)
        clock: Current aware UTC time, also handed to step runners
        sleeper: Used for suspension and retry backoff
    """

    def __init__(
        self,
        workflow: CronWorkflow,
        registry: InstanceRegistry,
        store: StepStore,
        retry: RetryStrategy | None = None,
        clock: Callable[[], datetime] = utc_now,
        sleeper: Callable[[float], Any] = time.sleep,
    ) -> None:
        if retry is None:
            settings = get_settings()
            retry = ExponentialBackoff(
                max_retries=settings.max_retries,
                base_delay=settings.retry_base_delay,
                max_delay=settings.retry_max_delay,
            )
        self.workflow = workflow
        self.registry = registry
        self.store = store
        self.retry = retry
        self._clock = clock
        self._sleeper = sleeper

    def start(self, params: InstanceParams | None = None) -> InstanceHandle:
        """Create the first instance of a chain."""
        return self.registry.create(params or InstanceParams())

    def recover(self) -> list[InstanceRecord]:
        """Release instances a previous process left RUNNING."""
        return self.registry.recover_running()

    def runner_for(self, instance_id: str) -> DurableStepRunner:
        return DurableStepRunner(self.store, instance_id, clock=self._clock, sleeper=self._sleeper)

    def dispatch(self, record: InstanceRecord) -> InstanceRecord:
        """Run one instance and record how it ended."""
        running = self.registry.mark_running(record.id)
        try:
            self.workflow.run(running.params, self.runner_for(record.id))
        except Exception as exc:
            retries_done = running.attempts - 1
            if self.retry.should_retry(retries_done, exc):
                delay = self.retry.next_delay(retries_done)
                logger.warning(
                    "instance_retry_scheduled",
                    instance_id=record.id,
                    attempt=running.attempts,
                    delay_seconds=delay,
                    error=str(exc),
                )
                released = self.registry.release(record.id, _error_payload(exc))
                self._sleeper(delay)
                return released
            logger.error(
                "instance_failed",
                instance_id=record.id,
                attempt=running.attempts,
                error=str(exc),
                retryable=is_retryable(exc),
            )
            return self.registry.mark_failed(record.id, _error_payload(exc))

        logger.info("instance_completed", instance_id=record.id, attempt=running.attempts)
        return self.registry.mark_complete(record.id)

    def run(self, max_instances: int | None = None) -> list[InstanceRecord]:
        """Dispatch pending instances until ``max_instances`` have finished.

        An instance counts as finished once it is COMPLETE or FAILED;
        retried attempts do not count. Stops early when nothing is pending.
        Interrupted instances are recovered first.
        """
        self.recover()
        finished: list[InstanceRecord] = []
        while max_instances is None or len(finished) < max_instances:
            record = self.registry.next_pending()
            if record is None:
                break
            result = self.dispatch(record)
            if result.status in (InstanceStatus.COMPLETE, InstanceStatus.FAILED):
                finished.append(result)
        return finished


__all__ = ["LocalHost"]
