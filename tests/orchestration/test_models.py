"""Tests for ScheduleSpec, InstanceParams, RunState, RunOutcome and CronJob."""

import dataclasses
from datetime import UTC, datetime, timedelta, timezone

import pytest

from cron_workflow.core.errors import InvalidJobError
from cron_workflow.orchestration.context import CronContext, CronFinalizeContext
from cron_workflow.orchestration.job import CronJob
from cron_workflow.orchestration.models import (
    InstanceParams,
    RunOutcome,
    RunState,
    ScheduleSpec,
)
from cron_workflow.orchestration.step_result import ErrorInfo, StepResult


class TestScheduleSpec:
    def test_frozen(self):
        spec = ScheduleSpec("*/5 * * * *", "nightly")
        with pytest.raises(dataclasses.FrozenInstanceError):
            spec.cron_expression = "* * * * *"  # type: ignore[misc]

    def test_default_timezone(self):
        assert ScheduleSpec("* * * * *", "j").timezone == "UTC"


class TestInstanceParams:
    """Payload wire form."""

    def test_empty(self):
        assert InstanceParams().next_run_time is None
        assert InstanceParams().to_payload() == {"next_run_time": None}

    def test_normalized_to_utc(self):
        plus_one = timezone(timedelta(hours=1))
        params = InstanceParams(next_run_time=datetime(2024, 1, 15, 13, 5, tzinfo=plus_one))
        assert params.next_run_time == datetime(2024, 1, 15, 12, 5, tzinfo=UTC)

    def test_payload_round_trip(self):
        params = InstanceParams(next_run_time=datetime(2024, 1, 15, 12, 5, tzinfo=UTC))
        payload = params.to_payload()
        assert payload == {"next_run_time": "2024-01-15T12:05:00+00:00"}
        assert InstanceParams.from_payload(payload) == params

    @pytest.mark.parametrize("payload", [None, {}, {"next_run_time": None}])
    def test_from_empty_payload(self, payload):
        assert InstanceParams.from_payload(payload) == InstanceParams()


class TestRunState:
    def test_terminal_states(self):
        assert {s for s in RunState if s.is_terminal} == {RunState.SUCCEEDED, RunState.FAILED}


class TestRunOutcome:
    def test_initial_state(self):
        outcome = RunOutcome()
        assert outcome.state == RunState.PENDING_RUNTIME_RESOLUTION
        assert outcome.succeeded is False

    def test_hook_results_round_trip(self):
        outcome = RunOutcome(
            init_result=StepResult.ok("i"),
            tick_result=None,
            finalize_result=StepResult.fail(ErrorInfo("f", "ValueError")),
        )
        restored = RunOutcome()
        restored.load_hook_results(outcome.hook_results_to_dict())
        assert restored.init_result == outcome.init_result
        assert restored.tick_result is None
        assert restored.finalize_result == outcome.finalize_result


class TestCronJob:
    """Job definition and hook registration."""

    def test_defaults_from_settings(self):
        job = CronJob("nightly", on_tick=lambda ctx: None)
        assert job.schedule == "*/5 * * * *"
        assert job.timezone == "UTC"
        assert job.spec == ScheduleSpec("*/5 * * * *", "nightly", "UTC")

    def test_default_schedule_env(self, monkeypatch):
        from cron_workflow.core.settings import reset_settings

        monkeypatch.setenv("CRON_WORKFLOW_DEFAULT_SCHEDULE", "0 * * * *")
        reset_settings()
        assert CronJob("hourly").schedule == "0 * * * *"

    def test_explicit_schedule(self):
        job = CronJob("j", schedule="0 3 * * *", timezone="Europe/Berlin")
        assert job.spec.cron_expression == "0 3 * * *"
        assert job.spec.timezone == "Europe/Berlin"

    @pytest.mark.parametrize("name", ["", "   "])
    def test_empty_name_rejected(self, name):
        with pytest.raises(InvalidJobError):
            CronJob(name)

    def test_decorators(self):
        job = CronJob("j")

        @job.init
        def setup(ctx):
            return "init"

        @job.tick
        def body(ctx):
            return "tick"

        @job.finalize
        def teardown(ctx):
            return "finalize"

        assert job.on_init is setup
        assert job.on_tick is body
        assert job.on_finalize is teardown
        # decorators hand the function back unchanged
        assert setup(None) == "init"

    def test_optional_hooks_default_to_none(self):
        job = CronJob("j", on_tick=lambda ctx: None)
        assert job.on_init is None
        assert job.on_finalize is None


class TestContexts:
    def test_finalize_context_failed(self):
        spec = ScheduleSpec("* * * * *", "j")
        now = datetime(2024, 1, 15, tzinfo=UTC)
        ok = CronFinalizeContext(name="j", step=None, schedule=spec, run_time=now)
        failed = CronFinalizeContext(name="j", step=None, schedule=spec, run_time=now, error=ErrorInfo("x"))
        assert ok.failed is False
        assert failed.failed is True
        assert isinstance(failed, CronContext)
