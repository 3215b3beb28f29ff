"""Tests for structlog configuration and scoped log context."""

import io
import json

import pytest
import structlog

from cron_workflow.core.logging import (
    LogContext,
    bind_context,
    clear_context,
    configure_logging,
    get_logger,
    unbind_context,
)


def _bound() -> dict:
    return structlog.contextvars.get_contextvars()


class TestLogContext:
    """Context binding helpers."""

    def test_bind_and_unbind(self):
        bind_context(job_name="nightly", instance_id="i-1")
        assert _bound() == {"job_name": "nightly", "instance_id": "i-1"}
        unbind_context("instance_id")
        assert _bound() == {"job_name": "nightly"}
        clear_context()
        assert _bound() == {}

    def test_scoped(self):
        with LogContext(job_name="nightly"):
            assert _bound()["job_name"] == "nightly"
        assert "job_name" not in _bound()


class TestConfigureLogging:
    """Rendered output shape."""

    def test_json_output_is_ecs_compatible(self, capsys):
        configure_logging(level="INFO", json_format=True, service="cron-test")
        with LogContext(job_name="nightly"):
            get_logger("tests").info("cron_run_started", run_time="2024-01-15T12:05:00+00:00")

        line = capsys.readouterr().out.strip().splitlines()[-1]
        record = json.loads(line)
        assert record["event"] == "cron_run_started"
        assert record["job_name"] == "nightly"
        assert record["service.name"] == "cron-test"
        assert record["log.level"] == "info"
        assert "@timestamp" in record

    def test_level_filters(self, capsys):
        configure_logging(level="WARNING", json_format=True)
        get_logger("tests").info("cron_hook_started")
        assert capsys.readouterr().out == ""

    def test_console_output(self, capsys):
        configure_logging(level="DEBUG", json_format=False)
        get_logger("tests").debug("cron_state_changed", state="RUNNING_TICK")
        assert "cron_state_changed" in capsys.readouterr().out

    def test_explicit_stream(self, capsys):
        buffer = io.StringIO()
        configure_logging(level="INFO", json_format=True, stream=buffer)
        get_logger("tests").info("cron_instance_completed")

        assert capsys.readouterr().out == ""
        record = json.loads(buffer.getvalue().strip().splitlines()[-1])
        assert record["event"] == "cron_instance_completed"
        assert record["log.logger"] == "tests"

    def test_unknown_level_rejected(self):
        with pytest.raises(ValueError, match="Unknown log level"):
            configure_logging(level="LOUD")

    def test_named_logger_created_before_configuration(self):
        # module-level loggers are created at import, before any configure call
        early = get_logger("cron_workflow.sample")
        buffer = io.StringIO()
        configure_logging(level="INFO", json_format=True, stream=buffer)
        early.info("cron_run_started")

        record = json.loads(buffer.getvalue().strip().splitlines()[-1])
        assert record["log.logger"] == "cron_workflow.sample"
        assert "logger_name" not in record

    def test_unnamed_logger(self):
        buffer = io.StringIO()
        configure_logging(level="INFO", json_format=True, stream=buffer)
        get_logger().info("cron_run_started")

        record = json.loads(buffer.getvalue().strip().splitlines()[-1])
        assert "log.logger" not in record
