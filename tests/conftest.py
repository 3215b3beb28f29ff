"""
Shared pytest fixtures and configuration for cron-workflow tests.

This module provides:
- Settings / logging-context cleanup for test isolation
- A FakeClock pinned to a known instant
- In-memory substrate pieces (step store, runner, registry)
- Small hook recorders used by the lifecycle tests
"""

from __future__ import annotations

import os
from collections.abc import Generator
from typing import Any

import pytest
import structlog

from cron_workflow.core.logging import clear_context
from cron_workflow.core.settings import reset_settings
from cron_workflow.substrate import DurableStepRunner, MemoryInstanceRegistry, MemoryStepStore
from cron_workflow.testing import FakeClock

START = "2024-01-15T12:03:00+00:00"


# =============================================================================
# Isolation Fixtures
# =============================================================================


@pytest.fixture(autouse=True)
def clean_settings_fixture(monkeypatch: pytest.MonkeyPatch, tmp_path) -> Generator[None, None, None]:
    """
    Reset cached settings before and after each test.

    The database path is pointed at a temp dir so nothing under ``~`` is
    touched, and any ``CRON_WORKFLOW_*`` variables from the developer's
    shell are dropped.
    """
    for key in list(os.environ):
        if key.startswith("CRON_WORKFLOW_"):
            monkeypatch.delenv(key, raising=False)
    monkeypatch.setenv("CRON_WORKFLOW_DATABASE_PATH", str(tmp_path / "cron_workflow.db"))
    reset_settings()
    yield
    reset_settings()


@pytest.fixture(autouse=True)
def clean_log_context_fixture() -> Generator[None, None, None]:
    """Drop bound context and any logging configuration a test applied."""
    clear_context()
    yield
    clear_context()
    structlog.reset_defaults()


# =============================================================================
# Substrate Fixtures
# =============================================================================


@pytest.fixture
def clock() -> FakeClock:
    """FakeClock at 2024-01-15 12:03 UTC (between two 5-minute boundaries)."""
    return FakeClock(START)


@pytest.fixture
def store() -> MemoryStepStore:
    return MemoryStepStore()


@pytest.fixture
def runner(store: MemoryStepStore, clock: FakeClock) -> DurableStepRunner:
    return DurableStepRunner(store, "instance-1", clock=clock, sleeper=clock.sleep)


@pytest.fixture
def registry(clock: FakeClock) -> MemoryInstanceRegistry:
    return MemoryInstanceRegistry("test-job", clock=clock)


# =============================================================================
# Hook Recorders
# =============================================================================


class HookRecorder:
    """Records hook invocations; optionally raises from a named hook."""

    def __init__(self, fail: dict[str, Exception] | None = None) -> None:
        self.calls: list[str] = []
        self.contexts: dict[str, Any] = {}
        self.fail = fail or {}

    def _hook(self, name: str):
        def hook(ctx):
            self.calls.append(name)
            self.contexts[name] = ctx
            if name in self.fail:
                raise self.fail[name]
            return f"{name}-ok"

        return hook

    @property
    def init(self):
        return self._hook("init")

    @property
    def tick(self):
        return self._hook("tick")

    @property
    def finalize(self):
        return self._hook("finalize")


@pytest.fixture
def hook_recorder() -> type[HookRecorder]:
    """Factory: ``hook_recorder(fail={"init": ValueError("x")})``."""
    return HookRecorder
