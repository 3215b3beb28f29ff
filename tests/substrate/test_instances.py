"""Tests for the in-memory and SQLite instance registries."""

import sqlite3
from datetime import UTC, datetime

import pytest

from cron_workflow.core.errors import DuplicateInstanceError
from cron_workflow.orchestration.models import InstanceHandle, InstanceParams
from cron_workflow.orchestration.protocols import InstanceFactory
from cron_workflow.substrate.instances import (
    InstanceStatus,
    MemoryInstanceRegistry,
    SQLiteInstanceRegistry,
    list_all_instances,
)
from cron_workflow.testing import FakeClock

RUN_AT = InstanceParams(next_run_time=datetime(2024, 1, 15, 12, 5, tzinfo=UTC))


@pytest.fixture(params=["memory", "sqlite"])
def any_registry(request, clock):
    if request.param == "memory":
        yield MemoryInstanceRegistry("test-job", clock=clock)
        return
    conn = sqlite3.connect(":memory:")
    yield SQLiteInstanceRegistry(conn, "test-job", clock=clock)
    conn.close()


class TestCreate:
    """create(params) as the Instance Factory."""

    def test_satisfies_protocol(self, any_registry):
        assert isinstance(any_registry, InstanceFactory)

    def test_create_pending(self, any_registry, clock):
        handle = any_registry.create(RUN_AT)
        assert isinstance(handle, InstanceHandle)
        assert len(handle.id) == 26

        record = any_registry.get(handle.id)
        assert record.status == InstanceStatus.PENDING
        assert record.params == RUN_AT
        assert record.job_name == "test-job"
        assert record.attempts == 0
        assert record.created_at == clock.now

    def test_first_instance_without_run_time(self, any_registry):
        handle = any_registry.create(InstanceParams())
        assert any_registry.get(handle.id).params.next_run_time is None

    def test_explicit_id(self, any_registry):
        assert any_registry.create(RUN_AT, instance_id="fixed").id == "fixed"

    def test_duplicate_id_rejected(self, any_registry):
        any_registry.create(RUN_AT, instance_id="fixed")
        with pytest.raises(DuplicateInstanceError):
            any_registry.create(RUN_AT, instance_id="fixed")

    def test_unknown_id(self, any_registry):
        assert any_registry.get("missing") is None
        with pytest.raises(KeyError):
            any_registry.mark_running("missing")


class TestTransitions:
    """PENDING → RUNNING → COMPLETE | FAILED, and release."""

    def test_running_increments_attempts(self, any_registry):
        handle = any_registry.create(RUN_AT)
        assert any_registry.mark_running(handle.id).attempts == 1
        any_registry.release(handle.id, {"message": "transient"})
        record = any_registry.mark_running(handle.id)
        assert record.status == InstanceStatus.RUNNING
        assert record.attempts == 2

    def test_complete_clears_error(self, any_registry):
        handle = any_registry.create(RUN_AT)
        any_registry.mark_running(handle.id)
        any_registry.release(handle.id, {"message": "transient"})
        any_registry.mark_running(handle.id)
        record = any_registry.mark_complete(handle.id)
        assert record.status == InstanceStatus.COMPLETE
        assert record.error is None
        assert any_registry.get(handle.id).status == InstanceStatus.COMPLETE

    def test_failed_keeps_error(self, any_registry):
        handle = any_registry.create(RUN_AT)
        any_registry.mark_running(handle.id)
        any_registry.mark_failed(handle.id, {"message": "boom", "kind": "ValueError"})
        record = any_registry.get(handle.id)
        assert record.status == InstanceStatus.FAILED
        assert record.error == {"message": "boom", "kind": "ValueError"}

    def test_updated_at_follows_clock(self, any_registry, clock):
        handle = any_registry.create(RUN_AT)
        clock.advance(minutes=2)
        assert any_registry.mark_running(handle.id).updated_at == clock.now

    def test_recover_running_releases_stale_records(self, any_registry):
        stale = any_registry.create(RUN_AT)
        done = any_registry.create(RUN_AT)
        waiting = any_registry.create(RUN_AT)
        any_registry.mark_running(stale.id)
        any_registry.mark_running(done.id)
        any_registry.mark_complete(done.id)

        [recovered] = any_registry.recover_running()

        assert recovered.id == stale.id
        record = any_registry.get(stale.id)
        assert record.status == InstanceStatus.PENDING
        assert record.attempts == 1
        assert record.error["error_type"] == "InstanceInterrupted"
        assert any_registry.get(done.id).status == InstanceStatus.COMPLETE
        assert any_registry.get(waiting.id).status == InstanceStatus.PENDING
        assert any_registry.next_pending().id == stale.id

    def test_recover_running_with_nothing_running(self, any_registry):
        any_registry.create(RUN_AT)
        assert any_registry.recover_running() == []


class TestListing:
    """Creation order and status filters."""

    def test_next_pending_is_oldest(self, any_registry):
        first = any_registry.create(RUN_AT)
        second = any_registry.create(RUN_AT)
        assert any_registry.next_pending().id == first.id
        any_registry.mark_running(first.id)
        assert any_registry.next_pending().id == second.id

    def test_next_pending_empty(self, any_registry):
        assert any_registry.next_pending() is None

    def test_list_by_status(self, any_registry):
        a = any_registry.create(RUN_AT)
        b = any_registry.create(RUN_AT)
        any_registry.mark_running(a.id)
        any_registry.mark_complete(a.id)

        assert [r.id for r in any_registry.list()] == [a.id, b.id]
        assert [r.id for r in any_registry.list(InstanceStatus.COMPLETE)] == [a.id]
        assert [r.id for r in any_registry.list(InstanceStatus.PENDING)] == [b.id]

    def test_record_to_dict(self, any_registry):
        handle = any_registry.create(RUN_AT)
        d = any_registry.get(handle.id).to_dict()
        assert d["params"] == {"next_run_time": "2024-01-15T12:05:00+00:00"}
        assert d["status"] == "PENDING"
        assert d["created_at"] == "2024-01-15T12:03:00+00:00"


class TestSQLiteRegistry:
    """SQLite-specific behavior."""

    def test_scoped_by_job(self):
        conn = sqlite3.connect(":memory:")
        clock = FakeClock("2024-01-15T12:00:00+00:00")
        nightly = SQLiteInstanceRegistry(conn, "nightly", clock=clock)
        hourly = SQLiteInstanceRegistry(conn, "hourly", clock=clock)
        handle = nightly.create(RUN_AT)

        assert hourly.get(handle.id) is None
        assert hourly.next_pending() is None
        assert nightly.next_pending().id == handle.id

    def test_list_all_instances(self):
        conn = sqlite3.connect(":memory:")
        clock = FakeClock("2024-01-15T12:00:00+00:00")
        nightly = SQLiteInstanceRegistry(conn, "nightly", clock=clock)
        hourly = SQLiteInstanceRegistry(conn, "hourly", clock=clock)
        a = nightly.create(RUN_AT)
        b = hourly.create(RUN_AT)
        hourly.mark_running(b.id)
        hourly.mark_failed(b.id, {"message": "boom"})

        assert [r.id for r in list_all_instances(conn)] == [a.id, b.id]
        assert [r.id for r in list_all_instances(conn, job_name="nightly")] == [a.id]
        failed = list_all_instances(conn, status=InstanceStatus.FAILED)
        assert [r.error for r in failed] == [{"message": "boom"}]

    def test_list_all_on_empty_database(self):
        assert list_all_instances(sqlite3.connect(":memory:")) == []
