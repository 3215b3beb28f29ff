"""Tests for the in-memory and SQLite step memo stores."""

import sqlite3

import pytest

from cron_workflow.substrate.store import MemoryStepStore, SQLiteStepStore, StepStore
from cron_workflow.testing import FakeClock


@pytest.fixture(params=["memory", "sqlite"])
def any_store(request):
    if request.param == "memory":
        yield MemoryStepStore()
        return
    conn = sqlite3.connect(":memory:")
    yield SQLiteStepStore(conn, clock=FakeClock("2024-01-15T12:00:00+00:00"))
    conn.close()


class TestStepStoreContract:
    """Behavior shared by both stores."""

    def test_satisfies_protocol(self, any_store):
        assert isinstance(any_store, StepStore)

    def test_missing(self, any_store):
        assert any_store.get("i-1", "resolve-run-time") == (False, None)

    def test_put_then_get(self, any_store):
        value = {"success": True, "output": "2024-01-15T12:05:00+00:00"}
        assert any_store.put("i-1", "resolve-run-time", value) == value
        assert any_store.get("i-1", "resolve-run-time") == (True, value)

    def test_none_is_a_recorded_value(self, any_store):
        any_store.put("i-1", "noop", None)
        assert any_store.get("i-1", "noop") == (True, None)

    def test_first_write_wins(self, any_store):
        any_store.put("i-1", "create-next-instance", {"id": "a"})
        assert any_store.put("i-1", "create-next-instance", {"id": "b"}) == {"id": "a"}
        assert any_store.get("i-1", "create-next-instance") == (True, {"id": "a"})

    def test_scoped_by_instance(self, any_store):
        any_store.put("i-1", "run-on-tick", 1)
        any_store.put("i-2", "run-on-tick", 2)
        assert any_store.get("i-1", "run-on-tick") == (True, 1)
        assert any_store.get("i-2", "run-on-tick") == (True, 2)

    def test_list(self, any_store):
        any_store.put("i-1", "a", 1)
        any_store.put("i-1", "b", [1, 2])
        any_store.put("i-2", "c", 3)
        assert any_store.list("i-1") == {"a": 1, "b": [1, 2]}

    def test_values_are_json_round_tripped(self, any_store):
        assert any_store.put("i-1", "t", (1, 2)) == [1, 2]


class TestMemoryStepStore:
    def test_len(self):
        store = MemoryStepStore()
        store.put("i-1", "a", 1)
        store.put("i-1", "a", 2)
        assert len(store) == 1


class TestSQLiteStepStore:
    def test_survives_new_store_on_same_connection(self):
        conn = sqlite3.connect(":memory:")
        SQLiteStepStore(conn).put("i-1", "a", {"x": 1})
        assert SQLiteStepStore(conn).get("i-1", "a") == (True, {"x": 1})

    def test_survives_reconnect(self, tmp_path):
        path = tmp_path / "steps.db"
        conn = sqlite3.connect(path)
        SQLiteStepStore(conn).put("i-1", "a", "v")
        conn.close()

        conn = sqlite3.connect(path)
        assert SQLiteStepStore(conn).get("i-1", "a") == (True, "v")
        conn.close()
