"""Step memo stores for the local durable substrate.

A store maps ``(instance_id, step_name)`` to the JSON value the step
returned the first time it completed. The first record wins: a second
``put`` for the same key is ignored, which is what makes
``create-next-instance`` at-most-once per instance.

┌──────────────────────────────────────────────────────────────────────────────┐
│  cron_workflow_steps                                                          │
│  ─────────────────────                                                        │
│  instance_id TEXT  ┐                                                          │
│  step_name   TEXT  ┘ PRIMARY KEY                                              │
│  result      TEXT    JSON                                                     │
│  recorded_at TEXT    ISO-8601 UTC                                             │
└──────────────────────────────────────────────────────────────────────────────┘
"""

from __future__ import annotations

import json
import sqlite3
from collections.abc import Callable
from datetime import datetime
from threading import Lock
from typing import Any, Protocol, runtime_checkable

from cron_workflow.core.timestamps import to_iso8601, utc_now

STEPS_DDL = """
CREATE TABLE IF NOT EXISTS cron_workflow_steps (
    instance_id TEXT NOT NULL,
    step_name TEXT NOT NULL,
    result TEXT,
    recorded_at TEXT NOT NULL,
    PRIMARY KEY (instance_id, step_name)
)
"""


def _encode(value: Any) -> str:
    return json.dumps(value, default=str, sort_keys=True)


@runtime_checkable
class StepStore(Protocol):
    """Persistence for step results."""

    def get(self, instance_id: str, name: str) -> tuple[bool, Any]:
        """Return ``(found, value)``."""
        ...

    def put(self, instance_id: str, name: str, value: Any) -> Any:
        """Record ``value`` unless already recorded; return the stored value."""
        ...

    def list(self, instance_id: str) -> dict[str, Any]:
        """All recorded steps of an instance, by name."""
        ...


class MemoryStepStore:
    """Dict-backed store. Values are JSON round-tripped like the SQLite store."""

    def __init__(self) -> None:
        self._records: dict[tuple[str, str], str] = {}
        self._lock = Lock()

    def get(self, instance_id: str, name: str) -> tuple[bool, Any]:
        with self._lock:
            raw = self._records.get((instance_id, name))
        if raw is None:
            return False, None
        return True, json.loads(raw)

    def put(self, instance_id: str, name: str, value: Any) -> Any:
        with self._lock:
            raw = self._records.setdefault((instance_id, name), _encode(value))
        return json.loads(raw)

    def list(self, instance_id: str) -> dict[str, Any]:
        with self._lock:
            return {
                name: json.loads(raw)
                for (iid, name), raw in self._records.items()
                if iid == instance_id
            }

    def __len__(self) -> int:
        return len(self._records)


class SQLiteStepStore:
    """SQLite-backed store; survives process restarts."""

    def __init__(
        self,
        conn: sqlite3.Connection,
        clock: Callable[[], datetime] = utc_now,
    ) -> None:
        self.conn = conn
        self._clock = clock
        self.conn.execute(STEPS_DDL)
        self.conn.commit()

    def get(self, instance_id: str, name: str) -> tuple[bool, Any]:
        row = self.conn.execute(
            "SELECT result FROM cron_workflow_steps WHERE instance_id = ? AND step_name = ?",
            (instance_id, name),
        ).fetchone()
        if row is None:
            return False, None
        return True, json.loads(row[0])

    def put(self, instance_id: str, name: str, value: Any) -> Any:
        self.conn.execute(
            """
            INSERT OR IGNORE INTO cron_workflow_steps (instance_id, step_name, result, recorded_at)
            VALUES (?, ?, ?, ?)
            """,
            (instance_id, name, _encode(value), to_iso8601(self._clock())),
        )
        self.conn.commit()
        return self.get(instance_id, name)[1]

    def list(self, instance_id: str) -> dict[str, Any]:
        rows = self.conn.execute(
            """
            SELECT step_name, result FROM cron_workflow_steps
            WHERE instance_id = ?
            ORDER BY recorded_at, rowid
            """,
            (instance_id,),
        ).fetchall()
        return {name: json.loads(raw) for name, raw in rows}


__all__ = ["StepStore", "MemoryStepStore", "SQLiteStepStore", "STEPS_DDL"]
