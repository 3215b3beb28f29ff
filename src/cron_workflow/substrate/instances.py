"""Instance registries: local Instance Factory implementations.

A registry is bound to one job and plays two roles:

- **Instance Factory** for the engine: ``create(params)`` records a new
  PENDING instance and returns its handle.
- **Instance table** for the local host: it claims the oldest pending
  instance, marks it running and records how it ended. RUNNING records
  left by a process that died mid-run are released back to PENDING by
  ``recover_running`` and replay from their memoized steps.

::

    PENDING ──mark_running──► RUNNING ──mark_complete──► COMPLETE
       ▲                         │
       └────────release──────────┤   (recover_running after a crash)
                                 └──mark_failed──► FAILED
"""

from __future__ import annotations

import json
import sqlite3
from abc import ABC, abstractmethod
from collections.abc import Callable
from dataclasses import dataclass, field, replace
from datetime import datetime
from enum import Enum
from threading import Lock
from typing import Any

from cron_workflow.core.errors import DuplicateInstanceError
from cron_workflow.core.logging import get_logger
from cron_workflow.core.timestamps import from_iso8601, generate_ulid, to_iso8601, utc_now
from cron_workflow.orchestration.models import InstanceHandle, InstanceParams

logger = get_logger(__name__)

_INTERRUPTED = {
    "error_type": "InstanceInterrupted",
    "message": "process stopped while the instance was running",
    "retryable": True,
}


class InstanceStatus(str, Enum):
    PENDING = "PENDING"
    RUNNING = "RUNNING"
    COMPLETE = "COMPLETE"
    FAILED = "FAILED"


@dataclass
class InstanceRecord:
    """One instance as the local substrate tracks it."""

    id: str
    job_name: str
    params: InstanceParams
    status: InstanceStatus = InstanceStatus.PENDING
    attempts: int = 0
    error: dict[str, Any] | None = None
    created_at: datetime = field(default_factory=utc_now)
    updated_at: datetime = field(default_factory=utc_now)

    def to_dict(self) -> dict[str, Any]:
        return {
            "id": self.id,
            "job_name": self.job_name,
            "params": self.params.to_payload(),
            "status": self.status.value,
            "attempts": self.attempts,
            "error": self.error,
            "created_at": to_iso8601(self.created_at),
            "updated_at": to_iso8601(self.updated_at),
        }


class InstanceRegistry(ABC):
    """Abstract base for local instance registries."""

    def __init__(self, job_name: str, clock: Callable[[], datetime] = utc_now) -> None:
        self.job_name = job_name
        self._clock = clock

    def create(self, params: InstanceParams, instance_id: str | None = None) -> InstanceHandle:
        """Record a new PENDING instance.

        Raises:
            DuplicateInstanceError: ``instance_id`` is already taken
        """
        now = self._clock()
        record = InstanceRecord(
            id=instance_id or generate_ulid(now),
            job_name=self.job_name,
            params=params,
            created_at=now,
            updated_at=now,
        )
        self._insert(record)
        logger.info(
            "instance_created",
            instance_id=record.id,
            job_name=self.job_name,
            next_run_time=to_iso8601(params.next_run_time),
        )
        return InstanceHandle(id=record.id)

    def mark_running(self, instance_id: str) -> InstanceRecord:
        record = self._require(instance_id)
        return self._save(
            replace(record, status=InstanceStatus.RUNNING, attempts=record.attempts + 1, updated_at=self._clock())
        )

    def mark_complete(self, instance_id: str) -> InstanceRecord:
        record = self._require(instance_id)
        return self._save(replace(record, status=InstanceStatus.COMPLETE, error=None, updated_at=self._clock()))

    def mark_failed(self, instance_id: str, error: dict[str, Any]) -> InstanceRecord:
        record = self._require(instance_id)
        return self._save(replace(record, status=InstanceStatus.FAILED, error=error, updated_at=self._clock()))

    def release(self, instance_id: str, error: dict[str, Any]) -> InstanceRecord:
        """Put a RUNNING instance back to PENDING after a retryable failure."""
        record = self._require(instance_id)
        return self._save(replace(record, status=InstanceStatus.PENDING, error=error, updated_at=self._clock()))

    def recover_running(self) -> list[InstanceRecord]:
        """Release every RUNNING instance of this job back to PENDING.

        Call before dispatching: with one local host per job, a RUNNING
        record at that point belongs to an attempt that never finished.
        """
        recovered = []
        for record in self.list(InstanceStatus.RUNNING):
            recovered.append(self.release(record.id, dict(_INTERRUPTED)))
            logger.warning("instance_recovered", instance_id=record.id, attempts=record.attempts)
        return recovered

    def next_pending(self) -> InstanceRecord | None:
        pending = self.list(InstanceStatus.PENDING)
        return pending[0] if pending else None

    def _require(self, instance_id: str) -> InstanceRecord:
        record = self.get(instance_id)
        if record is None:
            raise KeyError(f"Unknown instance: {instance_id}")
        return record

    @abstractmethod
    def get(self, instance_id: str) -> InstanceRecord | None:
        ...

    @abstractmethod
    def list(self, status: InstanceStatus | None = None) -> list[InstanceRecord]:
        """Instances of this job in creation order."""
        ...

    @abstractmethod
    def _insert(self, record: InstanceRecord) -> None:
        ...

    @abstractmethod
    def _save(self, record: InstanceRecord) -> InstanceRecord:
        ...


class MemoryInstanceRegistry(InstanceRegistry):
    """In-process registry."""

    def __init__(self, job_name: str, clock: Callable[[], datetime] = utc_now) -> None:
        super().__init__(job_name, clock)
        self._records: dict[str, InstanceRecord] = {}
        self._lock = Lock()

    def get(self, instance_id: str) -> InstanceRecord | None:
        return self._records.get(instance_id)

    def list(self, status: InstanceStatus | None = None) -> list[InstanceRecord]:
        return [r for r in self._records.values() if status is None or r.status == status]

    def _insert(self, record: InstanceRecord) -> None:
        with self._lock:
            if record.id in self._records:
                raise DuplicateInstanceError(f"Instance already exists: {record.id}")
            self._records[record.id] = record

    def _save(self, record: InstanceRecord) -> InstanceRecord:
        with self._lock:
            self._records[record.id] = record
        return record


INSTANCES_DDL = """
CREATE TABLE IF NOT EXISTS cron_workflow_instances (
    seq INTEGER PRIMARY KEY AUTOINCREMENT,
    id TEXT NOT NULL UNIQUE,
    job_name TEXT NOT NULL,
    params TEXT NOT NULL,
    status TEXT NOT NULL DEFAULT 'PENDING',
    attempts INTEGER NOT NULL DEFAULT 0,
    error TEXT,
    created_at TEXT NOT NULL,
    updated_at TEXT NOT NULL
)
"""

_COLUMNS = "id, job_name, params, status, attempts, error, created_at, updated_at"


class SQLiteInstanceRegistry(InstanceRegistry):
    """SQLite-backed registry sharing a connection with SQLiteStepStore."""

    def __init__(
        self,
        conn: sqlite3.Connection,
        job_name: str,
        clock: Callable[[], datetime] = utc_now,
    ) -> None:
        super().__init__(job_name, clock)
        self.conn = conn
        self.conn.execute(INSTANCES_DDL)
        self.conn.commit()

    def get(self, instance_id: str) -> InstanceRecord | None:
        row = self.conn.execute(
            f"SELECT {_COLUMNS} FROM cron_workflow_instances WHERE id = ? AND job_name = ?",
            (instance_id, self.job_name),
        ).fetchone()
        return self._row_to_record(row) if row else None

    def list(self, status: InstanceStatus | None = None) -> list[InstanceRecord]:
        sql = f"SELECT {_COLUMNS} FROM cron_workflow_instances WHERE job_name = ?"
        args: list[Any] = [self.job_name]
        if status is not None:
            sql += " AND status = ?"
            args.append(status.value)
        sql += " ORDER BY seq"
        return [self._row_to_record(row) for row in self.conn.execute(sql, args).fetchall()]

    def _insert(self, record: InstanceRecord) -> None:
        try:
            self.conn.execute(
                f"INSERT INTO cron_workflow_instances ({_COLUMNS}) VALUES (?, ?, ?, ?, ?, ?, ?, ?)",
                self._record_to_row(record),
            )
            self.conn.commit()
        except sqlite3.IntegrityError as e:
            self.conn.rollback()
            raise DuplicateInstanceError(f"Instance already exists: {record.id}", cause=e) from e

    def _save(self, record: InstanceRecord) -> InstanceRecord:
        row = self._record_to_row(record)
        self.conn.execute(
            """
            UPDATE cron_workflow_instances
            SET status = ?, attempts = ?, error = ?, updated_at = ?
            WHERE id = ?
            """,
            (row[3], row[4], row[5], row[7], record.id),
        )
        self.conn.commit()
        return record

    @staticmethod
    def _record_to_row(record: InstanceRecord) -> tuple[Any, ...]:
        return (
            record.id,
            record.job_name,
            json.dumps(record.params.to_payload()),
            record.status.value,
            record.attempts,
            json.dumps(record.error) if record.error is not None else None,
            to_iso8601(record.created_at),
            to_iso8601(record.updated_at),
        )

    @staticmethod
    def _row_to_record(row: tuple[Any, ...]) -> InstanceRecord:
        return InstanceRecord(
            id=row[0],
            job_name=row[1],
            params=InstanceParams.from_payload(json.loads(row[2])),
            status=InstanceStatus(row[3]),
            attempts=row[4],
            error=json.loads(row[5]) if row[5] else None,
            created_at=from_iso8601(row[6]),
            updated_at=from_iso8601(row[7]),
        )


def list_all_instances(
    conn: sqlite3.Connection,
    job_name: str | None = None,
    status: InstanceStatus | None = None,
) -> list[InstanceRecord]:
    """Instances across jobs, for reporting (CLI ``instances``)."""
    conn.execute(INSTANCES_DDL)
    sql = f"SELECT {_COLUMNS} FROM cron_workflow_instances WHERE 1 = 1"
    args: list[Any] = []
    if job_name:
        sql += " AND job_name = ?"
        args.append(job_name)
    if status is not None:
        sql += " AND status = ?"
        args.append(status.value)
    sql += " ORDER BY seq"
    return [SQLiteInstanceRegistry._row_to_record(row) for row in conn.execute(sql, args).fetchall()]


__all__ = [
    "InstanceStatus",
    "InstanceRecord",
    "InstanceRegistry",
    "MemoryInstanceRegistry",
    "SQLiteInstanceRegistry",
    "list_all_instances",
]
