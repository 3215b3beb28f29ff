"""Local durable substrate -- step stores, step runner, instances, host.

Reference implementation of the collaborators the lifecycle engine
consumes, for running a chain on one machine and in tests. A production
deployment swaps these for adapters over its durable-execution platform.

Architecture::

    store.py       StepStore protocol, MemoryStepStore, SQLiteStepStore
    runner.py      DurableStepRunner (do / sleep_until over a StepStore)
    instances.py   InstanceRegistry (Instance Factory + status table)
    retry.py       Retry strategies for retryable instance failures
    host.py        LocalHost dispatch loop
"""

from cron_workflow.substrate.host import LocalHost
from cron_workflow.substrate.instances import (
    InstanceRecord,
    InstanceRegistry,
    InstanceStatus,
    MemoryInstanceRegistry,
    SQLiteInstanceRegistry,
    list_all_instances,
)
from cron_workflow.substrate.retry import ConstantBackoff, ExponentialBackoff, NoRetry, RetryStrategy
from cron_workflow.substrate.runner import DurableStepRunner
from cron_workflow.substrate.store import MemoryStepStore, SQLiteStepStore, StepStore

__all__ = [
    "LocalHost",
    "InstanceRecord",
    "InstanceRegistry",
    "InstanceStatus",
    "MemoryInstanceRegistry",
    "SQLiteInstanceRegistry",
    "list_all_instances",
    "ConstantBackoff",
    "ExponentialBackoff",
    "NoRetry",
    "RetryStrategy",
    "DurableStepRunner",
    "MemoryStepStore",
    "SQLiteStepStore",
    "StepStore",
]
