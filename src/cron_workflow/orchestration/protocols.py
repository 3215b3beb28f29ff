"""Contracts of the external collaborators the lifecycle engine drives.

The engine owns no persistence and no timers. It relies on two
collaborators supplied by the host substrate:

- ``StepRunner``: memoized named steps plus a durable suspend primitive
- ``InstanceFactory``: creates the next instance of the chain

``cron_workflow.substrate`` ships local implementations of both; a host
integrating a real durable-execution platform provides adapters that
satisfy these protocols (and translates the platform's "time in the
past" rejection into ``SuspendTimeTravelError``).
"""

from __future__ import annotations

from collections.abc import Callable
from datetime import datetime
from typing import Protocol, TypeVar, runtime_checkable

from cron_workflow.orchestration.models import InstanceHandle, InstanceParams

T = TypeVar("T")


@runtime_checkable
class StepRunner(Protocol):
    """Durable step handle for one instance."""

    def do(self, name: str, fn: Callable[[], T]) -> T:
        """Run ``fn`` at most once per ``name`` within this instance.

        On replay the recorded value is returned without calling ``fn``.
        Exceptions raised by ``fn`` propagate and are not recorded.
        """
        ...

    def sleep_until(self, name: str, timestamp: datetime) -> None:
        """Suspend until ``timestamp``.

        Raises:
            SuspendTimeTravelError: ``timestamp`` is not in the future
        """
        ...


@runtime_checkable
class InstanceFactory(Protocol):
    """Creates scheduler instances."""

    def create(self, params: InstanceParams) -> InstanceHandle:
        ...


__all__ = ["StepRunner", "InstanceFactory"]
