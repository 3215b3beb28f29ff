"""DurableStepRunner: local implementation of the StepRunner protocol.

One runner is bound to one instance id. ``do`` memoizes successful step
results in a ``StepStore``; ``sleep_until`` blocks through an injectable
``sleeper`` and records completion so a replay never waits twice.
"""

from __future__ import annotations

import time
from collections.abc import Callable
from datetime import datetime
from typing import Any, TypeVar

from cron_workflow.core.errors import SuspendTimeTravelError
from cron_workflow.core.logging import get_logger
from cron_workflow.core.timestamps import ensure_utc, to_iso8601, utc_now
from cron_workflow.substrate.store import StepStore

logger = get_logger(__name__)

T = TypeVar("T")


class DurableStepRunner:
    """Memoizing step runner for one instance.

    Args:
        store: Where step results are recorded
        instance_id: Instance this runner executes
        clock: Current aware UTC time
        sleeper: Blocks for the given number of seconds
    """

    def __init__(
        self,
        store: StepStore,
        instance_id: str,
        clock: Callable[[], datetime] = utc_now,
        sleeper: Callable[[float], Any] = time.sleep,
    ) -> None:
        self.store = store
        self.instance_id = instance_id
        self._clock = clock
        self._sleeper = sleeper

    def do(self, name: str, fn: Callable[[], T]) -> T:
        found, value = self.store.get(self.instance_id, name)
        if found:
            logger.debug("step_replayed", step=name, instance_id=self.instance_id)
            return value

        value = fn()
        logger.debug("step_recorded", step=name, instance_id=self.instance_id)
        return self.store.put(self.instance_id, name, value)

    def sleep_until(self, name: str, timestamp: datetime) -> None:
        found, _ = self.store.get(self.instance_id, name)
        if found:
            return

        timestamp = ensure_utc(timestamp)
        now = self._clock()
        if timestamp <= now:
            raise SuspendTimeTravelError(
                f"Cannot sleep until {to_iso8601(timestamp)}: time is in the past"
            ).with_context(instance_id=self.instance_id, step=name)

        seconds = (timestamp - now).total_seconds()
        logger.info("step_sleeping", step=name, until=to_iso8601(timestamp), seconds=seconds)
        self._sleeper(seconds)
        self.store.put(self.instance_id, name, {"slept_until": to_iso8601(timestamp)})

    def recorded_steps(self) -> dict[str, Any]:
        return self.store.list(self.instance_id)

    def __repr__(self) -> str:
        return f"DurableStepRunner(instance_id={self.instance_id!r})"


__all__ = ["DurableStepRunner"]
