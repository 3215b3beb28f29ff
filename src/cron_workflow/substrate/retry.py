"""Retry policies for instances the local host could not finish.

The engine never retries on its own: a TerminalRunError is final and the
schedule moves on through the successor. A policy only decides what the
host does with a *retryable* instance failure, such as a transient error
while creating the successor. The retried attempt replays the instance,
so memoized steps are skipped and only the unfinished ones run again.

Both methods take ``retries_done``: how many retries the instance has
already had (``attempts - 1``).

Example:
    >>> policy = ExponentialBackoff(max_retries=3, base_delay=2.0, jitter=False)
    >>> [policy.next_delay(n) for n in range(3)]
    [2.0, 4.0, 8.0]
"""

from __future__ import annotations

import random
from abc import ABC, abstractmethod
from dataclasses import dataclass

from cron_workflow.core.errors import is_retryable


class RetryStrategy(ABC):
    """Decides whether and when a failed instance is dispatched again."""

    max_retries: int = 0

    @abstractmethod
    def next_delay(self, retries_done: int) -> float:
        """Seconds to wait before the next attempt."""
        ...

    def should_retry(self, retries_done: int, error: BaseException | None = None) -> bool:
        """Retry only retryable errors, and only while retries remain."""
        if error is not None and not is_retryable(error):
            return False
        return retries_done < self.max_retries


@dataclass
class ExponentialBackoff(RetryStrategy):
    """``base_delay * multiplier ** retries_done``, capped at ``max_delay``, ± jitter."""

    max_retries: int = 3
    base_delay: float = 1.0
    max_delay: float = 60.0
    multiplier: float = 2.0
    jitter: bool = True
    jitter_range: float = 0.25

    def next_delay(self, retries_done: int) -> float:
        delay = min(self.base_delay * self.multiplier**retries_done, self.max_delay)
        if not self.jitter:
            return delay
        spread = delay * self.jitter_range
        return max(0.0, delay + random.uniform(-spread, spread))


@dataclass
class ConstantBackoff(RetryStrategy):
    """Same delay before every retry."""

    max_retries: int = 3
    delay: float = 1.0

    def next_delay(self, retries_done: int) -> float:
        return self.delay


@dataclass
class NoRetry(RetryStrategy):
    """Every failure is final."""

    max_retries: int = 0

    def next_delay(self, retries_done: int) -> float:
        return 0.0


__all__ = ["RetryStrategy", "ExponentialBackoff", "ConstantBackoff", "NoRetry"]
