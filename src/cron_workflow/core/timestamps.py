"""
UTC timestamp helpers and time-sortable ids (stdlib-only).

Every time the engine handles is an aware UTC datetime: run times are
compared against the clock, written into step memos as ISO-8601 strings
and read back on replay. Instance ids are ULIDs so a chain sorts by
creation order.

Tags:
    timestamps, ulid, utc, datetime, cron-workflow, stdlib-only
"""

import random
import time
from datetime import UTC, datetime


def utc_now() -> datetime:
    """Get current UTC datetime."""
    return datetime.now(UTC)


def ensure_utc(dt: datetime) -> datetime:
    """Return ``dt`` as an aware UTC datetime; naive values are taken as UTC."""
    if dt.tzinfo is None:
        return dt.replace(tzinfo=UTC)
    return dt.astimezone(UTC)


def to_iso8601(dt: datetime | None) -> str | None:
    """Convert datetime to ISO 8601 string."""
    if dt is None:
        return None
    return ensure_utc(dt).isoformat()


def from_iso8601(s: str | None) -> datetime | None:
    """Parse ISO 8601 string to an aware UTC datetime."""
    if s is None:
        return None
    if s.endswith("Z"):
        s = s[:-1] + "+00:00"
    return ensure_utc(datetime.fromisoformat(s))


def generate_ulid(at: datetime | None = None) -> str:
    """Time-sortable 26-character id in Crockford base32.

    The first 10 characters encode the millisecond timestamp of ``at``
    (default: now) and the last 16 are random, so ids minted from a fake
    clock still sort in firing order.
    """
    millis = int(ensure_utc(at).timestamp() * 1000) if at is not None else time.time_ns() // 1_000_000
    return _crockford(millis, 10) + "".join(random.choices(_CROCKFORD, k=16))


_CROCKFORD = "0123456789ABCDEFGHJKMNPQRSTVWXYZ"


def _crockford(value: int, width: int) -> str:
    digits = [""] * width
    for pos in range(width - 1, -1, -1):
        value, digit = divmod(value, 32)
        digits[pos] = _CROCKFORD[digit]
    return "".join(digits)


__all__ = [
    "utc_now",
    "ensure_utc",
    "to_iso8601",
    "from_iso8601",
    "generate_ulid",
]
