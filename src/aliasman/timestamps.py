"""Timestamp helpers shared by the alias model and the storage backends."""

import re
from datetime import datetime, timezone
from typing import Callable

# Absent timestamps are represented by this sentinel rather than None.
ZERO_TIME = datetime(1, 1, 1, tzinfo=timezone.utc)

_FRACTION = re.compile(r"\.(\d+)")

Clock = Callable[[], datetime]


def utc_now() -> datetime:
    """Current time in UTC."""
    return datetime.now(timezone.utc)


def is_zero(ts: datetime) -> bool:
    return ts == ZERO_TIME


def format_rfc3339(ts: datetime) -> str:
    """Format as RFC3339 in UTC at second resolution.

    Sub-second precision is truncated, not rounded.
    """
    if ts.tzinfo is None:
        ts = ts.replace(tzinfo=timezone.utc)
    elif not is_zero(ts):
        ts = ts.astimezone(timezone.utc)
    # isoformat() keeps the 4-digit year for year 1, strftime does not on glibc
    return ts.replace(microsecond=0).isoformat().replace("+00:00", "Z")


def parse_rfc3339(value: str) -> datetime:
    """Parse an RFC3339 timestamp. Raises ValueError on bad input."""
    if not value:
        raise ValueError("empty timestamp")
    text = value.strip()
    if text[-1] in "zZ":
        text = text[:-1] + "+00:00"
    # fromisoformat() only takes 3 or 6 fractional digits before 3.11
    text = _FRACTION.sub(lambda m: "." + m.group(1)[:6].ljust(6, "0"), text)
    ts = datetime.fromisoformat(text)
    if ts.tzinfo is None:
        raise ValueError(f"timestamp has no UTC offset: {value!r}")
    return ts


def format_precise(ts: datetime) -> str:
    """ISO 8601 with microseconds, for backends that keep full precision."""
    if ts.tzinfo is None:
        ts = ts.replace(tzinfo=timezone.utc)
    return ts.isoformat(timespec="microseconds").replace("+00:00", "Z")


def ts_to_string(ts: datetime) -> str:
    """Display form: empty for the zero time, RFC3339 otherwise."""
    if is_zero(ts):
        return ""
    return format_rfc3339(ts)
