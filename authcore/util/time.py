from __future__ import annotations

from datetime import datetime, timezone
from typing import Callable

Clock = Callable[[], datetime]


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


def utcnow_iso() -> str:
    """Current UTC time as ISO-8601 string with Z."""
    return to_iso(utcnow())


def to_iso(dt: datetime) -> str:
    return dt.astimezone(timezone.utc).replace(microsecond=0).isoformat().replace("+00:00", "Z")


def from_timestamp(ts: int) -> datetime:
    return datetime.fromtimestamp(int(ts), tz=timezone.utc)
