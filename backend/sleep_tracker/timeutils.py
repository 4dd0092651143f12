from __future__ import annotations

from datetime import datetime, timezone
from typing import Callable, List, Sequence, TypeVar

T = TypeVar("T")


def now_utc() -> datetime:
    """Return the current time as an aware UTC datetime."""

    return datetime.now(tz=timezone.utc)


def ensure_utc(value: datetime) -> datetime:
    """Convert a datetime to UTC, assuming naive values are already in UTC."""

    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc)


def newest_first(items: Sequence[T], stamp: Callable[[T], datetime]) -> List[T]:
    """Sort by timestamp, latest first; equal timestamps put the later item first."""

    ranked = sorted(enumerate(items), key=lambda pair: (ensure_utc(stamp(pair[1])), pair[0]), reverse=True)
    return [item for _, item in ranked]


def format_clock(seconds: float) -> str:
    """Render a number of seconds as HH:MM:SS (hours are not wrapped)."""

    total = int(seconds)
    hours, remainder = divmod(total, 3600)
    minutes, secs = divmod(remainder, 60)
    return f"{hours:02d}:{minutes:02d}:{secs:02d}"
