"""Timezone-normalised day arithmetic.

Every function takes the evaluation instant explicitly. Callers capture ``now``
once per pass (see :class:`compliance.domain.EvaluationPass`) so all rows scored
together are judged against the same moment.
"""

from __future__ import annotations

from bisect import bisect_left, bisect_right
from datetime import date, datetime, time, timedelta, timezone, tzinfo
from typing import Any, Iterable, Protocol
from zoneinfo import ZoneInfo

DEFAULT_TIMEZONE = "Asia/Bangkok"

_SECONDS_PER_DAY = 86400


class Clock(Protocol):
    def now(self) -> datetime: ...


class SystemClock:
    """Wall-clock time, always timezone-aware (UTC)."""

    def now(self) -> datetime:
        return datetime.now(timezone.utc)


class FixedClock:
    """Clock frozen at a single instant; used by tests and replays."""

    def __init__(self, instant: datetime | str) -> None:
        parsed = parse_instant(instant)
        if parsed is None:
            raise ValueError("FixedClock requires an instant")
        self._instant = parsed

    def now(self) -> datetime:
        return self._instant


def resolve_timezone(name: str | tzinfo | None) -> tzinfo:
    if name is None:
        return ZoneInfo(DEFAULT_TIMEZONE)
    if isinstance(name, tzinfo):
        return name
    return ZoneInfo(name)


def parse_instant(value: Any) -> datetime | None:
    """Coerce ISO strings, dates and datetimes; blanks and NaN become ``None``."""

    # NaN and NaT are the only values unequal to themselves
    if value is None or value != value:
        return None
    # pandas.Timestamp and friends
    to_pydatetime = getattr(value, "to_pydatetime", None)
    if callable(to_pydatetime):
        return to_pydatetime()
    if isinstance(value, datetime):
        return value
    if isinstance(value, date):
        return datetime.combine(value, time.min)
    if isinstance(value, str):
        raw = value.strip()
        if not raw:
            return None
        if raw.endswith("Z"):
            raw = raw[:-1] + "+00:00"
        return datetime.fromisoformat(raw)
    raise ValueError(f"unsupported instant value: {value!r}")


def to_zone(instant: datetime, tz: tzinfo) -> datetime:
    """Return the wall-clock time of ``instant`` in ``tz`` as a naive datetime.

    Naive inputs are taken to already be wall-clock time in ``tz``.
    """

    if instant.tzinfo is None:
        return instant
    return instant.astimezone(tz).replace(tzinfo=None)


def days_between(start: datetime | date | str, end: datetime | date | str, tz: tzinfo) -> int:
    """Signed count of whole days from ``start`` to ``end`` in ``tz``.

    Partial days are truncated toward zero, so 36 hours is 1 and -36 hours is -1.
    """

    start_at = parse_instant(start)
    end_at = parse_instant(end)
    if start_at is None or end_at is None:
        raise ValueError("days_between requires two instants")
    delta = to_zone(end_at, tz) - to_zone(start_at, tz)
    return int(delta.total_seconds() / _SECONDS_PER_DAY)


def overdue_days(due: datetime | None, now: datetime, tz: tzinfo) -> int:
    if due is None:
        return 0
    return max(0, days_between(due, now, tz))


def due_in_days(due: datetime | None, now: datetime, tz: tzinfo) -> int | None:
    if due is None:
        return None
    diff = days_between(now, due, tz)
    return diff if diff >= 0 else None


def local_date(instant: datetime, tz: tzinfo) -> date:
    return to_zone(instant, tz).date()


def shift_days(instant: datetime, days: int) -> datetime:
    return instant + timedelta(days=days)


def zone_sort_value(instant: datetime, tz: tzinfo) -> float:
    """Seconds since ``datetime.min`` of the wall-clock time in ``tz``; orders mixed naive/aware values."""

    return (to_zone(instant, tz) - datetime.min).total_seconds()


def _micros_into_day(wall: datetime) -> int:
    return ((wall.hour * 60 + wall.minute) * 60 + wall.second) * 1_000_000 + wall.microsecond


def day_phase(now: datetime, instants: Iterable[datetime | None], tz: tzinfo) -> tuple[int, int]:
    """Where the time of day of ``now`` falls among the times of day of ``instants``.

    Returns how many of those times of day are strictly earlier and how many are
    earlier or equal. On a fixed local date, ``days_between`` between ``now`` and
    any of ``instants`` (in either direction) changes only when this pair changes.
    """

    marks = sorted({_micros_into_day(to_zone(instant, tz)) for instant in instants if instant is not None})
    current = _micros_into_day(to_zone(now, tz))
    return bisect_left(marks, current), bisect_right(marks, current)
