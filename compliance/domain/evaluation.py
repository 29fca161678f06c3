"""Value objects describing a single evaluation pass."""
from __future__ import annotations

from dataclasses import dataclass
from datetime import date, datetime, tzinfo

from compliance.core.timeutils import Clock, local_date


@dataclass(slots=True, frozen=True)
class EvaluationPass:
    """The instant and timezone every row in one pass is judged against."""

    now: datetime
    tz: tzinfo

    @classmethod
    def capture(cls, clock: Clock, tz: tzinfo) -> "EvaluationPass":
        return cls(now=clock.now(), tz=tz)

    @property
    def today(self) -> date:
        return local_date(self.now, self.tz)


@dataclass(slots=True, frozen=True)
class CacheKey:
    """Composite memoisation key; any input change yields a new key."""

    view: str
    revision: str
    day: str
    phase: tuple[int, int]
    params: tuple
