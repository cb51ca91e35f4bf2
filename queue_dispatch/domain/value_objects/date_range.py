"""DateRange value object — immutable [start, end) window over history."""

from __future__ import annotations

import math
from dataclasses import dataclass
from datetime import datetime, timedelta


@dataclass(frozen=True)
class DateRange:
    start: datetime
    end: datetime

    def __post_init__(self) -> None:
        if self.end <= self.start:
            raise ValueError("DateRange end must be after start")

    def contains(self, moment: datetime) -> bool:
        return self.start <= moment < self.end

    @property
    def days(self) -> int:
        """Number of (possibly partial) days covered, at least 1."""
        return max(1, math.ceil((self.end - self.start) / timedelta(days=1)))

    @classmethod
    def last_days(cls, now: datetime, days: int) -> DateRange:
        return cls(start=now - timedelta(days=days), end=now)
