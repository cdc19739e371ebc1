"""
Query Window Models

A validated [start, end] range used for every state/count query and report:
- clamping a requested end to "now"
- padding the fetch range around a report window
"""

from dataclasses import dataclass
from datetime import datetime, timedelta
from typing import Optional
import pytz

from utils.formatting import ensure_utc

DEFAULT_PADDING_MINUTES = 5


@dataclass(frozen=True)
class QueryWindow:
    """
    Represents a single time range for analysis.

    Both ends are normalised to timezone-aware UTC datetimes.
    """
    start: datetime
    end: datetime

    def __post_init__(self):
        """Normalise and validate the window"""
        object.__setattr__(self, 'start', ensure_utc(self.start))
        object.__setattr__(self, 'end', ensure_utc(self.end))
        if self.end < self.start:
            raise ValueError(
                f"End time ({self.end}) must not be before start time ({self.start})"
            )

    @classmethod
    def last_hours(cls, hours: float, now: Optional[datetime] = None) -> 'QueryWindow':
        """Window covering the last N hours up to now"""
        end = ensure_utc(now) if now else datetime.now(pytz.UTC)
        return cls(end - timedelta(hours=hours), end)

    def clamped_to_now(self, now: Optional[datetime] = None) -> 'QueryWindow':
        """
        Return this window with a future end replaced by now.

        The start is left untouched; if the start itself lies in the future the
        result collapses to a zero-length window at now.
        """
        now = ensure_utc(now) if now else datetime.now(pytz.UTC)
        if self.end <= now:
            return self
        return QueryWindow(min(self.start, now), now)

    def padded(self, minutes: float = DEFAULT_PADDING_MINUTES) -> 'QueryWindow':
        """Widen the window by the given number of minutes on both sides"""
        padding = timedelta(minutes=minutes)
        return QueryWindow(self.start - padding, self.end + padding)

    def __repr__(self) -> str:
        return (
            f"QueryWindow({self.start.strftime('%Y-%m-%d %H:%M:%S')} → "
            f"{self.end.strftime('%Y-%m-%d %H:%M:%S')})"
        )
