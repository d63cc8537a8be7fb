"""
Clock Utility

Provides the current time to services that stamp import lifecycle events
and touch company timestamps. Services receive a clock instead of calling
datetime.now() so tests can pin time.
"""

from datetime import datetime, timedelta

import pytz


class SystemClock:
    """Wall clock returning naive UTC datetimes (the storage convention)."""

    def now(self) -> datetime:
        return datetime.now(pytz.utc).replace(tzinfo=None)

    def today(self):
        return self.now().date()


class FrozenClock:
    """Clock pinned to a fixed instant; can be moved forward explicitly."""

    def __init__(self, current: datetime):
        if current.tzinfo is not None:
            current = current.astimezone(pytz.utc).replace(tzinfo=None)
        self.current = current

    def now(self) -> datetime:
        return self.current

    def today(self):
        return self.current.date()

    def set(self, current: datetime) -> None:
        self.current = current

    def advance(self, seconds: float = 0, **kwargs) -> datetime:
        self.current = self.current + timedelta(seconds=seconds, **kwargs)
        return self.current
