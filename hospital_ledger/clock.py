"""
Time source for the engine.

Day-boundary logic depends on "now" and "today". Every service
takes a clock instead of calling datetime.now() directly, so
tests can freeze or move time deterministically.

All timestamps are naive local time: a hospital's business day
follows the wall clock of the building it runs in.
"""

from datetime import date, datetime, time, timedelta


class SystemClock:
    """Wall-clock time."""

    def now(self) -> datetime:
        return datetime.now()

    def today(self) -> date:
        return self.now().date()


class FixedClock(SystemClock):
    """A clock that only moves when told to."""

    def __init__(self, current: datetime):
        self.current = current

    def now(self) -> datetime:
        return self.current

    def set(self, current: datetime) -> None:
        self.current = current

    def advance(self, **kwargs) -> datetime:
        self.current = self.current + timedelta(**kwargs)
        return self.current


def start_of_day(moment: datetime | date) -> datetime:
    """Midnight at the beginning of the given day."""
    day = moment.date() if isinstance(moment, datetime) else moment
    return datetime.combine(day, time.min)
