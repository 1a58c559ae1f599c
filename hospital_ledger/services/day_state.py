"""
Day state store.

Cross-request memory for the day-end workflow, backed by the
cache_entries table. Key schema and lifetimes:

    day_end_timestamp                     boundary, ~1 year
    day_acknowledged:<YYYY-MM-DD>         True, ~1 day
    daily_revenue:<YYYY-MM-DD>            figures, until midnight
    daily_revenue_calculated_at:<date>    ISO time, until midnight
    daily_revenue:all_history             figures, ~30 days
    daily_revenue_calculated_at:all_history

The boundary only moves forward: put_if_newer refuses to write
an older timestamp than the one stored.
"""

from datetime import date, datetime, timedelta

from sqlalchemy import select
from sqlalchemy.orm import Session

from hospital_ledger.clock import start_of_day
from hospital_ledger.config import get_settings
from hospital_ledger.exceptions import CorruptDayState
from hospital_ledger.models.cache_entry import CacheEntry

DAY_END_TIMESTAMP = "day_end_timestamp"
ALL_HISTORY = "all_history"


def acknowledged_key(day: date) -> str:
    return f"day_acknowledged:{day.isoformat()}"


def revenue_key(scope: str) -> str:
    return f"daily_revenue:{scope}"


def calculated_at_key(scope: str) -> str:
    return f"daily_revenue_calculated_at:{scope}"


def parse_moment(key: str, value) -> datetime:
    try:
        return datetime.fromisoformat(value)
    except (TypeError, ValueError) as e:
        raise CorruptDayState(f"Unreadable timestamp under {key}: {value!r}") from e


class DayStateStore:
    """
    get/put/forget with TTL plus the boundary helpers.

    Writes are flushed but not committed; the caller owns the
    unit of work, as with every other service.
    """

    def __init__(self, db: Session, clock):
        self.db = db
        self.clock = clock
        self.settings = get_settings()

    # --- Generic cache contract ---

    def _entry(self, key: str, lock: bool = False) -> CacheEntry | None:
        stmt = select(CacheEntry).where(CacheEntry.key == key)
        if lock:
            stmt = stmt.with_for_update()
        return self.db.execute(stmt).scalar_one_or_none()

    def get(self, key: str, default=None):
        entry = self._entry(key)
        if entry is None or entry.is_expired(self.clock.now()):
            return default
        return entry.value

    def put(self, key: str, value, ttl: timedelta | None = None,
            expires_at: datetime | None = None) -> None:
        if expires_at is None and ttl is not None:
            expires_at = self.clock.now() + ttl
        entry = self._entry(key, lock=True)
        if entry is None:
            entry = CacheEntry(key=key)
            self.db.add(entry)
        entry.value = value
        entry.expires_at = expires_at
        self.db.flush()

    def forget(self, key: str) -> None:
        entry = self._entry(key, lock=True)
        if entry is not None:
            self.db.delete(entry)
            self.db.flush()

    def lock(self, key: str) -> None:
        """
        Take the row lock for a key for the rest of the transaction.

        The row is created empty when missing so there is always
        something to lock.
        """
        entry = self._entry(key, lock=True)
        if entry is None:
            self.db.add(CacheEntry(key=key, value=None, expires_at=None))
            self.db.flush()

    def put_if_newer(self, key: str, moment: datetime,
                     ttl: timedelta) -> bool:
        """Store an ISO timestamp unless a later one is already stored."""
        entry = self._entry(key, lock=True)
        now = self.clock.now()
        if entry is not None and entry.value and not entry.is_expired(now):
            if parse_moment(key, entry.value) >= moment:
                return False
        if entry is None:
            entry = CacheEntry(key=key)
            self.db.add(entry)
        entry.value = moment.isoformat()
        entry.expires_at = now + ttl
        self.db.flush()
        return True

    # --- Business-day boundary ---

    def boundary(self) -> datetime | None:
        value = self.get(DAY_END_TIMESTAMP)
        return parse_moment(DAY_END_TIMESTAMP, value) if value else None

    def advance_boundary(self, moment: datetime) -> bool:
        return self.put_if_newer(
            DAY_END_TIMESTAMP,
            moment,
            timedelta(days=self.settings.DAY_BOUNDARY_TTL_DAYS),
        )

    # --- Acknowledgement ---

    def is_acknowledged(self, day: date) -> bool:
        return bool(self.get(acknowledged_key(day), False))

    def acknowledge(self, day: date) -> None:
        self.put(
            acknowledged_key(day),
            True,
            ttl=timedelta(days=self.settings.DAY_ACK_TTL_DAYS),
        )

    # --- Cached revenue figures ---

    def cached_revenue(self, scope: str) -> dict | None:
        return self.get(revenue_key(scope))

    def store_revenue(self, scope: str, figures: dict) -> None:
        now = self.clock.now()
        if scope == ALL_HISTORY:
            expires_at = now + timedelta(
                days=self.settings.ALL_HISTORY_CACHE_TTL_DAYS
            )
        else:
            expires_at = start_of_day(now) + timedelta(days=1)
        self.put(revenue_key(scope), figures, expires_at=expires_at)
        self.put(calculated_at_key(scope), now.isoformat(),
                 expires_at=expires_at)

    def forget_revenue(self, scope: str) -> None:
        self.forget(revenue_key(scope))
        self.forget(calculated_at_key(scope))
