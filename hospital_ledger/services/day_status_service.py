"""
Business-day cutover.

The boundary is the moment an operator last closed a day. Before
the first close "today" starts at calendar midnight; afterwards it
starts at the boundary. Closing archives the activity since the
previous boundary into a DailySnapshot and moves the boundary to
now, so repeated closes only ever archive the delta.
"""

import logging
from datetime import datetime, timedelta

from sqlalchemy import select, func
from sqlalchemy.orm import Session

from hospital_ledger.clock import SystemClock, start_of_day
from hospital_ledger.exceptions import DayCloseFailed
from hospital_ledger.models.daily_snapshot import DailySnapshot
from hospital_ledger.money import ZERO, to_money
from hospital_ledger.schemas.day_status import (
    DayState,
    DayStatusResponse,
    CloseDayResult,
    DaySummary,
    SnapshotResponse,
    YesterdaySummary,
)
from hospital_ledger.schemas.revenue import RevenueWindow
from hospital_ledger.services.audit_service import AuditService
from hospital_ledger.services.day_state import DayStateStore, DAY_END_TIMESTAMP
from hospital_ledger.services.revenue_aggregator import RevenueAggregator

logger = logging.getLogger(__name__)


class DayStatusService:

    def __init__(
        self,
        db: Session,
        clock=None,
        state: DayStateStore | None = None,
        aggregator: RevenueAggregator | None = None,
        audit: AuditService | None = None,
    ):
        self.db = db
        self.clock = clock or SystemClock()
        self.state = state or DayStateStore(db, self.clock)
        self.aggregator = aggregator or RevenueAggregator(
            db, self.clock, self.state
        )
        self.audit = audit or AuditService(db)

    def last_archived_date(self):
        return self.db.execute(
            select(func.max(DailySnapshot.snapshot_date))
        ).scalar()

    def check_status(self) -> DayStatusResponse:
        """
        Whether a new calendar day is waiting to be started.

        new_day_available only when today is past the last archived
        date and nobody has acknowledged today yet.
        """
        today = self.clock.today()
        boundary = self.state.boundary()

        last_archived = self.last_archived_date()
        if last_archived is None and boundary is not None:
            last_archived = boundary.date()

        if last_archived is None:
            return DayStatusResponse(
                status=DayState.DAY_STARTED,
                message="System initialized - day already started",
                current_date=today,
                new_day_available=False,
            )

        if today > last_archived and not self.state.is_acknowledged(today):
            return DayStatusResponse(
                status=DayState.NEW_DAY_AVAILABLE,
                message="New day detected - previous day needs to be archived",
                current_date=today,
                last_archived_date=last_archived,
                new_day_available=True,
                days_behind=(today - last_archived).days,
                day_end_timestamp=boundary,
            )

        message = (
            "System date appears to be in the past"
            if today < last_archived
            else "Day already started and processed"
        )
        return DayStatusResponse(
            status=DayState.DAY_STARTED,
            message=message,
            current_date=today,
            last_archived_date=last_archived,
            new_day_available=False,
            day_end_timestamp=boundary,
        )

    def close_day(self, now: datetime | None = None,
                  user_id: int | None = None) -> CloseDayResult:
        """
        Archive the open period and move the boundary to now.

        The whole close runs in one savepoint under the boundary row
        lock: two concurrent closes serialize, and the second one only
        sees the (empty) slice left by the first.
        """
        now = now or self.clock.now()
        try:
            with self.db.begin_nested():
                self.state.lock(DAY_END_TIMESTAMP)
                previous = self.state.boundary()

                if previous is not None:
                    snapshots = self._archive_since_boundary(previous, now)
                else:
                    snapshots = self._archive_first_close(now)

                self.aggregator.forget_current_day()
                self.state.acknowledge(now.date())
                self.state.advance_boundary(now)
                # A later boundary already stored wins over this close's now
                boundary = self.state.boundary()
        except Exception as e:
            logger.exception("Day close failed at %s", now)
            self.audit.log(
                "error",
                f"Day close failed: {e}",
                {"attempted_at": now, "user_id": user_id},
                event_type="day_close_failure",
            )
            raise DayCloseFailed(f"Failed to close day: {e}") from e

        self.audit.log(
            "info",
            "Day closed",
            {
                "previous_boundary": previous,
                "boundary": boundary,
                "snapshots": [s.id for s in snapshots],
                "user_id": user_id,
            },
            event_type="day_close",
        )
        logger.info(
            "Day closed at %s, %d snapshot(s) archived", now, len(snapshots)
        )

        if snapshots:
            message = f"Day archived successfully ({len(snapshots)} period(s))"
        else:
            message = "No activity since the last close - today reset to 0"
        return CloseDayResult(
            message=message,
            previous_boundary=previous,
            boundary=boundary,
            snapshots=[SnapshotResponse.model_validate(s) for s in snapshots],
        )

    def _archive_since_boundary(self, boundary: datetime,
                                now: datetime) -> list[DailySnapshot]:
        if now <= boundary:
            return []
        snapshot = self._archive(RevenueWindow(boundary, now))
        return [snapshot] if snapshot else []

    def _archive_first_close(self, now: datetime) -> list[DailySnapshot]:
        """Yesterday (unless already archived) plus today's activity so far."""
        snapshots = []
        today_start = start_of_day(now)
        yesterday_start = today_start - timedelta(days=1)

        already_archived = self.db.execute(
            select(DailySnapshot.id).where(
                DailySnapshot.snapshot_date == yesterday_start.date()
            ).limit(1)
        ).scalar()
        if already_archived is None:
            snapshot = self._archive(RevenueWindow(yesterday_start, today_start))
            if snapshot:
                snapshots.append(snapshot)

        if now > today_start:
            snapshot = self._archive(
                RevenueWindow(today_start, now), metadata={"pre_reset": True}
            )
            if snapshot:
                snapshots.append(snapshot)
        return snapshots

    def _archive(self, window: RevenueWindow,
                 metadata: dict | None = None) -> DailySnapshot | None:
        """Snapshot one slice, or nothing when the slice had no activity."""
        existing = self.db.execute(
            select(DailySnapshot).where(
                DailySnapshot.period_start == window.start,
                DailySnapshot.period_end == window.end,
            )
        ).scalar_one_or_none()
        if existing is not None:
            return None

        revenue = self.aggregator.aggregate(window)
        count = self.aggregator.appointments_count(window)
        if revenue.total <= ZERO and count == 0:
            logger.info(
                "Skipping empty slice [%s, %s)", window.start, window.end
            )
            return None

        snapshot = DailySnapshot(
            snapshot_date=window.start.date(),
            period_start=window.start,
            period_end=window.end,
            appointments_count=count,
            appointments_revenue=revenue.appointment_revenue,
            departments_revenue=revenue.department_revenue,
            pharmacy_revenue=revenue.pharmacy_revenue,
            laboratory_revenue=revenue.laboratory_revenue,
            total_revenue=revenue.total,
            snapshot_metadata=metadata or {},
        )
        self.db.add(snapshot)
        self.db.flush()
        return snapshot

    def summary(self, now: datetime | None = None) -> DaySummary:
        """Live figures for [boundary or midnight, now); never from a snapshot."""
        now = now or self.clock.now()
        window = RevenueWindow(self.aggregator.current_day_start(now), now)
        return DaySummary(
            period_start=window.start,
            period_end=now,
            appointments_count=self.aggregator.appointments_count(window),
            revenue=self.aggregator.aggregate(window),
        )

    def yesterday_summary(self) -> YesterdaySummary:
        yesterday = self.clock.today() - timedelta(days=1)

        count, total, slices = self.db.execute(
            select(
                func.coalesce(func.sum(DailySnapshot.appointments_count), 0),
                func.coalesce(func.sum(DailySnapshot.total_revenue), 0),
                func.count(DailySnapshot.id),
            ).where(DailySnapshot.snapshot_date == yesterday)
        ).one()
        if slices:
            return YesterdaySummary(
                date=yesterday,
                appointments_count=count,
                total_revenue=to_money(total),
                source="archived",
            )

        revenue = self.aggregator.cached_breakdown(yesterday.isoformat())
        if revenue is not None:
            return YesterdaySummary(
                date=yesterday, total_revenue=revenue.total, source="cached"
            )

        return YesterdaySummary(date=yesterday, source="unavailable")
