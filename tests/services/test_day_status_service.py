"""
Tests for the business-day cutover.
"""

from datetime import date, datetime, timedelta
from decimal import Decimal

import pytest
from sqlalchemy import select
from sqlalchemy.exc import OperationalError

from hospital_ledger.exceptions import DayCloseFailed
from hospital_ledger.models import AuditLog, DailySnapshot
from hospital_ledger.models.enums import AppointmentStatus
from hospital_ledger.schemas.day_status import DayState
from hospital_ledger.services.day_state import (
    DayStateStore,
    ALL_HISTORY,
    DAY_END_TIMESTAMP,
    revenue_key,
)
from hospital_ledger.services.day_status_service import DayStatusService
from hospital_ledger.services.revenue_aggregator import RevenueAggregator

COMPLETED = AppointmentStatus.COMPLETED
YESTERDAY_MORNING = datetime(2025, 3, 13, 9, 0)


@pytest.fixture
def service(db_session, clock):
    return DayStatusService(db_session, clock)


@pytest.fixture
def state(db_session, clock):
    return DayStateStore(db_session, clock)


def snapshots(db_session):
    return db_session.execute(
        select(DailySnapshot).order_by(DailySnapshot.period_start)
    ).scalars().all()


class TestFirstClose:

    def test_archives_yesterday(self, db_session, service, state, clock,
                                make_appointment):
        for hour in (9, 11, 14):
            make_appointment(
                status=COMPLETED, when=YESTERDAY_MORNING.replace(hour=hour)
            )

        result = service.close_day()
        db_session.commit()

        archived = snapshots(db_session)
        assert len(archived) == 1
        assert archived[0].snapshot_date == date(2025, 3, 13)
        assert archived[0].appointments_count == 3
        assert archived[0].total_revenue == Decimal("300.00")
        assert archived[0].period_start == datetime(2025, 3, 13)
        assert archived[0].period_end == datetime(2025, 3, 14)
        assert result.success is True
        assert result.previous_boundary is None
        assert state.boundary() == clock.now()

    def test_archives_pre_close_activity_of_today(
        self, db_session, service, make_appointment
    ):
        make_appointment(status=COMPLETED, when=YESTERDAY_MORNING)
        make_appointment(status=COMPLETED, fee="40.00")

        result = service.close_day()

        archived = snapshots(db_session)
        assert [s.snapshot_date for s in archived] == [
            date(2025, 3, 13), date(2025, 3, 14)
        ]
        assert archived[1].snapshot_metadata == {"pre_reset": True}
        assert archived[1].total_revenue == Decimal("40.00")
        assert len(result.snapshots) == 2

    def test_yesterday_not_archived_twice(self, db_session, service, make_appointment):
        make_appointment(status=COMPLETED, when=YESTERDAY_MORNING)
        db_session.add(DailySnapshot(
            snapshot_date=date(2025, 3, 13),
            period_start=datetime(2025, 3, 13, 8),
            period_end=datetime(2025, 3, 13, 20),
            appointments_count=1,
            total_revenue=Decimal("100.00"),
        ))
        db_session.flush()

        service.close_day()

        assert len(snapshots(db_session)) == 1

    def test_empty_slices_not_archived(self, db_session, service, state, clock):
        result = service.close_day()

        assert snapshots(db_session) == []
        assert result.snapshots == []
        assert "No activity" in result.message
        assert state.boundary() == clock.now()

    def test_cancelled_appointments_still_count_as_activity(
        self, db_session, service, make_appointment
    ):
        make_appointment(status=AppointmentStatus.CANCELLED, when=YESTERDAY_MORNING)

        service.close_day()

        archived = snapshots(db_session)
        assert len(archived) == 1
        assert archived[0].appointments_count == 1
        assert archived[0].total_revenue == Decimal("0.00")


class TestRepeatedClose:

    def test_immediate_second_close_is_noop(self, db_session, service, make_appointment):
        make_appointment(status=COMPLETED)
        service.close_day()
        first = [(s.period_start, s.total_revenue) for s in snapshots(db_session)]

        service.close_day()

        assert [(s.period_start, s.total_revenue) for s in snapshots(db_session)] == first

    def test_later_close_archives_only_the_delta(
        self, db_session, service, clock, make_appointment
    ):
        make_appointment(status=COMPLETED)
        service.close_day()

        make_appointment(status=COMPLETED, fee="55.00",
                         when=clock.now() + timedelta(minutes=30))
        clock.advance(hours=1)
        result = service.close_day()

        assert len(result.snapshots) == 1
        delta = result.snapshots[0]
        assert delta.period_start == datetime(2025, 3, 14, 15, 0)
        assert delta.period_end == datetime(2025, 3, 14, 16, 0)
        assert delta.total_revenue == Decimal("55.00")
        assert delta.appointments_count == 1
        total = sum((s.total_revenue for s in snapshots(db_session)), Decimal("0"))
        assert total == Decimal("155.00")

    def test_boundary_never_moves_back(self, service, state, clock):
        service.close_day()
        before = state.boundary()

        service.close_day(now=clock.now() - timedelta(hours=3))

        assert state.boundary() == before

    def test_result_reports_the_stored_boundary(self, service, state, clock):
        service.close_day()
        stored = state.boundary()

        result = service.close_day(now=clock.now() - timedelta(hours=2))

        assert result.boundary == stored == clock.now()

    def test_close_clears_revenue_caches(self, db_session, service, state, clock,
                                         make_appointment):
        make_appointment(status=COMPLETED)
        aggregator = RevenueAggregator(db_session, clock, state)
        aggregator.refresh()
        aggregator.refresh(include_all_history=True)

        service.close_day()

        assert state.cached_revenue("2025-03-14") is None
        assert state.cached_revenue(ALL_HISTORY) is None
        assert aggregator.today().source == "live"
        assert aggregator.today().revenue.total == Decimal("0.00")


class TestCheckStatus:

    def test_fresh_system_is_started(self, service):
        status = service.check_status()
        assert status.status == DayState.DAY_STARTED
        assert status.last_archived_date is None
        assert status.new_day_available is False

    def test_same_day_after_close_is_started(self, service, make_appointment):
        make_appointment(status=COMPLETED)
        service.close_day()

        status = service.check_status()

        assert status.status == DayState.DAY_STARTED
        assert status.last_archived_date == date(2025, 3, 14)

    def test_new_day_detected_until_acknowledged(self, service, state, clock,
                                                 make_appointment):
        make_appointment(status=COMPLETED)
        service.close_day()
        clock.advance(days=1)

        status = service.check_status()
        assert status.status == DayState.NEW_DAY_AVAILABLE
        assert status.days_behind == 1

        state.acknowledge(clock.today())
        assert service.check_status().status == DayState.DAY_STARTED

    def test_falls_back_to_boundary_without_snapshots(self, service, clock):
        service.close_day()
        clock.advance(days=2)

        status = service.check_status()

        assert status.status == DayState.NEW_DAY_AVAILABLE
        assert status.last_archived_date == date(2025, 3, 14)
        assert status.days_behind == 2


class TestSummaries:

    def test_summary_is_live_since_boundary(self, service, clock, make_appointment):
        make_appointment(status=COMPLETED)
        assert service.summary().revenue.total == Decimal("100.00")

        service.close_day()
        make_appointment(status=COMPLETED, fee="30.00",
                         when=clock.now() + timedelta(minutes=10))
        clock.advance(minutes=20)

        summary = service.summary()
        assert summary.period_start == datetime(2025, 3, 14, 15, 0)
        assert summary.appointments_count == 1
        assert summary.revenue.total == Decimal("30.00")

    def test_yesterday_from_snapshots(self, service, make_appointment):
        make_appointment(status=COMPLETED, when=YESTERDAY_MORNING)
        service.close_day()

        summary = service.yesterday_summary()

        assert summary.source == "archived"
        assert summary.appointments_count == 1
        assert summary.total_revenue == Decimal("100.00")

    def test_yesterday_from_cache(self, service, state, clock):
        state.put(
            revenue_key("2025-03-13"),
            {"total": "42.00"},
            ttl=timedelta(hours=1),
        )
        summary = service.yesterday_summary()
        assert summary.source == "cached"
        assert summary.total_revenue == Decimal("42.00")

    def test_yesterday_unavailable(self, service):
        summary = service.yesterday_summary()
        assert summary.source == "unavailable"
        assert summary.total_revenue == Decimal("0.00")

    def test_malformed_yesterday_cache_is_unavailable(self, service, state):
        state.put(
            revenue_key("2025-03-13"),
            {"total": "not-a-number"},
            ttl=timedelta(hours=1),
        )
        assert service.yesterday_summary().source == "unavailable"


class TestCloseFailure:

    def test_failure_is_reported_and_rolled_back(
        self, db_session, service, state, make_appointment, monkeypatch
    ):
        make_appointment(status=COMPLETED, when=YESTERDAY_MORNING)

        def broken(self, window):
            raise OperationalError("SELECT", {}, Exception("connection reset"))

        monkeypatch.setattr(RevenueAggregator, "aggregate", broken)

        with pytest.raises(DayCloseFailed):
            service.close_day()

        assert state.boundary() is None
        assert snapshots(db_session) == []
        failures = db_session.execute(
            select(AuditLog).where(AuditLog.event_type == "day_close_failure")
        ).scalars().all()
        assert len(failures) == 1

    def test_unreadable_boundary_fails_the_close(self, db_session, service, state):
        state.put(DAY_END_TIMESTAMP, "garbage", ttl=timedelta(days=1))

        with pytest.raises(DayCloseFailed, match="garbage"):
            service.close_day()

        assert snapshots(db_session) == []
        failures = db_session.execute(
            select(AuditLog).where(AuditLog.event_type == "day_close_failure")
        ).scalars().all()
        assert len(failures) == 1

    def test_unexpected_error_is_reported(self, db_session, service, monkeypatch):
        def broken(self):
            raise RuntimeError("cache backend misconfigured")

        monkeypatch.setattr(RevenueAggregator, "forget_current_day", broken)

        with pytest.raises(DayCloseFailed, match="misconfigured"):
            service.close_day()

        failures = db_session.execute(
            select(AuditLog).where(AuditLog.event_type == "day_close_failure")
        ).scalars().all()
        assert len(failures) == 1
