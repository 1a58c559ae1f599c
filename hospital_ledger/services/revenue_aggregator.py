"""
Revenue aggregator: revenue totals straight from source entities.

This is deliberately a second path next to the ledger: it does
not sum Transaction rows but re-applies the recognition rules to
appointments, services, sales and lab results. Comparing the two
paths is how drift in either one is caught (see
ReconciliationService.cross_check).

Buckets are mutually exclusive:
- appointment: recognized appointments without services, outside
  the Laboratory department
- department: services of recognized appointments, outside the
  Laboratory department
- pharmacy: completed sales
- laboratory: Laboratory services, bare Laboratory appointments,
  and performed lab test results

Windows are half-open [start, end). All-time windows apply no
date filter at all.
"""

import logging
from datetime import datetime, timedelta

from pydantic import ValidationError
from sqlalchemy import select, func, case, or_
from sqlalchemy.orm import Session

from hospital_ledger.clock import SystemClock, start_of_day
from hospital_ledger.config import get_settings
from hospital_ledger.models.appointment import Appointment, AppointmentService
from hospital_ledger.models.department import Department, DepartmentService
from hospital_ledger.models.enums import LabTestStatus, SaleStatus
from hospital_ledger.models.laboratory import LabTest, LabTestResult
from hospital_ledger.models.pharmacy import Sale
from hospital_ledger.money import to_money
from hospital_ledger.schemas.revenue import (
    RevenueWindow,
    RevenueBreakdown,
    TodayRevenue,
    PeriodReport,
    RefreshResult,
)
from hospital_ledger.services.day_state import DayStateStore, ALL_HISTORY
from hospital_ledger.services.revenue_sources import (
    appointment_is_recognized,
    appointment_has_no_services,
    appointment_is_laboratory,
    appointment_is_not_laboratory,
)

logger = logging.getLogger(__name__)


def _within(column, window: RevenueWindow) -> list:
    """Date filter clauses for a window; none for all time."""
    if window.is_all_time:
        return []
    clauses = [column < window.end]
    if window.start is not None:
        clauses.append(column >= window.start)
    return clauses


class RevenueAggregator:

    def __init__(self, db: Session, clock=None,
                 state: DayStateStore | None = None):
        self.db = db
        self.clock = clock or SystemClock()
        self.state = state or DayStateStore(db, self.clock)

    # --- Window aggregation ---

    def aggregate(self, window: RevenueWindow) -> RevenueBreakdown:
        return RevenueBreakdown.from_buckets(
            self.appointment_revenue(window),
            self.department_revenue(window),
            self.pharmacy_revenue(window),
            self.laboratory_revenue(window),
        )

    def _net_fee_sum(self, *criteria):
        net_fee = case(
            (Appointment.fee > Appointment.discount,
             Appointment.fee - Appointment.discount),
            else_=0,
        )
        return to_money(self.db.execute(
            select(func.coalesce(func.sum(net_fee), 0)).where(*criteria)
        ).scalar())

    def _service_cost_sum(self, laboratory: bool, window: RevenueWindow):
        lab_name = get_settings().LABORATORY_DEPARTMENT
        department_filter = (
            Department.name == lab_name if laboratory
            else Department.name != lab_name
        )
        return to_money(self.db.execute(
            select(func.coalesce(func.sum(AppointmentService.final_cost), 0))
            .join(Appointment, AppointmentService.appointment_id == Appointment.id)
            .join(
                DepartmentService,
                AppointmentService.department_service_id == DepartmentService.id,
            )
            .join(Department, DepartmentService.department_id == Department.id)
            .where(
                appointment_is_recognized(),
                department_filter,
                *_within(AppointmentService.created_at, window),
            )
        ).scalar())

    def appointment_revenue(self, window: RevenueWindow):
        return self._net_fee_sum(
            appointment_is_recognized(),
            appointment_has_no_services(),
            appointment_is_not_laboratory(),
            *_within(Appointment.appointment_date, window),
        )

    def department_revenue(self, window: RevenueWindow):
        return self._service_cost_sum(laboratory=False, window=window)

    def laboratory_service_revenue(self, window: RevenueWindow):
        """The part of the laboratory bucket that comes from services."""
        return self._service_cost_sum(laboratory=True, window=window)

    def pharmacy_revenue(self, window: RevenueWindow):
        return to_money(self.db.execute(
            select(func.coalesce(func.sum(Sale.grand_total), 0)).where(
                Sale.status == SaleStatus.COMPLETED,
                *_within(Sale.created_at, window),
            )
        ).scalar())

    def laboratory_revenue(self, window: RevenueWindow):
        if window.is_all_time:
            performed = or_(
                LabTestResult.performed_at.is_not(None),
                LabTestResult.status == LabTestStatus.COMPLETED,
            )
            result_criteria = [performed]
        else:
            result_criteria = _within(LabTestResult.performed_at, window)

        results_revenue = to_money(self.db.execute(
            select(func.coalesce(func.sum(LabTest.cost), 0))
            .join(LabTestResult, LabTestResult.lab_test_id == LabTest.id)
            .where(*result_criteria)
        ).scalar())

        services_revenue = self.laboratory_service_revenue(window)

        appointments_revenue = self._net_fee_sum(
            appointment_is_recognized(),
            appointment_has_no_services(),
            appointment_is_laboratory(),
            *_within(Appointment.appointment_date, window),
        )

        return results_revenue + services_revenue + appointments_revenue

    def appointments_count(self, window: RevenueWindow) -> int:
        """Appointments scheduled in the window, in any status."""
        return self.db.execute(
            select(func.count(Appointment.id)).where(
                *_within(Appointment.appointment_date, window)
            )
        ).scalar()

    # --- Current business day ---

    def cached_breakdown(self, scope: str) -> RevenueBreakdown | None:
        """Cached figures for a scope; an entry of the wrong shape reads as absent."""
        cached = self.state.cached_revenue(scope)
        if not cached:
            return None
        try:
            return RevenueBreakdown.model_validate(cached)
        except ValidationError:
            logger.warning("Ignoring malformed cached revenue for %s", scope)
            return None

    def current_day_start(self, now: datetime | None = None) -> datetime:
        """The day boundary if one is set, calendar midnight otherwise."""
        now = now or self.clock.now()
        boundary = self.state.boundary()
        return boundary if boundary is not None else start_of_day(now)

    def today(self) -> TodayRevenue:
        """
        Today's figures, resolved in order:

        1. the all-history figures from a manual refresh
        2. today's figures from a manual refresh
        3. live aggregation since the current day start
        """
        now = self.clock.now()

        cached = self.cached_breakdown(ALL_HISTORY)
        if cached is not None:
            return TodayRevenue(
                revenue=cached,
                source="all_history_cache",
            )

        cached = self.cached_breakdown(now.date().isoformat())
        if cached is not None:
            return TodayRevenue(
                revenue=cached,
                source="daily_cache",
            )

        start = self.current_day_start(now)
        return TodayRevenue(
            revenue=self.aggregate(RevenueWindow(start, now)),
            source="live",
            window_start=start,
            calculated_at=now,
        )

    def period_report(self) -> PeriodReport:
        """Today plus calendar week, month and year to date."""
        now = self.clock.now()
        midnight = start_of_day(now)
        week_start = midnight - timedelta(days=midnight.weekday())
        month_start = midnight.replace(day=1)
        year_start = midnight.replace(month=1, day=1)
        return PeriodReport(
            today=self.today(),
            this_week=self.aggregate(RevenueWindow(week_start, now)),
            this_month=self.aggregate(RevenueWindow(month_start, now)),
            this_year=self.aggregate(RevenueWindow(year_start, now)),
        )

    # --- Manual refresh ---

    def refresh(self, include_all_history: bool = False) -> RefreshResult:
        """Recompute and cache today's (or all-time) figures."""
        now = self.clock.now()
        if include_all_history:
            self.state.forget_revenue(ALL_HISTORY)
            revenue = self.aggregate(RevenueWindow.all_time())
            scope = ALL_HISTORY
        else:
            revenue = self.aggregate(
                RevenueWindow(self.current_day_start(now), now)
            )
            scope = now.date().isoformat()

        self.state.store_revenue(scope, revenue.model_dump(mode="json"))
        logger.info("Revenue cache refreshed for %s: total=%s", scope, revenue.total)
        return RefreshResult(
            scope=scope,
            include_all_history=include_all_history,
            revenue=revenue,
            breakdown=revenue.shares(),
            timestamp=now,
        )

    def reset_all(self) -> RefreshResult:
        """Drop every cached figure and recompute from all history."""
        self.state.forget_revenue(self.clock.today().isoformat())
        return self.refresh(include_all_history=True)

    def forget_current_day(self) -> None:
        """Drop the cached figures that feed today's total."""
        self.state.forget_revenue(self.clock.today().isoformat())
        self.state.forget_revenue(ALL_HISTORY)
