"""
Revenue API endpoints.

Dashboard reads never fail: any error while computing figures is
logged and the endpoint answers with all-zero figures.
"""

import logging

from fastapi import APIRouter, Depends
from sqlalchemy.orm import Session

from hospital_ledger.api.deps import get_clock, http_error
from hospital_ledger.exceptions import LedgerError, translate_db_errors
from hospital_ledger.models.base import get_db
from hospital_ledger.schemas.revenue import (
    RevenueBreakdown,
    TodayRevenue,
    PeriodReport,
    RefreshResult,
)
from hospital_ledger.services.revenue_aggregator import RevenueAggregator

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/revenue", tags=["Revenue"])


def _zero_today() -> TodayRevenue:
    return TodayRevenue(revenue=RevenueBreakdown(), source="unavailable")


@router.get("/today", response_model=TodayRevenue)
def get_today_revenue(
    db: Session = Depends(get_db),
    clock=Depends(get_clock),
):
    """Revenue for the current business day."""
    try:
        return RevenueAggregator(db, clock).today()
    except Exception:
        logger.exception("Failed to compute today's revenue")
        db.rollback()
        return _zero_today()


@router.get("/periods", response_model=PeriodReport)
def get_period_report(
    db: Session = Depends(get_db),
    clock=Depends(get_clock),
):
    """Today, this week, this month and this year."""
    try:
        return RevenueAggregator(db, clock).period_report()
    except Exception:
        logger.exception("Failed to compute the period report")
        db.rollback()
        return PeriodReport(
            today=_zero_today(),
            this_week=RevenueBreakdown(),
            this_month=RevenueBreakdown(),
            this_year=RevenueBreakdown(),
        )


@router.post("/refresh", response_model=RefreshResult)
def refresh_revenue(
    include_all_history: bool = False,
    db: Session = Depends(get_db),
    clock=Depends(get_clock),
):
    """Recompute today's (or all-time) figures and cache them."""
    try:
        with translate_db_errors():
            result = RevenueAggregator(db, clock).refresh(include_all_history)
            db.commit()
        return result
    except LedgerError as e:
        db.rollback()
        raise http_error(e)


@router.post("/reset", response_model=RefreshResult)
def reset_revenue(
    db: Session = Depends(get_db),
    clock=Depends(get_clock),
):
    """Clear every cached figure and recompute from all history."""
    try:
        with translate_db_errors():
            result = RevenueAggregator(db, clock).reset_all()
            db.commit()
        return result
    except LedgerError as e:
        db.rollback()
        raise http_error(e)
