"""
Business-day API endpoints.

Closing a day is the one operator action whose failure must be
reported: it answers 500 with success=false, never a silent 200.
"""

import logging

from fastapi import APIRouter, Depends
from fastapi.responses import JSONResponse
from sqlalchemy.orm import Session

from hospital_ledger.api.deps import get_clock, get_user_id
from hospital_ledger.exceptions import DayCloseFailed
from hospital_ledger.models.base import get_db
from hospital_ledger.schemas.day_status import (
    DayStatusResponse,
    CloseDayResult,
    DaySummary,
    YesterdaySummary,
)
from hospital_ledger.schemas.revenue import RevenueBreakdown
from hospital_ledger.services.day_status_service import DayStatusService

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/day-status", tags=["Day Status"])


@router.get("", response_model=DayStatusResponse)
def check_day_status(
    db: Session = Depends(get_db),
    clock=Depends(get_clock),
):
    return DayStatusService(db, clock).check_status()


@router.get("/summary", response_model=DaySummary)
def get_day_summary(
    db: Session = Depends(get_db),
    clock=Depends(get_clock),
):
    """Live figures for the period the next close would archive."""
    service = DayStatusService(db, clock)
    try:
        return service.summary()
    except Exception:
        logger.exception("Failed to compute the day summary")
        db.rollback()
        now = clock.now()
        return DaySummary(
            period_start=now,
            period_end=now,
            appointments_count=0,
            revenue=RevenueBreakdown(),
        )


@router.get("/yesterday", response_model=YesterdaySummary)
def get_yesterday_summary(
    db: Session = Depends(get_db),
    clock=Depends(get_clock),
):
    return DayStatusService(db, clock).yesterday_summary()


@router.post("/close", response_model=CloseDayResult)
def close_day(
    db: Session = Depends(get_db),
    clock=Depends(get_clock),
    user_id: int | None = Depends(get_user_id),
):
    """Archive the open period and start a new business day."""
    service = DayStatusService(db, clock)
    try:
        result = service.close_day(user_id=user_id)
        db.commit()
        return result
    except DayCloseFailed as e:
        # The close itself was rolled back to its savepoint; keep the audit row
        db.commit()
        return JSONResponse(
            status_code=500,
            content={"success": False, "message": str(e)},
        )
