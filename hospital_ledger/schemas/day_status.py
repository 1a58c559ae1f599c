"""
Pydantic schemas for the business-day workflow.
"""

import enum
from datetime import date, datetime
from decimal import Decimal

from pydantic import BaseModel

from hospital_ledger.money import ZERO
from hospital_ledger.schemas.revenue import RevenueBreakdown


class DayState(str, enum.Enum):
    DAY_STARTED = "day_started"
    NEW_DAY_AVAILABLE = "new_day_available"


class DayStatusResponse(BaseModel):
    status: DayState
    message: str
    current_date: date
    last_archived_date: date | None = None
    new_day_available: bool
    days_behind: int = 0
    day_end_timestamp: datetime | None = None


class SnapshotResponse(BaseModel):
    id: int
    snapshot_date: date
    period_start: datetime
    period_end: datetime
    appointments_count: int
    appointments_revenue: Decimal
    departments_revenue: Decimal
    pharmacy_revenue: Decimal
    laboratory_revenue: Decimal
    total_revenue: Decimal
    snapshot_metadata: dict
    created_at: datetime

    model_config = {"from_attributes": True}


class CloseDayResult(BaseModel):
    success: bool = True
    message: str
    previous_boundary: datetime | None = None
    boundary: datetime
    snapshots: list[SnapshotResponse] = []


class DaySummary(BaseModel):
    """Live figures for the period the next close would archive."""
    period_start: datetime
    period_end: datetime
    appointments_count: int
    revenue: RevenueBreakdown


class YesterdaySummary(BaseModel):
    date: date
    appointments_count: int = 0
    total_revenue: Decimal = ZERO
    source: str
