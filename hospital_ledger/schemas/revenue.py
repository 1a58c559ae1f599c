"""
Pydantic schemas for revenue figures.

RevenueBreakdown is the payload the dashboard consumes and the
shape stored in the revenue cache.
"""

from dataclasses import dataclass
from datetime import datetime
from decimal import Decimal

from pydantic import BaseModel

from hospital_ledger.money import ZERO

# Any window ending at or after this moment means "all time"
ALL_TIME_END = datetime(3000, 12, 31, 23, 59, 59)


@dataclass(frozen=True)
class RevenueWindow:
    """Half-open time window [start, end). start=None means unbounded."""
    start: datetime | None
    end: datetime

    @classmethod
    def all_time(cls) -> "RevenueWindow":
        return cls(start=None, end=ALL_TIME_END)

    @property
    def is_all_time(self) -> bool:
        return self.end >= ALL_TIME_END


class RevenueBreakdown(BaseModel):
    """Revenue split into the four mutually exclusive buckets."""
    appointment_revenue: Decimal = ZERO
    department_revenue: Decimal = ZERO
    pharmacy_revenue: Decimal = ZERO
    laboratory_revenue: Decimal = ZERO
    total: Decimal = ZERO

    @classmethod
    def from_buckets(cls, appointment, department, pharmacy,
                     laboratory) -> "RevenueBreakdown":
        return cls(
            appointment_revenue=appointment,
            department_revenue=department,
            pharmacy_revenue=pharmacy,
            laboratory_revenue=laboratory,
            total=appointment + department + pharmacy + laboratory,
        )

    def shares(self) -> dict[str, float]:
        """Percentage of the total per bucket, 0 when there is no revenue."""
        buckets = {
            "appointment_percentage": self.appointment_revenue,
            "department_percentage": self.department_revenue,
            "pharmacy_percentage": self.pharmacy_revenue,
            "laboratory_percentage": self.laboratory_revenue,
        }
        if self.total <= 0:
            return {name: 0.0 for name in buckets}
        return {
            name: round(float(amount / self.total * 100), 2)
            for name, amount in buckets.items()
        }


class TodayRevenue(BaseModel):
    """Revenue for the current business day and where it came from."""
    revenue: RevenueBreakdown
    source: str
    window_start: datetime | None = None
    calculated_at: datetime | None = None


class PeriodReport(BaseModel):
    today: TodayRevenue
    this_week: RevenueBreakdown
    this_month: RevenueBreakdown
    this_year: RevenueBreakdown


class RefreshResult(BaseModel):
    success: bool = True
    scope: str
    include_all_history: bool
    revenue: RevenueBreakdown
    breakdown: dict[str, float]
    timestamp: datetime
