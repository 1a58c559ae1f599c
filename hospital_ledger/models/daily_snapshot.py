"""
Daily snapshot model.

An archived rollup of one closed period. Periods are slices
between two day-close moments, so a calendar date may own
several snapshots; a given slice is archived at most once.
"""

from datetime import date, datetime
from decimal import Decimal

from sqlalchemy import (
    Date, DateTime, Integer, Numeric, JSON, UniqueConstraint,
)
from sqlalchemy.orm import Mapped, mapped_column

from hospital_ledger.models.base import Base


class DailySnapshot(Base):
    __tablename__ = "daily_snapshots"
    __table_args__ = (
        UniqueConstraint(
            "period_start", "period_end", name="uq_daily_snapshots_period"
        ),
    )

    id: Mapped[int] = mapped_column(primary_key=True)
    snapshot_date: Mapped[date] = mapped_column(
        Date, nullable=False, index=True
    )
    period_start: Mapped[datetime] = mapped_column(DateTime, nullable=False)
    period_end: Mapped[datetime] = mapped_column(DateTime, nullable=False)
    appointments_count: Mapped[int] = mapped_column(
        Integer, nullable=False, default=0
    )
    appointments_revenue: Mapped[Decimal] = mapped_column(
        Numeric(14, 2), nullable=False, default=Decimal("0.00")
    )
    departments_revenue: Mapped[Decimal] = mapped_column(
        Numeric(14, 2), nullable=False, default=Decimal("0.00")
    )
    pharmacy_revenue: Mapped[Decimal] = mapped_column(
        Numeric(14, 2), nullable=False, default=Decimal("0.00")
    )
    laboratory_revenue: Mapped[Decimal] = mapped_column(
        Numeric(14, 2), nullable=False, default=Decimal("0.00")
    )
    total_revenue: Mapped[Decimal] = mapped_column(
        Numeric(14, 2), nullable=False, default=Decimal("0.00")
    )
    # "metadata" is reserved on declarative classes
    snapshot_metadata: Mapped[dict] = mapped_column(
        "metadata", JSON, nullable=False, default=dict
    )
    created_at: Mapped[datetime] = mapped_column(
        DateTime, nullable=False, default=datetime.now
    )

    def __repr__(self) -> str:
        return (
            f"<DailySnapshot {self.snapshot_date} "
            f"[{self.period_start} - {self.period_end}) "
            f"total={self.total_revenue}>"
        )
