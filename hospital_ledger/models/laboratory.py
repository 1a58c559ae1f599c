"""
Laboratory models.

LabTest is the catalogue entry (name and price). A
LabTestRequest is an ordered test that earns its cost once
completed. A LabTestResult is a performed test; the laboratory
revenue bucket counts the catalogue cost of each result.
"""

from datetime import datetime
from decimal import Decimal

from sqlalchemy import (
    String, DateTime, Numeric, ForeignKey,
    Enum as SAEnum,
)
from sqlalchemy.orm import Mapped, mapped_column, relationship

from hospital_ledger.models.base import Base
from hospital_ledger.models.enums import LabTestStatus


class LabTest(Base):
    __tablename__ = "lab_tests"

    id: Mapped[int] = mapped_column(primary_key=True)
    name: Mapped[str] = mapped_column(String(150), nullable=False)
    cost: Mapped[Decimal] = mapped_column(
        Numeric(12, 2), nullable=False, default=Decimal("0.00")
    )

    def __repr__(self) -> str:
        return f"<LabTest {self.name}>"


class LabTestRequest(Base):
    __tablename__ = "lab_test_requests"

    id: Mapped[int] = mapped_column(primary_key=True)
    request_number: Mapped[str | None] = mapped_column(
        String(50), unique=True, nullable=True
    )
    lab_test_id: Mapped[int | None] = mapped_column(
        ForeignKey("lab_tests.id"), nullable=True
    )
    test_name: Mapped[str | None] = mapped_column(String(150), nullable=True)
    status: Mapped[LabTestStatus] = mapped_column(
        SAEnum(
            LabTestStatus,
            name="lab_test_status_enum",
            create_constraint=True,
        ),
        nullable=False,
        default=LabTestStatus.PENDING,
    )
    cost: Mapped[Decimal] = mapped_column(
        Numeric(12, 2), nullable=False, default=Decimal("0.00")
    )
    completed_at: Mapped[datetime | None] = mapped_column(
        DateTime, nullable=True
    )
    created_at: Mapped[datetime] = mapped_column(
        DateTime, nullable=False, default=datetime.now
    )
    updated_at: Mapped[datetime] = mapped_column(
        DateTime, nullable=False, default=datetime.now, onupdate=datetime.now
    )

    lab_test: Mapped["LabTest | None"] = relationship()

    @property
    def label(self) -> str:
        return self.request_number or f"ID: {self.id}"

    def __repr__(self) -> str:
        return f"<LabTestRequest {self.label} ({self.status.value})>"


class LabTestResult(Base):
    __tablename__ = "lab_test_results"

    id: Mapped[int] = mapped_column(primary_key=True)
    lab_test_id: Mapped[int] = mapped_column(
        ForeignKey("lab_tests.id"), nullable=False, index=True
    )
    status: Mapped[LabTestStatus] = mapped_column(
        SAEnum(
            LabTestStatus,
            name="lab_result_status_enum",
            create_constraint=True,
        ),
        nullable=False,
        default=LabTestStatus.PENDING,
    )
    performed_at: Mapped[datetime | None] = mapped_column(
        DateTime, nullable=True, index=True
    )

    lab_test: Mapped["LabTest"] = relationship()

    def __repr__(self) -> str:
        return f"<LabTestResult {self.id} ({self.status.value})>"
