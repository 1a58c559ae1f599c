"""
Payment model.

A billing payment received from a patient. Every payment is
booked to the wallet when it is recorded.
"""

from datetime import datetime
from decimal import Decimal

from sqlalchemy import (
    String, DateTime, Numeric,
    Enum as SAEnum,
)
from sqlalchemy.orm import Mapped, mapped_column

from hospital_ledger.models.base import Base
from hospital_ledger.models.enums import PaymentStatus


class Payment(Base):
    __tablename__ = "payments"

    id: Mapped[int] = mapped_column(primary_key=True)
    transaction_ref: Mapped[str] = mapped_column(
        String(100), unique=True, nullable=False
    )
    amount: Mapped[Decimal] = mapped_column(
        Numeric(12, 2), nullable=False, default=Decimal("0.00")
    )
    status: Mapped[PaymentStatus] = mapped_column(
        SAEnum(
            PaymentStatus,
            name="payment_status_enum",
            create_constraint=True,
        ),
        nullable=False,
        default=PaymentStatus.COMPLETED,
    )
    payment_method: Mapped[str] = mapped_column(
        String(30), nullable=False, default="cash"
    )
    payment_date: Mapped[datetime | None] = mapped_column(
        DateTime, nullable=True
    )
    created_at: Mapped[datetime] = mapped_column(
        DateTime, nullable=False, default=datetime.now
    )

    def __repr__(self) -> str:
        return f"<Payment {self.transaction_ref} {self.amount}>"
