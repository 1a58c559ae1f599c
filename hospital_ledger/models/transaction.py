"""
Transaction model.

An immutable revenue ledger row. Corrections never edit or
delete a row: a credit is cancelled by appending a debit of the
same amount that points back at it through reversal_of_id.

reference_type + reference_id is a weak pointer to the entity
that produced the row. The entity may be deleted later; its
transactions stay.
"""

from datetime import datetime
from decimal import Decimal

from sqlalchemy import (
    String, DateTime, Numeric, ForeignKey, Integer, Index,
    Enum as SAEnum,
)
from sqlalchemy.orm import Mapped, mapped_column, relationship

from hospital_ledger.models.base import Base
from hospital_ledger.models.enums import TransactionType, ReferenceType


class Transaction(Base):
    __tablename__ = "transactions"
    __table_args__ = (
        Index("ix_transactions_reference", "reference_type", "reference_id"),
    )

    id: Mapped[int] = mapped_column(primary_key=True)
    wallet_id: Mapped[int] = mapped_column(
        ForeignKey("wallets.id"), nullable=False, index=True
    )
    type: Mapped[TransactionType] = mapped_column(
        SAEnum(
            TransactionType,
            name="transaction_type_enum",
            create_constraint=True,
        ),
        nullable=False,
    )
    amount: Mapped[Decimal] = mapped_column(
        Numeric(12, 2), nullable=False
    )
    description: Mapped[str] = mapped_column(
        String(255), nullable=False
    )
    reference_type: Mapped[ReferenceType] = mapped_column(
        SAEnum(
            ReferenceType,
            name="reference_type_enum",
            create_constraint=True,
        ),
        nullable=False,
    )
    reference_id: Mapped[int] = mapped_column(Integer, nullable=False)
    # Set on debits only: the credit this row cancels
    reversal_of_id: Mapped[int | None] = mapped_column(
        ForeignKey("transactions.id"), nullable=True, unique=True
    )
    transaction_date: Mapped[datetime] = mapped_column(
        DateTime, nullable=False, index=True
    )
    created_by: Mapped[int | None] = mapped_column(
        Integer, nullable=True
    )
    created_at: Mapped[datetime] = mapped_column(
        DateTime, nullable=False, default=datetime.now
    )

    wallet: Mapped["Wallet"] = relationship(back_populates="transactions")
    reversal_of: Mapped["Transaction | None"] = relationship(
        remote_side=[id]
    )

    def __repr__(self) -> str:
        return (
            f"<Transaction {self.type.value} {self.amount} "
            f"{self.reference_type.value}#{self.reference_id}>"
        )
