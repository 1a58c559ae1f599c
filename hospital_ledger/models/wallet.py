"""
Wallet model.

A wallet is the single aggregate that owns every revenue
transaction. Its balance is a cached value, recomputed from
its transactions after every ledger write and never edited
in place.
"""

from datetime import datetime
from decimal import Decimal

from sqlalchemy import String, DateTime, Numeric
from sqlalchemy.orm import Mapped, mapped_column, relationship

from hospital_ledger.models.base import Base


class Wallet(Base):
    """
    Singleton-per-name revenue wallet.

    Invariant: balance == sum(credits) - sum(debits) over the
    wallet's transactions. LedgerService.recompute_balance is
    the only writer of balance.
    """

    __tablename__ = "wallets"

    id: Mapped[int] = mapped_column(primary_key=True)
    name: Mapped[str] = mapped_column(
        String(100), unique=True, nullable=False
    )
    balance: Mapped[Decimal] = mapped_column(
        Numeric(14, 2), nullable=False, default=Decimal("0.00")
    )
    created_at: Mapped[datetime] = mapped_column(
        DateTime, nullable=False, default=datetime.now
    )
    updated_at: Mapped[datetime] = mapped_column(
        DateTime, nullable=False, default=datetime.now, onupdate=datetime.now
    )

    transactions: Mapped[list["Transaction"]] = relationship(
        back_populates="wallet"
    )

    def __repr__(self) -> str:
        return f"<Wallet {self.name} balance={self.balance}>"
