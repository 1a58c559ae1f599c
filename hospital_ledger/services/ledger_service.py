"""
Ledger service: the only writer of wallet transactions.

This service enforces the fundamental rules:
1. Transactions are immutable (append-only)
2. A correction is a debit that reverses one specific credit
3. A credit is reversed at most once
4. The wallet balance is recomputed from transactions after
   every write, under a row lock on the wallet

The caller controls the transaction boundary; this service
flushes but never commits.
"""

import logging
from datetime import datetime
from decimal import Decimal

from sqlalchemy import select, func
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session, aliased

from hospital_ledger.clock import SystemClock
from hospital_ledger.config import get_settings
from hospital_ledger.models.enums import ReferenceType, TransactionType
from hospital_ledger.models.transaction import Transaction
from hospital_ledger.models.wallet import Wallet
from hospital_ledger.money import ZERO, to_money
from hospital_ledger.services.audit_service import AuditService

logger = logging.getLogger(__name__)


def _no_user():
    return None


class LedgerService:
    """
    All wallet operations pass through this service.

    user_id_provider returns the acting user for audit
    attribution; it may return None for system-originated rows.
    """

    def __init__(
        self,
        db: Session,
        clock=None,
        audit: AuditService | None = None,
        user_id_provider=None,
    ):
        self.db = db
        self.clock = clock or SystemClock()
        self.audit = audit or AuditService(db)
        self.user_id_provider = user_id_provider or _no_user
        self.wallet_name = get_settings().WALLET_NAME

    # --- Wallet ---

    def get_or_create_wallet(self) -> Wallet:
        """Return the wallet, creating it on first use."""
        wallet = self.db.execute(
            select(Wallet).where(Wallet.name == self.wallet_name)
        ).scalar_one_or_none()
        if wallet:
            return wallet

        try:
            with self.db.begin_nested():
                wallet = Wallet(name=self.wallet_name, balance=ZERO)
                self.db.add(wallet)
                self.db.flush()
        except IntegrityError:
            # Another writer created it first
            wallet = self.db.execute(
                select(Wallet).where(Wallet.name == self.wallet_name)
            ).scalar_one()
        return wallet

    def lock_wallet(self) -> Wallet:
        """Return the wallet row locked FOR UPDATE until commit."""
        self.get_or_create_wallet()
        return self.db.execute(
            select(Wallet)
            .where(Wallet.name == self.wallet_name)
            .with_for_update()
        ).scalar_one()

    def recompute_balance(self) -> Decimal:
        """
        Re-sum the wallet's transactions and store the result.

        Runs as lock → sum → write so concurrent writers cannot
        interleave between the read and the write.
        """
        wallet = self.lock_wallet()

        total_credits = self.db.execute(
            select(func.coalesce(func.sum(Transaction.amount), 0)).where(
                Transaction.wallet_id == wallet.id,
                Transaction.type == TransactionType.CREDIT,
            )
        ).scalar()
        total_debits = self.db.execute(
            select(func.coalesce(func.sum(Transaction.amount), 0)).where(
                Transaction.wallet_id == wallet.id,
                Transaction.type == TransactionType.DEBIT,
            )
        ).scalar()

        wallet.balance = to_money(total_credits) - to_money(total_debits)
        self.db.flush()
        return wallet.balance

    # --- Writes ---

    def credit(
        self,
        reference_type: ReferenceType,
        reference_id: int,
        amount: Decimal,
        description: str,
        transaction_date: datetime | None = None,
    ) -> Transaction:
        """Append a credit for a producing entity and rebalance."""
        amount = to_money(amount)
        if amount <= ZERO:
            raise ValueError("credit amount must be positive")

        wallet = self.lock_wallet()
        txn = Transaction(
            wallet_id=wallet.id,
            type=TransactionType.CREDIT,
            amount=amount,
            description=description[:255],
            reference_type=reference_type,
            reference_id=reference_id,
            transaction_date=transaction_date or self.clock.now(),
            created_by=self.user_id_provider(),
            created_at=self.clock.now(),
        )
        self.db.add(txn)
        self.db.flush()
        balance = self.recompute_balance()

        self.audit.log("info", "Created wallet credit", {
            "transaction_id": txn.id,
            "reference_type": reference_type,
            "reference_id": reference_id,
            "amount": amount,
            "balance": balance,
        })
        return txn

    def reverse_active_credits(
        self,
        reference_type: ReferenceType,
        reference_id: int,
        reason: str,
    ) -> list[Transaction]:
        """
        Cancel every active credit of a reference with a matching debit.

        The original credits stay in place. Debits are dated now,
        not at the original credit's date. Already reversed
        credits are skipped, so calling this twice is harmless.
        """
        wallet = self.lock_wallet()
        credits = self.active_credits(reference_type, reference_id)
        if not credits:
            return []

        now = self.clock.now()
        user_id = self.user_id_provider()
        reversals = []
        for credit in credits:
            debit = Transaction(
                wallet_id=wallet.id,
                type=TransactionType.DEBIT,
                amount=credit.amount,
                description=f"{reason} - {credit.description}"[:255],
                reference_type=reference_type,
                reference_id=reference_id,
                reversal_of_id=credit.id,
                transaction_date=now,
                created_by=user_id,
                created_at=now,
            )
            self.db.add(debit)
            reversals.append(debit)
        self.db.flush()
        balance = self.recompute_balance()

        self.audit.log("info", "Reversed wallet credits", {
            "reference_type": reference_type,
            "reference_id": reference_id,
            "reason": reason,
            "reversed_count": len(reversals),
            "reversed_amount": sum((d.amount for d in reversals), ZERO),
            "balance": balance,
        })
        return reversals

    # --- Reads ---

    def active_credits(
        self, reference_type: ReferenceType, reference_id: int
    ) -> list[Transaction]:
        """Credits of a reference that no debit has reversed yet."""
        reversal = aliased(Transaction)
        stmt = (
            select(Transaction)
            .where(
                Transaction.reference_type == reference_type,
                Transaction.reference_id == reference_id,
                Transaction.type == TransactionType.CREDIT,
                ~select(reversal.id)
                .where(reversal.reversal_of_id == Transaction.id)
                .exists(),
            )
            .order_by(Transaction.id)
        )
        return list(self.db.execute(stmt).scalars().all())

    def net_for_reference(
        self, reference_type: ReferenceType, reference_id: int
    ) -> Decimal:
        """sum(credits) - sum(debits) for one producing entity."""
        rows = self.db.execute(
            select(Transaction.type, func.sum(Transaction.amount))
            .where(
                Transaction.reference_type == reference_type,
                Transaction.reference_id == reference_id,
            )
            .group_by(Transaction.type)
        ).all()
        totals = {t: to_money(amount) for t, amount in rows}
        return (
            totals.get(TransactionType.CREDIT, ZERO)
            - totals.get(TransactionType.DEBIT, ZERO)
        )

    def net_by_reference_type(self) -> dict[ReferenceType, Decimal]:
        """All-time ledger net per kind of producing entity."""
        rows = self.db.execute(
            select(
                Transaction.reference_type,
                Transaction.type,
                func.sum(Transaction.amount),
            ).group_by(Transaction.reference_type, Transaction.type)
        ).all()
        net = {ref: ZERO for ref in ReferenceType}
        for ref, txn_type, amount in rows:
            amount = to_money(amount)
            if txn_type == TransactionType.CREDIT:
                net[ref] += amount
            else:
                net[ref] -= amount
        return net

    def transactions_for_reference(
        self, reference_type: ReferenceType, reference_id: int
    ) -> list[Transaction]:
        """Every row of a reference, oldest first."""
        return list(self.db.execute(
            select(Transaction)
            .where(
                Transaction.reference_type == reference_type,
                Transaction.reference_id == reference_id,
            )
            .order_by(Transaction.id)
        ).scalars().all())

    def recent_transactions(self, limit: int = 50) -> list[Transaction]:
        """Newest transactions by business date."""
        return list(self.db.execute(
            select(Transaction)
            .order_by(Transaction.transaction_date.desc(), Transaction.id.desc())
            .limit(limit)
        ).scalars().all())

    def referenced_with_active_credits(
        self, reference_type: ReferenceType
    ) -> set[int]:
        """Reference ids of one kind that still carry an active credit."""
        reversal = aliased(Transaction)
        rows = self.db.execute(
            select(Transaction.reference_id)
            .where(
                Transaction.reference_type == reference_type,
                Transaction.type == TransactionType.CREDIT,
                ~select(reversal.id)
                .where(reversal.reversal_of_id == Transaction.id)
                .exists(),
            )
            .distinct()
        ).scalars().all()
        return set(rows)
