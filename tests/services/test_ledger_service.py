"""
Tests for the LedgerService.

Tests cover:
- Wallet creation on first use
- Credits and their validation
- Reversal of active credits (and only active ones)
- The wallet balance invariant
- Read helpers used by sync and the dashboard
"""

from datetime import datetime, timedelta
from decimal import Decimal

import pytest
from sqlalchemy import select

from hospital_ledger.models import AuditLog, Transaction, Wallet
from hospital_ledger.models.enums import ReferenceType, TransactionType
from hospital_ledger.services.ledger_service import LedgerService


@pytest.fixture
def ledger(db_session, clock):
    return LedgerService(db_session, clock=clock, user_id_provider=lambda: 7)


def wallet_invariant_holds(db_session, wallet):
    credits = sum(
        (t.amount for t in wallet.transactions if t.type == TransactionType.CREDIT),
        Decimal("0"),
    )
    debits = sum(
        (t.amount for t in wallet.transactions if t.type == TransactionType.DEBIT),
        Decimal("0"),
    )
    db_session.refresh(wallet)
    return wallet.balance == credits - debits


class TestWallet:

    def test_wallet_created_once(self, db_session, ledger):
        first = ledger.get_or_create_wallet()
        second = ledger.get_or_create_wallet()
        db_session.commit()

        assert first.id == second.id
        assert first.name == "Hospital Wallet"
        assert first.balance == Decimal("0.00")
        count = len(db_session.execute(select(Wallet)).scalars().all())
        assert count == 1


class TestCredit:

    def test_credit_updates_balance(self, db_session, ledger, clock):
        txn = ledger.credit(
            ReferenceType.PAYMENT, 1, Decimal("120.50"), "Payment #A1"
        )
        db_session.commit()

        assert txn.type == TransactionType.CREDIT
        assert txn.amount == Decimal("120.50")
        assert txn.transaction_date == clock.now()
        assert txn.created_by == 7
        assert ledger.get_or_create_wallet().balance == Decimal("120.50")

    def test_credit_keeps_business_date(self, ledger):
        occurred = datetime(2025, 3, 1, 9, 30)
        txn = ledger.credit(
            ReferenceType.SALE, 3, Decimal("10.00"), "SALE-1",
            transaction_date=occurred,
        )
        assert txn.transaction_date == occurred

    @pytest.mark.parametrize("amount", [Decimal("0"), Decimal("-5.00")])
    def test_non_positive_credit_rejected(self, ledger, amount):
        with pytest.raises(ValueError, match="positive"):
            ledger.credit(ReferenceType.PAYMENT, 1, amount, "bad")

    def test_credit_is_audited(self, db_session, ledger):
        ledger.credit(ReferenceType.PAYMENT, 1, Decimal("5.00"), "Payment")
        db_session.commit()

        logs = db_session.execute(select(AuditLog)).scalars().all()
        assert any(log.message == "Created wallet credit" for log in logs)


class TestReverseActiveCredits:

    def test_reversal_points_at_credit(self, db_session, ledger):
        credit = ledger.credit(
            ReferenceType.APPOINTMENT, 4, Decimal("80.00"), "APT-4"
        )
        debits = ledger.reverse_active_credits(
            ReferenceType.APPOINTMENT, 4, "Appointment deleted"
        )
        db_session.commit()

        assert len(debits) == 1
        assert debits[0].type == TransactionType.DEBIT
        assert debits[0].amount == Decimal("80.00")
        assert debits[0].reversal_of_id == credit.id
        assert debits[0].description == "Appointment deleted - APT-4"
        assert ledger.net_for_reference(ReferenceType.APPOINTMENT, 4) == 0

    def test_reversal_dated_now_not_at_credit(self, ledger, clock):
        ledger.credit(
            ReferenceType.APPOINTMENT, 4, Decimal("80.00"), "APT-4",
            transaction_date=clock.now() - timedelta(days=3),
        )
        debits = ledger.reverse_active_credits(
            ReferenceType.APPOINTMENT, 4, "Appointment deleted"
        )
        assert debits[0].transaction_date == clock.now()

    def test_second_reversal_is_noop(self, ledger):
        ledger.credit(ReferenceType.APPOINTMENT, 4, Decimal("80.00"), "APT-4")
        ledger.reverse_active_credits(ReferenceType.APPOINTMENT, 4, "first")

        assert ledger.reverse_active_credits(
            ReferenceType.APPOINTMENT, 4, "second"
        ) == []
        assert ledger.net_for_reference(ReferenceType.APPOINTMENT, 4) == 0

    def test_only_active_credits_are_reversed(self, ledger):
        ledger.credit(ReferenceType.PAYMENT, 9, Decimal("50.00"), "old")
        ledger.reverse_active_credits(ReferenceType.PAYMENT, 9, "rebook")
        fresh = ledger.credit(ReferenceType.PAYMENT, 9, Decimal("70.00"), "new")

        debits = ledger.reverse_active_credits(ReferenceType.PAYMENT, 9, "delete")

        assert [d.reversal_of_id for d in debits] == [fresh.id]
        assert ledger.net_for_reference(ReferenceType.PAYMENT, 9) == 0

    def test_other_references_untouched(self, ledger):
        ledger.credit(ReferenceType.PAYMENT, 1, Decimal("10.00"), "one")
        ledger.credit(ReferenceType.SALE, 1, Decimal("20.00"), "sale one")

        ledger.reverse_active_credits(ReferenceType.PAYMENT, 1, "gone")

        assert len(ledger.active_credits(ReferenceType.SALE, 1)) == 1
        assert ledger.get_or_create_wallet().balance == Decimal("20.00")


class TestBalanceInvariant:

    def test_balance_equals_credits_minus_debits(self, db_session, ledger):
        ledger.credit(ReferenceType.PAYMENT, 1, Decimal("100.00"), "a")
        ledger.credit(ReferenceType.PAYMENT, 2, Decimal("30.25"), "b")
        ledger.reverse_active_credits(ReferenceType.PAYMENT, 1, "undo")
        ledger.credit(ReferenceType.SALE, 5, Decimal("12.75"), "c")
        db_session.commit()

        wallet = ledger.get_or_create_wallet()
        assert wallet.balance == Decimal("43.00")
        assert wallet_invariant_holds(db_session, wallet)

    def test_recompute_repairs_drifted_balance(self, db_session, ledger):
        ledger.credit(ReferenceType.PAYMENT, 1, Decimal("100.00"), "a")
        wallet = ledger.get_or_create_wallet()
        wallet.balance = Decimal("999.99")
        db_session.flush()

        assert ledger.recompute_balance() == Decimal("100.00")


class TestReads:

    def test_net_by_reference_type(self, ledger):
        ledger.credit(ReferenceType.PAYMENT, 1, Decimal("10.00"), "a")
        ledger.credit(ReferenceType.PAYMENT, 2, Decimal("15.00"), "b")
        ledger.credit(ReferenceType.SALE, 1, Decimal("5.00"), "c")
        ledger.reverse_active_credits(ReferenceType.PAYMENT, 2, "undo")

        net = ledger.net_by_reference_type()

        assert net[ReferenceType.PAYMENT] == Decimal("10.00")
        assert net[ReferenceType.SALE] == Decimal("5.00")
        assert net[ReferenceType.APPOINTMENT] == Decimal("0.00")

    def test_recent_transactions_newest_first(self, ledger, clock):
        for i in range(3):
            ledger.credit(
                ReferenceType.PAYMENT, i + 1, Decimal("1.00"), f"p{i}",
                transaction_date=clock.now() + timedelta(minutes=i),
            )

        recent = ledger.recent_transactions(limit=2)

        assert [t.description for t in recent] == ["p2", "p1"]

    def test_referenced_with_active_credits(self, ledger):
        ledger.credit(ReferenceType.APPOINTMENT, 1, Decimal("10.00"), "a")
        ledger.credit(ReferenceType.APPOINTMENT, 2, Decimal("10.00"), "b")
        ledger.reverse_active_credits(ReferenceType.APPOINTMENT, 2, "undo")

        assert ledger.referenced_with_active_credits(
            ReferenceType.APPOINTMENT
        ) == {1}

    def test_transactions_for_reference_in_order(self, db_session, ledger):
        ledger.credit(ReferenceType.SALE, 3, Decimal("9.00"), "sale")
        ledger.reverse_active_credits(ReferenceType.SALE, 3, "refund")

        rows = ledger.transactions_for_reference(ReferenceType.SALE, 3)

        assert [r.type for r in rows] == [
            TransactionType.CREDIT, TransactionType.DEBIT
        ]
        assert db_session.get(Transaction, rows[1].id).reversal_of_id == rows[0].id
