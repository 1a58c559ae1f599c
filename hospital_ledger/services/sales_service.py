"""
Pharmacy sale processing.

Unlike ordinary entity writes, a sale is booked as one unit:
stock check, sale and item rows, stock deduction and the ledger
credit either all land or none do. A ledger failure here is
raised to the caller instead of being logged and swallowed.
"""

import logging

from sqlalchemy import select
from sqlalchemy.orm import Session

from hospital_ledger.clock import SystemClock
from hospital_ledger.exceptions import (
    InsufficientStock,
    RecordNotFound,
    translate_db_errors,
)
from hospital_ledger.models.enums import SaleStatus, SalePaymentStatus
from hospital_ledger.models.pharmacy import Medicine, Sale, SaleItem
from hospital_ledger.money import ZERO, to_money
from hospital_ledger.schemas.pharmacy import ProcessSaleRequest
from hospital_ledger.services.audit_service import AuditService
from hospital_ledger.services.ledger_service import LedgerService
from hospital_ledger.services.transaction_binder import TransactionBinder

logger = logging.getLogger(__name__)

INVOICE_PREFIX = "SALE"


class SalesService:

    def __init__(self, db: Session, clock=None, user_id_provider=None):
        self.db = db
        self.clock = clock or SystemClock()
        self.audit = AuditService(db)
        self.ledger = LedgerService(
            db, clock=self.clock, audit=self.audit,
            user_id_provider=user_id_provider,
        )
        self.binder = TransactionBinder(db, self.ledger)

    def process_sale(self, request: ProcessSaleRequest,
                     user_id: int | None = None) -> Sale:
        """
        Validate, persist and book a completed, paid sale.

        Raises:
            RecordNotFound: an item names an unknown medicine.
            InsufficientStock: an item asks for more than is in stock.
        """
        with translate_db_errors(), self.db.begin_nested():
            self.ledger.lock_wallet()
            medicines = self._lock_medicines(request)
            self._validate_stock(request, medicines)

            lines = []
            for item in request.items:
                medicine = medicines[item.medicine_id]
                unit_price = to_money(
                    item.unit_price if item.unit_price is not None
                    else medicine.unit_price
                )
                lines.append((item, medicine, unit_price))

            subtotal = sum(
                (unit_price * item.quantity for item, _, unit_price in lines),
                ZERO,
            )
            discount = to_money(request.discount)
            tax = to_money(request.tax)
            grand_total = max(subtotal - discount + tax, ZERO)

            now = self.clock.now()
            sale = Sale(
                sale_number=self.next_invoice_number(),
                status=SaleStatus.COMPLETED,
                payment_status=SalePaymentStatus.PAID,
                payment_method=request.payment_method,
                total_amount=subtotal,
                discount=discount,
                tax=tax,
                grand_total=grand_total,
                sold_by=user_id,
                created_at=now,
            )
            self.db.add(sale)
            self.db.flush()

            for item, medicine, unit_price in lines:
                self.db.add(SaleItem(
                    sale_id=sale.id,
                    medicine_id=medicine.id,
                    quantity=item.quantity,
                    unit_price=unit_price,
                    cost_price=to_money(medicine.cost_price),
                    total_price=unit_price * item.quantity,
                ))
                medicine.stock_quantity -= item.quantity
            self.db.flush()

            self.binder.reconcile(sale, reason="Pharmacy sale processed")

        self.audit.log(
            "info",
            f"Sale {sale.sale_number} processed successfully "
            f"with {len(request.items)} items",
            {"sale_id": sale.id, "grand_total": grand_total, "user_id": user_id},
            event_type="pharmacy_sale",
        )
        logger.info("Processed sale %s: %s", sale.sale_number, grand_total)
        return sale

    def _lock_medicines(self, request: ProcessSaleRequest) -> dict[int, Medicine]:
        ids = sorted({item.medicine_id for item in request.items})
        medicines = {
            m.id: m for m in self.db.execute(
                select(Medicine)
                .where(Medicine.id.in_(ids))
                .order_by(Medicine.id)
                .with_for_update()
            ).scalars().all()
        }
        missing = [i for i in ids if i not in medicines]
        if missing:
            raise RecordNotFound(f"Medicine(s) not found: {missing}")
        return medicines

    def _validate_stock(self, request: ProcessSaleRequest,
                        medicines: dict[int, Medicine]) -> None:
        requested: dict[int, int] = {}
        for item in request.items:
            requested[item.medicine_id] = (
                requested.get(item.medicine_id, 0) + item.quantity
            )
        for medicine_id, quantity in requested.items():
            medicine = medicines[medicine_id]
            if medicine.stock_quantity < quantity:
                raise InsufficientStock(
                    medicine.name, medicine.stock_quantity, quantity
                )

    def next_invoice_number(self) -> str:
        """SALE-YYYYMMDD-NNNN, numbered per calendar day."""
        prefix = f"{INVOICE_PREFIX}-{self.clock.today():%Y%m%d}-"
        last = self.db.execute(
            select(Sale.sale_number)
            .where(Sale.sale_number.like(f"{prefix}%"))
            .order_by(Sale.sale_number.desc())
            .limit(1)
        ).scalar()
        sequence = int(last[-4:]) + 1 if last else 1
        return f"{prefix}{sequence:04d}"
