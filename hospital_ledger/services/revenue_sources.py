"""
Revenue source adapters.

One adapter per producing entity type. An adapter answers a
single question about one entity: is its revenue recognized
right now, and if so for how much? The same rules drive the
ledger (through the TransactionBinder) and the aggregation
queries (through the shared predicates below), which is what
keeps the four revenue buckets from double counting.
"""

from dataclasses import dataclass
from datetime import datetime
from decimal import Decimal

from sqlalchemy import select, func, or_
from sqlalchemy.orm import Session

from hospital_ledger.config import get_settings
from hospital_ledger.models.appointment import Appointment, AppointmentService
from hospital_ledger.models.department import Department, DepartmentService
from hospital_ledger.models.enums import (
    ReferenceType,
    LabTestStatus,
    SalePaymentStatus,
    RECOGNIZED_APPOINTMENT_STATUSES,
)
from hospital_ledger.models.laboratory import LabTestRequest
from hospital_ledger.models.payment import Payment
from hospital_ledger.models.pharmacy import Sale
from hospital_ledger.money import ZERO, net_amount, to_money


@dataclass(frozen=True)
class RecognitionEvent:
    """Revenue an entity contributes under its current state."""
    amount: Decimal
    description: str
    occurred_at: datetime


# --- Shared predicates (SQL side of the same rules) ---

def laboratory_department_ids():
    """Subquery of the Laboratory department's id."""
    return select(Department.id).where(
        Department.name == get_settings().LABORATORY_DEPARTMENT
    )


def appointment_is_laboratory():
    return Appointment.department_id.in_(laboratory_department_ids())


def appointment_is_not_laboratory():
    return or_(
        Appointment.department_id.is_(None),
        Appointment.department_id.not_in(laboratory_department_ids()),
    )


def appointment_is_recognized():
    return Appointment.status.in_(RECOGNIZED_APPOINTMENT_STATUSES)


def appointment_has_no_services():
    return ~Appointment.services.any()


class RevenueSource:
    """
    Base adapter.

    watched_fields: a change to any of these can alter recognition.
    rebook_fields: a change to any of these while recognized
    reverses the current credit and books a fresh one.
    """

    label: str = ""
    reference_type: ReferenceType
    model: type
    watched_fields: frozenset = frozenset()
    rebook_fields: frozenset = frozenset()

    def __init__(self, db: Session, clock):
        self.db = db
        self.clock = clock

    def recognize(self, entity) -> RecognitionEvent | None:
        raise NotImplementedError

    def _event(self, amount, description, occurred_at) -> RecognitionEvent | None:
        amount = to_money(amount)
        if amount <= ZERO:
            return None
        return RecognitionEvent(
            amount=amount,
            description=description,
            occurred_at=occurred_at or self.clock.now(),
        )


class AppointmentRevenue(RevenueSource):
    """
    Consultation fee less discount.

    Only counted while the appointment is completed or confirmed,
    has no services attached, and is not a Laboratory appointment.
    The other two cases are counted by the service and laboratory
    buckets instead.
    """

    label = "Appointment"
    reference_type = ReferenceType.APPOINTMENT
    model = Appointment
    watched_fields = frozenset({"status", "fee", "discount", "department_id"})
    rebook_fields = frozenset({"fee", "discount"})

    def has_services(self, appointment: Appointment) -> bool:
        count = self.db.execute(
            select(func.count(AppointmentService.id)).where(
                AppointmentService.appointment_id == appointment.id
            )
        ).scalar()
        return count > 0

    def is_laboratory(self, appointment: Appointment) -> bool:
        if appointment.department_id is None:
            return False
        department = self.db.get(Department, appointment.department_id)
        return (
            department is not None
            and department.name == get_settings().LABORATORY_DEPARTMENT
        )

    def recognize(self, appointment: Appointment) -> RecognitionEvent | None:
        if appointment.status not in RECOGNIZED_APPOINTMENT_STATUSES:
            return None
        if self.has_services(appointment) or self.is_laboratory(appointment):
            return None
        return self._event(
            net_amount(appointment.fee, appointment.discount),
            appointment.label,
            appointment.created_at,
        )


class AppointmentServiceRevenue(RevenueSource):
    """
    A department service's final cost, once its appointment is
    completed or confirmed. Laboratory services are included.
    """

    label = "Department service"
    reference_type = ReferenceType.APPOINTMENT_SERVICE
    model = AppointmentService
    watched_fields = frozenset({"final_cost", "appointment_id"})
    rebook_fields = frozenset({"final_cost", "appointment_id"})

    def recognize(self, service: AppointmentService) -> RecognitionEvent | None:
        appointment = self.db.get(Appointment, service.appointment_id)
        if appointment is None:
            return None
        if appointment.status not in RECOGNIZED_APPOINTMENT_STATUSES:
            return None

        department_service = self.db.get(
            DepartmentService, service.department_service_id
        )
        if department_service is None:
            return None
        department = self.db.get(Department, department_service.department_id)
        if department is None:
            return None

        return self._event(
            service.final_cost,
            f"{department_service.name} ({department.name}) - "
            f"{appointment.label}",
            service.created_at,
        )


class LabTestRequestRevenue(RevenueSource):
    """A lab test request's cost, once completed."""

    label = "Lab test"
    reference_type = ReferenceType.LAB_TEST_REQUEST
    model = LabTestRequest
    watched_fields = frozenset({"status", "cost"})
    rebook_fields = frozenset({"cost"})

    def recognize(self, request: LabTestRequest) -> RecognitionEvent | None:
        if request.status != LabTestStatus.COMPLETED:
            return None
        return self._event(
            request.cost,
            f"{request.test_name or 'Lab Test'} ({request.label})",
            request.completed_at or request.updated_at,
        )


class PaymentRevenue(RevenueSource):
    """
    A recorded payment, whatever its status. Any change of
    amount or status rebooks it.
    """

    label = "Payment"
    reference_type = ReferenceType.PAYMENT
    model = Payment
    watched_fields = frozenset({"amount", "status"})
    rebook_fields = frozenset({"amount", "status"})

    def recognize(self, payment: Payment) -> RecognitionEvent | None:
        return self._event(
            payment.amount,
            f"Payment #{payment.transaction_ref}",
            payment.payment_date or payment.created_at,
        )


class SaleRevenue(RevenueSource):
    """A pharmacy sale's grand total, once paid."""

    label = "Pharmacy sale"
    reference_type = ReferenceType.SALE
    model = Sale
    watched_fields = frozenset({"payment_status", "grand_total"})
    rebook_fields = frozenset({"grand_total"})

    def recognize(self, sale: Sale) -> RecognitionEvent | None:
        if sale.payment_status != SalePaymentStatus.PAID:
            return None
        return self._event(sale.grand_total, sale.sale_number, sale.created_at)


SOURCE_CLASSES = (
    AppointmentRevenue,
    AppointmentServiceRevenue,
    LabTestRequestRevenue,
    PaymentRevenue,
    SaleRevenue,
)


def build_sources(db: Session, clock) -> dict[type, RevenueSource]:
    """Adapters keyed by the model class they handle."""
    return {cls.model: cls(db, clock) for cls in SOURCE_CLASSES}
