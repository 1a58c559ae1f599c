"""
Shared enumerations for database models.

Python enums mapped to database enums make sure only valid
statuses and directions can be stored.
"""

import enum


class TransactionType(str, enum.Enum):
    """Direction of a wallet transaction."""
    CREDIT = "credit"
    DEBIT = "debit"


class ReferenceType(str, enum.Enum):
    """Kinds of entity that can produce ledger revenue."""
    APPOINTMENT = "appointment"
    APPOINTMENT_SERVICE = "appointment_service"
    LAB_TEST_REQUEST = "lab_test_request"
    PAYMENT = "payment"
    SALE = "sale"


class AppointmentStatus(str, enum.Enum):
    SCHEDULED = "scheduled"
    CONFIRMED = "confirmed"
    COMPLETED = "completed"
    CANCELLED = "cancelled"
    NO_SHOW = "no_show"


class LabTestStatus(str, enum.Enum):
    PENDING = "pending"
    IN_PROGRESS = "in_progress"
    COMPLETED = "completed"
    CANCELLED = "cancelled"


class PaymentStatus(str, enum.Enum):
    PENDING = "pending"
    COMPLETED = "completed"
    FAILED = "failed"
    REFUNDED = "refunded"


class SaleStatus(str, enum.Enum):
    PENDING = "pending"
    COMPLETED = "completed"
    CANCELLED = "cancelled"


class SalePaymentStatus(str, enum.Enum):
    UNPAID = "unpaid"
    PAID = "paid"
    REFUNDED = "refunded"


# Appointment statuses under which revenue is recognized
RECOGNIZED_APPOINTMENT_STATUSES = frozenset({
    AppointmentStatus.COMPLETED,
    AppointmentStatus.CONFIRMED,
})
