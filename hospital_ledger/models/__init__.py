"""
Database models package.

All models must be imported here so that Alembic can discover
them through Base.metadata when generating migrations.
"""

from hospital_ledger.models.base import Base
from hospital_ledger.models.enums import (
    TransactionType,
    ReferenceType,
    AppointmentStatus,
    LabTestStatus,
    PaymentStatus,
    SaleStatus,
    SalePaymentStatus,
)
from hospital_ledger.models.audit_log import AuditLog
from hospital_ledger.models.cache_entry import CacheEntry
from hospital_ledger.models.wallet import Wallet
from hospital_ledger.models.transaction import Transaction
from hospital_ledger.models.daily_snapshot import DailySnapshot
from hospital_ledger.models.department import Department, DepartmentService
from hospital_ledger.models.appointment import Appointment, AppointmentService
from hospital_ledger.models.laboratory import LabTest, LabTestRequest, LabTestResult
from hospital_ledger.models.payment import Payment
from hospital_ledger.models.pharmacy import Medicine, Sale, SaleItem

__all__ = [
    "Base",
    "TransactionType",
    "ReferenceType",
    "AppointmentStatus",
    "LabTestStatus",
    "PaymentStatus",
    "SaleStatus",
    "SalePaymentStatus",
    "AuditLog",
    "CacheEntry",
    "Wallet",
    "Transaction",
    "DailySnapshot",
    "Department",
    "DepartmentService",
    "Appointment",
    "AppointmentService",
    "LabTest",
    "LabTestRequest",
    "LabTestResult",
    "Payment",
    "Medicine",
    "Sale",
    "SaleItem",
]
