"""Business logic services."""

from hospital_ledger.services.ledger_service import LedgerService
from hospital_ledger.services.record_service import RecordService
from hospital_ledger.services.transaction_binder import TransactionBinder
from hospital_ledger.services.revenue_aggregator import RevenueAggregator
from hospital_ledger.services.day_status_service import DayStatusService
from hospital_ledger.services.reconciliation_service import ReconciliationService
from hospital_ledger.services.sales_service import SalesService

__all__ = [
    "LedgerService",
    "RecordService",
    "TransactionBinder",
    "RevenueAggregator",
    "DayStatusService",
    "ReconciliationService",
    "SalesService",
]
