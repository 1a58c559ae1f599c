"""
Pydantic schemas for the wallet ledger.

These define the API contract, separate from the storage models
so the two can evolve independently.
"""

from datetime import datetime
from decimal import Decimal

from pydantic import BaseModel

from hospital_ledger.models.enums import ReferenceType, TransactionType


class TransactionResponse(BaseModel):
    id: int
    type: TransactionType
    amount: Decimal
    description: str
    reference_type: ReferenceType
    reference_id: int
    reversal_of_id: int | None
    transaction_date: datetime
    created_by: int | None
    created_at: datetime

    model_config = {"from_attributes": True}


class WalletResponse(BaseModel):
    id: int
    name: str
    balance: Decimal
    recent_transactions: list[TransactionResponse] = []


class ReferenceLedgerResponse(BaseModel):
    """Every ledger row for one producing entity."""
    reference_type: ReferenceType
    reference_id: int
    net: Decimal
    transactions: list[TransactionResponse]


# --- Sync and cross-check ---

class SourceSyncReport(BaseModel):
    reference_type: ReferenceType
    checked: int = 0
    unchanged: int = 0
    credited: int = 0
    reversed: int = 0
    rebooked: int = 0
    orphans_reversed: int = 0
    errors: int = 0

    @property
    def changes(self) -> int:
        return self.credited + self.reversed + self.rebooked + self.orphans_reversed


class SyncReport(BaseModel):
    dry_run: bool
    sources: list[SourceSyncReport]
    total_changes: int


class CrossCheckLine(BaseModel):
    name: str
    ledger: Decimal
    aggregated: Decimal | None
    difference: Decimal | None
    matches: bool | None


class CrossCheckReport(BaseModel):
    """
    Ledger net against source aggregation, all time.

    Lines with aggregated=None have no aggregation counterpart
    and are informational.
    """
    lines: list[CrossCheckLine]
    consistent: bool
