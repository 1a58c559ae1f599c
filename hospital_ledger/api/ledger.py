"""
Ledger API endpoints.

Read access to the wallet and its transactions, plus the sync
and cross-check maintenance operations. Business logic lives
in the services; this layer only handles HTTP concerns.
"""

from fastapi import APIRouter, Depends, HTTPException
from sqlalchemy.orm import Session

from hospital_ledger.api.deps import get_clock, get_user_id, http_error
from hospital_ledger.exceptions import LedgerError
from hospital_ledger.models.base import get_db
from hospital_ledger.models.enums import ReferenceType
from hospital_ledger.schemas.ledger import (
    TransactionResponse,
    WalletResponse,
    ReferenceLedgerResponse,
    SyncReport,
    CrossCheckReport,
)
from hospital_ledger.services.ledger_service import LedgerService
from hospital_ledger.services.reconciliation_service import ReconciliationService

router = APIRouter(prefix="/ledger", tags=["Ledger"])


@router.get("/wallet", response_model=WalletResponse)
def get_wallet(
    limit: int = 50,
    db: Session = Depends(get_db),
    clock=Depends(get_clock),
):
    """Wallet balance and its most recent transactions."""
    service = LedgerService(db, clock=clock)
    wallet = service.get_or_create_wallet()
    db.commit()
    return WalletResponse(
        id=wallet.id,
        name=wallet.name,
        balance=wallet.balance,
        recent_transactions=[
            TransactionResponse.model_validate(t)
            for t in service.recent_transactions(limit)
        ],
    )


@router.get(
    "/references/{reference_type}/{reference_id}",
    response_model=ReferenceLedgerResponse,
)
def get_reference_ledger(
    reference_type: ReferenceType,
    reference_id: int,
    db: Session = Depends(get_db),
):
    """
    Every credit and debit booked for one producing entity.

    The net is 0 once the entity's revenue has been reversed.
    """
    service = LedgerService(db)
    transactions = service.transactions_for_reference(reference_type, reference_id)
    if not transactions:
        raise HTTPException(
            status_code=404,
            detail=f"No transactions for {reference_type.value} {reference_id}",
        )
    return ReferenceLedgerResponse(
        reference_type=reference_type,
        reference_id=reference_id,
        net=service.net_for_reference(reference_type, reference_id),
        transactions=[TransactionResponse.model_validate(t) for t in transactions],
    )


@router.post("/sync", response_model=SyncReport)
def sync_ledger(
    dry_run: bool = False,
    reference_type: ReferenceType | None = None,
    db: Session = Depends(get_db),
    clock=Depends(get_clock),
    user_id: int | None = Depends(get_user_id),
):
    """Repair drift between source entities and their ledger credits."""
    service = ReconciliationService(
        db, clock=clock, user_id_provider=lambda: user_id
    )
    try:
        report = service.sync(dry_run=dry_run, reference_type=reference_type)
        if dry_run:
            db.rollback()
        else:
            db.commit()
        return report
    except LedgerError as e:
        db.rollback()
        raise http_error(e)


@router.get("/cross-check", response_model=CrossCheckReport)
def cross_check(
    db: Session = Depends(get_db),
    clock=Depends(get_clock),
):
    """All-time ledger net next to the independent source aggregation."""
    return ReconciliationService(db, clock=clock).cross_check()
