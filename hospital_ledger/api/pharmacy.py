"""
Pharmacy API endpoints.
"""

from fastapi import APIRouter, Depends
from sqlalchemy.orm import Session

from hospital_ledger.api.deps import get_clock, get_user_id, http_error
from hospital_ledger.exceptions import LedgerError
from hospital_ledger.models.base import get_db
from hospital_ledger.schemas.pharmacy import ProcessSaleRequest, SaleResponse
from hospital_ledger.services.sales_service import SalesService

router = APIRouter(prefix="/pharmacy", tags=["Pharmacy"])


@router.post("/sales", response_model=SaleResponse, status_code=201)
def process_sale(
    request: ProcessSaleRequest,
    db: Session = Depends(get_db),
    clock=Depends(get_clock),
    user_id: int | None = Depends(get_user_id),
):
    """
    Sell medicines and book the revenue in one step.

    Nothing is saved when any item is out of stock.
    """
    service = SalesService(db, clock=clock, user_id_provider=lambda: user_id)
    try:
        sale = service.process_sale(request, user_id=user_id)
        db.commit()
        db.refresh(sale)
        return sale
    except LedgerError as e:
        db.rollback()
        raise http_error(e)
