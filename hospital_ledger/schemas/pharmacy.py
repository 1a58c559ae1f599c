"""
Pydantic schemas for pharmacy sales.
"""

from datetime import datetime
from decimal import Decimal

from pydantic import BaseModel, Field

from hospital_ledger.models.enums import SaleStatus, SalePaymentStatus


class SaleItemRequest(BaseModel):
    medicine_id: int
    quantity: int = Field(gt=0)
    # Defaults to the medicine's list price
    unit_price: Decimal | None = Field(default=None, ge=0, decimal_places=2)


class ProcessSaleRequest(BaseModel):
    items: list[SaleItemRequest] = Field(min_length=1)
    discount: Decimal = Field(default=Decimal("0.00"), ge=0, decimal_places=2)
    tax: Decimal = Field(default=Decimal("0.00"), ge=0, decimal_places=2)
    payment_method: str = Field(default="cash", min_length=1, max_length=30)


class SaleItemResponse(BaseModel):
    id: int
    medicine_id: int
    quantity: int
    unit_price: Decimal
    cost_price: Decimal
    total_price: Decimal

    model_config = {"from_attributes": True}


class SaleResponse(BaseModel):
    id: int
    sale_number: str
    status: SaleStatus
    payment_status: SalePaymentStatus
    payment_method: str
    total_amount: Decimal
    discount: Decimal
    tax: Decimal
    grand_total: Decimal
    sold_by: int | None
    created_at: datetime | None
    items: list[SaleItemResponse]

    model_config = {"from_attributes": True}
