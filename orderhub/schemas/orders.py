from __future__ import annotations

from decimal import Decimal
from typing import List, Optional

from pydantic import BaseModel, Field


class OrderLineIn(BaseModel):
    menu_item_id: int
    quantity: int = Field(..., ge=1)
    notes: Optional[str] = None


class OrderCreate(BaseModel):
    table_number: Optional[str] = None
    items: List[OrderLineIn] = Field(default_factory=list)
    source: str = "ui"
    notes: Optional[str] = None
    # legacy channels that send a total without items
    total_amount: Optional[Decimal] = Field(default=None, ge=0)


class OrderItemsAdd(BaseModel):
    items: List[OrderLineIn] = Field(..., min_length=1)


class StatusUpdate(BaseModel):
    status: str = Field(..., min_length=1)


class AdvanceRequest(BaseModel):
    target_status: Optional[str] = None


class OrderFromText(BaseModel):
    text: str = Field(..., min_length=1)
    table_number: Optional[str] = None
    source: str = "chat"


class BillCreate(BaseModel):
    discount: Decimal = Field(default=Decimal("0"), ge=0)
    payment_method: Optional[str] = None


class BillPay(BaseModel):
    payment_method: Optional[str] = None
