from __future__ import annotations

from decimal import Decimal
from typing import Optional

from pydantic import BaseModel, Field


class MenuItemCreate(BaseModel):
    name: str = Field(..., min_length=1)
    price: Decimal = Field(..., ge=0)
    category: str = "general"
    description: Optional[str] = None
    is_available: bool = True


class MenuItemUpdate(BaseModel):
    price: Optional[Decimal] = Field(default=None, ge=0)
    is_available: Optional[bool] = None
