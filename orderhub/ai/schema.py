from __future__ import annotations

from typing import List, Optional

from pydantic import BaseModel, Field


class ParsedItem(BaseModel):
    name: str = Field(..., min_length=1)
    quantity: int = Field(default=1, ge=1)
    notes: Optional[str] = None


class ParsedOrder(BaseModel):
    items: List[ParsedItem] = Field(default_factory=list)
    notes: Optional[str] = None
