from __future__ import annotations

from typing import Any, List, Optional

from pydantic import BaseModel, Field


class WebhookCreate(BaseModel):
    id: Optional[str] = None
    url: str = Field(..., min_length=1)
    secret: str = Field(..., min_length=1)
    events: List[str] = Field(..., min_length=1)
    active: bool = True
    description: Optional[str] = None


class WebhookPatch(BaseModel):
    active: bool


class WebhookTest(BaseModel):
    event: str = "order.created"
    payload: Optional[dict[str, Any]] = None
