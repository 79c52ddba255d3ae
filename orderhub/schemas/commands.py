from __future__ import annotations

from typing import Optional

from pydantic import BaseModel, Field


class CommandIn(BaseModel):
    text: str = Field(..., min_length=1)
    channel: str = "voice"
    # where the acknowledgement goes, e.g. a WhatsApp number
    reply_to: Optional[str] = None
