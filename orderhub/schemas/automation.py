from __future__ import annotations

from typing import Any, Optional

from pydantic import BaseModel


class AutomationConfig(BaseModel):
    base_url: Optional[str] = None
    api_key: Optional[str] = None


class WorkflowExecute(BaseModel):
    data: Any = None
