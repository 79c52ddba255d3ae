from __future__ import annotations

import json
from typing import Optional

from fastapi import APIRouter, Depends

from orderhub.deps import get_container
from orderhub.services.activity_log import list_activities
from orderhub.services.container import Container

router = APIRouter(prefix="/api/activities", tags=["activities"])


@router.get("")
def get_activities(type: Optional[str] = None, limit: int = 100, container: Container = Depends(get_container)):
    return [
        {
            "id": entry.id,
            "type": entry.type,
            "description": entry.description,
            "entity_type": entry.entity_type,
            "entity_id": entry.entity_id,
            "meta": json.loads(entry.meta_json) if entry.meta_json else None,
            "created_at": entry.created_at.isoformat() if entry.created_at else None,
        }
        for entry in list_activities(container.store, type=type, limit=limit)
    ]
