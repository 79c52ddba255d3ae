from __future__ import annotations

import json
from datetime import datetime, timezone
from typing import Any, Mapping, Optional

from orderhub.models.activity import Activity
from orderhub.storage.base import Store


def record_activity(
    store: Store,
    *,
    type: str,
    description: str,
    entity_type: Optional[str] = None,
    entity_id: Optional[int] = None,
    meta: Optional[Mapping[str, Any]] = None,
) -> Activity:
    entry = Activity(
        type=type,
        description=description,
        entity_type=entity_type,
        entity_id=entity_id,
        meta_json=json.dumps(meta, default=str) if meta else None,
        created_at=datetime.now(timezone.utc),
    )
    return store.activities.create(entry)


def list_activities(store: Store, *, type: Optional[str] = None, limit: int = 100) -> list[Activity]:
    filters = {"type": type} if type else {}
    entries = store.activities.list(**filters)
    return list(reversed(entries))[:limit]
