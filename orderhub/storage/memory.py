from __future__ import annotations

from itertools import count
from threading import Lock
from typing import Any, Generic, TypeVar

from orderhub.storage.base import Repository, Store

T = TypeVar("T")


class InMemoryRepository(Repository[T], Generic[T]):
    def __init__(self) -> None:
        self._rows: dict[int, T] = {}
        self._ids = count(1)
        self._lock = Lock()

    def get(self, entity_id: int) -> T | None:
        with self._lock:
            return self._rows.get(entity_id)

    def list(self, **filters: Any) -> list[T]:
        with self._lock:
            rows = [self._rows[key] for key in sorted(self._rows)]
        return [row for row in rows if all(getattr(row, key) == value for key, value in filters.items())]

    def create(self, entity: T) -> T:
        with self._lock:
            entity_id = next(self._ids)
            entity.id = entity_id
            self._rows[entity_id] = entity
        return entity

    def update(self, entity_id: int, **changes: Any) -> T | None:
        with self._lock:
            entity = self._rows.get(entity_id)
            if entity is None:
                return None
            for key, value in changes.items():
                setattr(entity, key, value)
            return entity

    def delete(self, entity_id: int) -> bool:
        with self._lock:
            return self._rows.pop(entity_id, None) is not None


class InMemoryStore(Store):
    def __init__(self) -> None:
        super().__init__(
            menu_items=InMemoryRepository(),
            orders=InMemoryRepository(),
            order_items=InMemoryRepository(),
            kitchen_tokens=InMemoryRepository(),
            bills=InMemoryRepository(),
            activities=InMemoryRepository(),
        )
