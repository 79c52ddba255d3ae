from __future__ import annotations

from abc import ABC, abstractmethod
from dataclasses import dataclass
from typing import Any, Generic, TypeVar

from orderhub.models import Activity, Bill, KitchenToken, MenuItem, Order, OrderItem

T = TypeVar("T")


class Repository(ABC, Generic[T]):
    """CRUD contract the core depends on, one repository per entity."""

    @abstractmethod
    def get(self, entity_id: int) -> T | None:
        """Returns the entity or None."""

    @abstractmethod
    def list(self, **filters: Any) -> list[T]:
        """Entities matching all equality filters, ordered by id."""

    @abstractmethod
    def create(self, entity: T) -> T:
        """Persists the entity and assigns its id."""

    @abstractmethod
    def update(self, entity_id: int, **changes: Any) -> T | None:
        """Applies the changes and returns the updated entity, or None when unknown."""

    @abstractmethod
    def delete(self, entity_id: int) -> bool:
        """True when something was removed."""


@dataclass
class Store:
    menu_items: Repository[MenuItem]
    orders: Repository[Order]
    order_items: Repository[OrderItem]
    kitchen_tokens: Repository[KitchenToken]
    bills: Repository[Bill]
    activities: Repository[Activity]
