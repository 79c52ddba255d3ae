from __future__ import annotations

from datetime import datetime, timezone
from decimal import Decimal, InvalidOperation
from typing import Any, Optional

from orderhub.core.errors import NotFound, ValidationError
from orderhub.models.menu_item import MenuItem
from orderhub.storage.base import Store


def _price(value: Any) -> Decimal:
    try:
        price = Decimal(str(value)).quantize(Decimal("0.01"))
    except (InvalidOperation, ValueError) as exc:
        raise ValidationError("price must be a number") from exc
    if price < 0:
        raise ValidationError("price must be >= 0")
    return price


def list_menu(store: Store, *, available_only: bool = False) -> list[MenuItem]:
    if available_only:
        return store.menu_items.list(is_available=True)
    return store.menu_items.list()


def create_menu_item(
    store: Store,
    *,
    name: str,
    price: Any,
    category: str = "general",
    description: Optional[str] = None,
    is_available: bool = True,
) -> MenuItem:
    name = (name or "").strip()
    if not name:
        raise ValidationError("name is required")
    return store.menu_items.create(
        MenuItem(
            name=name,
            price=_price(price),
            category=(category or "general").strip() or "general",
            description=description,
            is_available=is_available,
            created_at=datetime.now(timezone.utc),
        )
    )


def update_menu_item(
    store: Store,
    item_id: int,
    *,
    price: Any = None,
    is_available: Optional[bool] = None,
) -> MenuItem:
    """Only price and availability change. Order items keep their frozen copy."""
    changes: dict[str, Any] = {}
    if price is not None:
        changes["price"] = _price(price)
    if is_available is not None:
        changes["is_available"] = is_available
    if not changes:
        item = store.menu_items.get(item_id)
    else:
        item = store.menu_items.update(item_id, **changes)
    if item is None:
        raise NotFound(f"menu item {item_id} not found")
    return item
