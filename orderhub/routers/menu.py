from __future__ import annotations

from typing import Any, Dict

from fastapi import APIRouter, Depends

from orderhub.deps import get_container
from orderhub.models import MenuItem
from orderhub.schemas.menu import MenuItemCreate, MenuItemUpdate
from orderhub.services.container import Container
from orderhub.services.menu import create_menu_item, list_menu, update_menu_item

router = APIRouter(prefix="/api/menu", tags=["menu"])


def menu_item_to_dict(item: MenuItem) -> Dict[str, Any]:
    return {
        "id": item.id,
        "name": item.name,
        "price": f"{item.price:.2f}",
        "category": item.category,
        "description": item.description,
        "is_available": bool(item.is_available),
    }


@router.get("")
def get_menu(available_only: bool = False, container: Container = Depends(get_container)):
    return [menu_item_to_dict(item) for item in list_menu(container.store, available_only=available_only)]


@router.post("", status_code=201)
def add_menu_item(payload: MenuItemCreate, container: Container = Depends(get_container)):
    item = create_menu_item(
        container.store,
        name=payload.name,
        price=payload.price,
        category=payload.category,
        description=payload.description,
        is_available=payload.is_available,
    )
    return menu_item_to_dict(item)


@router.patch("/{item_id}")
def patch_menu_item(item_id: int, payload: MenuItemUpdate, container: Container = Depends(get_container)):
    item = update_menu_item(container.store, item_id, price=payload.price, is_available=payload.is_available)
    return menu_item_to_dict(item)
