from __future__ import annotations

from typing import Any, Dict, Optional

from fastapi import APIRouter, Depends, Response

from orderhub.deps import get_container
from orderhub.models import Bill, KitchenToken, Order, OrderItem
from orderhub.schemas.orders import (
    AdvanceRequest,
    BillCreate,
    BillPay,
    OrderCreate,
    OrderFromText,
    OrderItemsAdd,
    StatusUpdate,
)
from orderhub.services.container import Container
from orderhub.services.order_text import create_order_from_text
from orderhub.services.orders import OrderLine

router = APIRouter(prefix="/api", tags=["orders"])


def _money(value) -> Optional[str]:
    return None if value is None else f"{value:.2f}"


def _iso(value) -> Optional[str]:
    return value.isoformat() if value else None


def order_item_to_dict(item: OrderItem) -> Dict[str, Any]:
    return {
        "id": item.id,
        "order_id": item.order_id,
        "menu_item_id": item.menu_item_id,
        "name": item.name,
        "quantity": item.quantity,
        "unit_price": _money(item.unit_price),
        "notes": item.notes,
    }


def order_to_dict(order: Order, items=None) -> Dict[str, Any]:
    data = {
        "id": order.id,
        "order_number": order.order_number,
        "table_number": order.table_number,
        "status": order.status,
        "total_amount": _money(order.total_amount),
        "origin_channel": order.origin_channel,
        "notes": order.notes,
        "created_at": _iso(order.created_at),
        "updated_at": _iso(order.updated_at),
    }
    if items is not None:
        data["items"] = [order_item_to_dict(item) for item in items]
    return data


def token_to_dict(token: KitchenToken) -> Dict[str, Any]:
    return {
        "id": token.id,
        "token_number": token.token_number,
        "order_id": token.order_id,
        "status": token.status,
        "is_urgent": bool(token.is_urgent),
        "start_time": _iso(token.start_time),
        "completion_time": _iso(token.completion_time),
    }


def bill_to_dict(bill: Bill) -> Dict[str, Any]:
    return {
        "id": bill.id,
        "bill_number": bill.bill_number,
        "order_id": bill.order_id,
        "subtotal": _money(bill.subtotal),
        "tax": _money(bill.tax),
        "discount": _money(bill.discount),
        "total": _money(bill.total),
        "payment_status": bill.payment_status,
        "payment_method": bill.payment_method,
        "is_void": bool(bill.is_void),
        "created_at": _iso(bill.created_at),
        "paid_at": _iso(bill.paid_at),
    }


def _lines(items) -> list[OrderLine]:
    return [OrderLine(menu_item_id=item.menu_item_id, quantity=item.quantity, notes=item.notes) for item in items]


@router.post("/orders", status_code=201)
def create_order(payload: OrderCreate, container: Container = Depends(get_container)):
    service = container.orders
    order = service.create(
        table_number=payload.table_number,
        items=_lines(payload.items),
        source=payload.source,
        notes=payload.notes,
        total_amount=payload.total_amount,
    )
    return order_to_dict(order, service.list_items(order.id))


@router.get("/orders")
def list_orders(
    status: Optional[str] = None,
    table_number: Optional[str] = None,
    container: Container = Depends(get_container),
):
    orders = container.orders.list_orders(status=status, table_number=table_number)
    return [order_to_dict(order) for order in reversed(orders)]


@router.post("/orders/from-text", status_code=201)
def create_order_from_free_text(payload: OrderFromText, container: Container = Depends(get_container)):
    result = create_order_from_text(
        container.orders,
        payload.text,
        parser=container.parser,
        table_number=payload.table_number,
        source=payload.source,
    )
    order = result.order
    return {
        "order": order_to_dict(order, container.orders.list_items(order.id)),
        "unresolved": result.unresolved,
        "parsed_by": result.parsed_by,
    }


@router.get("/orders/{order_id}")
def get_order(order_id: int, container: Container = Depends(get_container)):
    service = container.orders
    order = service.get_order(order_id)
    data = order_to_dict(order, service.list_items(order.id))
    token = service.get_token_for_order(order.id)
    bill = service.active_bill(order.id)
    data["kitchen_token"] = token_to_dict(token) if token else None
    data["bill"] = bill_to_dict(bill) if bill else None
    return data


@router.get("/orders/{order_id}/items")
def list_order_items(order_id: int, container: Container = Depends(get_container)):
    container.orders.get_order(order_id)
    return [order_item_to_dict(item) for item in container.orders.list_items(order_id)]


@router.post("/orders/{order_id}/items")
def add_order_items(order_id: int, payload: OrderItemsAdd, container: Container = Depends(get_container)):
    order = container.orders.add_items(order_id, _lines(payload.items))
    return order_to_dict(order, container.orders.list_items(order.id))


@router.patch("/orders/{order_id}/status")
def update_status(order_id: int, body: StatusUpdate, container: Container = Depends(get_container)):
    order = container.orders.set_status(order_id, body.status)
    return order_to_dict(order)


@router.post("/orders/{order_id}/advance")
def advance_order(
    order_id: int,
    body: Optional[AdvanceRequest] = None,
    container: Container = Depends(get_container),
):
    if body is not None and body.target_status:
        order = container.orders.advance_to(order_id, body.target_status)
    else:
        order = container.orders.advance(order_id)
    return order_to_dict(order)


@router.delete("/orders/{order_id}", status_code=204)
def delete_order(order_id: int, container: Container = Depends(get_container)):
    container.orders.delete(order_id)
    return Response(status_code=204)


@router.post("/orders/{order_id}/bill", status_code=201)
def generate_bill(order_id: int, body: Optional[BillCreate] = None, container: Container = Depends(get_container)):
    body = body or BillCreate()
    bill = container.orders.generate_bill(order_id, discount=body.discount, payment_method=body.payment_method)
    return bill_to_dict(bill)


@router.get("/bills/{bill_id}")
def get_bill(bill_id: int, container: Container = Depends(get_container)):
    return bill_to_dict(container.orders.get_bill(bill_id))


@router.post("/bills/{bill_id}/pay")
def pay_bill(bill_id: int, body: Optional[BillPay] = None, container: Container = Depends(get_container)):
    bill = container.orders.mark_bill_paid(bill_id, payment_method=body.payment_method if body else None)
    return bill_to_dict(bill)


@router.post("/bills/{bill_id}/void")
def void_bill(bill_id: int, container: Container = Depends(get_container)):
    return bill_to_dict(container.orders.void_bill(bill_id))


@router.get("/kitchen/tokens")
def list_kitchen_tokens(status: Optional[str] = None, container: Container = Depends(get_container)):
    return [token_to_dict(token) for token in container.orders.list_tokens(status=status)]
