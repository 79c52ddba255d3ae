from __future__ import annotations

import uuid
from dataclasses import dataclass, field
from datetime import datetime, timezone
from decimal import Decimal
from typing import Any, Iterable

ORDER_CREATED = "order.created"
ORDER_UPDATED = "order.updated"
ORDER_COMPLETED = "order.completed"
ORDER_DELETED = "order.deleted"
KITCHEN_TOKEN_CREATED = "kitchen.token.created"
KITCHEN_TOKEN_UPDATED = "kitchen.token.updated"
BILL_CREATED = "bill.created"
BILL_PAID = "bill.paid"
CUSTOMER_CREATED = "customer.created"

EVENT_CATALOG = (
    ORDER_CREATED,
    ORDER_UPDATED,
    ORDER_COMPLETED,
    ORDER_DELETED,
    KITCHEN_TOKEN_CREATED,
    KITCHEN_TOKEN_UPDATED,
    BILL_CREATED,
    BILL_PAID,
    CUSTOMER_CREATED,
)

EVENT_DESCRIPTIONS = {
    ORDER_CREATED: "A new order was created from any channel.",
    ORDER_UPDATED: "Order status or items changed. Carries previousStatus.",
    ORDER_COMPLETED: "Order reached completed and is now billable.",
    ORDER_DELETED: "Order was cancelled while pending or preparing.",
    KITCHEN_TOKEN_CREATED: "Kitchen ticket issued for an order.",
    KITCHEN_TOKEN_UPDATED: "Kitchen ticket status changed. Carries previousStatus.",
    BILL_CREATED: "Bill generated for a completed order.",
    BILL_PAID: "Bill payment recorded.",
    CUSTOMER_CREATED: "Customer record created by an upstream channel.",
}


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


@dataclass(frozen=True)
class Event:
    """One domain change. ``delivery_id`` is fixed at creation and reused by every retry."""

    name: str
    payload: dict[str, Any]
    timestamp: datetime = field(default_factory=_utcnow)
    delivery_id: str = field(default_factory=lambda: str(uuid.uuid4()))


def _money(value: Any) -> str | None:
    if value is None:
        return None
    return str(Decimal(value).quantize(Decimal("0.01")))


def _iso(value: datetime | None) -> str | None:
    return value.isoformat() if value else None


def build_item_payload(item) -> dict[str, Any]:
    return {
        "id": item.id,
        "menuItemId": item.menu_item_id,
        "name": item.name,
        "quantity": item.quantity,
        "unitPrice": _money(item.unit_price),
        "notes": item.notes,
    }


def build_order_payload(order, items: Iterable | None = None, previous_status: str | None = None) -> dict[str, Any]:
    payload = {
        "orderId": order.id,
        "orderNumber": order.order_number,
        "tableNumber": order.table_number,
        "status": order.status,
        "totalAmount": _money(order.total_amount),
        "originChannel": order.origin_channel,
        "notes": order.notes,
        "createdAt": _iso(order.created_at),
    }
    if items is not None:
        payload["items"] = [build_item_payload(item) for item in items]
    if previous_status is not None:
        payload["previousStatus"] = previous_status
    return payload


def build_token_payload(token, previous_status: str | None = None) -> dict[str, Any]:
    payload = {
        "tokenId": token.id,
        "tokenNumber": token.token_number,
        "orderId": token.order_id,
        "status": token.status,
        "isUrgent": bool(token.is_urgent),
        "startTime": _iso(token.start_time),
        "completionTime": _iso(token.completion_time),
    }
    if previous_status is not None:
        payload["previousStatus"] = previous_status
    return payload


def build_bill_payload(bill) -> dict[str, Any]:
    return {
        "billId": bill.id,
        "billNumber": bill.bill_number,
        "orderId": bill.order_id,
        "subtotal": _money(bill.subtotal),
        "tax": _money(bill.tax),
        "discount": _money(bill.discount),
        "total": _money(bill.total),
        "paymentStatus": bill.payment_status,
        "paymentMethod": bill.payment_method,
        "isVoid": bool(bill.is_void),
        "paidAt": _iso(bill.paid_at),
    }
