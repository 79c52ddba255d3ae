from __future__ import annotations

from orderhub.services import order_events
from orderhub.services.activity_log import record_activity
from orderhub.services.event_bus import EventBus
from orderhub.services.order_events import Event
from orderhub.storage.base import Store

_ENTITY_KEYS = {
    "order": "orderId",
    "kitchen": "tokenId",
    "bill": "billId",
    "customer": "customerId",
}


def _describe(event: Event) -> str:
    payload = event.payload
    if event.name == order_events.ORDER_CREATED:
        return f"Order {payload.get('orderNumber')} created via {payload.get('originChannel')}"
    if event.name == order_events.ORDER_UPDATED:
        if payload.get("changes"):
            return f"Order {payload.get('orderNumber')} items updated"
        return f"Order {payload.get('orderNumber')} moved from {payload.get('previousStatus')} to {payload.get('status')}"
    if event.name == order_events.ORDER_COMPLETED:
        return f"Order {payload.get('orderNumber')} completed"
    if event.name == order_events.ORDER_DELETED:
        return f"Order {payload.get('orderNumber')} deleted"
    if event.name == order_events.KITCHEN_TOKEN_CREATED:
        return f"Kitchen token {payload.get('tokenNumber')} created"
    if event.name == order_events.KITCHEN_TOKEN_UPDATED:
        return f"Kitchen token {payload.get('tokenNumber')} is now {payload.get('status')}"
    if event.name == order_events.BILL_CREATED:
        return f"Bill {payload.get('billNumber')} generated, total {payload.get('total')}"
    if event.name == order_events.BILL_PAID:
        return f"Bill {payload.get('billNumber')} paid"
    return event.name


class ActivityLogger:
    """Writes one Activity row per domain event."""

    def __init__(self, store: Store) -> None:
        self.store = store

    def __call__(self, event: Event) -> None:
        prefix = event.name.split(".", 1)[0]
        entity_type = "kitchen_token" if prefix == "kitchen" else prefix
        record_activity(
            self.store,
            type=event.name,
            description=_describe(event),
            entity_type=entity_type,
            entity_id=event.payload.get(_ENTITY_KEYS.get(prefix, "")),
            meta={"deliveryId": event.delivery_id},
        )


def register_handlers(bus: EventBus, store: Store) -> ActivityLogger:
    activity_logger = ActivityLogger(store)
    bus.subscribe(activity_logger)
    return activity_logger
