from __future__ import annotations

from typing import Any, Dict, Optional

from fastapi import APIRouter, Depends, Response

from orderhub.core.config import WEBHOOK_HEADER_PREFIX
from orderhub.deps import get_container
from orderhub.schemas.webhooks import WebhookCreate, WebhookPatch, WebhookTest
from orderhub.services.container import Container
from orderhub.services.order_events import EVENT_CATALOG, EVENT_DESCRIPTIONS
from orderhub.services.webhook_registry import WebhookSubscription, build_subscription

router = APIRouter(prefix="/api/webhooks", tags=["webhooks"])


def subscription_to_dict(subscription: WebhookSubscription) -> Dict[str, Any]:
    return {
        "id": subscription.id,
        "url": subscription.url,
        "events": sorted(subscription.events),
        "active": subscription.active,
        "description": subscription.description,
        "secret_set": bool(subscription.secret),
        "created_at": subscription.created_at.isoformat(),
    }


@router.get("")
def list_webhooks(container: Container = Depends(get_container)):
    return [subscription_to_dict(sub) for sub in container.registry.list()]


@router.post("", status_code=201)
def register_webhook(payload: WebhookCreate, container: Container = Depends(get_container)):
    subscription = container.registry.register(
        build_subscription(
            url=payload.url,
            secret=payload.secret,
            events=payload.events,
            subscription_id=payload.id,
            active=payload.active,
            description=payload.description,
        )
    )
    return subscription_to_dict(subscription)


@router.get("/docs")
def webhook_docs():
    prefix = WEBHOOK_HEADER_PREFIX
    return {
        "events": [{"name": name, "description": EVENT_DESCRIPTIONS[name]} for name in EVENT_CATALOG],
        "body": {
            "event": "event name, e.g. order.updated",
            "payload": "entity snapshot; status changes carry previousStatus",
            "timestamp": "ISO-8601 time the event happened",
            "webhookId": "id of the receiving subscription",
            "deliveryId": "idempotency key, identical on every retry",
        },
        "headers": {
            f"{prefix}-Signature": "hex HMAC-SHA256 of the raw body keyed with the subscription secret",
            f"{prefix}-Event": "event name",
            f"{prefix}-Delivery": "deliveryId, same as in the body",
        },
        "retries": "non-2xx or network errors retry with exponential backoff (1s, 2s, 4s, 8s), 5 attempts max",
        "test_events": "test deliveries carry payload.test = true",
    }


@router.get("/deliveries")
def list_deliveries(
    subscription_id: Optional[str] = None,
    status: Optional[str] = None,
    limit: int = 100,
    container: Container = Depends(get_container),
):
    records = container.dispatcher.list_deliveries(subscription_id=subscription_id, status=status, limit=limit)
    return [record.to_dict() for record in records]


@router.post("/deliveries/{record_id}/retry", status_code=202)
def retry_delivery(record_id: str, container: Container = Depends(get_container)):
    return container.dispatcher.retry_delivery(record_id).to_dict()


@router.patch("/{subscription_id}")
def patch_webhook(subscription_id: str, payload: WebhookPatch, container: Container = Depends(get_container)):
    return subscription_to_dict(container.registry.set_active(subscription_id, payload.active))


@router.delete("/{subscription_id}", status_code=204)
def delete_webhook(subscription_id: str, container: Container = Depends(get_container)):
    container.registry.remove(subscription_id)
    return Response(status_code=204)


@router.post("/{subscription_id}/test")
def trigger_test_delivery(
    subscription_id: str,
    payload: Optional[WebhookTest] = None,
    container: Container = Depends(get_container),
):
    payload = payload or WebhookTest()
    record = container.dispatcher.test_trigger(subscription_id, payload.event, payload.payload)
    return record.to_dict()
