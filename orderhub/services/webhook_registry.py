from __future__ import annotations

import logging
import uuid
from dataclasses import dataclass, field, replace
from datetime import datetime, timezone
from threading import Lock
from types import MappingProxyType
from typing import Iterable, Mapping
from urllib.parse import urlparse

from orderhub.core.errors import NotFound, ValidationError
from orderhub.services.order_events import EVENT_CATALOG

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class WebhookSubscription:
    url: str
    secret: str
    events: frozenset[str]
    id: str = ""
    active: bool = True
    description: str | None = None
    created_at: datetime = field(default_factory=lambda: datetime.now(timezone.utc))

    def wants(self, event_name: str) -> bool:
        return self.active and event_name in self.events


def _validate(subscription: WebhookSubscription) -> WebhookSubscription:
    url = (subscription.url or "").strip()
    if not url:
        raise ValidationError("webhook url is required")
    parsed = urlparse(url)
    if parsed.scheme not in {"http", "https"} or not parsed.netloc:
        raise ValidationError(f"webhook url must be http(s): {url}")
    if not (subscription.secret or "").strip():
        raise ValidationError("webhook secret is required")
    events = frozenset(name.strip() for name in subscription.events if name and name.strip())
    if not events:
        raise ValidationError("at least one event is required")
    unknown = sorted(events - set(EVENT_CATALOG))
    if unknown:
        raise ValidationError(f"unknown events: {', '.join(unknown)}")
    return replace(
        subscription,
        url=url,
        events=events,
        id=subscription.id or f"wh_{uuid.uuid4().hex[:12]}",
    )


class WebhookRegistry:
    """Subscriptions keyed by id.

    Readers take the current immutable snapshot without locking; writers build
    a new snapshot under the write lock and swap it in.
    """

    def __init__(self) -> None:
        self._snapshot: Mapping[str, WebhookSubscription] = MappingProxyType({})
        self._write_lock = Lock()

    def _swap(self, rows: dict[str, WebhookSubscription]) -> None:
        self._snapshot = MappingProxyType(rows)

    def register(self, subscription: WebhookSubscription) -> WebhookSubscription:
        subscription = _validate(subscription)
        with self._write_lock:
            rows = dict(self._snapshot)
            replaced = subscription.id in rows
            rows[subscription.id] = subscription
            self._swap(rows)
        logger.info(
            "webhook %s",
            "replaced" if replaced else "registered",
            extra={"subscription_id": subscription.id},
        )
        return subscription

    def remove(self, subscription_id: str) -> WebhookSubscription:
        with self._write_lock:
            rows = dict(self._snapshot)
            removed = rows.pop(subscription_id, None)
            if removed is None:
                raise NotFound(f"webhook {subscription_id} not found")
            self._swap(rows)
        logger.info("webhook removed", extra={"subscription_id": subscription_id})
        return removed

    def set_active(self, subscription_id: str, active: bool) -> WebhookSubscription:
        with self._write_lock:
            rows = dict(self._snapshot)
            current = rows.get(subscription_id)
            if current is None:
                raise NotFound(f"webhook {subscription_id} not found")
            rows[subscription_id] = replace(current, active=active)
            self._swap(rows)
            return rows[subscription_id]

    def get(self, subscription_id: str) -> WebhookSubscription | None:
        return self._snapshot.get(subscription_id)

    def require(self, subscription_id: str) -> WebhookSubscription:
        subscription = self.get(subscription_id)
        if subscription is None:
            raise NotFound(f"webhook {subscription_id} not found")
        return subscription

    def list(self) -> list[WebhookSubscription]:
        return sorted(self._snapshot.values(), key=lambda sub: sub.created_at)

    def matching(self, event_name: str) -> list[WebhookSubscription]:
        return [sub for sub in self.list() if sub.wants(event_name)]

    def is_deliverable(self, subscription_id: str) -> bool:
        subscription = self.get(subscription_id)
        return subscription is not None and subscription.active


def build_subscription(
    *,
    url: str,
    secret: str,
    events: Iterable[str],
    subscription_id: str | None = None,
    active: bool = True,
    description: str | None = None,
) -> WebhookSubscription:
    return WebhookSubscription(
        url=url,
        secret=secret,
        events=frozenset(events),
        id=subscription_id or "",
        active=active,
        description=description,
    )
