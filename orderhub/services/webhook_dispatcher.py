from __future__ import annotations

import asyncio
import concurrent.futures
import hashlib
import hmac
import json
import logging
import threading
import uuid
from collections import OrderedDict
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Any, Awaitable, Callable, Optional

import httpx

from orderhub.core.config import (
    WEBHOOK_BACKOFF_BASE_SECONDS,
    WEBHOOK_HEADER_PREFIX,
    WEBHOOK_MAX_ATTEMPTS,
    WEBHOOK_TIMEOUT_SECONDS,
)
from orderhub.core.errors import DeliveryFailure, NotFound, ValidationError
from orderhub.core.metrics import InMemoryDeliveryMetrics, delivery_metrics
from orderhub.core.request_context import set_request_context
from orderhub.services.activity_log import record_activity
from orderhub.services.order_events import EVENT_CATALOG, Event
from orderhub.services.retry_backoff import ExponentialBackoff
from orderhub.services.webhook_registry import WebhookRegistry, WebhookSubscription
from orderhub.storage.base import Store

logger = logging.getLogger(__name__)

Sleep = Callable[[float], Awaitable[Any]]

PENDING = "pending"
DELIVERED = "delivered"
FAILED = "failed"
CANCELLED = "cancelled"

HISTORY_LIMIT = 500


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


def sign_body(secret: str, body: bytes) -> str:
    return hmac.new(secret.encode("utf-8"), body, hashlib.sha256).hexdigest()


def build_body(subscription: WebhookSubscription, event: Event) -> bytes:
    document = {
        "event": event.name,
        "payload": event.payload,
        "timestamp": event.timestamp.isoformat(),
        "webhookId": subscription.id,
        "deliveryId": event.delivery_id,
    }
    return json.dumps(document, ensure_ascii=False, separators=(",", ":"), default=str).encode("utf-8")


@dataclass
class DeliveryRecord:
    id: str
    delivery_id: str
    subscription_id: str
    event: Event
    url: str
    test: bool = False
    status: str = PENDING
    attempts: int = 0
    delays: list[float] = field(default_factory=list)
    last_status_code: Optional[int] = None
    last_error: Optional[str] = None
    failure: Optional[DeliveryFailure] = None
    created_at: datetime = field(default_factory=_utcnow)
    completed_at: Optional[datetime] = None

    def to_dict(self) -> dict[str, Any]:
        return {
            "id": self.id,
            "deliveryId": self.delivery_id,
            "subscriptionId": self.subscription_id,
            "event": self.event.name,
            "url": self.url,
            "test": self.test,
            "status": self.status,
            "attempts": self.attempts,
            "delays": list(self.delays),
            "lastStatusCode": self.last_status_code,
            "lastError": self.last_error,
            "createdAt": self.created_at.isoformat(),
            "completedAt": self.completed_at.isoformat() if self.completed_at else None,
        }


class WebhookDispatcher:
    """Delivers events to matching subscriptions without blocking the publisher.

    ``on_event`` only schedules work on a private asyncio loop running in a
    daemon thread. Each delivery is one task, so a slow subscriber never delays
    the others, and backoff waits are ``await``-ed rather than slept on a thread.
    """

    def __init__(
        self,
        registry: WebhookRegistry,
        store: Store,
        *,
        max_attempts: int = WEBHOOK_MAX_ATTEMPTS,
        backoff_base_seconds: float = WEBHOOK_BACKOFF_BASE_SECONDS,
        timeout_seconds: float = WEBHOOK_TIMEOUT_SECONDS,
        header_prefix: str = WEBHOOK_HEADER_PREFIX,
        transport: httpx.AsyncBaseTransport | None = None,
        sleep: Sleep = asyncio.sleep,
        metrics: InMemoryDeliveryMetrics = delivery_metrics,
    ) -> None:
        self.registry = registry
        self.store = store
        self.max_attempts = max_attempts
        self.backoff_base_seconds = backoff_base_seconds
        self.timeout_seconds = timeout_seconds
        self.header_prefix = header_prefix
        self._transport = transport
        self._sleep = sleep
        self._metrics = metrics
        self._records: OrderedDict[str, DeliveryRecord] = OrderedDict()
        self._records_lock = threading.Lock()
        self._futures: set[concurrent.futures.Future] = set()
        self._state_lock = threading.Lock()
        self._loop: asyncio.AbstractEventLoop | None = None
        self._thread: threading.Thread | None = None
        self._stopped = False

    # -- lifecycle ---------------------------------------------------------

    @property
    def running(self) -> bool:
        return self._loop is not None

    def start(self) -> None:
        with self._state_lock:
            self._stopped = False
            started = self._start_locked()
        if started:
            logger.info("webhook dispatcher started")

    def _start_locked(self) -> bool:
        if self._loop is not None:
            return False
        loop = asyncio.new_event_loop()
        thread = threading.Thread(target=self._run_loop, args=(loop,), name="webhook-dispatcher", daemon=True)
        thread.start()
        self._loop = loop
        self._thread = thread
        return True

    def _run_loop(self, loop: asyncio.AbstractEventLoop) -> None:
        asyncio.set_event_loop(loop)
        loop.run_forever()

    def stop(self, timeout: float = 5.0) -> None:
        """Cancels in-flight deliveries. Nothing is scheduled again until ``start()``."""
        with self._state_lock:
            self._stopped = True
            loop, thread = self._loop, self._thread
            self._loop = None
            self._thread = None
        if loop is None:
            return

        async def _cancel_pending() -> None:
            tasks = [task for task in asyncio.all_tasks() if task is not asyncio.current_task()]
            for task in tasks:
                task.cancel()
            await asyncio.gather(*tasks, return_exceptions=True)

        try:
            asyncio.run_coroutine_threadsafe(_cancel_pending(), loop).result(timeout)
        except concurrent.futures.TimeoutError:
            logger.warning("webhook dispatcher shutdown timed out")
        loop.call_soon_threadsafe(loop.stop)
        if thread is not None:
            thread.join(timeout)
        loop.close()
        logger.info("webhook dispatcher stopped")

    def wait_idle(self, timeout: float | None = None) -> bool:
        """Blocks until every scheduled delivery finished. True when nothing is left."""
        with self._state_lock:
            pending = list(self._futures)
        if not pending:
            return True
        _, not_done = concurrent.futures.wait(pending, timeout=timeout)
        return not not_done

    # -- scheduling --------------------------------------------------------

    def on_event(self, event: Event) -> None:
        """Event bus subscriber: queues one delivery per matching active subscription."""
        for subscription in self.registry.matching(event.name):
            record = self._new_record(subscription, event)
            self._schedule(subscription, record)

    def _new_record(self, subscription: WebhookSubscription, event: Event, *, test: bool = False) -> DeliveryRecord:
        record = DeliveryRecord(
            id=uuid.uuid4().hex,
            delivery_id=event.delivery_id,
            subscription_id=subscription.id,
            event=event,
            url=subscription.url,
            test=test,
        )
        with self._records_lock:
            self._records[record.id] = record
            while len(self._records) > HISTORY_LIMIT:
                self._records.popitem(last=False)
        return record

    def _schedule(self, subscription: WebhookSubscription, record: DeliveryRecord) -> None:
        with self._state_lock:
            if self._stopped:
                logger.warning("webhook dispatcher stopped, delivery dropped", extra={"subscription_id": subscription.id})
                self._finish(record, CANCELLED)
                return
            started = self._start_locked()
            future = asyncio.run_coroutine_threadsafe(self.deliver(subscription, record), self._loop)
            self._futures.add(future)
        if started:
            logger.info("webhook dispatcher started")
        future.add_done_callback(self._on_done)

    def _on_done(self, future: concurrent.futures.Future) -> None:
        with self._state_lock:
            self._futures.discard(future)
        if future.cancelled():
            return
        exc = future.exception()
        if exc is not None:
            logger.error("webhook delivery crashed", exc_info=(type(exc), exc, exc.__traceback__))

    # -- delivery ----------------------------------------------------------

    def _headers(self, subscription: WebhookSubscription, record: DeliveryRecord, body: bytes) -> dict[str, str]:
        return {
            "Content-Type": "application/json",
            f"{self.header_prefix}-Signature": sign_body(subscription.secret, body),
            f"{self.header_prefix}-Event": record.event.name,
            f"{self.header_prefix}-Delivery": record.delivery_id,
        }

    async def deliver(
        self,
        subscription: WebhookSubscription,
        record: DeliveryRecord,
        *,
        max_attempts: int | None = None,
    ) -> DeliveryRecord:
        """POSTs the signed body, retrying with exponential backoff.

        The body (and therefore ``deliveryId`` and signature) is identical on
        every attempt. Real deliveries stop early once the subscription is
        removed or deactivated.
        """
        set_request_context(delivery_id=record.delivery_id)
        policy = ExponentialBackoff(
            base_seconds=self.backoff_base_seconds,
            max_attempts=max_attempts or self.max_attempts,
        )
        body = build_body(subscription, record.event)
        headers = self._headers(subscription, record, body)
        record.status = PENDING
        record.failure = None

        try:
            async with httpx.AsyncClient(timeout=self.timeout_seconds, transport=self._transport) as client:
                while True:
                    record.attempts += 1
                    attempt = record.attempts
                    self._metrics.observe_attempt(record.event.name)
                    try:
                        response = await client.post(subscription.url, content=body, headers=headers)
                        record.last_status_code = response.status_code
                        if 200 <= response.status_code < 300:
                            self._finish(record, DELIVERED)
                            logger.info(
                                "webhook delivered",
                                extra={"subscription_id": subscription.id, "event": record.event.name, "attempt": attempt},
                            )
                            return record
                        record.last_error = f"HTTP {response.status_code}"
                    except httpx.HTTPError as exc:
                        record.last_error = f"{exc.__class__.__name__}: {exc}"

                    decision = policy.after_failure(attempt)
                    if not decision.retry:
                        self._fail(subscription, record)
                        return record
                    if not record.test and not self.registry.is_deliverable(subscription.id):
                        self._finish(record, CANCELLED)
                        return record

                    logger.warning(
                        "webhook attempt failed, retrying",
                        extra={
                            "subscription_id": subscription.id,
                            "event": record.event.name,
                            "attempt": attempt,
                            "delay_seconds": decision.delay_seconds,
                        },
                    )
                    record.delays.append(decision.delay_seconds)
                    await self._sleep(decision.delay_seconds)

                    if not record.test and not self.registry.is_deliverable(subscription.id):
                        logger.info("webhook retries stopped, subscription gone", extra={"subscription_id": subscription.id})
                        self._finish(record, CANCELLED)
                        return record
        except asyncio.CancelledError:
            self._finish(record, CANCELLED)
            raise

    def _finish(self, record: DeliveryRecord, status: str) -> None:
        record.status = status
        record.completed_at = _utcnow()
        self._metrics.observe_outcome(record.event.name, status)

    def _fail(self, subscription: WebhookSubscription, record: DeliveryRecord) -> None:
        message = f"delivery to {subscription.url} failed after {record.attempts} attempts: {record.last_error}"
        record.failure = DeliveryFailure(message)
        self._finish(record, FAILED)
        logger.error(message, extra={"subscription_id": subscription.id, "event": record.event.name})
        record_activity(
            self.store,
            type="webhook_failed",
            description=message,
            entity_type="webhook",
            meta={
                "recordId": record.id,
                "deliveryId": record.delivery_id,
                "subscriptionId": subscription.id,
                "event": record.event.name,
                "attempts": record.attempts,
                "lastError": record.last_error,
                "test": record.test,
            },
        )

    # -- management --------------------------------------------------------

    def _run_now(self, coro: Awaitable[DeliveryRecord]) -> DeliveryRecord:
        loop = self._loop
        if loop is not None:
            return asyncio.run_coroutine_threadsafe(coro, loop).result()
        return asyncio.run(coro)

    def test_trigger(
        self,
        subscription_id: str,
        event_name: str,
        payload: Optional[dict[str, Any]] = None,
        *,
        max_attempts: int = 1,
    ) -> DeliveryRecord:
        """Delivers a synthetic event now, ignoring the subscription's event filter."""
        subscription = self.registry.require(subscription_id)
        if event_name not in EVENT_CATALOG:
            raise ValidationError(f"unknown event {event_name}")
        now = _utcnow()
        body = dict(payload) if payload else {"message": "Test webhook delivery", "timestamp": now.isoformat()}
        body["test"] = True
        event = Event(name=event_name, payload=body, timestamp=now)
        record = self._new_record(subscription, event, test=True)
        return self._run_now(self.deliver(subscription, record, max_attempts=max_attempts))

    def retry_delivery(self, record_id: str) -> DeliveryRecord:
        """Schedules a failed or cancelled delivery again under the same deliveryId."""
        record = self.get_delivery(record_id)
        subscription = self.registry.require(record.subscription_id)
        with self._records_lock:
            if record.status not in {FAILED, CANCELLED}:
                raise ValidationError(f"delivery {record_id} is {record.status}, only failed or cancelled can be retried")
            record.attempts = 0
            record.delays = []
            record.completed_at = None
            record.status = PENDING
        self._schedule(subscription, record)
        return record

    def get_delivery(self, record_id: str) -> DeliveryRecord:
        with self._records_lock:
            record = self._records.get(record_id)
        if record is None:
            raise NotFound(f"delivery {record_id} not found")
        return record

    def list_deliveries(
        self,
        *,
        subscription_id: str | None = None,
        status: str | None = None,
        limit: int = 100,
    ) -> list[DeliveryRecord]:
        with self._records_lock:
            records = list(self._records.values())
        records.reverse()
        if subscription_id:
            records = [record for record in records if record.subscription_id == subscription_id]
        if status:
            records = [record for record in records if record.status == status]
        return records[:limit]
