import asyncio
import json
import threading
import time

import httpx
import pytest

from orderhub.core.errors import DeliveryFailure, ValidationError
from orderhub.core.metrics import InMemoryDeliveryMetrics
from orderhub.services.activity_log import list_activities
from orderhub.services.event_bus import EventBus
from orderhub.services.order_events import Event
from orderhub.services.webhook_dispatcher import WebhookDispatcher, sign_body
from orderhub.services.webhook_registry import WebhookRegistry, build_subscription
from orderhub.storage.memory import InMemoryStore
from tests.fixtures_data import HAPPY_PATH_WEBHOOK, WEBHOOK_SECRET


class RecordingEndpoint:
    def __init__(self, statuses=(200,)):
        self.statuses = list(statuses)
        self.requests = []

    def __call__(self, request):
        self.requests.append(request)
        index = min(len(self.requests), len(self.statuses)) - 1
        return httpx.Response(self.statuses[index], json={"ok": True})


class RecordingSleep:
    def __init__(self, on_sleep=None):
        self.delays = []
        self.on_sleep = on_sleep

    async def __call__(self, delay):
        self.delays.append(delay)
        if self.on_sleep is not None:
            self.on_sleep()


def _dispatcher(endpoint, *, sleep=None, registry=None, store=None):
    registry = registry or WebhookRegistry()
    registry.register(
        build_subscription(
            subscription_id=HAPPY_PATH_WEBHOOK["id"],
            url=HAPPY_PATH_WEBHOOK["url"],
            secret=WEBHOOK_SECRET,
            events=HAPPY_PATH_WEBHOOK["events"],
        )
    )
    return WebhookDispatcher(
        registry,
        store or InMemoryStore(),
        transport=httpx.MockTransport(endpoint),
        sleep=sleep or RecordingSleep(),
        metrics=InMemoryDeliveryMetrics(),
    )


def _deliver(dispatcher, event):
    subscription = dispatcher.registry.require(HAPPY_PATH_WEBHOOK["id"])
    record = dispatcher._new_record(subscription, event)
    return asyncio.run(dispatcher.deliver(subscription, record))


def test_successful_delivery_is_signed():
    endpoint = RecordingEndpoint()
    dispatcher = _dispatcher(endpoint)
    event = Event(name="order.created", payload={"orderId": 1, "orderNumber": "ORD-1001"})

    record = _deliver(dispatcher, event)

    assert record.status == "delivered"
    assert record.attempts == 1
    request = endpoint.requests[0]
    body = request.content
    assert request.headers["X-OrderHub-Signature"] == sign_body(WEBHOOK_SECRET, body)
    assert request.headers["X-OrderHub-Event"] == "order.created"
    assert request.headers["X-OrderHub-Delivery"] == event.delivery_id
    document = json.loads(body)
    assert document["event"] == "order.created"
    assert document["webhookId"] == HAPPY_PATH_WEBHOOK["id"]
    assert document["deliveryId"] == event.delivery_id
    assert document["payload"]["orderNumber"] == "ORD-1001"


def test_retries_with_exponential_backoff_then_fails():
    endpoint = RecordingEndpoint(statuses=(500,))
    sleep = RecordingSleep()
    store = InMemoryStore()
    dispatcher = _dispatcher(endpoint, sleep=sleep, store=store)
    event = Event(name="order.updated", payload={"orderId": 1})

    record = _deliver(dispatcher, event)

    assert record.status == "failed"
    assert record.attempts == 5
    assert sleep.delays == [1.0, 2.0, 4.0, 8.0]
    assert isinstance(record.failure, DeliveryFailure)
    assert record.last_status_code == 500
    failures = list_activities(store, type="webhook_failed")
    assert len(failures) == 1
    assert json.loads(failures[0].meta_json)["deliveryId"] == event.delivery_id


def test_every_attempt_carries_the_same_body_and_delivery_id():
    endpoint = RecordingEndpoint(statuses=(503, 502, 200))
    dispatcher = _dispatcher(endpoint)
    event = Event(name="order.created", payload={"orderId": 2})

    record = _deliver(dispatcher, event)

    assert record.status == "delivered"
    assert record.attempts == 3
    assert len({request.content for request in endpoint.requests}) == 1
    assert {request.headers["X-OrderHub-Delivery"] for request in endpoint.requests} == {event.delivery_id}


def test_network_errors_are_retried():
    calls = []

    def flaky(request):
        calls.append(request)
        if len(calls) == 1:
            raise httpx.ConnectError("connection refused", request=request)
        return httpx.Response(204)

    dispatcher = _dispatcher(flaky)

    record = _deliver(dispatcher, Event(name="order.created", payload={}))

    assert record.status == "delivered"
    assert record.attempts == 2
    assert "ConnectError" in record.last_error


def test_removing_subscription_cancels_pending_retries():
    endpoint = RecordingEndpoint(statuses=(500,))
    registry = WebhookRegistry()
    sleep = RecordingSleep(on_sleep=lambda: registry.remove(HAPPY_PATH_WEBHOOK["id"]))
    dispatcher = _dispatcher(endpoint, sleep=sleep, registry=registry)

    record = _deliver(dispatcher, Event(name="order.created", payload={}))

    assert record.status == "cancelled"
    assert record.attempts == 1
    assert len(endpoint.requests) == 1


def test_on_event_only_delivers_subscribed_events():
    endpoint = RecordingEndpoint()
    dispatcher = _dispatcher(endpoint)
    try:
        dispatcher.on_event(Event(name="bill.paid", payload={}))
        dispatcher.on_event(Event(name="order.created", payload={"orderId": 3}))
        assert dispatcher.wait_idle(timeout=5)
    finally:
        dispatcher.stop()

    assert [request.headers["X-OrderHub-Event"] for request in endpoint.requests] == ["order.created"]
    assert [record.status for record in dispatcher.list_deliveries()] == ["delivered"]


def test_test_trigger_marks_payload_and_ignores_filter():
    endpoint = RecordingEndpoint()
    dispatcher = _dispatcher(endpoint)

    record = dispatcher.test_trigger(HAPPY_PATH_WEBHOOK["id"], "bill.paid")

    assert record.test is True
    assert record.status == "delivered"
    document = json.loads(endpoint.requests[0].content)
    assert document["event"] == "bill.paid"
    assert document["payload"]["test"] is True


def test_test_trigger_rejects_unknown_event():
    dispatcher = _dispatcher(RecordingEndpoint())

    with pytest.raises(ValidationError):
        dispatcher.test_trigger(HAPPY_PATH_WEBHOOK["id"], "order.exploded")


def test_retry_delivery_reuses_delivery_id():
    endpoint = RecordingEndpoint(statuses=(500, 500, 500, 500, 500, 200))
    dispatcher = _dispatcher(endpoint)
    event = Event(name="order.created", payload={})
    failed = _deliver(dispatcher, event)
    assert failed.status == "failed"

    try:
        dispatcher.retry_delivery(failed.id)
        assert dispatcher.wait_idle(timeout=5)
    finally:
        dispatcher.stop()

    record = dispatcher.get_delivery(failed.id)
    assert record.status == "delivered"
    assert endpoint.requests[-1].headers["X-OrderHub-Delivery"] == event.delivery_id


def test_only_failed_deliveries_can_be_retried():
    dispatcher = _dispatcher(RecordingEndpoint())
    record = _deliver(dispatcher, Event(name="order.created", payload={}))

    with pytest.raises(ValidationError):
        dispatcher.retry_delivery(record.id)


def _wait_for(predicate, timeout=5.0):
    deadline = time.monotonic() + timeout
    while time.monotonic() < deadline:
        if predicate():
            return True
        time.sleep(0.01)
    return predicate()


def _statuses(dispatcher, subscription_id):
    return [record.status for record in dispatcher.list_deliveries(subscription_id=subscription_id)]


def test_deactivating_subscription_stops_pending_retries():
    endpoint = RecordingEndpoint(statuses=(500,))
    registry = WebhookRegistry()
    sleep = RecordingSleep(on_sleep=lambda: registry.set_active(HAPPY_PATH_WEBHOOK["id"], False))
    dispatcher = _dispatcher(endpoint, sleep=sleep, registry=registry)

    record = _deliver(dispatcher, Event(name="order.created", payload={}))

    assert record.status == "cancelled"
    assert record.attempts == 1
    assert sleep.delays == [1.0]
    assert len(endpoint.requests) == 1


def test_hanging_subscriber_does_not_hold_up_others_or_the_publisher():
    answered = []

    async def endpoint(request):
        if request.url.host == "slow.example.com":
            await asyncio.sleep(30)
        answered.append(request.url.host)
        return httpx.Response(200)

    registry = WebhookRegistry()
    for name in ("slow", "fast"):
        registry.register(
            build_subscription(
                subscription_id=f"wh_{name}",
                url=f"https://{name}.example.com/hook",
                secret=WEBHOOK_SECRET,
                events=["order.created"],
            )
        )
    dispatcher = WebhookDispatcher(
        registry,
        InMemoryStore(),
        transport=httpx.MockTransport(endpoint),
        sleep=RecordingSleep(),
        metrics=InMemoryDeliveryMetrics(),
    )
    bus = EventBus()
    bus.subscribe(dispatcher.on_event)

    try:
        started = time.monotonic()
        bus.emit("order.created", {"orderId": 1})
        assert time.monotonic() - started < 1.0

        assert _wait_for(lambda: _statuses(dispatcher, "wh_fast") == ["delivered"])
        assert _statuses(dispatcher, "wh_slow") == ["pending"]
    finally:
        dispatcher.stop()

    assert _statuses(dispatcher, "wh_slow") == ["cancelled"]
    assert answered == ["fast.example.com"]


def test_events_after_stop_are_dropped_without_restarting():
    endpoint = RecordingEndpoint()
    dispatcher = _dispatcher(endpoint)
    dispatcher.start()
    dispatcher.stop()

    dispatcher.on_event(Event(name="order.created", payload={}))

    assert dispatcher.running is False
    assert endpoint.requests == []
    assert [record.status for record in dispatcher.list_deliveries()] == ["cancelled"]


def test_concurrent_retries_of_one_delivery_schedule_it_once():
    endpoint = RecordingEndpoint(statuses=(500, 500, 500, 500, 500, 200))
    dispatcher = _dispatcher(endpoint)
    failed = _deliver(dispatcher, Event(name="order.created", payload={}))
    barrier = threading.Barrier(2)
    outcomes = []

    def retry():
        barrier.wait()
        try:
            dispatcher.retry_delivery(failed.id)
            outcomes.append("scheduled")
        except ValidationError:
            outcomes.append("rejected")

    threads = [threading.Thread(target=retry) for _ in range(2)]
    try:
        for thread in threads:
            thread.start()
        for thread in threads:
            thread.join()
        assert dispatcher.wait_idle(timeout=5)
    finally:
        dispatcher.stop()

    assert sorted(outcomes) == ["rejected", "scheduled"]
    assert len(endpoint.requests) == 6
    assert dispatcher.get_delivery(failed.id).status == "delivered"
