import threading
from decimal import Decimal

import pytest

from orderhub.core.errors import (
    BillAlreadyExists,
    InvalidTransition,
    NotFound,
    OrderNotDeletable,
    PaymentRequired,
    ValidationError,
)
from orderhub.services.orders import OrderLine
from tests.fixtures_data import build_service, menu_by_name, record_events


def _names(events):
    return [event.name for event in events]


def _order_with_items(service, **kwargs):
    menu = menu_by_name(service.store)
    lines = [
        OrderLine(menu_item_id=menu["Butter Chicken"].id, quantity=2),
        OrderLine(menu_item_id=menu["Naan"].id, quantity=3),
    ]
    return service.create(table_number="5", items=lines, **kwargs)


def _to_completed(service, order_id):
    for status in ("preparing", "ready", "completed"):
        service.set_status(order_id, status)


def test_create_freezes_prices_and_totals():
    service = build_service()
    events = record_events(service.bus)

    order = _order_with_items(service)

    assert order.order_number == "ORD-1001"
    assert order.status == "pending"
    assert order.total_amount == Decimal("31.00")
    assert [(item.name, item.quantity, item.unit_price) for item in service.list_items(order.id)] == [
        ("Butter Chicken", 2, Decimal("12.50")),
        ("Naan", 3, Decimal("2.00")),
    ]
    assert _names(events) == ["order.created"]
    assert events[0].payload["items"][0]["unitPrice"] == "12.50"


def test_order_numbers_are_sequential():
    service = build_service()

    first = service.create(table_number="1")
    second = service.create(table_number="2")

    assert (first.order_number, second.order_number) == ("ORD-1001", "ORD-1002")


def test_create_rejects_bad_lines_without_side_effects():
    service = build_service()
    events = record_events(service.bus)
    menu = menu_by_name(service.store)

    with pytest.raises(ValidationError):
        service.create(items=[OrderLine(menu_item_id=menu["Naan"].id, quantity=0)])
    with pytest.raises(ValidationError):
        service.create(items=[OrderLine(menu_item_id=999, quantity=1)])
    with pytest.raises(ValidationError):
        service.create(items=[OrderLine(menu_item_id=menu["Chef Special"].id, quantity=1)])
    with pytest.raises(ValidationError):
        service.create(source="fax")

    assert service.list_orders() == []
    assert events == []


def test_each_forward_step_emits_single_order_updated():
    service = build_service()
    order = _order_with_items(service)
    events = record_events(service.bus)

    service.set_status(order.id, "preparing")

    updated = [event for event in events if event.name == "order.updated"]
    assert len(updated) == 1
    assert updated[0].payload["previousStatus"] == "pending"
    assert updated[0].payload["status"] == "preparing"
    assert _names(events) == ["order.updated", "kitchen.token.created"]


@pytest.mark.parametrize(
    "path, requested",
    [
        ((), "ready"),
        ((), "pending"),
        (("preparing",), "pending"),
        (("preparing", "ready"), "billed"),
        (("preparing", "ready"), "delivered"),
    ],
)
def test_invalid_transitions_change_nothing(path, requested):
    service = build_service()
    order = _order_with_items(service)
    for status in path:
        service.set_status(order.id, status)
    before = service.get_order(order.id).status
    events = record_events(service.bus)

    with pytest.raises(InvalidTransition) as excinfo:
        service.set_status(order.id, requested)

    assert excinfo.value.current == before
    assert service.get_order(order.id).status == before
    assert events == []


def test_unknown_status_is_validation_error():
    service = build_service()
    order = service.create()

    with pytest.raises(ValidationError):
        service.set_status(order.id, "teleported")


def test_kitchen_token_created_once_and_mirrored():
    service = build_service()
    order = _order_with_items(service)
    events = record_events(service.bus)

    _to_completed(service, order.id)

    token = service.get_token_for_order(order.id)
    assert token.token_number == "T1"
    assert token.status == "completed"
    assert token.completion_time is not None
    assert _names(events) == [
        "order.updated",
        "kitchen.token.created",
        "order.updated",
        "kitchen.token.updated",
        "order.updated",
        "kitchen.token.updated",
        "order.completed",
    ]
    assert events[3].payload["previousStatus"] == "preparing"


def test_token_on_create_is_mirrored_when_preparing_starts():
    service = build_service(token_on_create=True)
    events = record_events(service.bus)

    order = service.create(table_number="2")
    service.set_status(order.id, "preparing")

    assert _names(events) == ["order.created", "kitchen.token.created", "order.updated", "kitchen.token.updated"]
    assert service.get_token_for_order(order.id).status == "preparing"


def test_advance_walks_one_step():
    service = build_service()
    order = service.create()

    assert service.advance(order.id).status == "preparing"
    assert service.advance(order.id).status == "ready"


def test_advance_to_emits_every_intermediate_step():
    service = build_service()
    order = service.create()
    events = record_events(service.bus)

    order = service.advance_to(order.id, "completed")

    assert order.status == "completed"
    previous = [event.payload["previousStatus"] for event in events if event.name == "order.updated"]
    assert previous == ["pending", "preparing", "ready"]


def test_advance_to_billed_without_payment_is_rejected_up_front():
    service = build_service()
    order = service.create()
    events = record_events(service.bus)

    with pytest.raises(PaymentRequired):
        service.advance_to(order.id, "billed")

    assert service.get_order(order.id).status == "pending"
    assert events == []


def test_delivery_platform_orders_can_be_delivered():
    service = build_service()
    order = service.create(source="delivery-platform")

    order = service.advance_to(order.id, "delivered")

    assert order.status == "delivered"
    with pytest.raises(InvalidTransition):
        service.advance(order.id)


def test_delivered_is_only_for_delivery_platform():
    service = build_service()
    order = service.create(source="ui")

    with pytest.raises(InvalidTransition):
        service.advance_to(order.id, "delivered")


def test_add_items_recomputes_total():
    service = build_service()
    menu = menu_by_name(service.store)
    order = _order_with_items(service)
    events = record_events(service.bus)

    order = service.add_items(order.id, [OrderLine(menu_item_id=menu["Mango Lassi"].id, quantity=2)])

    assert order.total_amount == Decimal("37.50")
    assert _names(events) == ["order.updated"]
    assert events[0].payload["changes"] == ["items"]
    assert events[0].payload["previousStatus"] == "pending"


def test_add_items_after_ready_is_rejected():
    service = build_service()
    menu = menu_by_name(service.store)
    order = _order_with_items(service)
    service.advance_to(order.id, "ready")

    with pytest.raises(ValidationError):
        service.add_items(order.id, [OrderLine(menu_item_id=menu["Naan"].id, quantity=1)])


def test_delete_pending_order_removes_items_and_token():
    service = build_service()
    order = _order_with_items(service)
    service.set_status(order.id, "preparing")
    events = record_events(service.bus)

    service.delete(order.id)

    assert service.store.orders.get(order.id) is None
    assert service.list_items(order.id) == []
    assert service.get_token_for_order(order.id) is None
    assert _names(events) == ["order.deleted"]
    assert events[0].payload["orderNumber"] == order.order_number


def test_deleted_order_releases_its_lock():
    service = build_service()
    order = _order_with_items(service)
    service.set_status(order.id, "preparing")
    assert order.id in service._locks

    service.delete(order.id)

    assert order.id not in service._locks


@pytest.mark.parametrize("status", ["ready", "completed"])
def test_delete_after_preparing_is_rejected(status):
    service = build_service()
    order = _order_with_items(service)
    service.advance_to(order.id, status)

    with pytest.raises(OrderNotDeletable):
        service.delete(order.id)

    assert service.get_order(order.id).status == status


def test_unknown_order_is_not_found():
    service = build_service()

    with pytest.raises(NotFound):
        service.set_status(404, "preparing")
    with pytest.raises(NotFound):
        service.delete(404)


def test_generate_bill_amounts():
    service = build_service()
    order = _order_with_items(service)
    _to_completed(service, order.id)
    events = record_events(service.bus)

    bill = service.generate_bill(order.id, discount="5")

    assert bill.bill_number == "BILL-1"
    assert bill.subtotal == Decimal("31.00")
    assert bill.tax == Decimal("5.58")
    assert bill.discount == Decimal("5.00")
    assert bill.total == Decimal("31.58")
    assert bill.payment_status == "pending"
    assert _names(events) == ["bill.created"]


def test_bill_total_never_negative():
    service = build_service()
    order = _order_with_items(service)
    _to_completed(service, order.id)

    bill = service.generate_bill(order.id, discount="500")

    assert bill.total == Decimal("0.00")


def test_bill_requires_completed_order_and_is_unique():
    service = build_service()
    order = _order_with_items(service)

    with pytest.raises(InvalidTransition):
        service.generate_bill(order.id)

    _to_completed(service, order.id)
    service.generate_bill(order.id)
    with pytest.raises(BillAlreadyExists):
        service.generate_bill(order.id)
    with pytest.raises(ValidationError):
        service.generate_bill(order.id, discount="-1")


def test_billed_requires_paid_bill_and_payment_is_idempotent():
    service = build_service()
    order = _order_with_items(service)
    _to_completed(service, order.id)
    bill = service.generate_bill(order.id)

    with pytest.raises(PaymentRequired):
        service.set_status(order.id, "billed")

    events = record_events(service.bus)
    service.mark_bill_paid(bill.id, payment_method="card")
    again = service.mark_bill_paid(bill.id)

    assert again.payment_status == "paid"
    assert again.payment_method == "card"
    assert _names(events) == ["bill.paid"]
    assert service.set_status(order.id, "billed").status == "billed"


def test_void_bill_allows_a_new_one():
    service = build_service()
    order = _order_with_items(service)
    _to_completed(service, order.id)
    bill = service.generate_bill(order.id)

    service.void_bill(bill.id)
    replacement = service.generate_bill(order.id)

    assert replacement.bill_number == "BILL-2"
    with pytest.raises(ValidationError):
        service.mark_bill_paid(bill.id)


def test_legacy_total_used_when_order_has_no_items():
    service = build_service()
    order = service.create(table_number="8", total_amount="40")
    _to_completed(service, order.id)

    bill = service.generate_bill(order.id)

    assert bill.subtotal == Decimal("40.00")
    assert bill.total == Decimal("47.20")


def test_concurrent_advances_move_one_step_each():
    service = build_service()
    order = service.create()
    events = record_events(service.bus)
    barrier = threading.Barrier(100)
    outcomes = []
    outcomes_lock = threading.Lock()

    def worker():
        barrier.wait()
        try:
            service.set_status(order.id, "preparing")
            result = "ok"
        except InvalidTransition:
            result = "rejected"
        with outcomes_lock:
            outcomes.append(result)

    threads = [threading.Thread(target=worker) for _ in range(100)]
    for thread in threads:
        thread.start()
    for thread in threads:
        thread.join()

    assert outcomes.count("ok") == 1
    assert outcomes.count("rejected") == 99
    assert _names(events).count("order.updated") == 1
    assert len(service.store.kitchen_tokens.list()) == 1


def test_subscribers_see_per_order_events_in_order():
    service = build_service()
    order = service.create()
    seen = []
    service.bus.subscribe(lambda event: seen.append(event.payload.get("status")), "order.updated")

    service.advance_to(order.id, "completed")

    assert seen == ["preparing", "ready", "completed"]
