from __future__ import annotations

import logging
import re
from contextlib import contextmanager
from dataclasses import dataclass
from datetime import datetime, timezone
from decimal import ROUND_HALF_UP, Decimal, InvalidOperation
from threading import Lock, RLock
from typing import Any, Iterable, Iterator, Optional

from orderhub.core.config import (
    KITCHEN_TOKEN_ON_CREATE,
    ORDER_NUMBER_PREFIX,
    ORDER_NUMBER_START,
    TAX_RATE,
)
from orderhub.core.errors import (
    BillAlreadyExists,
    InvalidTransition,
    NotFound,
    OrderNotDeletable,
    PaymentRequired,
    ValidationError,
)
from orderhub.fsm import states
from orderhub.models import Bill, KitchenToken, Order, OrderItem
from orderhub.services import order_events
from orderhub.services.activity_log import record_activity
from orderhub.services.event_bus import EventBus
from orderhub.storage.base import Store

logger = logging.getLogger(__name__)

CENT = Decimal("0.01")
TOKEN_PREFIX = "T"
BILL_PREFIX = "BILL-"


@dataclass(frozen=True)
class OrderLine:
    menu_item_id: int
    quantity: int
    notes: str | None = None


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


def _quantize(value: Decimal) -> Decimal:
    return value.quantize(CENT, rounding=ROUND_HALF_UP)


def _to_decimal(value: Any, field_name: str) -> Decimal:
    try:
        amount = Decimal(str(value))
    except (InvalidOperation, ValueError) as exc:
        raise ValidationError(f"{field_name} must be a number") from exc
    if not amount.is_finite():
        raise ValidationError(f"{field_name} must be a number")
    return amount


def _suffix_number(value: str | None, prefix: str) -> int | None:
    if not value or not value.startswith(prefix):
        return None
    digits = value[len(prefix) :]
    return int(digits) if re.fullmatch(r"\d+", digits) else None


class OrderService:
    """Order aggregate: owns orders, their items, kitchen tokens and bills.

    Every mutation of an order runs inside that order's mutual-exclusion scope,
    validates before writing anything, and publishes its events before the
    scope is released so subscribers observe per-order changes in order.
    """

    def __init__(
        self,
        store: Store,
        bus: EventBus,
        *,
        tax_rate: Decimal = TAX_RATE,
        token_on_create: bool = KITCHEN_TOKEN_ON_CREATE,
        order_number_prefix: str = ORDER_NUMBER_PREFIX,
        order_number_start: int = ORDER_NUMBER_START,
    ) -> None:
        self.store = store
        self.bus = bus
        self.tax_rate = Decimal(tax_rate)
        self.token_on_create = token_on_create
        self.order_number_prefix = order_number_prefix
        self.order_number_start = order_number_start
        self._locks: dict[int, RLock] = {}
        self._locks_guard = Lock()
        self._numbers_lock = Lock()
        self._issued: dict[str, int] = {}

    # -- concurrency -------------------------------------------------------

    def _lock_for(self, order_id: int) -> RLock:
        with self._locks_guard:
            lock = self._locks.get(order_id)
            if lock is None:
                lock = RLock()
                self._locks[order_id] = lock
            return lock

    @contextmanager
    def order_scope(self, order_id: int) -> Iterator[None]:
        with self._lock_for(order_id):
            yield

    def _next_number(self, prefix: str, existing: Iterable[str | None], start: int) -> str:
        with self._numbers_lock:
            seen = [number for number in (_suffix_number(value, prefix) for value in existing) if number is not None]
            candidate = max(seen) + 1 if seen else start
            candidate = max(candidate, self._issued.get(prefix, start - 1) + 1)
            self._issued[prefix] = candidate
            return f"{prefix}{candidate}"

    # -- reads -------------------------------------------------------------

    def get_order(self, order_id: int) -> Order:
        order = self.store.orders.get(order_id)
        if order is None:
            raise NotFound(f"order {order_id} not found")
        return order

    def list_orders(self, *, status: str | None = None, table_number: str | None = None) -> list[Order]:
        filters: dict[str, Any] = {}
        if status:
            filters["status"] = states.normalize_status(status)
        if table_number:
            filters["table_number"] = table_number
        return self.store.orders.list(**filters)

    def list_items(self, order_id: int) -> list[OrderItem]:
        return self.store.order_items.list(order_id=order_id)

    def get_token_for_order(self, order_id: int) -> KitchenToken | None:
        tokens = self.store.kitchen_tokens.list(order_id=order_id)
        return tokens[0] if tokens else None

    def list_tokens(self, *, status: str | None = None) -> list[KitchenToken]:
        filters = {"status": states.normalize_status(status)} if status else {}
        return self.store.kitchen_tokens.list(**filters)

    def get_bill(self, bill_id: int) -> Bill:
        bill = self.store.bills.get(bill_id)
        if bill is None:
            raise NotFound(f"bill {bill_id} not found")
        return bill

    def active_bill(self, order_id: int) -> Bill | None:
        for bill in self.store.bills.list(order_id=order_id):
            if not bill.is_void:
                return bill
        return None

    # -- helpers -----------------------------------------------------------

    def _emit(self, name: str, payload: dict[str, Any]) -> None:
        self.bus.emit(name, payload)

    def _order_payload(self, order: Order, previous_status: str | None = None) -> dict[str, Any]:
        return order_events.build_order_payload(order, self.list_items(order.id), previous_status=previous_status)

    def _validated_lines(self, lines: Iterable[OrderLine]) -> list[tuple[OrderLine, Any]]:
        resolved = []
        for line in lines:
            quantity = line.quantity
            if isinstance(quantity, bool) or not isinstance(quantity, int) or quantity <= 0:
                raise ValidationError(f"quantity must be a positive integer, got {quantity!r}")
            menu_item = self.store.menu_items.get(line.menu_item_id)
            if menu_item is None:
                raise ValidationError(f"menu item {line.menu_item_id} does not exist")
            if not menu_item.is_available:
                raise ValidationError(f"menu item {menu_item.name} is not available")
            resolved.append((line, menu_item))
        return resolved

    def _insert_items(self, order_id: int, resolved: list[tuple[OrderLine, Any]]) -> None:
        now = _utcnow()
        for line, menu_item in resolved:
            self.store.order_items.create(
                OrderItem(
                    order_id=order_id,
                    menu_item_id=menu_item.id,
                    name=menu_item.name,
                    quantity=line.quantity,
                    unit_price=_quantize(Decimal(str(menu_item.price))),
                    notes=line.notes,
                    created_at=now,
                )
            )

    def _items_total(self, order_id: int) -> Decimal:
        total = Decimal("0")
        for item in self.list_items(order_id):
            total += Decimal(str(item.unit_price)) * item.quantity
        return _quantize(total)

    def _ensure_token(self, order: Order, status: str) -> tuple[KitchenToken, bool]:
        existing = self.get_token_for_order(order.id)
        if existing is not None:
            return existing, False
        token_number = self._next_number(
            TOKEN_PREFIX,
            (token.token_number for token in self.store.kitchen_tokens.list()),
            1,
        )
        token = self.store.kitchen_tokens.create(
            KitchenToken(
                token_number=token_number,
                order_id=order.id,
                status=status,
                is_urgent=False,
                start_time=_utcnow(),
                completion_time=None,
            )
        )
        logger.info("kitchen token created", extra={"order_id": order.id})
        return token, True

    def _mirror_token(self, order: Order, status: str) -> None:
        token = self.get_token_for_order(order.id)
        if token is None or token.status == status:
            return
        previous = token.status
        changes: dict[str, Any] = {"status": status}
        if status == states.COMPLETED:
            changes["completion_time"] = _utcnow()
        token = self.store.kitchen_tokens.update(token.id, **changes)
        self._emit(order_events.KITCHEN_TOKEN_UPDATED, order_events.build_token_payload(token, previous_status=previous))

    def _apply_transition(self, order: Order, new_status: str) -> Order:
        """Single validated step. Caller holds the order scope and checked adjacency."""
        if new_status == states.BILLED:
            bill = self.active_bill(order.id)
            if bill is None or bill.payment_status != "paid":
                raise PaymentRequired(f"order {order.order_number} has no paid bill")

        previous = order.status
        order = self.store.orders.update(order.id, status=new_status, updated_at=_utcnow())
        logger.info(
            "order status changed %s -> %s",
            previous,
            new_status,
            extra={"order_id": order.id},
        )
        self._emit(order_events.ORDER_UPDATED, self._order_payload(order, previous_status=previous))

        if new_status == states.PREPARING:
            token, created = self._ensure_token(order, states.PREPARING)
            if created:
                self._emit(order_events.KITCHEN_TOKEN_CREATED, order_events.build_token_payload(token))
            else:
                self._mirror_token(order, states.PREPARING)
        elif new_status in states.TOKEN_MIRRORED:
            self._mirror_token(order, new_status)

        if new_status == states.COMPLETED:
            self._emit(order_events.ORDER_COMPLETED, self._order_payload(order))
        return order

    # -- commands ----------------------------------------------------------

    def create(
        self,
        *,
        table_number: Optional[str] = None,
        items: Iterable[OrderLine] = (),
        source: str = "ui",
        notes: Optional[str] = None,
        total_amount: Any = None,
    ) -> Order:
        source = (source or "ui").strip().lower()
        if source not in states.ORIGIN_CHANNELS:
            raise ValidationError(f"unknown origin channel {source}")
        resolved = self._validated_lines(items)
        legacy_total = Decimal("0")
        if not resolved and total_amount is not None:
            legacy_total = _to_decimal(total_amount, "total_amount")
            if legacy_total < 0:
                raise ValidationError("total_amount must be >= 0")

        order_number = self._next_number(
            self.order_number_prefix,
            (order.order_number for order in self.store.orders.list()),
            self.order_number_start,
        )
        now = _utcnow()
        order = self.store.orders.create(
            Order(
                order_number=order_number,
                table_number=str(table_number).strip() if table_number else None,
                status=states.PENDING,
                total_amount=_quantize(legacy_total),
                origin_channel=source,
                notes=notes,
                created_at=now,
                updated_at=now,
            )
        )
        with self.order_scope(order.id):
            if resolved:
                self._insert_items(order.id, resolved)
                order = self.store.orders.update(order.id, total_amount=self._items_total(order.id))
            logger.info("order created", extra={"order_id": order.id})
            self._emit(order_events.ORDER_CREATED, self._order_payload(order))
            if self.token_on_create:
                token, _ = self._ensure_token(order, states.PENDING)
                self._emit(order_events.KITCHEN_TOKEN_CREATED, order_events.build_token_payload(token))
        return order

    def set_status(self, order_id: int, new_status: str) -> Order:
        """Strict single-step advance along the forward chain."""
        requested = states.normalize_status(new_status)
        if requested not in states.ALL_STATUSES:
            raise ValidationError(f"unknown status {new_status!r}")
        with self.order_scope(order_id):
            order = self.get_order(order_id)
            if not states.is_forward_step(order.status, requested, origin_channel=order.origin_channel):
                raise InvalidTransition(
                    f"cannot move order {order.order_number} from {order.status} to {requested}",
                    current=order.status,
                    requested=requested,
                )
            return self._apply_transition(order, requested)

    def advance(self, order_id: int) -> Order:
        with self.order_scope(order_id):
            order = self.get_order(order_id)
            target = states.next_status(order.status)
            if target is None:
                raise InvalidTransition(
                    f"order {order.order_number} cannot advance past {order.status}",
                    current=order.status,
                )
            return self._apply_transition(order, target)

    def advance_to(self, order_id: int, target_status: str) -> Order:
        """Walks the forward chain one step at a time until ``target_status``.

        Each step has its own side effects and ``order.updated`` event.
        """
        target = states.normalize_status(target_status)
        if target not in states.ALL_STATUSES:
            raise ValidationError(f"unknown status {target_status!r}")
        with self.order_scope(order_id):
            order = self.get_order(order_id)
            if target == states.DELIVERED:
                if order.origin_channel != states.DELIVERY_CHANNEL or order.status not in states.FORWARD_CHAIN[:4]:
                    raise InvalidTransition(
                        f"order {order.order_number} cannot be delivered",
                        current=order.status,
                        requested=target,
                    )
                steps = states.path_to(order.status, states.READY) + [states.DELIVERED]
            else:
                steps = states.path_to(order.status, target)
            if not steps:
                raise InvalidTransition(
                    f"order {order.order_number} is not behind {target}",
                    current=order.status,
                    requested=target,
                )
            if states.BILLED in steps:
                bill = self.active_bill(order.id)
                if bill is None or bill.payment_status != "paid":
                    raise PaymentRequired(f"order {order.order_number} has no paid bill")
            for step in steps:
                order = self._apply_transition(order, step)
            return order

    def add_items(self, order_id: int, items: Iterable[OrderLine]) -> Order:
        lines = list(items)
        if not lines:
            raise ValidationError("at least one item is required")
        with self.order_scope(order_id):
            order = self.get_order(order_id)
            if order.status not in states.ITEMS_MUTABLE:
                raise ValidationError(f"items cannot be added to a {order.status} order")
            resolved = self._validated_lines(lines)
            self._insert_items(order.id, resolved)
            order = self.store.orders.update(order.id, total_amount=self._items_total(order.id), updated_at=_utcnow())
            payload = self._order_payload(order, previous_status=order.status)
            payload["changes"] = ["items"]
            self._emit(order_events.ORDER_UPDATED, payload)
            return order

    def delete(self, order_id: int) -> None:
        with self.order_scope(order_id):
            order = self.get_order(order_id)
            if order.status not in states.DELETABLE:
                raise OrderNotDeletable(f"order {order.order_number} is {order.status} and cannot be deleted")
            payload = self._order_payload(order)
            for item in self.list_items(order.id):
                self.store.order_items.delete(item.id)
            token = self.get_token_for_order(order.id)
            if token is not None:
                self.store.kitchen_tokens.delete(token.id)
            self.store.orders.delete(order.id)
            logger.info("order deleted", extra={"order_id": order.id})
            self._emit(order_events.ORDER_DELETED, payload)
        with self._locks_guard:
            self._locks.pop(order_id, None)

    def generate_bill(self, order_id: int, discount: Any = 0, payment_method: Optional[str] = None) -> Bill:
        discount_amount = _to_decimal(discount or 0, "discount")
        if discount_amount < 0:
            raise ValidationError("discount must be >= 0")
        with self.order_scope(order_id):
            order = self.get_order(order_id)
            if self.active_bill(order.id) is not None:
                raise BillAlreadyExists(f"order {order.order_number} already has a bill")
            if order.status != states.COMPLETED:
                raise InvalidTransition(
                    f"order {order.order_number} must be completed before billing",
                    current=order.status,
                    requested=states.BILLED,
                )
            items = self.list_items(order.id)
            if items:
                subtotal = self._items_total(order.id)
            else:
                subtotal = _quantize(Decimal(str(order.total_amount or 0)))
            tax = _quantize(subtotal * self.tax_rate)
            discount_amount = _quantize(discount_amount)
            total = max(Decimal("0.00"), _quantize(subtotal + tax - discount_amount))
            bill_number = self._next_number(BILL_PREFIX, (bill.bill_number for bill in self.store.bills.list()), 1)
            bill = self.store.bills.create(
                Bill(
                    bill_number=bill_number,
                    order_id=order.id,
                    subtotal=subtotal,
                    tax=tax,
                    discount=discount_amount,
                    total=total,
                    payment_status="pending",
                    payment_method=payment_method,
                    is_void=False,
                    created_at=_utcnow(),
                    paid_at=None,
                )
            )
            logger.info("bill generated %s", bill_number, extra={"order_id": order.id})
            self._emit(order_events.BILL_CREATED, order_events.build_bill_payload(bill))
            return bill

    def mark_bill_paid(self, bill_id: int, payment_method: Optional[str] = None) -> Bill:
        bill = self.get_bill(bill_id)
        with self.order_scope(bill.order_id):
            bill = self.get_bill(bill_id)
            if bill.is_void:
                raise ValidationError(f"bill {bill.bill_number} is void")
            if bill.payment_status == "paid":
                return bill
            changes: dict[str, Any] = {"payment_status": "paid", "paid_at": _utcnow()}
            if payment_method:
                changes["payment_method"] = payment_method
            bill = self.store.bills.update(bill.id, **changes)
            logger.info("bill paid %s", bill.bill_number, extra={"order_id": bill.order_id})
            self._emit(order_events.BILL_PAID, order_events.build_bill_payload(bill))
            return bill

    def void_bill(self, bill_id: int) -> Bill:
        bill = self.get_bill(bill_id)
        with self.order_scope(bill.order_id):
            bill = self.get_bill(bill_id)
            if bill.payment_status == "paid":
                raise ValidationError(f"bill {bill.bill_number} is paid and cannot be voided")
            if bill.is_void:
                return bill
            bill = self.store.bills.update(bill.id, is_void=True)
            record_activity(
                self.store,
                type="bill.voided",
                description=f"Bill {bill.bill_number} voided",
                entity_type="bill",
                entity_id=bill.id,
            )
            return bill
