from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Optional

from orderhub.channels.base import SendResult
from orderhub.channels.service import ChannelService
from orderhub.core.errors import OrderFlowError
from orderhub.core.request_context import set_request_context
from orderhub.fsm import states
from orderhub.models import Order
from orderhub.services.command_interpreter import CommandContext, interpret
from orderhub.services.intents import (
    AddItems,
    ChangeStatus,
    CreateOrder,
    DeleteOrder,
    Intent,
    Unrecognized,
)
from orderhub.services.menu import list_menu
from orderhub.services.orders import OrderLine, OrderService

logger = logging.getLogger(__name__)


@dataclass
class CommandResult:
    intent: Intent
    success: bool
    reply: str
    order: Optional[Order] = None
    error: Optional[str] = None
    acknowledgement: Optional[SendResult] = None


def _lines(intent: CreateOrder | AddItems) -> list[OrderLine]:
    return [OrderLine(menu_item_id=entry.item.id, quantity=entry.quantity) for entry in intent.items]


def _unresolved_note(unresolved) -> str:
    if not unresolved:
        return ""
    return f" Could not find: {', '.join(unresolved)}."


class CommandService:
    """Voice/chat ingestion: interpret, apply to the aggregate, reply to the channel."""

    def __init__(self, orders: OrderService, channels: ChannelService | None = None) -> None:
        self.orders = orders
        self.channels = channels

    def _context(self) -> CommandContext:
        return CommandContext(
            orders=self.orders.list_orders(),
            catalog=list_menu(self.orders.store, available_only=True),
        )

    def _execute(self, intent: Intent, channel: str) -> tuple[Optional[Order], str]:
        if isinstance(intent, CreateOrder):
            source = channel if channel in states.ORIGIN_CHANNELS else "chat"
            order = self.orders.create(table_number=intent.table, items=_lines(intent), source=source)
            where = f" for table {intent.table}" if intent.table else ""
            return order, f"Order {order.order_number} created{where}.{_unresolved_note(intent.unresolved)}"
        if isinstance(intent, ChangeStatus):
            order = self.orders.set_status(intent.order_id, intent.target_status)
            return order, f"Order {order.order_number} is now {order.status}."
        if isinstance(intent, DeleteOrder):
            order = self.orders.get_order(intent.order_id)
            self.orders.delete(intent.order_id)
            return None, f"Order {order.order_number} deleted."
        if isinstance(intent, AddItems):
            order = self.orders.add_items(intent.order_id, _lines(intent))
            added = ", ".join(f"{entry.quantity} x {entry.item.name}" for entry in intent.items)
            return order, f"Added {added} to order {order.order_number}.{_unresolved_note(intent.unresolved)}"
        raise TypeError(f"unsupported intent {intent!r}")

    def handle(self, text: str, *, channel: str = "voice", address: Optional[str] = None) -> CommandResult:
        set_request_context(channel=channel)
        intent = interpret(text, self._context())

        if isinstance(intent, Unrecognized):
            logger.info("command not understood: %s", intent.reason)
            result = CommandResult(
                intent=intent,
                success=False,
                reply=f"Sorry, I could not understand that ({intent.reason}).",
                error="unrecognized",
            )
        else:
            try:
                order, reply = self._execute(intent, channel)
                result = CommandResult(intent=intent, success=True, reply=reply, order=order)
            except OrderFlowError as exc:
                logger.info("command rejected: %s", exc.message, extra={"order_id": getattr(intent, "order_id", None)})
                result = CommandResult(intent=intent, success=False, reply=exc.message, error=exc.code)

        if self.channels is not None and address:
            result.acknowledgement = self.channels.send(address, result.reply)
        return result
