from __future__ import annotations

from dataclasses import dataclass, field
from typing import Union

from orderhub.services.menu_matcher import ItemMatch


@dataclass(frozen=True)
class CreateOrder:
    table: str | None
    items: tuple[ItemMatch, ...] = ()
    unresolved: tuple[str, ...] = ()
    kind: str = field(default="create_order", init=False)


@dataclass(frozen=True)
class ChangeStatus:
    order_ref: str
    order_id: int
    target_status: str
    kind: str = field(default="change_status", init=False)


@dataclass(frozen=True)
class DeleteOrder:
    order_ref: str
    order_id: int
    kind: str = field(default="delete_order", init=False)


@dataclass(frozen=True)
class AddItems:
    order_ref: str
    order_id: int
    items: tuple[ItemMatch, ...]
    unresolved: tuple[str, ...] = ()
    kind: str = field(default="add_items", init=False)


@dataclass(frozen=True)
class Unrecognized:
    raw_text: str
    reason: str = "no matching rule"
    kind: str = field(default="unrecognized", init=False)


Intent = Union[CreateOrder, ChangeStatus, DeleteOrder, AddItems, Unrecognized]


def intent_to_dict(intent: Intent) -> dict:
    data: dict = {"kind": intent.kind}
    if isinstance(intent, CreateOrder):
        data["table"] = intent.table
    if isinstance(intent, (ChangeStatus, DeleteOrder, AddItems)):
        data["order_ref"] = intent.order_ref
        data["order_id"] = intent.order_id
    if isinstance(intent, ChangeStatus):
        data["target_status"] = intent.target_status
    if isinstance(intent, (CreateOrder, AddItems)):
        data["items"] = [
            {
                "menu_item_id": entry.item.id,
                "name": entry.item.name,
                "quantity": entry.quantity,
                "confidence": entry.confidence,
            }
            for entry in intent.items
        ]
        data["unresolved"] = list(intent.unresolved)
    if isinstance(intent, Unrecognized):
        data["raw_text"] = intent.raw_text
        data["reason"] = intent.reason
    return data
