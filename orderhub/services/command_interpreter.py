from __future__ import annotations

import logging
import re
from dataclasses import dataclass, field
from typing import Any, Callable, Sequence

from orderhub.fsm import states
from orderhub.services import menu_matcher
from orderhub.services.intents import (
    AddItems,
    ChangeStatus,
    CreateOrder,
    DeleteOrder,
    Intent,
    Unrecognized,
)

logger = logging.getLogger(__name__)

_TABLE_PATTERN = re.compile(r"\btable\s*(?:number\s+|no\.?\s*|#\s*)?(\w+)", re.IGNORECASE)
_ORDER_REF_PATTERN = re.compile(
    r"\b(?:order|number)\s*(?:number\s+|no\.?\s*|#\s*)?([a-z]*-?\d+)\b",
    re.IGNORECASE,
)
_ITEMS_AFTER_WITH = re.compile(r"\bwith\b(?P<items>.+)$", re.IGNORECASE)

_CREATE_PATTERN = re.compile(
    r"\b(?:create|place)\s+(?:a\s+|an\s+)?(?:new\s+)?order\b|\bnew\s+order\b",
    re.IGNORECASE,
)
_DELETE_PATTERN = re.compile(r"\b(?:delete|remove|cancel)\s+(?:the\s+|this\s+)?(?:order|table)\b", re.IGNORECASE)
_ADD_PATTERN = re.compile(r"\badd\b(?P<items>.+?)\bto\s+(?:the\s+)?(?:order|table)\b", re.IGNORECASE)

_STATUS_WORDS = states.ALL_STATUSES + tuple(states.STATUS_ALIASES)
_STATUS_PATTERN = re.compile(r"\b(" + "|".join(sorted(_STATUS_WORDS, key=len, reverse=True)) + r")\b", re.IGNORECASE)

_NUMBER_WORDS = {
    "one": "1",
    "two": "2",
    "three": "3",
    "four": "4",
    "five": "5",
    "six": "6",
    "seven": "7",
    "eight": "8",
    "nine": "9",
    "ten": "10",
    "eleven": "11",
    "twelve": "12",
}


@dataclass
class CommandContext:
    """Snapshots the interpreter reads from. Nothing here is mutated."""

    orders: Sequence[Any] = field(default_factory=list)
    catalog: Sequence[Any] = field(default_factory=list)


@dataclass
class _Targets:
    table: str | None
    order_ref: str | None
    order: Any | None


def extract_table(text: str) -> tuple[str | None, tuple[int, int] | None]:
    found = _TABLE_PATTERN.search(text)
    if not found:
        return None, None
    token = found.group(1).lower()
    token = _NUMBER_WORDS.get(token, token)
    if not any(char.isdigit() for char in token):
        return None, None
    return token.upper() if token[0].isalpha() else token, found.span()


def extract_order_ref(text: str) -> str | None:
    found = _ORDER_REF_PATTERN.search(text)
    return found.group(1) if found else None


def find_status_keyword(text: str) -> str | None:
    """Earliest status keyword in the text, mapped to its status."""
    found = _STATUS_PATTERN.search(text)
    if not found:
        return None
    return states.normalize_status(found.group(1))


def _numeric_suffix(value: str) -> str:
    digits = re.search(r"(\d+)$", value or "")
    return digits.group(1) if digits else ""


def resolve_order_ref(ref: str, orders: Sequence[Any]) -> Any | None:
    wanted = ref.strip().lower()
    for order in orders:
        if str(order.order_number or "").lower() == wanted:
            return order
    suffix = _numeric_suffix(wanted)
    if suffix and suffix == wanted:
        for order in orders:
            if _numeric_suffix(str(order.order_number or "")) == suffix:
                return order
        for order in orders:
            if str(order.id) == suffix:
                return order
    return None


def _table_matches(order: Any, table: str) -> bool:
    value = str(order.table_number or "").strip().lower()
    wanted = table.lower()
    return value.lstrip("t") == wanted.lstrip("t")


def latest_order_for_table(table: str, orders: Sequence[Any]) -> Any | None:
    candidates = [order for order in orders if order.table_number and _table_matches(order, table)]
    if not candidates:
        return None
    return max(candidates, key=lambda order: order.id)


def _targets(text: str, context: CommandContext) -> _Targets:
    table, span = extract_table(text)
    remainder = text
    if span:
        remainder = text[: span[0]] + " " * (span[1] - span[0]) + text[span[1] :]
    order_ref = extract_order_ref(remainder)
    if order_ref:
        return _Targets(table=table, order_ref=order_ref, order=resolve_order_ref(order_ref, context.orders))
    if table:
        return _Targets(table=table, order_ref=None, order=latest_order_for_table(table, context.orders))
    return _Targets(table=None, order_ref=None, order=None)


def _unresolved_target(text: str, targets: _Targets) -> Unrecognized:
    if targets.order_ref:
        reason = f"unknown order reference {targets.order_ref}"
    elif targets.table:
        reason = f"no order found for table {targets.table}"
    else:
        reason = "no order reference"
    return Unrecognized(raw_text=text, reason=reason)


def _order_label(targets: _Targets) -> str:
    return targets.order_ref or str(targets.order.order_number)


def _create_rule(text: str, found: re.Match, context: CommandContext) -> Intent:
    table, _ = extract_table(text)
    items_text = _ITEMS_AFTER_WITH.search(text[found.end() :])
    if not items_text:
        return CreateOrder(table=table)
    result = menu_matcher.match(items_text.group("items"), context.catalog)
    return CreateOrder(table=table, items=tuple(result.matches), unresolved=tuple(result.unresolved))


def _delete_rule(text: str, found: re.Match, context: CommandContext) -> Intent:
    targets = _targets(text, context)
    if targets.order is None:
        return _unresolved_target(text, targets)
    return DeleteOrder(order_ref=_order_label(targets), order_id=targets.order.id)


def _add_rule(text: str, found: re.Match, context: CommandContext) -> Intent:
    targets = _targets(text, context)
    if targets.order is None:
        return _unresolved_target(text, targets)
    result = menu_matcher.match(found.group("items"), context.catalog)
    if not result.matches:
        return Unrecognized(raw_text=text, reason="no menu items recognised")
    return AddItems(
        order_ref=_order_label(targets),
        order_id=targets.order.id,
        items=tuple(result.matches),
        unresolved=tuple(result.unresolved),
    )


def _status_rule(text: str, found: re.Match, context: CommandContext) -> Intent:
    target_status = states.normalize_status(found.group(1))
    targets = _targets(text, context)
    if targets.order is None:
        return _unresolved_target(text, targets)
    return ChangeStatus(order_ref=_order_label(targets), order_id=targets.order.id, target_status=target_status)


Rule = Callable[[str, re.Match, CommandContext], Intent]

# evaluated top to bottom, first pattern that matches owns the text
RULES: tuple[tuple[str, re.Pattern, Rule], ...] = (
    ("create", _CREATE_PATTERN, _create_rule),
    ("delete", _DELETE_PATTERN, _delete_rule),
    ("add_items", _ADD_PATTERN, _add_rule),
    ("status", _STATUS_PATTERN, _status_rule),
)


def interpret(text: str, context: CommandContext | None = None) -> Intent:
    """Classifies free text into an intent without touching any order."""
    context = context or CommandContext()
    cleaned = (text or "").strip()
    if not cleaned:
        return Unrecognized(raw_text=text or "", reason="empty command")
    for name, pattern, rule in RULES:
        found = pattern.search(cleaned)
        if not found:
            continue
        intent = rule(cleaned, found, context)
        logger.debug("command rule matched", extra={"event": name})
        return intent
    return Unrecognized(raw_text=cleaned)
