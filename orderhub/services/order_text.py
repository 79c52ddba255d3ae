from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import Optional

from pydantic import ValidationError as SchemaValidationError

from orderhub.ai.base import OrderTextParser
from orderhub.ai.schema import ParsedOrder
from orderhub.models import Order
from orderhub.services import menu_matcher
from orderhub.services.menu import list_menu
from orderhub.services.menu_matcher import ItemMatch
from orderhub.services.orders import OrderLine, OrderService

logger = logging.getLogger(__name__)


@dataclass
class TextOrderResult:
    order: Order
    matches: list[ItemMatch] = field(default_factory=list)
    unresolved: list[str] = field(default_factory=list)
    parsed_by: str = "matcher"


def _menu_context(catalog) -> list[dict]:
    return [{"id": item.id, "name": item.name, "price": str(item.price)} for item in catalog]


def _from_llm(parser: OrderTextParser, text: str, catalog) -> tuple[list[ItemMatch], list[str], list[Optional[str]], Optional[str]]:
    raw = parser.parse(text, _menu_context(catalog))
    parsed = ParsedOrder.model_validate(raw)
    matches: list[ItemMatch] = []
    unresolved: list[str] = []
    notes: list[Optional[str]] = []
    for parsed_item in parsed.items:
        result = menu_matcher.match(parsed_item.name, catalog)
        if not result.matches:
            unresolved.append(parsed_item.name)
            continue
        best = result.matches[0]
        matches.append(ItemMatch(item=best.item, quantity=parsed_item.quantity, confidence=best.confidence))
        notes.append(parsed_item.notes)
    return matches, unresolved, notes, parsed.notes


def create_order_from_text(
    service: OrderService,
    text: str,
    *,
    parser: OrderTextParser | None = None,
    table_number: Optional[str] = None,
    source: str = "chat",
) -> TextOrderResult:
    """Creates an order from free text.

    The LLM parser is tried first when configured. Any failure, or a reply with
    nothing that resolves to the menu, falls back to the rule-based matcher.
    """
    catalog = list_menu(service.store, available_only=True)
    matches: list[ItemMatch] = []
    unresolved: list[str] = []
    item_notes: list[Optional[str]] = []
    order_notes: Optional[str] = None
    parsed_by = "matcher"

    if parser is not None:
        try:
            matches, unresolved, item_notes, order_notes = _from_llm(parser, text, catalog)
            parsed_by = parser.name
        except SchemaValidationError as exc:
            logger.warning("LLM reply failed validation, using matcher: %s", exc.errors()[:3])
        except Exception:
            logger.exception("LLM parser failed, using matcher")
        if not matches:
            parsed_by = "matcher"

    if not matches:
        result = menu_matcher.match(text, catalog)
        matches, unresolved = list(result.matches), list(result.unresolved)
        item_notes = [None] * len(matches)

    lines = [
        OrderLine(menu_item_id=entry.item.id, quantity=entry.quantity, notes=note)
        for entry, note in zip(matches, item_notes)
    ]
    order = service.create(table_number=table_number, items=lines, source=source, notes=order_notes)
    return TextOrderResult(order=order, matches=matches, unresolved=unresolved, parsed_by=parsed_by)
