from __future__ import annotations

from types import SimpleNamespace
from typing import Any

from orderhub.services import menu_matcher


class MockOrderTextParser:
    """Offline stand-in for the LLM, backed by the rule-based matcher."""

    name = "mock"

    def parse(self, text: str, menu: list[dict[str, Any]]) -> dict[str, Any]:
        catalog = [SimpleNamespace(id=entry.get("id"), name=entry.get("name") or "") for entry in menu]
        result = menu_matcher.match(text or "", catalog)
        return {
            "items": [{"name": entry.item.name, "quantity": entry.quantity} for entry in result.matches],
            "notes": None,
        }
