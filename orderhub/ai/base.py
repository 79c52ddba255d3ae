from __future__ import annotations

from typing import Any, Protocol


class OrderTextParser(Protocol):
    name: str

    def parse(self, text: str, menu: list[dict[str, Any]]) -> dict[str, Any]:
        """Returns ``{"items": [{"name", "quantity", "notes"}], "notes": ...}``."""
        ...
