from __future__ import annotations

import json
import logging
import re
from typing import Any

import httpx

from orderhub.core.config import GEMINI_API_KEY, GEMINI_MODEL, LLM_TIMEOUT_SECONDS

logger = logging.getLogger(__name__)

GEMINI_URL = "https://generativelanguage.googleapis.com/v1beta/models/{model}:generateContent"

_PROMPT = """You turn restaurant order text into JSON.
Menu (id, name, price):
{menu}

Order text: {text}

Reply with JSON only, shaped as
{{"items": [{{"name": "<menu item name>", "quantity": <int>, "notes": "<optional>"}}], "notes": "<optional>"}}
Use names from the menu. Leave out anything you cannot map to the menu."""

_FENCE = re.compile(r"^```(?:json)?\s*|\s*```$", re.IGNORECASE)


class GeminiProviderError(RuntimeError):
    pass


class GeminiOrderTextParser:
    name = "gemini"

    def __init__(
        self,
        *,
        api_key: str = GEMINI_API_KEY,
        model: str = GEMINI_MODEL,
        timeout_seconds: float = LLM_TIMEOUT_SECONDS,
        transport: httpx.BaseTransport | None = None,
    ) -> None:
        self.api_key = api_key
        self.model = model
        self.timeout_seconds = timeout_seconds
        self._transport = transport

    def _prompt(self, text: str, menu: list[dict[str, Any]]) -> str:
        lines = "\n".join(f"- {entry.get('id')}, {entry.get('name')}, {entry.get('price')}" for entry in menu)
        return _PROMPT.format(menu=lines or "(empty)", text=text)

    def parse(self, text: str, menu: list[dict[str, Any]]) -> dict[str, Any]:
        if not self.api_key:
            raise GeminiProviderError("GEMINI_API_KEY is not configured")
        body = {
            "contents": [{"parts": [{"text": self._prompt(text, menu)}]}],
            "generationConfig": {"temperature": 0, "responseMimeType": "application/json"},
        }
        with httpx.Client(timeout=self.timeout_seconds, transport=self._transport) as client:
            response = client.post(
                GEMINI_URL.format(model=self.model),
                params={"key": self.api_key},
                json=body,
            )
        if response.status_code >= 400:
            raise GeminiProviderError(f"Gemini returned {response.status_code}")

        data = response.json()
        try:
            raw_text = data["candidates"][0]["content"]["parts"][0]["text"]
        except (KeyError, IndexError, TypeError) as exc:
            raise GeminiProviderError("unexpected Gemini response shape") from exc
        cleaned = _FENCE.sub("", raw_text.strip())
        try:
            return json.loads(cleaned)
        except json.JSONDecodeError as exc:
            raise GeminiProviderError("Gemini reply is not JSON") from exc
