from __future__ import annotations

import logging

from orderhub.ai.base import OrderTextParser
from orderhub.ai.gemini_provider import GeminiOrderTextParser
from orderhub.ai.mock_provider import MockOrderTextParser
from orderhub.core.config import GEMINI_API_KEY, LLM_PROVIDER

logger = logging.getLogger(__name__)


def get_parser(provider: str = LLM_PROVIDER) -> OrderTextParser | None:
    """Configured LLM collaborator, or None when order text goes straight to the matcher."""
    provider = (provider or "none").strip().lower()
    if provider == "gemini":
        if not GEMINI_API_KEY:
            logger.warning("LLM_PROVIDER=gemini but GEMINI_API_KEY is empty, using the matcher only")
            return None
        return GeminiOrderTextParser()
    if provider == "mock":
        return MockOrderTextParser()
    return None
