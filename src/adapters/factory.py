from __future__ import annotations

from typing import Optional

from src.errors import ConfigurationError

from .llm_base import LLMAdapter
from .mock_adapter import MockAdapter


def make_adapter(mode: str, provider: str, request_timeout: Optional[float] = None) -> LLMAdapter:
    """``request_timeout`` bounds one ``complete()`` call, retries included."""
    if mode == "mock":
        return MockAdapter()
    if provider == "gemini":
        from .gemini_adapter import GeminiAdapter

        return GeminiAdapter(request_timeout=request_timeout)
    if provider == "openai":
        from .openai_adapter import OpenAIAdapter

        return OpenAIAdapter(request_timeout=request_timeout)
    raise ConfigurationError(f"Unsupported provider: {provider}")
