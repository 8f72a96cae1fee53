from __future__ import annotations

import logging
import os
import time
from typing import Optional

from openai import OpenAI
from openai import (
    APIConnectionError,
    APIError,
    APITimeoutError,
    AuthenticationError,
    InternalServerError,
    PermissionDeniedError,
    RateLimitError,
)

from src.config import require_api_key
from src.errors import ConfigurationError, ItemTransportError
from src.utils.time import deadline_after, remaining

from .llm_base import LLMAdapter, LLMResponse

logger = logging.getLogger(__name__)


class OpenAIAdapter(LLMAdapter):
    def __init__(self, request_timeout: Optional[float] = None) -> None:
        self.api_key = require_api_key("openai")
        self.model = os.getenv("OPENAI_MODEL", "gpt-4o-mini")
        self.max_attempts = int(os.getenv("OPENAI_MAX_ATTEMPTS", "4"))
        self.request_timeout = request_timeout
        if request_timeout is None:
            self.client = OpenAI(api_key=self.api_key)
        else:
            self.client = OpenAI(api_key=self.api_key, timeout=request_timeout, max_retries=0)

    def complete(self, prompt: str) -> LLMResponse:
        max_tokens = int(os.getenv("CIRCULARID_MAX_OUTPUT_TOKENS", "4096"))
        temperature = float(os.getenv("CIRCULARID_TEMPERATURE", "0.2"))
        deadline = deadline_after(self.request_timeout)
        attempt = 0
        backoff = 1.0
        while True:
            attempt += 1
            try:
                response = self.client.chat.completions.create(
                    model=self.model,
                    messages=[{"role": "user", "content": prompt}],
                    max_tokens=max_tokens,
                    temperature=temperature,
                    response_format={"type": "json_object"},
                )
                content = response.choices[0].message.content or ""
                usage = getattr(response, "usage", None)
                usage_payload = None
                if usage:
                    usage_payload = {
                        "prompt_tokens": getattr(usage, "prompt_tokens", None),
                        "completion_tokens": getattr(usage, "completion_tokens", None),
                        "total_tokens": getattr(usage, "total_tokens", None),
                    }
                    logger.info(
                        "[openai] model=%s prompt_tokens=%s completion_tokens=%s total_tokens=%s",
                        self.model,
                        usage_payload["prompt_tokens"],
                        usage_payload["completion_tokens"],
                        usage_payload["total_tokens"],
                    )
                return LLMResponse(raw_text=content, model=self.model, usage=usage_payload)
            except (AuthenticationError, PermissionDeniedError) as exc:
                raise ConfigurationError(f"OpenAI rejected the credentials: {exc}") from exc
            except RateLimitError as exc:
                code = getattr(exc, "code", None)
                if code == "insufficient_quota":
                    raise ConfigurationError(
                        "OpenAI API quota exceeded. Please enable billing in your OpenAI account."
                    ) from exc
                if attempt >= self.max_attempts:
                    raise ItemTransportError(f"OpenAI rate limit after {attempt} attempts: {exc}") from exc
            except (APITimeoutError, APIConnectionError, InternalServerError) as exc:
                if attempt >= self.max_attempts:
                    raise ItemTransportError(f"OpenAI request failed after {attempt} attempts: {exc}") from exc
            except APIError as exc:
                raise ItemTransportError(f"OpenAI request rejected: {exc}") from exc

            left = remaining(deadline)
            if left is not None and left <= backoff:
                raise ItemTransportError(f"OpenAI request budget spent after {attempt} attempts")
            logger.warning("[openai] transient error on attempt %s -> sleeping %.1fs", attempt, backoff)
            time.sleep(backoff)
            backoff *= 2

    def generate(self, prompt: str) -> str:
        return self.complete(prompt).raw_text
