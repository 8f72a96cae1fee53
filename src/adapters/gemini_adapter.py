from __future__ import annotations

import logging
import os
import random
import time
from typing import List, Optional

from google import genai
from google.genai import errors

from src.config import require_api_key
from src.errors import ConfigurationError, ItemTransportError
from src.utils.time import deadline_after, remaining

from .llm_base import LLMAdapter, LLMResponse

logger = logging.getLogger(__name__)


class GeminiAdapter(LLMAdapter):
    def __init__(self, request_timeout: Optional[float] = None) -> None:
        api_key = require_api_key("gemini")
        self.request_timeout = request_timeout
        if request_timeout is None:
            self.client = genai.Client(api_key=api_key)
        else:
            # http_options timeout is in milliseconds.
            self.client = genai.Client(api_key=api_key, http_options={"timeout": int(request_timeout * 1000)})

        primary = os.getenv("GEMINI_MODEL", "gemini-flash-latest")
        self.model_candidates: List[str] = [primary]
        for fallback in ("gemini-2.5-flash", "gemini-2.0-flash"):
            if fallback not in self.model_candidates:
                self.model_candidates.append(fallback)

        self.max_attempts = int(os.getenv("GEMINI_MAX_ATTEMPTS", "5"))
        self.base_delay = float(os.getenv("GEMINI_BASE_DELAY_SECONDS", "1.0"))

    def _is_transient(self, err: Exception) -> bool:
        msg = str(err).lower()
        return any(s in msg for s in ["503", "unavailable", "429", "too many", "timeout", "temporarily"])

    def _is_auth_error(self, err: Exception) -> bool:
        return isinstance(err, errors.ClientError) and getattr(err, "code", None) in (401, 403)

    def _config(self) -> dict:
        return {
            "max_output_tokens": int(os.getenv("CIRCULARID_MAX_OUTPUT_TOKENS", "4096")),
            "temperature": float(os.getenv("CIRCULARID_TEMPERATURE", "0.2")),
            "response_mime_type": "application/json",
        }

    def complete(self, prompt: str) -> LLMResponse:
        last_err: Exception | None = None
        deadline = deadline_after(self.request_timeout)

        for model in self.model_candidates:
            for attempt in range(1, self.max_attempts + 1):
                try:
                    logger.info("[gemini] model=%s attempt=%s/%s", model, attempt, self.max_attempts)
                    response = self.client.models.generate_content(
                        model=model,
                        contents=prompt,
                        config=self._config(),
                    )
                    text = getattr(response, "text", None) or ""
                    return LLMResponse(raw_text=text, model=model)

                except Exception as e:
                    if self._is_auth_error(e):
                        raise ConfigurationError(f"Gemini rejected the credentials: {e}") from e
                    last_err = e
                    if not self._is_transient(e):
                        break

                    delay = self.base_delay * (2 ** (attempt - 1)) + random.random() * 0.5
                    left = remaining(deadline)
                    if left is not None and left <= delay:
                        raise ItemTransportError(f"Gemini request budget spent: {e}") from e
                    logger.warning("[gemini] transient error: %s -> sleeping %.2fs", e, delay)
                    time.sleep(delay)

            logger.warning("[gemini] switching model after failures: %s", model)

        raise ItemTransportError(
            "Gemini generate_content failed for all candidate models. "
            f"Last error: {last_err}"
        ) from last_err

    def generate(self, prompt: str) -> str:
        return self.complete(prompt).raw_text
