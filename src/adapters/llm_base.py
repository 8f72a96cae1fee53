from __future__ import annotations

from dataclasses import dataclass, field
from typing import Dict, Optional, Protocol


@dataclass
class LLMResponse:
    raw_text: str
    model: Optional[str] = None
    usage: Optional[Dict[str, Optional[int]]] = field(default=None)


class LLMAdapter(Protocol):
    """Text-generation collaborator: one prompt in, raw text out.

    Implementations raise ``ConfigurationError`` for authentication or
    setup problems and any other exception for transport failures.
    """

    def generate(self, prompt: str) -> str:
        raise NotImplementedError

    def complete(self, prompt: str) -> LLMResponse:
        return LLMResponse(raw_text=self.generate(prompt))
