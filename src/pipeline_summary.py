from __future__ import annotations

import json
import logging
from pathlib import Path
from typing import Dict, Optional, Sequence, Tuple

from jsonschema import ValidationError, validate

from src.adapters.factory import make_adapter
from src.adapters.llm_base import LLMAdapter
from src.config import LANGUAGES, Settings
from src.errors import InputError, ItemParseError, SummaryError
from src.gates.parsers import recover_json
from src.models import BatchStats, BatchSummary, CompliancePayload
from src.scoring.aggregator import aggregate
from src.utils.io import read_text

logger = logging.getLogger(__name__)

NO_BLOCKERS = {"en": "None", "fr": "Aucun"}

NamedPayload = Tuple[str, CompliancePayload]


class SummaryPipeline:
    def __init__(self, settings: Settings, base_dir: Path, adapter: Optional[LLMAdapter] = None) -> None:
        self.settings = settings
        self.base_dir = base_dir
        self.schemas_dir = base_dir / "schemas"
        self.prompts_dir = base_dir / "configs" / "prompts"
        self._client = adapter

    def adapter(self) -> LLMAdapter:
        if self._client is None:
            self._client = make_adapter(
                self.settings.mode,
                self.settings.provider,
                request_timeout=self.settings.timeout_seconds,
            )
        return self._client

    def build_prompt(self, stats: BatchStats, language: str) -> str:
        prompt = read_text(self.prompts_dir / f"summary_{language}.md")
        values = stats.to_dict()
        blockers = values.pop("blockers")
        for key, value in values.items():
            prompt = prompt.replace("{{" + key.upper() + "}}", str(value))
        return prompt.replace("{{BLOCKERS}}", "\n".join(blockers) or NO_BLOCKERS[language])

    def generate(self, items: Sequence[NamedPayload], language: Optional[str] = None) -> BatchSummary:
        language = language or self.settings.language
        if language not in LANGUAGES:
            raise InputError(f"Unsupported language: {language}")
        if not items:
            raise InputError("No products provided")

        stats = aggregate([payload for _, payload in items], self.settings.blocker_display_limit)
        logger.info("Requesting %s batch summary for %s products", language, stats.total_products)
        response = self.adapter().complete(self.build_prompt(stats, language))

        try:
            document = recover_json(response.raw_text or "")
            validate(instance=document, schema=self._load_schema("batch_summary.schema.json"))
        except ItemParseError as exc:
            raise SummaryError(str(exc)) from exc
        except ValidationError as exc:
            raise SummaryError(f"Invalid summary structure: {exc.message}") from exc

        return BatchSummary(
            narrative=document["narrative"].strip(),
            strengths=tuple(document["strengths"]),
            improvements=tuple(document["improvements"]),
            action_plan=tuple(document["action_plan"]),
            stats=stats,
        )

    def _load_schema(self, name: str) -> Dict:
        return json.loads(read_text(self.schemas_dir / name))
