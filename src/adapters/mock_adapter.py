from __future__ import annotations

import json
import re
from dataclasses import dataclass
from typing import Dict, List, Optional

from .llm_base import LLMAdapter, LLMResponse

SYNTHETIC_FIBERS = (
    "polyester",
    "nylon",
    "polyamide",
    "acrylic",
    "polypropylene",
    "elastane",
    "spandex",
    "lycra",
)

COUNTRY_CODES = {
    "bangladesh": "BD",
    "china": "CN",
    "france": "FR",
    "germany": "DE",
    "india": "IN",
    "indonesia": "ID",
    "italy": "IT",
    "morocco": "MA",
    "pakistan": "PK",
    "portugal": "PT",
    "spain": "ES",
    "tunisia": "TN",
    "turkey": "TR",
    "vietnam": "VN",
}

STAGE_PATTERNS = {
    "weaving_knitting_country": r"(?:woven|knitted|weaving|knitting)\s+(?:in\s+)?([A-Za-z]+)",
    "dyeing_printing_country": r"(?:dyed|printed|dyeing|printing)\s+(?:in\s+)?([A-Za-z]+)",
    "manufacturing_country": r"(?:made|manufactured|sewn|assembled)\s+in\s+([A-Za-z]+)",
}

HAZARD_KEYWORDS = ("nickel", "lead", "chromium", "formaldehyde", "pfas")

_INPUT_BLOCK = re.compile(r"INPUT TO ANALYZE:\s*```\s*\n(.*?)\n```", re.DOTALL)
_PERCENT = re.compile(r"(\d+(?:\.\d+)?)\s*%\s*(recycled\s+)?([A-Za-z]+)", re.IGNORECASE)


@dataclass
class MockAdapter(LLMAdapter):
    """Offline collaborator that derives a plausible reply from keywords."""

    scenario: str = "default"

    def complete(self, prompt: str) -> LLMResponse:
        if '"action_plan"' in prompt:
            payload = self._summary_payload()
        else:
            payload = self._compliance_payload(self._record_text(prompt))
        return LLMResponse(raw_text=json.dumps(payload), model="mock")

    def generate(self, prompt: str) -> str:
        return self.complete(prompt).raw_text

    def _record_text(self, prompt: str) -> str:
        match = _INPUT_BLOCK.search(prompt)
        return match.group(1).strip() if match else prompt

    def _field(self, text: str, *names: str) -> Optional[str]:
        for name in names:
            match = re.search(rf"^\s*(?:dpp\.)?{name}\s*:\s*(.+)$", text, re.IGNORECASE | re.MULTILINE)
            if match:
                return match.group(1).strip()
        return None

    def _country(self, text: str, pattern: str) -> Optional[str]:
        match = re.search(pattern, text, re.IGNORECASE)
        if not match:
            return None
        return COUNTRY_CODES.get(match.group(1).lower())

    def _compliance_payload(self, text: str) -> Dict:
        lower = text.lower()
        name = self._field(text, "name", "product_name", "product") or (text.splitlines() or [""])[0][:50]

        synthetic = 0.0
        recycled = 0.0
        materials: List[str] = []
        for amount, is_recycled, fiber in _PERCENT.findall(text):
            value = float(amount)
            materials.append(fiber.lower())
            if fiber.lower() in SYNTHETIC_FIBERS:
                synthetic += value
            if is_recycled:
                recycled += value

        blockers: List[str] = []
        if "elastane" in materials or "spandex" in materials:
            blockers.append("Elastane present")
        if len(set(materials)) > 1:
            blockers.append("Multi-material construction")
        if "membrane" in lower or "gore-tex" in lower:
            blockers.append("Laminated membrane not separable")

        substances = [
            keyword
            for keyword in HAZARD_KEYWORDS
            if keyword in lower and f"{keyword}-free" not in lower and f"{keyword} free" not in lower
        ]

        return {
            "product_identity": {
                "name": name,
                "gtin": self._field(text, "ean", "gtin"),
                "sku": self._field(text, "sku", "ref", "reference"),
            },
            "agec_compliance": {
                "traceability": {
                    key: self._country(text, pattern) for key, pattern in STAGE_PATTERNS.items()
                },
                "recyclability": {
                    "is_majority_recyclable": bool(materials) and not blockers,
                    "blockers": blockers,
                },
                "material_analysis": {
                    "synthetic_fiber_percentage": min(synthetic, 100.0),
                    "microplastic_warning_required": synthetic > 50,
                    "recycled_content_percentage": min(recycled, 100.0),
                },
                "hazardous_substances": {
                    "contains_svhc": bool(substances),
                    "substance_names": [s.capitalize() for s in substances],
                },
            },
            "iso_59040_pcds": {
                "section_2_inputs": {
                    "statement_2503_post_consumer": recycled > 25,
                    "statement_2301_reach_compliant": not substances,
                },
                "section_3_better_use": {"statement_3000_repairable": "repair" in lower},
                "section_5_end_of_life": {
                    "statement_5032_closed_loop": len(set(materials)) == 1 and not blockers,
                },
            },
            "meta_scoring": {
                "data_completeness_score": 0,
                "circularity_performance_score": 0,
                "gap_analysis_advice": [],
            },
        }

    def _summary_payload(self) -> Dict:
        return {
            "narrative": "Mock summary: the batch was scored offline against AGEC and ISO 59040.",
            "strengths": ["Deterministic offline run"],
            "improvements": ["Complete supplier traceability data (AGEC)"],
            "action_plan": [
                "Collect weaving and dyeing countries from suppliers (AGEC)",
                "Document recycled content sources (ISO 59040 §2503)",
                "Publish repair services (ISO 59040 §3000)",
            ],
        }
