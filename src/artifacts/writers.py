from __future__ import annotations

from pathlib import Path
from typing import Dict, List, Sequence, Tuple

from src.models import BatchResult, CompliancePayload, Success
from src.utils.io import read_json, write_json, write_text
from src.utils.time import utc_iso

ExportEntry = Tuple[str, str, CompliancePayload]


def export_entries(result: BatchResult) -> List[ExportEntry]:
    entries: List[ExportEntry] = []
    for outcome in result.outcomes:
        if isinstance(outcome, Success) and outcome.record is not None:
            entries.append((outcome.record.name, outcome.record.text, outcome.payload))
    return entries


def write_export(path: Path, entries: Sequence[ExportEntry]) -> None:
    write_json(
        path,
        {
            "generated_at": utc_iso(),
            "products": [
                {
                    "product_name": name,
                    "raw_input": raw_input,
                    "compliance_data": payload.to_dict(),
                }
                for name, raw_input, payload in entries
            ],
        },
    )


def read_export(path: Path) -> List[ExportEntry]:
    document: Dict = read_json(path)
    entries: List[ExportEntry] = []
    for product in document.get("products", []):
        name = product.get("product_name") or "Unknown Product"
        payload = CompliancePayload.from_dict(product.get("compliance_data") or {}, fallback_name=name)
        entries.append((name, product.get("raw_input", ""), payload))
    return entries


def write_gap_report(path: Path, entries: Sequence[ExportEntry]) -> None:
    lines: List[str] = ["# Gap Analysis", ""]
    for name, _, payload in entries:
        scoring = payload.scoring
        lines.extend(
            [
                f"## {name}",
                "",
                f"Completeness: {scoring.data_completeness_score}/100 - "
                f"Performance: {scoring.circularity_performance_score}/100",
                "",
            ]
        )
        if scoring.gap_analysis_advice:
            lines.extend([f"- {advice}" for advice in scoring.gap_analysis_advice])
        else:
            lines.append("Fully compliant: no gap found.")
        lines.append("")
    write_text(path, "\n".join(lines).strip() + "\n")
