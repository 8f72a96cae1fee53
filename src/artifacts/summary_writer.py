from __future__ import annotations

from pathlib import Path
from typing import List

from src.models import BatchSummary
from src.utils.io import write_text


def write_batch_summary(path: Path, summary: BatchSummary) -> None:
    lines: List[str] = ["# Batch Summary", "", summary.narrative, ""]
    stats = summary.stats
    if stats is not None:
        lines.extend(
            [
                "## Scores",
                "",
                f"- Products: {stats.total_products}",
                f"- Average AGEC score: {stats.avg_score}/100",
                f"- Compliant / partial / to review: "
                f"{stats.compliant_count} / {stats.partial_count} / {stats.to_review_count}",
                f"- Average PCDS completeness: {stats.pcds_completeness}%",
                "",
            ]
        )
    sections = (
        ("Strengths", summary.strengths),
        ("Areas for Improvement", summary.improvements),
    )
    for title, items in sections:
        lines.extend([f"## {title}", ""])
        lines.extend([f"- {item}" for item in items])
        lines.append("")
    lines.extend(["## Priority Action Plan", ""])
    lines.extend([f"{index}. {item}" for index, item in enumerate(summary.action_plan, start=1)])
    write_text(path, "\n".join(lines).strip() + "\n")
