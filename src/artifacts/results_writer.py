from __future__ import annotations

import csv
import io
from pathlib import Path

from src.models import BatchResult, Failure
from src.utils.io import write_text


def write_results_csv(path: Path, result: BatchResult) -> None:
    buffer = io.StringIO()
    writer = csv.writer(buffer, lineterminator="\n")
    writer.writerow(["index", "product_name", "status", "completeness", "performance", "reason"])
    for index, outcome in enumerate(result.outcomes, start=1):
        name = outcome.record.name if outcome.record else ""
        if isinstance(outcome, Failure):
            writer.writerow([index, name, "failed", "", "", outcome.message])
        else:
            scoring = outcome.payload.scoring
            writer.writerow(
                [
                    index,
                    name,
                    "ok",
                    scoring.data_completeness_score,
                    scoring.circularity_performance_score,
                    "",
                ]
            )
    write_text(path, buffer.getvalue())
