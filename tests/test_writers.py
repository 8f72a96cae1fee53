"""
Tests for the run artifacts: JSON export, results CSV, gap report and batch summary.
"""

import csv

from src.models import BatchResult, BatchSummary, Failure, Record, Success
from src.artifacts.results_writer import write_results_csv
from src.artifacts.summary_writer import write_batch_summary
from src.artifacts.writers import export_entries, read_export, write_export, write_gap_report
from src.scoring.engine import rescore


def make_result(make_payload):
    ok = Success(payload=rescore(make_payload()), record=Record.from_text("Organic tee", name="Tee"))
    weak = Success(
        payload=rescore(make_payload({"product_identity.gtin": None})),
        record=Record.from_text("Plain shirt", name="Shirt"),
    )
    failed = Failure("parse error", detail="<html>", kind="parse", record=Record.from_text("x", name="Broken"))
    return BatchResult(outcomes=[ok, failed, weak], truncated=False, total=3)


def test_export_round_trip(tmp_path, make_payload):
    entries = export_entries(make_result(make_payload))
    path = tmp_path / "artifacts" / "export.json"
    write_export(path, entries)

    loaded = read_export(path)
    assert [name for name, _, _ in loaded] == ["Tee", "Shirt"]
    assert loaded[0][1] == "Organic tee"
    assert loaded[1][2] == entries[1][2]


def test_results_csv_lists_failures(tmp_path, make_payload):
    path = tmp_path / "results.csv"
    write_results_csv(path, make_result(make_payload))

    with path.open(encoding="utf-8", newline="") as handle:
        rows = list(csv.DictReader(handle))

    assert [row["status"] for row in rows] == ["ok", "failed", "ok"]
    assert rows[0]["performance"] == "100"
    assert rows[1]["reason"] == "parse error: <html>"
    assert rows[1]["product_name"] == "Broken"


def test_gap_report(tmp_path, make_payload):
    path = tmp_path / "gap_report.md"
    write_gap_report(path, export_entries(make_result(make_payload)))
    report = path.read_text(encoding="utf-8")

    assert report.startswith("# Gap Analysis")
    assert "## Tee" in report
    assert "Fully compliant: no gap found." in report
    assert "- Missing GTIN." in report


def test_batch_summary_markdown(tmp_path):
    summary = BatchSummary(
        narrative="Good batch.",
        strengths=("Traceable",),
        improvements=("Recycled content",),
        action_plan=("First", "Second"),
    )
    path = tmp_path / "batch_summary.md"
    write_batch_summary(path, summary)
    text = path.read_text(encoding="utf-8")

    assert "## Priority Action Plan" in text
    assert "1. First\n2. Second" in text
    assert "## Scores" not in text
