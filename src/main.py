from __future__ import annotations

import argparse
import json
import logging
import os
import sys
from pathlib import Path
from typing import Optional, Sequence

from dotenv import load_dotenv

from src.artifacts.results_writer import write_results_csv
from src.artifacts.summary_writer import write_batch_summary
from src.artifacts.writers import export_entries, read_export, write_export, write_gap_report
from src.config import LANGUAGES, MODES, PROVIDERS, load_settings, require_api_key
from src.errors import BatchFailedError, CircularIDError, InputError, SummaryError
from src.ingest.normalizer import normalize
from src.logging_config import configure_logging
from src.pipeline_extraction import ExtractionPipeline
from src.pipeline_summary import SummaryPipeline
from src.scoring.reconciler import apply_edit, reconcile
from src.utils.io import read_text, write_text
from src.utils.time import utc_timestamp

logger = logging.getLogger(__name__)


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(description="CircularID Studio: AGEC / ISO 59040 compliance extraction")
    parser.add_argument("--config", help="YAML settings file")
    parser.add_argument("--verbose", action="store_true")
    commands = parser.add_subparsers(dest="command", required=True)

    analyze = commands.add_parser("analyze", help="Extract and score product records")
    analyze.add_argument("--input", required=True, help="Free-text description or CSV/TSV file")
    analyze.add_argument("--mode", choices=MODES)
    analyze.add_argument("--provider", choices=PROVIDERS)
    analyze.add_argument("--cap", type=int, help="Maximum number of records per run")
    analyze.add_argument("--concurrency", type=int, help="Requests in flight per wave")
    analyze.add_argument("--timeout", type=float, dest="timeout_seconds", help="Run budget in seconds")
    analyze.add_argument("--max-output-tokens", type=int)
    analyze.add_argument("--temperature", type=float)
    analyze.add_argument("--summary", action="store_true", help="Also generate a batch summary")
    analyze.add_argument("--language", choices=LANGUAGES)

    edit = commands.add_parser("edit", help="Edit one exported product and re-score it")
    edit.add_argument("--export", required=True, help="export.json written by a previous run")
    edit.add_argument("--index", type=int, default=0, help="Zero-based product index")
    edit.add_argument(
        "--set",
        action="append",
        default=[],
        dest="assignments",
        metavar="PATH=VALUE",
        help="e.g. agec_compliance.hazardous_substances.contains_svhc=false",
    )
    return parser


def _parse_value(raw: str) -> object:
    try:
        return json.loads(raw)
    except json.JSONDecodeError:
        return raw


def run_analyze(args: argparse.Namespace, base_dir: Path) -> int:
    overrides = {
        "mode": args.mode,
        "provider": args.provider,
        "cap": args.cap,
        "concurrency": args.concurrency,
        "timeout_seconds": args.timeout_seconds,
        "max_output_tokens": args.max_output_tokens,
        "temperature": args.temperature,
        "language": args.language,
    }
    settings = load_settings(Path(args.config) if args.config else None, overrides)
    if settings.mode == "live":
        require_api_key(settings.provider)

    # Adapters read their sampling knobs from the environment.
    os.environ["CIRCULARID_MAX_OUTPUT_TOKENS"] = str(settings.max_output_tokens)
    os.environ["CIRCULARID_TEMPERATURE"] = str(settings.temperature)

    input_path = Path(args.input)
    if not input_path.exists():
        raise InputError(f"Input file not found: {input_path}")
    records = normalize(read_text(input_path))
    if not records:
        raise InputError("Input text is required")

    run_dir = base_dir / "runs" / utc_timestamp()
    raw_dir = run_dir / "raw"
    artifacts_dir = run_dir / "artifacts"
    for path in (raw_dir, artifacts_dir):
        path.mkdir(parents=True, exist_ok=True)
    write_text(run_dir / "inputs" / input_path.name, read_text(input_path))

    pipeline = ExtractionPipeline(settings, base_dir, raw_dir=raw_dir)
    try:
        result = pipeline.analyze_records(records)
    except BatchFailedError as exc:
        if exc.result is not None:
            write_results_csv(artifacts_dir / "results.csv", exc.result)
        raise

    entries = export_entries(result)
    write_export(artifacts_dir / "export.json", entries)
    write_results_csv(artifacts_dir / "results.csv", result)
    write_gap_report(artifacts_dir / "gap_report.md", entries)

    for failure in result.failures:
        name = failure.record.name if failure.record else "?"
        logger.warning("Failed: %s -> %s", name, failure.message)
    logger.info(
        "Processed %s/%s records (%s failed%s). Artifacts in %s",
        result.processed,
        len(result.outcomes),
        result.failed,
        ", truncated" if result.truncated else "",
        artifacts_dir,
    )

    if args.summary:
        summary_pipeline = SummaryPipeline(settings, base_dir, adapter=pipeline.adapter())
        try:
            summary = summary_pipeline.generate([(name, payload) for name, _, payload in entries])
        except SummaryError as exc:
            logger.error("Batch summary failed: %s", exc)
        else:
            write_batch_summary(artifacts_dir / "batch_summary.md", summary)
    return 0


def run_edit(args: argparse.Namespace) -> int:
    export_path = Path(args.export)
    if not export_path.exists():
        raise InputError(f"Export file not found: {export_path}")
    entries = read_export(export_path)
    if not 0 <= args.index < len(entries):
        raise InputError(f"No product at index {args.index} (export has {len(entries)})")
    if not args.assignments:
        raise InputError("Nothing to edit: pass at least one --set PATH=VALUE")

    name, raw_input, previous = entries[args.index]
    edited = previous
    for assignment in args.assignments:
        path, sep, raw_value = assignment.partition("=")
        if not sep:
            raise InputError(f"Expected PATH=VALUE, got: {assignment}")
        edited = apply_edit(edited, path.strip(), _parse_value(raw_value.strip()))

    updated = reconcile(edited, previous)
    entries[args.index] = (name, raw_input, updated)
    write_export(export_path, entries)
    logger.info(
        "%s re-scored: completeness %s -> %s, performance %s -> %s",
        name,
        previous.scoring.data_completeness_score,
        updated.scoring.data_completeness_score,
        previous.scoring.circularity_performance_score,
        updated.scoring.circularity_performance_score,
    )
    return 0


def main(argv: Optional[Sequence[str]] = None) -> int:
    args = build_parser().parse_args(argv)
    configure_logging(logging.DEBUG if args.verbose else logging.INFO)
    base_dir = Path(__file__).resolve().parents[1]
    load_dotenv(base_dir / ".env")

    try:
        if args.command == "edit":
            return run_edit(args)
        return run_analyze(args, base_dir)
    except CircularIDError as exc:
        logger.error("%s", exc)
        return 1


if __name__ == "__main__":
    sys.exit(main())
