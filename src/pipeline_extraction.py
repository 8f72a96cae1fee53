from __future__ import annotations

import logging
from concurrent.futures import Future, wait
from dataclasses import replace
from pathlib import Path
from threading import Thread
from typing import Callable, Dict, List, Optional, Sequence

from src.adapters.factory import make_adapter
from src.adapters.llm_base import LLMAdapter
from src.config import Settings
from src.errors import BatchFailedError, ConfigurationError, ExtractionError, InputError, ItemTransportError
from src.gates.extractor import extract
from src.ingest.normalizer import normalize
from src.models import (
    BatchResult,
    CompliancePayload,
    DispatchResult,
    ExtractionOutcome,
    Failure,
    Record,
)
from src.utils.io import read_text, write_text
from src.utils.time import deadline_after, remaining

logger = logging.getLogger(__name__)

TRANSPORT_ERROR = "transport error"
TIMEOUT = "timeout"
INTERNAL_ERROR = "internal error"

# Socket-level failures from any SDK surface as OSError subclasses.
TRANSPORT_EXCEPTIONS = (ItemTransportError, OSError)

ItemProcessor = Callable[[int, Record], ExtractionOutcome]


def _guarded(process: ItemProcessor, index: int, record: Record) -> ExtractionOutcome:
    try:
        return process(index, record)
    except ConfigurationError:
        raise
    except TRANSPORT_EXCEPTIONS as exc:
        detail = str(exc) or exc.__class__.__name__
        logger.warning("Item %s (%s) failed: %s", index, record.name, detail)
        return Failure(TRANSPORT_ERROR, detail=detail, kind="transport")
    except Exception as exc:  # any item-level failure is recorded, never raised
        detail = f"{exc.__class__.__name__}: {exc}" if str(exc) else exc.__class__.__name__
        logger.exception("Item %s (%s) crashed", index, record.name)
        return Failure(INTERNAL_ERROR, detail=detail, kind="internal")


def _start(process: ItemProcessor, index: int, record: Record) -> Future[ExtractionOutcome]:
    """Run one item on a daemon thread so an abandoned request never blocks interpreter exit."""
    future: Future[ExtractionOutcome] = Future()
    future.set_running_or_notify_cancel()

    def run() -> None:
        try:
            future.set_result(_guarded(process, index, record))
        except Exception as exc:
            future.set_exception(exc)

    Thread(target=run, name=f"extract-{index}", daemon=True).start()
    return future


def dispatch(
    records: Sequence[Record],
    process: ItemProcessor,
    cap: Optional[int] = None,
    concurrency: int = 3,
    timeout_seconds: Optional[float] = None,
) -> DispatchResult:
    """Run ``process`` over ``records`` in sequential waves of ``concurrency`` items.

    A wave finishes only when all of its items resolve. The returned
    outcomes follow input order. When the run budget runs out, the
    unresolved items of the current wave and every later record become
    ``Failure("timeout")``. A ``ConfigurationError`` from any item aborts
    the run.
    """
    if not records:
        raise InputError("No records to dispatch")
    if concurrency < 1:
        raise ValueError("concurrency must be at least 1")
    if cap is not None and cap < 1:
        raise ValueError("cap must be at least 1")

    truncated = cap is not None and len(records) > cap
    if truncated:
        logger.warning("Batch truncated from %s to %s records", len(records), cap)
        records = list(records[:cap])

    slots: List[Optional[ExtractionOutcome]] = [None] * len(records)
    wave_sizes: List[int] = []
    timed_out = False
    deadline = deadline_after(timeout_seconds)
    for start in range(0, len(records), concurrency):
        budget = remaining(deadline)
        if budget is not None and budget <= 0:
            timed_out = True
            break

        indexes = range(start, min(start + concurrency, len(records)))
        wave_sizes.append(len(indexes))
        logger.info("Wave %s: items %s-%s", len(wave_sizes), indexes[0], indexes[-1])
        futures: Dict = {_start(process, index, records[index]): index for index in indexes}
        done, not_done = wait(futures, timeout=budget)

        for future, index in futures.items():
            if future in done:
                slots[index] = replace(future.result(), record=records[index])

        if not_done:
            # Abandoned requests keep running on their daemon threads; their results are ignored.
            timed_out = True
            break
        logger.debug("Wave %s finished", len(wave_sizes))

    if timed_out:
        logger.error("Run budget of %ss exceeded; remaining items marked as timeout", timeout_seconds)

    outcomes: List[ExtractionOutcome] = [
        slot if slot is not None else Failure(TIMEOUT, kind="timeout", record=records[index])
        for index, slot in enumerate(slots)
    ]
    return DispatchResult(outcomes=outcomes, truncated=truncated, wave_sizes=wave_sizes, timed_out=timed_out)


class ExtractionPipeline:
    def __init__(
        self,
        settings: Settings,
        base_dir: Path,
        adapter: Optional[LLMAdapter] = None,
        raw_dir: Optional[Path] = None,
    ) -> None:
        self.settings = settings
        self.base_dir = base_dir
        self.prompts_dir = base_dir / "configs" / "prompts"
        self.raw_dir = raw_dir
        self._client = adapter

    def adapter(self) -> LLMAdapter:
        if self._client is None:
            self._client = make_adapter(
                self.settings.mode,
                self.settings.provider,
                request_timeout=self.settings.timeout_seconds,
            )
        return self._client

    def build_prompt(self, record: Record) -> str:
        template = read_text(self.prompts_dir / "extraction.md")
        return template.replace("{{RECORD}}", record.text)

    def _process(self, index: int, record: Record) -> ExtractionOutcome:
        response = self.adapter().complete(self.build_prompt(record))
        if self.raw_dir is not None:
            write_text(self.raw_dir / f"item_{index + 1:03d}.txt", response.raw_text)
        outcome = extract(response.raw_text, fallback_name=record.name)
        if isinstance(outcome, Failure):
            logger.warning("Item %s (%s) rejected: %s", index, record.name, outcome.message)
        return outcome

    def analyze(self, text: str) -> CompliancePayload:
        if not text or not text.strip():
            raise InputError("Input text is required")
        self.adapter()
        record = Record.from_text(text)
        outcome = _guarded(self._process, 0, record)
        if isinstance(outcome, Failure):
            raise ExtractionError(replace(outcome, record=record))
        return outcome.payload

    def analyze_records(self, records: Sequence[Record], cap: Optional[int] = None) -> BatchResult:
        if not records:
            raise InputError("CSV rows array is required")
        self.adapter()
        result = dispatch(
            records,
            self._process,
            cap=cap if cap is not None else self.settings.cap,
            concurrency=self.settings.concurrency,
            timeout_seconds=self.settings.timeout_seconds,
        )
        batch = BatchResult(
            outcomes=result.outcomes,
            truncated=result.truncated,
            total=len(records),
            timed_out=result.timed_out,
        )
        logger.info(
            "Batch finished: %s processed, %s failed, truncated=%s",
            batch.processed,
            batch.failed,
            batch.truncated,
        )
        if batch.processed == 0:
            raise BatchFailedError(batch.failures[0].message, batch)
        return batch

    def analyze_batch(
        self,
        texts: Sequence[str],
        names: Optional[Sequence[str]] = None,
        cap: Optional[int] = None,
    ) -> BatchResult:
        names = list(names or [])
        records = [
            Record.from_text(text, names[index] if index < len(names) and names[index] else f"Product {index + 1}")
            for index, text in enumerate(texts)
            if text and text.strip()
        ]
        return self.analyze_records(records, cap=cap)

    def analyze_input(self, content: str, cap: Optional[int] = None) -> BatchResult:
        return self.analyze_records(normalize(content), cap=cap)
