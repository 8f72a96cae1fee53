"""Shared fixtures: a fully compliant reply document and an in-process collaborator."""

import copy
import json
import threading
import time
from pathlib import Path

import pytest

from src.adapters.llm_base import LLMResponse
from src.config import Settings
from src.errors import ItemTransportError
from src.models import CompliancePayload

COMPLIANT_DOC = {
    "product_identity": {"name": "Organic Tee", "gtin": "3760000000001", "sku": "TEE-01"},
    "agec_compliance": {
        "traceability": {
            "weaving_knitting_country": "PT",
            "dyeing_printing_country": "PT",
            "manufacturing_country": "PT",
        },
        "recyclability": {"is_majority_recyclable": True, "blockers": []},
        "material_analysis": {
            "synthetic_fiber_percentage": 0,
            "microplastic_warning_required": False,
            "recycled_content_percentage": 30,
        },
        "hazardous_substances": {"contains_svhc": False, "substance_names": []},
    },
    "iso_59040_pcds": {
        "section_2_inputs": {
            "statement_2503_post_consumer": True,
            "statement_2301_reach_compliant": True,
        },
        "section_3_better_use": {"statement_3000_repairable": True},
        "section_5_end_of_life": {"statement_5032_closed_loop": True},
    },
    "meta_scoring": {
        "data_completeness_score": 0,
        "circularity_performance_score": 0,
        "gap_analysis_advice": [],
    },
}


def set_path(document, path, value):
    node = document
    keys = path.split(".")
    for key in keys[:-1]:
        node = node[key]
    node[keys[-1]] = value


class ScriptedAdapter:
    """Thread-safe fake collaborator.

    Prompts containing a marker from ``failures`` raise; prompts containing
    ``SLOW`` wait on ``blocker``. Everything else gets ``reply``.
    """

    def __init__(self, reply=None, failures=(), blocker=None, delay=0.0):
        self.reply = reply if reply is not None else json.dumps(COMPLIANT_DOC)
        self.failures = tuple(failures)
        self.blocker = blocker
        self.delay = delay
        self.prompts = []
        self.in_flight = 0
        self.max_in_flight = 0
        self._lock = threading.Lock()

    def complete(self, prompt):
        with self._lock:
            self.prompts.append(prompt)
            self.in_flight += 1
            self.max_in_flight = max(self.max_in_flight, self.in_flight)
        try:
            if self.delay:
                time.sleep(self.delay)
            for marker in self.failures:
                if marker in prompt:
                    raise ItemTransportError(f"API error 500 for {marker}")
            if self.blocker is not None and "SLOW" in prompt:
                self.blocker.wait(5)
            return LLMResponse(raw_text=self.reply)
        finally:
            with self._lock:
                self.in_flight -= 1

    def generate(self, prompt):
        return self.complete(prompt).raw_text


@pytest.fixture
def base_dir():
    return Path(__file__).resolve().parents[1]


@pytest.fixture
def compliance_doc():
    return copy.deepcopy(COMPLIANT_DOC)


@pytest.fixture
def make_payload():
    """Build a payload from the compliant document with dotted-path edits."""

    def _make(edits=None, name=None):
        document = copy.deepcopy(COMPLIANT_DOC)
        for path, value in (edits or {}).items():
            set_path(document, path, value)
        if name is not None:
            document["product_identity"]["name"] = name
        return CompliancePayload.from_dict(document)

    return _make


@pytest.fixture
def settings():
    return Settings(mode="mock", concurrency=2, cap=10, timeout_seconds=30.0)
