from __future__ import annotations

import json
import logging
from functools import lru_cache
from pathlib import Path
from typing import Dict

from jsonschema import ValidationError, validate

from src.errors import ItemParseError, ItemShapeError
from src.gates.parsers import recover_json
from src.models import CompliancePayload, ExtractionOutcome, Failure, Success
from src.scoring.reconciler import reconcile
from src.utils.io import read_text

logger = logging.getLogger(__name__)

SCHEMAS_DIR = Path(__file__).resolve().parents[2] / "schemas"

EMPTY_RESPONSE = "empty response"
PARSE_ERROR = "parse error"
INVALID_STRUCTURE = "invalid response structure"


@lru_cache(maxsize=None)
def load_schema(name: str) -> Dict:
    return json.loads(read_text(SCHEMAS_DIR / name))


def check_shape(document: object) -> None:
    """Raise ``ItemShapeError`` unless the required top-level sections are objects."""
    try:
        validate(instance=document, schema=load_schema("compliance_payload.schema.json"))
    except ValidationError as exc:
        raise ItemShapeError(exc.message) from exc


def extract(raw_text: str, fallback_name: str = "Unknown Product") -> ExtractionOutcome:
    if raw_text is None or not raw_text.strip():
        return Failure(EMPTY_RESPONSE, kind="empty")

    try:
        document = recover_json(raw_text)
    except ItemParseError as exc:
        return Failure(PARSE_ERROR, detail=exc.snippet, kind="parse")

    try:
        check_shape(document)
    except ItemShapeError as exc:
        logger.debug("Rejected reply shape: %s", exc)
        return Failure(INVALID_STRUCTURE, detail=str(exc), kind="shape")

    try:
        payload = CompliancePayload.from_dict(document, fallback_name=fallback_name)
    except (TypeError, ValueError, OverflowError) as exc:
        logger.debug("Rejected reply values: %s", exc)
        return Failure(INVALID_STRUCTURE, detail=f"unusable value: {exc}", kind="shape")
    return Success(payload=reconcile(payload))
