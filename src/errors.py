"""Exception taxonomy for the extraction and scoring pipeline.

Only configuration and input errors (plus a batch with zero successes)
are raised to callers. Item-level problems are recorded as ``Failure``
outcomes and never leave the dispatcher.
"""

from __future__ import annotations

from typing import Any, Optional


class CircularIDError(Exception):
    pass


class ConfigurationError(CircularIDError, RuntimeError):
    """Collaborator unreachable, unauthenticated or misconfigured."""


class InputError(CircularIDError, ValueError):
    """Empty or absent record set, or an invalid edit request."""


class ItemTransportError(CircularIDError):
    pass


class ItemParseError(CircularIDError, ValueError):
    def __init__(self, message: str, snippet: str = "") -> None:
        super().__init__(message)
        self.snippet = snippet


class ItemShapeError(CircularIDError, ValueError):
    pass


class ExtractionError(CircularIDError):
    """A single-record extraction ended in a Failure outcome."""

    def __init__(self, failure: Any) -> None:
        super().__init__(failure.message)
        self.failure = failure


class BatchFailedError(CircularIDError):
    """Every item of a non-empty batch failed."""

    def __init__(self, first_reason: str, result: Optional[Any] = None) -> None:
        super().__init__(f"Batch produced no successful extraction. First failure: {first_reason}")
        self.first_reason = first_reason
        self.result = result


class SummaryError(CircularIDError):
    pass
