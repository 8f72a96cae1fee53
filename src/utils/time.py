from __future__ import annotations

import time
from datetime import datetime, timezone
from typing import Optional


def utc_timestamp() -> str:
    return datetime.now(timezone.utc).strftime("%Y%m%d-%H%M%S")


def utc_iso() -> str:
    return datetime.now(timezone.utc).replace(microsecond=0).isoformat()


def deadline_after(seconds: Optional[float]) -> Optional[float]:
    """Monotonic deadline ``seconds`` from now, or None for no budget."""
    if seconds is None:
        return None
    return time.monotonic() + seconds


def remaining(deadline: Optional[float]) -> Optional[float]:
    if deadline is None:
        return None
    return max(0.0, deadline - time.monotonic())
