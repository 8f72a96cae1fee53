"""Shared logging configuration.

Call ``configure_logging()`` once at the CLI entry point. It does nothing
if the root logger already has handlers.
"""

from __future__ import annotations

import logging


def configure_logging(level: int = logging.INFO) -> None:
    root = logging.getLogger()
    if root.handlers:
        return

    formatter = logging.Formatter("%(asctime)s - %(name)s - %(levelname)s - %(message)s")
    console = logging.StreamHandler()
    console.setFormatter(formatter)
    root.addHandler(console)
    root.setLevel(level)

    # SDK request logs drown out the wave progress lines.
    for noisy in ("httpx", "openai", "google_genai"):
        logging.getLogger(noisy).setLevel(logging.WARNING)
