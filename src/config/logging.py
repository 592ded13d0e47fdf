"""Process-wide logging setup for the intent service.

One plain-text line per record on stderr. The pipeline logs `key=value` pairs (stage, intent,
tier, latency_ms) at INFO; utterances and raw interpreter output only appear at DEBUG, and the
latter only when `LOG_RAW_RESPONSES` is enabled.
"""

from __future__ import annotations

import logging
import os

_QUIET_LOGGERS = ("httpx", "httpcore", "uvicorn.access")


def configure_logging(level: str | None = None) -> None:
    """Install the root handler at `level` (falls back to `LOG_LEVEL`, then INFO)."""

    log_level = (level or os.getenv("LOG_LEVEL") or "INFO").upper()
    logging.basicConfig(
        level=log_level,
        format="%(asctime)s %(levelname)s %(name)s %(message)s",
    )

    # Per-request transport lines would duplicate the resolution log line.
    for name in _QUIET_LOGGERS:
        logging.getLogger(name).setLevel(logging.WARNING)
