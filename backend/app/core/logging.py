"""Process-wide logging setup."""
from __future__ import annotations

import logging

LOG_FORMAT = "%(asctime)s | %(levelname)s | %(name)s | %(message)s"


def configure_logging(level: str = "INFO") -> None:
    """Attach a single stream handler to the ``app`` logger hierarchy."""

    logger = logging.getLogger("app")
    resolved = getattr(logging, level.upper(), None) or logging.INFO
    logger.setLevel(resolved)
    if not logger.handlers:
        handler = logging.StreamHandler()
        handler.setFormatter(logging.Formatter(fmt=LOG_FORMAT))
        logger.addHandler(handler)
