"""Logging configuration for the CLI and the HTTP server."""

from __future__ import annotations

import logging
import sys

LOG_FORMAT = "%(asctime)s [%(levelname)s] %(name)s: %(message)s"
LOG_DATEFMT = "%Y-%m-%d %H:%M:%S"

_handler: logging.Handler | None = None


def setup_logging(level: str | int = "INFO") -> logging.Handler:
    """Attach a single console handler to the ``vision_ocr`` logger.

    Calling this again only updates the level; handlers are never duplicated.
    Records go to stderr so JSON printed by the CLI on stdout stays parseable.
    """
    global _handler
    if isinstance(level, str):
        resolved = logging.getLevelName(level.upper())
        level = resolved if isinstance(resolved, int) else logging.INFO

    logger = logging.getLogger("vision_ocr")
    logger.setLevel(level)
    if _handler is None:
        _handler = logging.StreamHandler(sys.stderr)
        _handler.setFormatter(logging.Formatter(LOG_FORMAT, datefmt=LOG_DATEFMT))
        logger.addHandler(_handler)
    _handler.setLevel(level)
    return _handler
