"""Shared logging utilities for the request engine.

Usage example:
    from resilient_http.observability.logging import get_logger

    logger = get_logger("resilient_http.http")
    logger.info("Retrying %s after %.2fs", url, delay)
"""

from __future__ import annotations

import logging
import os
import time

_LOG_FORMAT = "%(asctime)s %(levelname)s %(name)s: %(message)s"
_LOG_DATE_FORMAT = "%Y-%m-%dT%H:%M:%S%z"
_LEVEL_ENV_VAR = "RESILIENT_HTTP_LOG_LEVEL"


def _default_level() -> int:
    name = os.getenv(_LEVEL_ENV_VAR, "").strip().upper()
    level = logging.getLevelName(name) if name else logging.INFO
    return level if isinstance(level, int) else logging.INFO


def _stream_handler() -> logging.Handler:
    handler = logging.StreamHandler()
    formatter = logging.Formatter(fmt=_LOG_FORMAT, datefmt=_LOG_DATE_FORMAT)
    formatter.converter = time.gmtime
    handler.setFormatter(formatter)
    return handler


def get_logger(name: str, *, level: int | None = None) -> logging.Logger:
    """Return a logger writing UTC-stamped lines to stderr.

    The handler is attached once per name. The level comes from ``level`` when given,
    otherwise from ``RESILIENT_HTTP_LOG_LEVEL`` (default INFO).
    """
    logger = logging.getLogger(name)
    if not logger.handlers:
        logger.addHandler(_stream_handler())
        logger.setLevel(_default_level() if level is None else level)
        logger.propagate = False
    elif level is not None:
        logger.setLevel(level)
    return logger


def mask_secret(secret: str, *, visible: int = 4) -> str:
    """Keep the first ``visible`` characters of a secret and hide the rest."""
    if len(secret) <= visible:
        return "*" * len(secret)
    return f"{secret[:visible]}{'*' * 8}"
