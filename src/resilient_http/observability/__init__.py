"""Logging and telemetry for the request engine."""

from .logging import get_logger, mask_secret
from .telemetry import LoggingTelemetrySink, NullTelemetrySink, format_event

__all__ = [
    "LoggingTelemetrySink",
    "NullTelemetrySink",
    "format_event",
    "get_logger",
    "mask_secret",
]
