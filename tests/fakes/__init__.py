"""Exports for test fakes."""

from .telemetry import FailingTelemetrySink, RecordingTelemetrySink
from .token_store import RecordingTokenStore
from .transport import ScriptedTransport

__all__ = [
    "FailingTelemetrySink",
    "RecordingTelemetrySink",
    "RecordingTokenStore",
    "ScriptedTransport",
]
