"""Token store fakes for tests."""

from __future__ import annotations

import threading
from dataclasses import dataclass, field
from typing import override

from resilient_http.protocols import TokenStore


def _empty_writes() -> list[str]:
    return []


@dataclass
class RecordingTokenStore(TokenStore):
    """Token store counting reads and keeping every written token."""

    token: str | None = None
    reads: int = 0
    writes: list[str] = field(default_factory=_empty_writes)
    _lock: threading.Lock = field(default_factory=threading.Lock, repr=False)

    @override
    def get(self) -> str | None:
        with self._lock:
            self.reads += 1
            return self.token

    @override
    def set(self, token: str) -> None:
        with self._lock:
            self.writes.append(token)
            self.token = token
