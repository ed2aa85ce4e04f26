"""Retry policies and cancellation for the request engine.

A retry policy is a pure function of the attempt ordinal: ``decide(attempt)`` returns
the delay in seconds before retry number ``attempt`` (starting at 1), or None to stop.
Policies never read the clock or sleep; waiting is the caller's job.

Usage example:
    from resilient_http.infrastructure.resilience import incremental_delay, limit_retries

    policy = limit_retries(3).append(incremental_delay(0.5))
    policy.decide(1)  # 0.5
    policy.decide(4)  # None
"""

from __future__ import annotations

import math
import threading
import weakref
from abc import ABC, abstractmethod
from dataclasses import dataclass
from typing import override

from ..exceptions import ConfigurationError, RequestCancelledError
from ..protocols import RetryPolicy as RetryPolicyProtocol


def _check_attempt(attempt: int) -> None:
    if attempt < 1:
        raise ConfigurationError(f"Retry attempts are numbered from 1, got {attempt}.")


def _check_delay(name: str, seconds: float) -> None:
    if seconds < 0 or math.isnan(seconds):
        raise ConfigurationError(f"{name} must be a non-negative number of seconds.")


@dataclass(frozen=True)
class RetryDecision:
    """One row of a simulated retry schedule."""

    attempt: int
    delay_seconds: float
    cumulative_delay_seconds: float


class RetryPolicy(RetryPolicyProtocol, ABC):
    """Base class carrying the combinators shared by every policy."""

    @abstractmethod
    def decide(self, attempt: int) -> float | None:
        raise NotImplementedError

    def append(self, other: RetryPolicyProtocol) -> RetryPolicy:
        """Stop when either policy stops; otherwise wait for the longer of both delays."""
        return AppendedPolicy(self, other)

    def followed_by(self, other: RetryPolicyProtocol) -> RetryPolicy:
        """Use this policy until it stops, then fall back to ``other``."""
        return FollowedByPolicy(self, other)

    def cap_delay(self, max_seconds: float) -> RetryPolicy:
        return CappedDelay(self, max_seconds)

    def limit_retries_by_delay(self, max_seconds: float) -> RetryPolicy:
        """Stop once the proposed delay reaches ``max_seconds``."""
        return LimitRetriesByDelay(self, max_seconds)

    def limit_retries_by_cumulative_delay(self, max_seconds: float) -> RetryPolicy:
        """Stop once the total wait so far would exceed ``max_seconds``."""
        return LimitRetriesByCumulativeDelay(self, max_seconds)

    def simulate(self, iterations: int) -> list[RetryDecision]:
        """Return the schedule the policy produces for up to ``iterations`` retries."""
        if iterations <= 0:
            raise ConfigurationError("iterations must be a positive integer.")
        schedule: list[RetryDecision] = []
        cumulative = 0.0
        for attempt in range(1, iterations + 1):
            delay = self.decide(attempt)
            if delay is None:
                break
            cumulative += delay
            schedule.append(RetryDecision(attempt, delay, cumulative))
        return schedule


@dataclass(frozen=True)
class LimitRetries(RetryPolicy):
    """Allow ``max_retries`` retries without adding any delay."""

    max_retries: int

    def __post_init__(self) -> None:
        if self.max_retries < 0:
            raise ConfigurationError("max_retries must not be negative.")

    @override
    def decide(self, attempt: int) -> float | None:
        _check_attempt(attempt)
        return 0.0 if attempt <= self.max_retries else None


@dataclass(frozen=True)
class IncrementalDelay(RetryPolicy):
    """Linear backoff ``base * attempt``. Never stops on its own."""

    base_seconds: float

    def __post_init__(self) -> None:
        _check_delay("base_seconds", self.base_seconds)

    @override
    def decide(self, attempt: int) -> float | None:
        _check_attempt(attempt)
        return self.base_seconds * attempt


@dataclass(frozen=True)
class ConstantDelay(RetryPolicy):
    """Same delay for every retry. Never stops on its own."""

    delay_seconds: float

    def __post_init__(self) -> None:
        _check_delay("delay_seconds", self.delay_seconds)

    @override
    def decide(self, attempt: int) -> float | None:
        _check_attempt(attempt)
        return self.delay_seconds


@dataclass(frozen=True)
class ExponentialBackoff(RetryPolicy):
    """Exponential backoff ``base * 2 ** (attempt - 1)``. Never stops on its own."""

    base_seconds: float

    def __post_init__(self) -> None:
        _check_delay("base_seconds", self.base_seconds)

    @override
    def decide(self, attempt: int) -> float | None:
        _check_attempt(attempt)
        return self.base_seconds * (2 ** (attempt - 1))


@dataclass(frozen=True)
class AppendedPolicy(RetryPolicy):
    first: RetryPolicyProtocol
    second: RetryPolicyProtocol

    @override
    def decide(self, attempt: int) -> float | None:
        first_delay = self.first.decide(attempt)
        if first_delay is None:
            return None
        second_delay = self.second.decide(attempt)
        if second_delay is None:
            return None
        return max(first_delay, second_delay)


@dataclass(frozen=True)
class FollowedByPolicy(RetryPolicy):
    first: RetryPolicyProtocol
    fallback: RetryPolicyProtocol

    @override
    def decide(self, attempt: int) -> float | None:
        delay = self.first.decide(attempt)
        return self.fallback.decide(attempt) if delay is None else delay


@dataclass(frozen=True)
class CappedDelay(RetryPolicy):
    inner: RetryPolicyProtocol
    max_seconds: float

    def __post_init__(self) -> None:
        _check_delay("max_seconds", self.max_seconds)

    @override
    def decide(self, attempt: int) -> float | None:
        delay = self.inner.decide(attempt)
        if delay is None:
            return None
        return min(delay, self.max_seconds)


@dataclass(frozen=True)
class LimitRetriesByDelay(RetryPolicy):
    inner: RetryPolicyProtocol
    max_seconds: float

    def __post_init__(self) -> None:
        _check_delay("max_seconds", self.max_seconds)

    @override
    def decide(self, attempt: int) -> float | None:
        delay = self.inner.decide(attempt)
        if delay is None or delay >= self.max_seconds:
            return None
        return delay


@dataclass(frozen=True)
class LimitRetriesByCumulativeDelay(RetryPolicy):
    inner: RetryPolicyProtocol
    max_seconds: float

    def __post_init__(self) -> None:
        _check_delay("max_seconds", self.max_seconds)

    @override
    def decide(self, attempt: int) -> float | None:
        _check_attempt(attempt)
        # Recomputed from the inner policy so the decision depends on the ordinal alone.
        waited = 0.0
        for previous in range(1, attempt):
            previous_delay = self.inner.decide(previous)
            if previous_delay is None:
                return None
            waited += previous_delay
        delay = self.inner.decide(attempt)
        if delay is None or waited + delay > self.max_seconds:
            return None
        return delay


def limit_retries(max_retries: int) -> RetryPolicy:
    return LimitRetries(max_retries)


def incremental_delay(base_seconds: float) -> RetryPolicy:
    return IncrementalDelay(base_seconds)


def constant_delay(delay_seconds: float) -> RetryPolicy:
    return ConstantDelay(delay_seconds)


def exponential_backoff(base_seconds: float) -> RetryPolicy:
    return ExponentialBackoff(base_seconds)


class CancellationToken:
    """Cancellation signal for one logical request.

    A token can be linked to parent tokens; cancelling any parent cancels the child.
    ``wait`` blocks on an event rather than polling, and wakes up as soon as the
    token is cancelled.
    """

    def __init__(self, *parents: CancellationToken) -> None:
        self._event = threading.Event()
        self._lock = threading.Lock()
        self._children: weakref.WeakSet[CancellationToken] = weakref.WeakSet()
        self.reason = "Request was cancelled"
        for parent in parents:
            parent._adopt(self)

    @classmethod
    def linked(cls, *parents: CancellationToken | None) -> CancellationToken:
        return cls(*(parent for parent in parents if parent is not None))

    @property
    def cancelled(self) -> bool:
        return self._event.is_set()

    def cancel(self, reason: str | None = None) -> None:
        with self._lock:
            if self._event.is_set():
                return
            if reason:
                self.reason = reason
            self._event.set()
            children = list(self._children)
        for child in children:
            child.cancel(self.reason)

    def raise_if_cancelled(self) -> None:
        if self._event.is_set():
            raise RequestCancelledError(self.reason)

    def wait(self, seconds: float) -> None:
        """Wait up to ``seconds``; raise RequestCancelledError if cancelled meanwhile."""
        if seconds > 0:
            self._event.wait(seconds)
        self.raise_if_cancelled()

    def _adopt(self, child: CancellationToken) -> None:
        with self._lock:
            if not self._event.is_set():
                self._children.add(child)
                return
        child.cancel(self.reason)
