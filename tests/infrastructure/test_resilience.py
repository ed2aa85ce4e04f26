"""Tests for retry policies and cancellation tokens."""

from __future__ import annotations

import threading
import time

import pytest

from resilient_http.exceptions import ConfigurationError, RequestCancelledError
from resilient_http.infrastructure.resilience import (
    CancellationToken,
    RetryDecision,
    constant_delay,
    exponential_backoff,
    incremental_delay,
    limit_retries,
)
from resilient_http.protocols import RetryPolicy as RetryPolicyProtocol


class TestCanonicalPolicies:
    """Tests for the bounded and incremental policies."""

    def test_limit_retries_allows_n_retries_without_delay(self) -> None:
        policy = limit_retries(3)

        assert [policy.decide(attempt) for attempt in range(1, 6)] == [0.0, 0.0, 0.0, None, None]

    def test_limit_retries_zero_never_retries(self) -> None:
        assert limit_retries(0).decide(1) is None

    def test_limit_retries_rejects_negative_bound(self) -> None:
        with pytest.raises(ConfigurationError):
            limit_retries(-1)

    def test_incremental_delay_is_linear_and_unbounded(self) -> None:
        policy = incremental_delay(0.5)

        assert [policy.decide(attempt) for attempt in (1, 2, 3, 100)] == [0.5, 1.0, 1.5, 50.0]

    def test_attempts_are_numbered_from_one(self) -> None:
        with pytest.raises(ConfigurationError):
            incremental_delay(1.0).decide(0)

    def test_negative_delays_are_rejected(self) -> None:
        with pytest.raises(ConfigurationError):
            incremental_delay(-0.1)
        with pytest.raises(ConfigurationError):
            constant_delay(float("nan"))

    def test_policies_are_deterministic(self) -> None:
        policy = limit_retries(5).append(exponential_backoff(0.1))

        assert [policy.decide(n) for n in range(1, 8)] == [policy.decide(n) for n in range(1, 8)]

    def test_policies_conform_to_protocol(self) -> None:
        assert isinstance(limit_retries(1), RetryPolicyProtocol)
        assert isinstance(incremental_delay(1.0).cap_delay(2.0), RetryPolicyProtocol)


class TestCombinators:
    """Tests for composing policies."""

    def test_append_stops_when_bound_stops(self) -> None:
        policy = limit_retries(2).append(incremental_delay(1.0))

        assert [policy.decide(attempt) for attempt in (1, 2, 3)] == [1.0, 2.0, None]

    def test_append_is_symmetric_and_uses_the_longer_delay(self) -> None:
        left = constant_delay(1.5).append(incremental_delay(1.0))
        right = incremental_delay(1.0).append(constant_delay(1.5))

        assert [left.decide(n) for n in (1, 2, 3)] == [1.5, 2.0, 3.0]
        assert [right.decide(n) for n in (1, 2, 3)] == [1.5, 2.0, 3.0]

    def test_followed_by_falls_back_once_first_stops(self) -> None:
        policy = limit_retries(2).append(constant_delay(0.1)).followed_by(constant_delay(5.0))

        assert [policy.decide(n) for n in (1, 2, 3, 4)] == [0.1, 0.1, 5.0, 5.0]

    def test_cap_delay(self) -> None:
        policy = exponential_backoff(1.0).cap_delay(5.0)

        assert [policy.decide(n) for n in (1, 2, 3, 4, 5)] == [1.0, 2.0, 4.0, 5.0, 5.0]

    def test_limit_retries_by_delay_stops_at_threshold(self) -> None:
        policy = exponential_backoff(1.0).limit_retries_by_delay(4.0)

        assert [policy.decide(n) for n in (1, 2, 3, 4)] == [1.0, 2.0, None, None]

    def test_limit_retries_by_cumulative_delay(self) -> None:
        policy = incremental_delay(1.0).limit_retries_by_cumulative_delay(6.0)

        assert [policy.decide(n) for n in (1, 2, 3, 4)] == [1.0, 2.0, 3.0, None]

    def test_simulate_produces_schedule_until_stop(self) -> None:
        policy = limit_retries(3).append(incremental_delay(0.5))

        assert policy.simulate(10) == [
            RetryDecision(attempt=1, delay_seconds=0.5, cumulative_delay_seconds=0.5),
            RetryDecision(attempt=2, delay_seconds=1.0, cumulative_delay_seconds=1.5),
            RetryDecision(attempt=3, delay_seconds=1.5, cumulative_delay_seconds=3.0),
        ]

    def test_simulate_rejects_non_positive_iterations(self) -> None:
        with pytest.raises(ConfigurationError):
            constant_delay(1.0).simulate(0)


class TestCancellationToken:
    """Tests for cooperative cancellation."""

    def test_cancel_is_idempotent_and_keeps_first_reason(self) -> None:
        token = CancellationToken()

        token.cancel("first")
        token.cancel("second")

        assert token.cancelled
        with pytest.raises(RequestCancelledError, match="first"):
            token.raise_if_cancelled()

    def test_parent_cancellation_reaches_linked_children(self) -> None:
        parent = CancellationToken()
        other = CancellationToken()
        child = CancellationToken.linked(parent, None, other)

        parent.cancel("client shut down")

        assert child.cancelled
        assert not other.cancelled

    def test_linking_to_cancelled_parent_cancels_immediately(self) -> None:
        parent = CancellationToken()
        parent.cancel()

        assert CancellationToken(parent).cancelled

    def test_wait_returns_after_delay_when_not_cancelled(self) -> None:
        token = CancellationToken()
        started = time.monotonic()

        token.wait(0.01)

        assert time.monotonic() - started >= 0.009

    def test_wait_wakes_up_on_cancel(self) -> None:
        token = CancellationToken()
        timer = threading.Timer(0.05, token.cancel)
        started = time.monotonic()
        timer.start()
        try:
            with pytest.raises(RequestCancelledError):
                token.wait(30.0)
        finally:
            timer.cancel()

        assert time.monotonic() - started < 5.0
