"""Tests for shared observability logging."""

import logging
import time

import pytest

from resilient_http.observability.logging import get_logger, mask_secret


def test_get_logger_formats_utc_timestamps(
    monkeypatch: pytest.MonkeyPatch, capsys: pytest.CaptureFixture[str]
) -> None:
    fixed = time.struct_time((2020, 1, 2, 3, 4, 5, 3, 2, 0))

    def fake_gmtime(_: float | None = None) -> time.struct_time:
        return fixed

    monkeypatch.setattr(time, "gmtime", fake_gmtime)

    name = "resilient_http.test.logging"
    logger = get_logger(name)
    logger.info("Hello")

    captured = capsys.readouterr()
    assert "2020-01-02T03:04:05+0000 INFO resilient_http.test.logging: Hello" in captured.err


def test_get_logger_is_singleton_per_name() -> None:
    name = "resilient_http.test.logging.singleton"
    logger = get_logger(name)
    logger_again = get_logger(name)

    assert logger is logger_again
    assert len(logger.handlers) == 1
    assert logger.level == logging.INFO


def test_get_logger_reads_level_from_environment(monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.setenv("RESILIENT_HTTP_LOG_LEVEL", "debug")

    logger = get_logger("resilient_http.test.logging.env_level")

    assert logger.level == logging.DEBUG


def test_get_logger_ignores_unknown_level(monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.setenv("RESILIENT_HTTP_LOG_LEVEL", "chatty")

    logger = get_logger("resilient_http.test.logging.unknown_level")

    assert logger.level == logging.INFO


def test_explicit_level_overrides_existing_logger() -> None:
    name = "resilient_http.test.logging.explicit"
    get_logger(name)

    assert get_logger(name, level=logging.WARNING).level == logging.WARNING


def test_mask_secret_keeps_prefix_only() -> None:
    assert mask_secret("abcdef123456") == "abcd********"
    assert mask_secret("abc") == "***"
