"""Tests for response body decoders."""

from __future__ import annotations

from typing import TypedDict

import pytest

from resilient_http.infrastructure.decoders import discarding, json_as, of_bytes, of_string
from resilient_http.io_validation import IncomingDataError
from tests.support.responses import make_response


class _Status(TypedDict):
    status: str


def test_of_bytes_returns_raw_content() -> None:
    assert of_bytes(make_response(body=b"\x00\x01")) == b"\x00\x01"


def test_of_string_uses_declared_encoding() -> None:
    response = make_response(body="café".encode("latin-1"), encoding="latin-1")

    assert of_string(response) == "café"


def test_of_string_falls_back_to_utf8() -> None:
    response = make_response(body="naïve".encode(), encoding=None)

    assert of_string(response) == "naïve"


def test_discarding_returns_none() -> None:
    assert discarding(make_response(body=b"ignored")) is None


def test_json_as_validates_body() -> None:
    decoder = json_as(_Status)

    assert decoder(make_response(body='{"status": "ok"}')) == {"status": "ok"}
    with pytest.raises(IncomingDataError):
        decoder(make_response(body='{"status": 1}'))
