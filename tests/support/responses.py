"""Builders for raw ``requests.Response`` objects."""

from __future__ import annotations

from collections.abc import Mapping

import requests


def make_response(
    status_code: int = 200,
    body: bytes | str = b"",
    *,
    headers: Mapping[str, str] | None = None,
    encoding: str | None = "utf-8",
    url: str = "https://api.example.com/",
) -> requests.Response:
    response = requests.Response()
    response.status_code = status_code
    response._content = body.encode("utf-8") if isinstance(body, str) else body
    response.headers.update(headers or {})
    response.encoding = encoding
    response.url = url
    return response


def token_response(token: str = "abc123", *, status_code: int = 200) -> requests.Response:
    return make_response(
        status_code,
        f'{{"access_token":"{token}","token_type":"Bearer","expires_in":3600}}',
        headers={"Content-Type": "application/json"},
        url="https://auth.example.com/token",
    )
