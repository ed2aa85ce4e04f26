"""Response body decoders.

A decoder turns the raw ``requests.Response`` into the body type the caller wants.
Any error a decoder raises is reported to the caller as ``ResponseDecodeError``.

Usage example:
    from resilient_http.infrastructure.decoders import json_as, of_string

    response = client.send(HttpRequest.get("https://api.example.com/items"), of_string)
    items = client.send(HttpRequest.get("https://api.example.com/items"), json_as(list[dict[str, object]]))
"""

from __future__ import annotations

from collections.abc import Callable

import requests

from ..io_validation import validate_json_as


def of_bytes(response: requests.Response) -> bytes:
    return response.content


def of_string(response: requests.Response) -> str:
    """Decode with the charset from Content-Type, falling back to UTF-8."""
    if response.encoding is None:
        return response.content.decode("utf-8", errors="replace")
    return response.text


def discarding(response: requests.Response) -> None:
    _ = response
    return None


def json_as[SchemaT](schema: type[SchemaT]) -> Callable[[requests.Response], SchemaT]:
    """Build a decoder that validates the JSON body against ``schema`` with pydantic."""

    def _decode(response: requests.Response) -> SchemaT:
        return validate_json_as(schema, response.content)

    return _decode
