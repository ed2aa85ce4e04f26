"""Pydantic-based validation helpers for inbound payloads."""

from __future__ import annotations

from typing import TypedDict

from pydantic import TypeAdapter, ValidationError


class IncomingDataError(ValueError):
    """Raised when inbound data fails validation."""


class AccessTokenResponseInput(TypedDict, total=False):
    access_token: str | None
    token_type: str | None
    expires_in: int | None
    scope: str | None


def validate_json_as[SchemaT](schema: type[SchemaT], payload: str | bytes | bytearray) -> SchemaT:
    try:
        return TypeAdapter(schema).validate_json(payload)
    except ValidationError as exc:
        message = f"Invalid JSON payload for {schema}."
        raise IncomingDataError(message) from exc


def parse_access_token_response(payload: str | bytes | bytearray) -> AccessTokenResponseInput:
    """Parse a token endpoint body; the object may carry any extra fields."""
    return validate_json_as(AccessTokenResponseInput, payload)
