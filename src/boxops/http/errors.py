"""Error hierarchy for the instance control-plane client.

These errors are deliberately small: they carry the status code and the
server's message, never the ``httpx.Response`` or request headers, so they
can be logged without leaking the session token.
"""

from __future__ import annotations

import json
from typing import Any


class BoxOpsError(Exception):
    """Base class for every error raised by boxops."""


class ClientError(BoxOpsError):
    """The control plane answered with a non-2xx status."""

    def __init__(
        self,
        status_code: int,
        message: str = "",
        *,
        response_body: str = "",
    ) -> None:
        self.status_code = status_code
        self.message = message
        self.response_body = response_body
        super().__init__(f"Control plane error {status_code}: {message}")


class NotFoundError(ClientError):
    """Resource not found (404)."""

    def __init__(self, message: str = "Resource not found", **kwargs: Any) -> None:
        super().__init__(404, message, **kwargs)


class AuthenticationError(ClientError):
    """Credentials were rejected, or a fresh token was rejected again."""

    def __init__(self, message: str = "Authentication failed", status_code: int = 401, **kwargs: Any) -> None:
        super().__init__(status_code, message, **kwargs)


class TransportError(BoxOpsError):
    """The request never produced a response (connect error, timeout)."""


class ValidationError(ValueError, BoxOpsError):
    """A required argument was blank; raised before any network call."""


def require(value: str | None, name: str) -> str:
    """Return *value* or raise ValidationError when it is blank."""
    if value is None or not str(value).strip():
        raise ValidationError(f"{name} cannot be blank")
    return value


def extract_error_message(body: str) -> str:
    """Best-effort server message: JSON ``message`` field, else the raw body."""
    try:
        payload = json.loads(body)
    except ValueError:
        return body
    if isinstance(payload, dict) and "message" in payload:
        return str(payload["message"])
    return body
