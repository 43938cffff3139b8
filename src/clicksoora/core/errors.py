"""Error taxonomy and the uniform client-facing error shape.

Every failure that can reach a client is converted by :func:`normalize_error`
into an HTTP status code and a payload of the form::

    {"error": str, "message": str, "details": {...}}

``message`` and ``details`` are omitted when there is nothing to report.
``details.kind`` always carries a machine-readable failure class so that a
client can branch without parsing the human-readable text.

Failure classes
---------------
========================  ======  ==========================================
Exception                 Status  Kind
========================  ======  ==========================================
ConfigurationError        500     ``configuration``
ValidationError           400     ``validation``
UpstreamTimeoutError      504     ``timeout``
UpstreamError             varies  ``upstream`` (mirrors the upstream status)
StreamParseError          502     ``parse``
anything else             500     ``internal``
========================  ======  ==========================================

``ValidationError`` is defined in :mod:`clicksoora.core.validation` next to
the checks that raise it, and re-exported here.
"""

from __future__ import annotations

import logging
from typing import Any

logger = logging.getLogger(__name__)

GENERIC_ERROR = "An unexpected error occurred"

MISSING_API_KEY_ERROR = "OpenAI API key is not configured"
MISSING_API_KEY_MESSAGE = "Please set the OPENAI_API_KEY environment variable"

TIMEOUT_MESSAGE = (
    "The image service did not respond in time. "
    "The image might still be processing; please try again."
)


class ClickSooraError(Exception):
    """Base class for every failure the bridge knows how to report.

    Attributes:
        status_code: HTTP status returned to the client.
        kind: Machine-readable failure class.
        message: Optional secondary text shown under the error.
        details: Optional machine-readable detail block.
    """

    status_code: int = 500
    kind: str = "internal"

    def __init__(
        self,
        error: str,
        *,
        message: str | None = None,
        details: dict[str, Any] | None = None,
    ) -> None:
        super().__init__(error)
        self.error = error
        self.message = message
        self.details = details or {}

    def to_payload(self) -> dict[str, Any]:
        """Return the uniform error payload for this failure."""
        payload: dict[str, Any] = {"error": self.error}
        if self.message:
            payload["message"] = self.message
        payload["details"] = {"kind": self.kind, **self.details}
        return payload


class ConfigurationError(ClickSooraError):
    """The server is missing its upstream credential.

    The message is fixed so that every request path reports the condition
    identically.
    """

    status_code = 500
    kind = "configuration"

    def __init__(self) -> None:
        super().__init__(MISSING_API_KEY_ERROR, message=MISSING_API_KEY_MESSAGE)


class UpstreamError(ClickSooraError):
    """The external image service reported a failure.

    Args:
        error: Upstream error text (or a generic fallback).
        status_code: Upstream HTTP status, ``None`` when unavailable.
        error_type: Upstream error ``type`` field, passed through verbatim.
        code: Upstream error ``code`` field, passed through verbatim.
    """

    kind = "upstream"

    def __init__(
        self,
        error: str,
        *,
        status_code: int | None = None,
        error_type: str | None = None,
        code: str | None = None,
    ) -> None:
        message = None
        details: dict[str, Any] = {}
        if error_type is not None or code is not None:
            message = f"{error_type}: {code or 'unknown error code'}"
            details = {"type": error_type, "code": code}
        super().__init__(error or "OpenAI API error", message=message, details=details)
        self.status_code = status_code or 500
        self.error_type = error_type
        self.code = code


class UpstreamTimeoutError(UpstreamError):
    """The upstream call exceeded its deadline.

    Always surfaced as retryable: the remote side may still finish the job.
    """

    kind = "timeout"

    def __init__(self, timeout_seconds: float | None = None) -> None:
        super().__init__("Image generation timed out", status_code=504)
        self.message = TIMEOUT_MESSAGE
        if timeout_seconds is not None:
            self.details = {"timeoutSeconds": timeout_seconds}


class StreamParseError(ClickSooraError):
    """A response body (or too many stream lines) could not be decoded."""

    status_code = 502
    kind = "parse"


def normalize_error(exc: BaseException) -> tuple[int, dict[str, Any]]:
    """Map any exception onto ``(status_code, payload)``.

    Known failures use their own status and payload.  Anything else becomes
    a 500 whose ``message`` is the exception text, or a generic fallback
    when the exception carries no text.  Stack traces are never included.

    Args:
        exc: The exception caught at the request boundary.

    Returns:
        Tuple of HTTP status code and JSON-serialisable payload.
    """
    if isinstance(exc, ClickSooraError):
        return exc.status_code, exc.to_payload()

    text = str(exc).strip()
    return 500, {
        "error": GENERIC_ERROR,
        "message": text or "Unknown error",
        "details": {"kind": "internal"},
    }
