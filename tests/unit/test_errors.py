"""Tests for clicksoora.core.errors — the uniform error payload."""

from __future__ import annotations

from clicksoora.core.errors import (
    GENERIC_ERROR,
    MISSING_API_KEY_ERROR,
    MISSING_API_KEY_MESSAGE,
    TIMEOUT_MESSAGE,
    ConfigurationError,
    StreamParseError,
    UpstreamError,
    UpstreamTimeoutError,
    normalize_error,
)


class TestNormalizeError:
    """Tests for normalize_error()."""

    def test_configuration_error(self):
        """A missing credential maps to the fixed 500 payload."""
        status, payload = normalize_error(ConfigurationError())
        assert status == 500
        assert payload == {
            "error": MISSING_API_KEY_ERROR,
            "message": MISSING_API_KEY_MESSAGE,
            "details": {"kind": "configuration"},
        }

    def test_upstream_error_mirrors_status(self):
        """Upstream failures keep the upstream status and pass type/code through."""
        exc = UpstreamError(
            "Your request was rejected",
            status_code=400,
            error_type="invalid_request_error",
            code="content_policy_violation",
        )
        status, payload = normalize_error(exc)
        assert status == 400
        assert payload["error"] == "Your request was rejected"
        assert payload["message"] == "invalid_request_error: content_policy_violation"
        assert payload["details"] == {
            "kind": "upstream",
            "type": "invalid_request_error",
            "code": "content_policy_violation",
        }

    def test_upstream_error_without_code(self):
        """A missing upstream code is reported as unknown."""
        exc = UpstreamError("boom", status_code=503, error_type="server_error")
        _, payload = normalize_error(exc)
        assert payload["message"] == "server_error: unknown error code"

    def test_upstream_error_without_status_is_500(self):
        """Upstream failures with no status (e.g. connection errors) become 500."""
        status, payload = normalize_error(UpstreamError("No image was generated"))
        assert status == 500
        assert "message" not in payload
        assert payload["details"] == {"kind": "upstream"}

    def test_timeout_error(self):
        """Timeouts are 504 and say the work may still finish remotely."""
        status, payload = normalize_error(UpstreamTimeoutError(300.0))
        assert status == 504
        assert payload["message"] == TIMEOUT_MESSAGE
        assert "still be processing" in payload["message"]
        assert payload["details"] == {"kind": "timeout", "timeoutSeconds": 300.0}

    def test_timeout_is_upstream_error(self):
        """Callers catching UpstreamError also see timeouts."""
        assert isinstance(UpstreamTimeoutError(), UpstreamError)

    def test_stream_parse_error(self):
        """Parse failures map to 502 with kind 'parse'."""
        status, payload = normalize_error(StreamParseError("Failed to parse server response"))
        assert status == 502
        assert payload["details"]["kind"] == "parse"

    def test_unknown_exception(self):
        """Unknown exceptions become a generic 500 carrying their text."""
        status, payload = normalize_error(RuntimeError("disk on fire"))
        assert status == 500
        assert payload == {
            "error": GENERIC_ERROR,
            "message": "disk on fire",
            "details": {"kind": "internal"},
        }

    def test_unknown_exception_without_text(self):
        """An exception with no text gets a generic fallback message."""
        _, payload = normalize_error(RuntimeError())
        assert payload["message"] == "Unknown error"
