"""Tests for clicksoora.client.stream — incremental NDJSON consumption.

Tests cover:
- Per-line dispatch to callbacks, including malformed and partial events.
- Reassembly of lines split at arbitrary byte boundaries, including inside
  a multi-byte UTF-8 character.
- The optional escalation policy for consecutive malformed lines.
- Invalid UTF-8 bytes and streams that end without a terminal event.
"""

from __future__ import annotations

import json
from unittest.mock import MagicMock

import pytest

from clicksoora.client.stream import (
    INCOMPLETE_STREAM_ERROR,
    StreamCallbacks,
    StreamLineBuffer,
    consume_stream,
    process_stream_line,
)
from clicksoora.core.errors import StreamParseError

STREAM_EVENTS = [
    {"status": "starting"},
    {"status": "generating"},
    {"status": "progress", "imageData": "aW1hZ2U=", "estimatedCost": 0.07, "model": "gpt-image-1"},
    {"status": "complete"},
]


def _encode(events: list[dict]) -> bytes:
    return "".join(json.dumps(event) + "\n" for event in events).encode("utf-8")


async def _chunked(data: bytes, size: int):
    for start in range(0, len(data), size):
        yield data[start : start + size]


@pytest.fixture
def callbacks() -> StreamCallbacks:
    """StreamCallbacks whose handlers are MagicMocks sharing one parent.

    The shared parent records the call order across all handlers.
    """
    parent = MagicMock()
    return StreamCallbacks(
        on_start=parent.on_start,
        on_generating=parent.on_generating,
        on_progress=parent.on_progress,
        on_complete=parent.on_complete,
        on_error=parent.on_error,
    )


def _call_names(callbacks: StreamCallbacks) -> list[str]:
    return [name for name, _, _ in callbacks.on_start._mock_parent.mock_calls]


class TestProcessStreamLine:
    """Tests for process_stream_line()."""

    def test_dispatches_progress(self, callbacks):
        """progress events pass image data and cost to on_progress."""
        assert process_stream_line(json.dumps(STREAM_EVENTS[2]), callbacks) is True
        callbacks.on_progress.assert_called_once_with("aW1hZ2U=", 0.07)

    def test_blank_line_ignored(self, callbacks):
        """Blank lines are not errors and trigger no callback."""
        assert process_stream_line("   ", callbacks) is True
        assert _call_names(callbacks) == []

    def test_malformed_line_skipped(self, callbacks):
        """Malformed JSON is reported as False without raising."""
        assert process_stream_line('{"status": "progr', callbacks) is False
        assert _call_names(callbacks) == []

    def test_non_object_is_malformed(self, callbacks):
        """Valid JSON that is not an object counts as malformed."""
        assert process_stream_line("[1, 2]", callbacks) is False

    def test_progress_without_image_is_ignored(self, callbacks):
        """A progress event with no image data triggers no callback."""
        process_stream_line('{"status": "progress", "estimatedCost": 0.07}', callbacks)
        callbacks.on_progress.assert_not_called()

    def test_progress_without_cost_defaults_to_zero(self, callbacks):
        """A missing cost is reported as 0."""
        process_stream_line('{"status": "progress", "imageData": "x"}', callbacks)
        callbacks.on_progress.assert_called_once_with("x", 0)

    def test_error_without_message(self, callbacks):
        """An error event without text uses the generic message."""
        process_stream_line('{"status": "error"}', callbacks)
        callbacks.on_error.assert_called_once_with("Unknown error during image generation")

    def test_missing_handler_is_fine(self):
        """Events without a registered handler are simply dropped."""
        assert process_stream_line('{"status": "complete"}', StreamCallbacks()) is True


class TestStreamLineBuffer:
    """Tests for StreamLineBuffer."""

    def test_holds_partial_line(self):
        """Text after the last newline waits for the next chunk."""
        buffer = StreamLineBuffer()
        assert buffer.feed(b'{"status": "sta') == []
        assert buffer.feed(b'rting"}\n{"sta') == ['{"status": "starting"}']
        assert buffer.flush() == '{"sta'

    def test_split_multibyte_character(self):
        """A UTF-8 character split across chunks is decoded intact."""
        data = '{"error": "café"}\n'.encode("utf-8")
        split = data.index(b"\xc3") + 1
        buffer = StreamLineBuffer()
        assert buffer.feed(data[:split]) == []
        assert buffer.feed(data[split:]) == ['{"error": "café"}']

    def test_invalid_bytes_replaced(self):
        """Invalid UTF-8 decodes to replacement characters instead of raising."""
        buffer = StreamLineBuffer()
        assert buffer.feed(b"\xff\xfe\n{\"status\": \"complete\"}\n") == [
            "\ufffd\ufffd",
            '{"status": "complete"}',
        ]

    def test_flush_empty(self):
        """Nothing left over flushes as None."""
        buffer = StreamLineBuffer()
        buffer.feed(b'{"status": "complete"}\n')
        assert buffer.flush() is None


class TestConsumeStream:
    """Tests for consume_stream()."""

    @pytest.mark.parametrize("chunk_size", [1, 2, 7, 64, 10_000])
    async def test_chunking_does_not_change_callbacks(self, callbacks, chunk_size):
        """Callbacks and their order are independent of chunk boundaries."""
        await consume_stream(_chunked(_encode(STREAM_EVENTS), chunk_size), callbacks)

        assert _call_names(callbacks) == ["on_start", "on_generating", "on_progress", "on_complete"]
        callbacks.on_progress.assert_called_once_with("aW1hZ2U=", 0.07)

    async def test_trailing_line_without_newline(self, callbacks):
        """A final line without a newline is still processed."""
        data = _encode(STREAM_EVENTS[:3]) + b'{"status": "complete"}'
        await consume_stream(_chunked(data, 5), callbacks)
        callbacks.on_complete.assert_called_once_with()

    async def test_malformed_line_skipped(self, callbacks):
        """A garbled line between valid events does not abort the stream."""
        data = _encode(STREAM_EVENTS[:2]) + b"{not json\n" + _encode(STREAM_EVENTS[2:])
        await consume_stream(_chunked(data, 3), callbacks)
        assert _call_names(callbacks) == ["on_start", "on_generating", "on_progress", "on_complete"]

    async def test_error_stream(self, callbacks):
        """An in-band error event reaches on_error."""
        data = _encode([{"status": "starting"}, {"status": "error", "error": "Rate limit reached"}])
        await consume_stream(_chunked(data, 4), callbacks)
        callbacks.on_error.assert_called_once_with("Rate limit reached")
        callbacks.on_complete.assert_not_called()

    async def test_escalation_after_consecutive_malformed_lines(self, callbacks):
        """With a limit set, that many consecutive bad lines raise."""
        data = _encode(STREAM_EVENTS[:1]) + b"bad\nbad\nbad\n" + _encode(STREAM_EVENTS[1:])
        with pytest.raises(StreamParseError):
            await consume_stream(_chunked(data, 8), callbacks, max_malformed_lines=3)
        callbacks.on_start.assert_called_once_with()
        callbacks.on_complete.assert_not_called()

    async def test_escalation_counter_resets(self, callbacks):
        """A valid line in between resets the consecutive count."""
        data = (
            b"bad\nbad\n"
            + _encode(STREAM_EVENTS[:1])
            + b"bad\nbad\n"
            + _encode(STREAM_EVENTS[1:])
        )
        await consume_stream(_chunked(data, 8), callbacks, max_malformed_lines=3)
        callbacks.on_complete.assert_called_once_with()

    async def test_invalid_utf8_line_skipped(self, callbacks):
        """Bytes that are not valid UTF-8 only spoil their own line."""
        data = _encode(STREAM_EVENTS[:1]) + b"\xff\xfe garbage\n" + _encode(STREAM_EVENTS[3:])
        await consume_stream(_chunked(data, 3), callbacks)
        assert _call_names(callbacks) == ["on_start", "on_complete"]

    async def test_truncated_stream_raises(self, callbacks):
        """A body that ends before complete or error is reported."""
        with pytest.raises(StreamParseError) as exc_info:
            await consume_stream(_chunked(_encode(STREAM_EVENTS[:3]), 16), callbacks)

        assert exc_info.value.error == INCOMPLETE_STREAM_ERROR
        assert _call_names(callbacks) == ["on_start", "on_generating", "on_progress"]

    async def test_plain_json_body_is_not_a_stream(self, callbacks):
        """A single non-stream JSON object never completes the stream."""
        data = b'{"imageData": "aW1hZ2U=", "estimatedCost": 0.04}\n'
        with pytest.raises(StreamParseError):
            await consume_stream(_chunked(data, 10), callbacks)
        assert _call_names(callbacks) == []

    async def test_error_event_ends_stream_cleanly(self):
        """An error event counts as the end even without an on_error handler."""
        data = _encode([{"status": "starting"}, {"status": "error", "error": "boom"}])
        await consume_stream(_chunked(data, 4), StreamCallbacks())
