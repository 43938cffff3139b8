"""Client-side consumer for the NDJSON generation event stream.

The server writes one JSON object per line, but the transport is free to
split those lines anywhere, including in the middle of a multi-byte UTF-8
character.  :class:`StreamLineBuffer` reassembles complete lines from raw
byte chunks and :func:`process_stream_line` turns each line into a callback
invocation.  :func:`consume_stream` drives both over an async byte iterator.

Parsing is lenient by default: a malformed line, including one with bytes
that are not valid UTF-8, is logged and skipped so a single bad line never
aborts an otherwise healthy stream.  Callers that prefer to give up on a
garbled stream can set ``max_malformed_lines``.  A body that ends without a
``complete`` or ``error`` event is always reported.
"""

from __future__ import annotations

import codecs
import json
import logging
from collections.abc import AsyncIterable, Callable
from dataclasses import dataclass

from clicksoora.core.errors import StreamParseError
from clicksoora.core.streaming import UNKNOWN_STREAM_ERROR

logger = logging.getLogger(__name__)

TERMINAL_STATUSES = frozenset({"complete", "error"})

INCOMPLETE_STREAM_ERROR = "Stream ended before the image was completed"


@dataclass
class StreamCallbacks:
    """Optional handlers, one per stream status.

    Attributes:
        on_start: Called for ``starting``.
        on_generating: Called for ``generating``.
        on_progress: Called for ``progress`` with ``(image_data, estimated_cost)``.
            A ``progress`` event without image data is ignored.
        on_complete: Called for ``complete``.
        on_error: Called for ``error`` with the error text.  The streaming
            client also routes transport failures here when it is set.
    """

    on_start: Callable[[], None] | None = None
    on_generating: Callable[[], None] | None = None
    on_progress: Callable[[str, float], None] | None = None
    on_complete: Callable[[], None] | None = None
    on_error: Callable[[str], None] | None = None


def _handle_line(line: str, callbacks: StreamCallbacks) -> str | None:
    """Dispatch one line and return its status.

    Returns ``None`` for a malformed line and ``""`` for a blank line or an
    object without a status.
    """
    if not line.strip():
        return ""

    try:
        data = json.loads(line)
    except json.JSONDecodeError as e:
        logger.error(f"Error parsing stream chunk: {e}")
        return None
    if not isinstance(data, dict):
        logger.error(f"Error parsing stream chunk: expected an object, got {type(data).__name__}")
        return None

    status = data.get("status")
    if status == "starting" and callbacks.on_start:
        callbacks.on_start()
    elif status == "generating" and callbacks.on_generating:
        callbacks.on_generating()
    elif status == "progress" and data.get("imageData") and callbacks.on_progress:
        callbacks.on_progress(data["imageData"], data.get("estimatedCost") or 0)
    elif status == "complete" and callbacks.on_complete:
        callbacks.on_complete()
    elif status == "error" and callbacks.on_error:
        callbacks.on_error(data.get("error") or UNKNOWN_STREAM_ERROR)
    return status if isinstance(status, str) else ""


def process_stream_line(line: str, callbacks: StreamCallbacks) -> bool:
    """Dispatch one stream line to the matching callback.

    Args:
        line: One line of the stream, with or without its trailing newline.
        callbacks: Handlers to invoke.

    Returns:
        ``False`` when the line was not valid JSON (or not a JSON object),
        ``True`` otherwise, including blank lines and unknown statuses.
    """
    return _handle_line(line, callbacks) is not None


class StreamLineBuffer:
    """Reassemble newline-terminated text lines from arbitrary byte chunks.

    Decoding is incremental, so a multi-byte character split across two
    chunks is held back until its remaining bytes arrive.  Invalid bytes
    decode to U+FFFD and leave the line to fail JSON parsing on its own.
    """

    def __init__(self) -> None:
        self._decoder = codecs.getincrementaldecoder("utf-8")(errors="replace")
        self._pending = ""

    def feed(self, chunk: bytes) -> list[str]:
        """Add ``chunk`` and return every line it completed, in order."""
        self._pending += self._decoder.decode(chunk)
        *lines, self._pending = self._pending.split("\n")
        return lines

    def flush(self) -> str | None:
        """Return the unterminated remainder at end of stream, if any."""
        remainder = self._pending + self._decoder.decode(b"", final=True)
        self._pending = ""
        return remainder if remainder.strip() else None


async def consume_stream(
    chunks: AsyncIterable[bytes],
    callbacks: StreamCallbacks,
    *,
    max_malformed_lines: int | None = None,
) -> None:
    """Read an event stream to its end, dispatching every line.

    Args:
        chunks: Raw response body chunks.
        callbacks: Handlers to invoke per line.
        max_malformed_lines: Give up after this many *consecutive* malformed
            lines.  ``None`` skips malformed lines forever.

    Raises:
        StreamParseError: If ``max_malformed_lines`` is reached, or the body
            ends without a ``complete`` or ``error`` event.
    """
    buffer = StreamLineBuffer()
    malformed = 0
    finished = False

    def dispatch(line: str) -> None:
        nonlocal malformed, finished
        status = _handle_line(line, callbacks)
        if status is not None:
            if line.strip():
                malformed = 0
            finished = finished or status in TERMINAL_STATUSES
            return
        malformed += 1
        if max_malformed_lines is not None and malformed >= max_malformed_lines:
            raise StreamParseError(
                f"Giving up after {malformed} malformed stream lines",
                details={"malformedLines": malformed},
            )

    async for chunk in chunks:
        for line in buffer.feed(chunk):
            dispatch(line)

    remainder = buffer.flush()
    if remainder is not None:
        dispatch(remainder)

    if not finished:
        raise StreamParseError(INCOMPLETE_STREAM_ERROR)
