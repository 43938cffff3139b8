"""Staged event stream around a single upstream generation call.

The image service has no progressive-generation signal: one call goes out,
one finished image comes back.  To give the browser something to show in
the meantime, the bridge wraps that call in a fixed sequence of events,
each written as one JSON object per line (NDJSON)::

    {"status": "starting"}
    {"status": "generating"}
    {"status": "progress", "imageData": "...", "estimatedCost": 0.07, ...}
    {"status": "complete"}

State machine
-------------
``starting``
    Emitted as soon as the request is accepted, before any upstream call.
``generating``
    Emitted once, immediately before the upstream call is issued.
``progress``
    Emitted once, after the call returns, carrying the *full* image and the
    cost estimate.  It is not partial pixel data.
``complete``
    Emitted once after ``progress``; no payload.
``error``
    Absorbing state.  Replaces ``progress``/``complete`` when anything
    fails after the stream has started; carries a message string.

Exactly one upstream call is made per stream.  Each event is yielded as its
own chunk, so the ASGI server flushes it to the socket immediately.
"""

from __future__ import annotations

import logging
from collections.abc import AsyncIterator
from typing import Any, Literal

from pydantic import BaseModel, ConfigDict, Field

from .errors import ClickSooraError
from .models import DallE3Params, GptImageParams
from .producers import ImageProducerBase

logger = logging.getLogger(__name__)

StreamStatus = Literal["starting", "generating", "progress", "complete", "error"]

TERMINAL_STATUSES: frozenset[str] = frozenset({"complete", "error"})

STREAM_MEDIA_TYPE = "text/event-stream"
STREAM_HEADERS = {
    "Cache-Control": "no-cache",
    "Connection": "keep-alive",
}

UNKNOWN_STREAM_ERROR = "Unknown error during image generation"


class StreamEvent(BaseModel):
    """One line of the generation event stream.

    Only ``progress`` carries image data and cost; only ``error`` carries an
    error message.  Fields that are ``None`` are left out of the wire form.
    """

    model_config = ConfigDict(populate_by_name=True)

    status: StreamStatus
    image_data: str | None = Field(default=None, alias="imageData")
    estimated_cost: float | None = Field(default=None, alias="estimatedCost")
    model: str | None = None
    quality: str | None = None
    size: str | None = None
    output_format: str | None = Field(default=None, alias="outputFormat")
    transparent: bool | None = None
    error: str | None = None
    kind: str | None = None

    @property
    def is_terminal(self) -> bool:
        return self.status in TERMINAL_STATUSES


def encode_event(event: StreamEvent) -> bytes:
    """Serialize one event as a UTF-8 JSON line terminated by ``\\n``."""
    return (event.model_dump_json(by_alias=True, exclude_none=True) + "\n").encode("utf-8")


def error_event(exc: BaseException) -> StreamEvent:
    """Build the terminal ``error`` event for ``exc``."""
    if isinstance(exc, ClickSooraError):
        text = exc.error
        if exc.kind == "timeout" and exc.message:
            text = f"{exc.error}. {exc.message}"
        return StreamEvent(status="error", error=text, kind=exc.kind)
    return StreamEvent(status="error", error=str(exc) or UNKNOWN_STREAM_ERROR, kind="internal")


async def stream_generation(
    params: DallE3Params | GptImageParams,
    producer: ImageProducerBase,
    *,
    estimated_cost: float,
    echo: dict[str, Any] | None = None,
) -> AsyncIterator[bytes]:
    """Yield the NDJSON event stream for one generation.

    Args:
        params: Validated model parameters.
        producer: Image producer that makes the single upstream call.
        estimated_cost: Cost attached to the ``progress`` event.
        echo: Request values echoed in the ``progress`` event
            (``model``, ``quality``, ``size``, ``outputFormat``,
            ``transparent``).

    Yields:
        Encoded event lines, strictly in state-machine order.
    """
    yield encode_event(StreamEvent(status="starting"))

    try:
        yield encode_event(StreamEvent(status="generating"))
        result = await producer.generate(params)
        progress = StreamEvent.model_validate(
            {
                **(echo or {}),
                "status": "progress",
                "imageData": result.image_data,
                "estimatedCost": estimated_cost,
            }
        )
    except Exception as e:
        logger.error(f"Error in stream: {e}", exc_info=not isinstance(e, ClickSooraError))
        yield encode_event(error_event(e))
        return

    yield encode_event(progress)
    yield encode_event(StreamEvent(status="complete"))
