"""Async client library for the ClickSoora image bridge.

Modules
-------
service
    :class:`ImageGenerationClient` and its parameter/result types.
stream
    Incremental consumer for the NDJSON generation event stream.
"""

from clicksoora.client.service import (
    ClientTimeoutError,
    EditImageParams,
    EditImageResult,
    GenerateImageParams,
    GenerateImageResult,
    ImageFile,
    ImageGenerationClient,
    ImageServiceError,
)
from clicksoora.client.stream import (
    StreamCallbacks,
    StreamLineBuffer,
    consume_stream,
    process_stream_line,
)

__all__ = [
    "ClientTimeoutError",
    "EditImageParams",
    "EditImageResult",
    "GenerateImageParams",
    "GenerateImageResult",
    "ImageFile",
    "ImageGenerationClient",
    "ImageServiceError",
    "StreamCallbacks",
    "StreamLineBuffer",
    "consume_stream",
    "process_stream_line",
]
