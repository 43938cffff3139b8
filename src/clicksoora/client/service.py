"""Async client for the image bridge API.

:class:`ImageGenerationClient` wraps the three bridge endpoints used by a
frontend (generate, streaming generate, edit) plus the health check.  Every
request is bounded by a wall-clock timeout (three minutes by default,
``CLICKSOORA_CLIENT_TIMEOUT_SECONDS``) that covers connecting, waiting and
reading the whole body.

Failures surface as:

- :class:`ImageServiceError`: the bridge answered with a non-2xx status or
  could not be reached.  ``message`` is the payload's ``error`` text.
- :class:`ClientTimeoutError`: the wall-clock bound elapsed.  The image may
  still be produced remotely.
- :class:`~clicksoora.core.errors.StreamParseError`: a non-streaming reply
  body was not the expected JSON.

Example::

    async with ImageGenerationClient("http://localhost:7860") as client:
        result = await client.generate_image(
            GenerateImageParams(prompt="a red bicycle", quality="medium")
        )
"""

from __future__ import annotations

import asyncio
import logging
from collections.abc import Awaitable
from dataclasses import dataclass, field
from typing import Any, TypeVar

import httpx

from clicksoora.client.stream import StreamCallbacks, consume_stream
from clicksoora.core.config import config
from clicksoora.core.cost import estimate, estimate_edit
from clicksoora.core.errors import StreamParseError
from clicksoora.core.models import STREAMING_MODELS, TRANSPARENT_FORMATS, UsageInfo

logger = logging.getLogger(__name__)

T = TypeVar("T")

DEFAULT_BASE_URL = "http://localhost:7860"


class ImageServiceError(Exception):
    """The bridge rejected a request or could not be reached.

    Attributes:
        message: The payload's ``error`` text (or a generic description).
        status_code: HTTP status, ``None`` for transport failures.
        details: The payload's ``details`` block, if any.
    """

    def __init__(
        self,
        message: str,
        status_code: int | None = None,
        details: dict[str, Any] | None = None,
    ) -> None:
        super().__init__(message)
        self.message = message
        self.status_code = status_code
        self.details = details or {}


class ClientTimeoutError(ImageServiceError):
    """The request did not finish within the client's wall-clock bound."""


@dataclass
class GenerateImageParams:
    prompt: str
    model: str = "gpt-image-1"
    quality: str = "standard"
    size: str = "1024x1024"
    output_format: str = "jpeg"
    transparent: bool = False

    def to_payload(self, *, stream: bool) -> dict[str, Any]:
        """Return the JSON body; transparency is only sent for png/webp."""
        return {
            "prompt": self.prompt,
            "model": self.model,
            "quality": self.quality,
            "size": self.size,
            "outputFormat": self.output_format,
            "stream": stream,
            "transparent": self.transparent and self.output_format in TRANSPARENT_FORMATS,
        }


@dataclass
class ImageFile:
    """An image to upload."""

    filename: str
    data: bytes
    content_type: str = "image/png"

    def as_upload(self) -> tuple[str, bytes, str]:
        return (self.filename, self.data, self.content_type)


@dataclass
class EditImageParams:
    prompt: str
    main_image: ImageFile
    component_images: list[ImageFile] = field(default_factory=list)
    mask: ImageFile | None = None
    model: str = "gpt-image-1"
    quality: str = "standard"
    size: str = "auto"


@dataclass
class GenerateImageResult:
    image_data: str
    estimated_cost: float


@dataclass
class EditImageResult:
    image_data: str
    estimated_cost: float
    usage: UsageInfo | None = None


def _describe_timeout(seconds: float) -> str:
    """Render a timeout for messages: whole minutes when it is one."""
    if seconds >= 60 and seconds % 60 == 0:
        minutes = int(seconds // 60)
        return f"{minutes} minute" if minutes == 1 else f"{minutes} minutes"
    return f"{seconds:g} seconds"


class ImageGenerationClient:
    """Async HTTP client for the image bridge.

    Args:
        base_url: Bridge root URL.
        timeout_seconds: Wall-clock bound per request.  Defaults to
            ``config.client_timeout_seconds``.
        http_client: Pre-built ``httpx.AsyncClient`` to use instead of
            creating one.  It is not closed by :meth:`aclose`.
        transport: Optional custom transport (useful for testing).
    """

    def __init__(
        self,
        base_url: str = DEFAULT_BASE_URL,
        *,
        timeout_seconds: float | None = None,
        http_client: httpx.AsyncClient | None = None,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> None:
        self.timeout_seconds = (
            timeout_seconds if timeout_seconds is not None else config.client_timeout_seconds
        )
        self._owns_client = http_client is None
        # The wall-clock bound is enforced with asyncio.wait_for, not httpx timeouts.
        self._client = http_client or httpx.AsyncClient(
            base_url=base_url,
            timeout=None,
            transport=transport,
        )

    async def aclose(self) -> None:
        """Close the underlying HTTP client if this instance created it."""
        if self._owns_client:
            await self._client.aclose()

    async def __aenter__(self) -> ImageGenerationClient:
        return self

    async def __aexit__(self, exc_type, exc, tb) -> None:
        await self.aclose()

    # ------------------------------------------------------------------
    # Cost helpers (same table as the server).
    # ------------------------------------------------------------------

    @staticmethod
    def estimate_generation_cost(params: GenerateImageParams) -> float:
        return estimate(params.model, params.quality)

    @staticmethod
    def estimate_edit_cost(params: EditImageParams) -> float:
        return estimate_edit(params.quality)

    # ------------------------------------------------------------------
    # Endpoints.
    # ------------------------------------------------------------------

    async def generate_image(self, params: GenerateImageParams) -> GenerateImageResult:
        """Generate an image and wait for the single JSON reply.

        Raises:
            ImageServiceError: On a non-2xx reply or transport failure.
            ClientTimeoutError: If the bound elapses.
            StreamParseError: If the reply body is not valid JSON.
        """

        async def request() -> GenerateImageResult:
            response = await self._client.post(
                "/api/generate", json=params.to_payload(stream=False)
            )
            await self._raise_for_status(response)
            data = self._json(response)
            return GenerateImageResult(
                image_data=data.get("imageData"),
                estimated_cost=data.get("estimatedCost") or 0,
            )

        try:
            return await self._bounded(request(), "The image might still be processing.")
        except ImageServiceError as e:
            logger.error(f"Error generating image: {e.message}")
            raise

    async def generate_image_with_stream(
        self,
        params: GenerateImageParams,
        callbacks: StreamCallbacks,
        *,
        max_malformed_lines: int | None = None,
    ) -> None:
        """Generate an image and deliver the staged events to ``callbacks``.

        Any failure, including a non-2xx reply, the timeout and a stream that
        ends without completing, is passed to ``callbacks.on_error`` when it
        is set.  Without an ``on_error`` handler the failure is raised.

        Models the bridge does not stream (dall-e-3) are generated with a
        single JSON request and the callbacks are then fired in stream order.

        Args:
            params: Generation parameters.
            callbacks: Handlers for each stream status.
            max_malformed_lines: See :func:`~clicksoora.client.stream.consume_stream`.
        """

        async def request() -> None:
            if params.model not in STREAMING_MODELS:
                await self._replay_as_stream(params, callbacks)
                return

            async with self._client.stream(
                "POST", "/api/generate", json=params.to_payload(stream=True)
            ) as response:
                await self._raise_for_status(response)
                await consume_stream(
                    response.aiter_bytes(),
                    callbacks,
                    max_malformed_lines=max_malformed_lines,
                )

        try:
            await self._bounded(request(), "The image might still be processing.")
        except (ImageServiceError, StreamParseError) as e:
            text = e.message if isinstance(e, ImageServiceError) else e.error
            logger.error(f"Streaming generation failed: {text}")
            if callbacks.on_error is None:
                raise
            callbacks.on_error(text)

    async def edit_image(self, params: EditImageParams) -> EditImageResult:
        """Upload the images as multipart form data and return the edit.

        Raises:
            ImageServiceError: On a non-2xx reply or transport failure.
            ClientTimeoutError: If the bound elapses.
            StreamParseError: If the reply body is not valid JSON or has no
                image data.
        """
        data = {
            "prompt": params.prompt,
            "quality": params.quality,
            "size": params.size,
            "model": params.model,
        }
        files: list[tuple[str, tuple[str, bytes, str]]] = [
            ("mainImage", params.main_image.as_upload())
        ]
        files.extend(("componentImages", image.as_upload()) for image in params.component_images)
        if params.mask is not None:
            files.append(("mask", params.mask.as_upload()))

        logger.debug(
            f"Starting image edit request: prompt={params.prompt[:30]!r}, "
            f"components={len(params.component_images)}, mask={params.mask is not None}"
        )

        async def request() -> EditImageResult:
            response = await self._client.post("/api/edit", data=data, files=files)
            await self._raise_for_status(response)
            body = self._json(response)
            if not body.get("imageData"):
                raise StreamParseError("Server response missing image data")
            usage = body.get("usage")
            return EditImageResult(
                image_data=body["imageData"],
                estimated_cost=body.get("estimatedCost") or 0,
                usage=UsageInfo.model_validate(usage) if usage else None,
            )

        return await self._bounded(request(), "The image editing process took too long.")

    async def health_check(self) -> dict[str, Any]:
        """Call ``GET /api/health-check`` and return its JSON payload."""

        async def request() -> dict[str, Any]:
            response = await self._client.get(
                "/api/health-check", headers={"Cache-Control": "no-cache"}
            )
            await self._raise_for_status(response)
            return self._json(response)

        return await self._bounded(request(), "The image service did not answer.")

    # ------------------------------------------------------------------
    # Internals.
    # ------------------------------------------------------------------

    async def _replay_as_stream(
        self, params: GenerateImageParams, callbacks: StreamCallbacks
    ) -> None:
        """Generate without streaming and fire the staged callbacks."""
        logger.debug(f"Model {params.model} does not stream; using a single request")
        if callbacks.on_start:
            callbacks.on_start()
        response = await self._client.post("/api/generate", json=params.to_payload(stream=False))
        await self._raise_for_status(response)
        data = self._json(response)
        if not data.get("imageData"):
            raise StreamParseError("Server response missing image data")
        if callbacks.on_generating:
            callbacks.on_generating()
        if callbacks.on_progress:
            callbacks.on_progress(data["imageData"], data.get("estimatedCost") or 0)
        if callbacks.on_complete:
            callbacks.on_complete()

    async def _bounded(self, awaitable: Awaitable[T], hint: str) -> T:
        """Await ``awaitable`` within the wall-clock bound.

        Raises:
            ClientTimeoutError: If the bound elapses or httpx times out.
            ImageServiceError: If the transport fails.
        """
        message = f"Request timed out after {_describe_timeout(self.timeout_seconds)}. {hint}"
        try:
            return await asyncio.wait_for(awaitable, timeout=self.timeout_seconds)
        except (asyncio.TimeoutError, httpx.TimeoutException) as e:
            logger.error(message)
            raise ClientTimeoutError(
                message, details={"timeoutSeconds": self.timeout_seconds}
            ) from e
        except httpx.TransportError as e:
            raise ImageServiceError(f"Could not reach the image service: {e}") from e

    @staticmethod
    async def _raise_for_status(response: httpx.Response) -> None:
        """Raise :class:`ImageServiceError` for a non-2xx response."""
        if response.is_success:
            return
        await response.aread()
        try:
            payload = response.json()
        except ValueError:
            payload = {}
        if not isinstance(payload, dict):
            payload = {}
        raise ImageServiceError(
            payload.get("error")
            or payload.get("message")
            or f"Server responded with {response.status_code}",
            status_code=response.status_code,
            details=payload.get("details") if isinstance(payload.get("details"), dict) else None,
        )

    @staticmethod
    def _json(response: httpx.Response) -> dict[str, Any]:
        try:
            data = response.json()
        except ValueError as e:
            raise StreamParseError("Failed to parse server response", message=str(e)) from e
        if not isinstance(data, dict):
            raise StreamParseError("Failed to parse server response")
        return data
