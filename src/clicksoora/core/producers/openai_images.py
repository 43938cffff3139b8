"""OpenAI Images API producer.

Wraps a single shared ``AsyncOpenAI`` client.  The client is constructed
once with the configured credential, timeout and retry budget, and is then
reused by every request: it holds no per-request state.

Parameter shaping
-----------------
The two models take different parameter sets (see
:mod:`clicksoora.core.models`).  :func:`build_generate_params` and
:func:`build_edit_params` turn a validated request into the keyword
arguments of ``images.generate`` / ``images.edit``:

- ``size`` and ``quality`` are omitted when the UI asked for ``auto``, so
  the upstream default applies instead of an invalid literal.
- ``background="transparent"`` is only sent for gpt-image-1 with an output
  format that has an alpha channel.
- Edits always target gpt-image-1, the variant that accepts several input
  images and an optional mask.

Retries and deadlines
---------------------
Transient failures (connection errors, 429, 5xx) are retried by the SDK
itself, up to ``upstream_max_retries`` times.  The whole call, retries
included, is bounded by ``upstream_timeout_seconds``; on expiry the local
wait is abandoned and :class:`~clicksoora.core.errors.UpstreamTimeoutError`
is raised.  Work already accepted upstream is not cancelled.
"""

from __future__ import annotations

import asyncio
import base64
import logging
from collections.abc import Awaitable
from typing import Any, TypeVar

import httpx
from openai import APIError, APIStatusError, APITimeoutError, AsyncOpenAI

from ..config import ClickSooraConfig
from ..errors import UpstreamError, UpstreamTimeoutError
from ..models import (
    EDIT_MODEL,
    DallE3Params,
    EditRequest,
    GptImageParams,
    ImageResult,
    InputTokensDetails,
    UsageInfo,
)
from .base import ImageProducerBase, producer_registry

logger = logging.getLogger(__name__)

T = TypeVar("T")


def build_generate_params(params: DallE3Params | GptImageParams) -> dict[str, Any]:
    """Return the ``images.generate`` keyword arguments for ``params``."""
    if isinstance(params, DallE3Params):
        kwargs: dict[str, Any] = {
            "model": params.model,
            "prompt": params.prompt,
            "n": 1,
            "quality": params.quality,
        }
        if params.size is not None:
            kwargs["size"] = params.size
        return kwargs

    kwargs = {
        "model": params.model,
        "prompt": params.prompt,
        "output_format": params.output_format,
    }
    if params.size != "auto":
        kwargs["size"] = params.size
    if params.quality != "auto":
        kwargs["quality"] = params.quality
    if params.transparent:
        kwargs["background"] = "transparent"
    return kwargs


def build_edit_params(request: EditRequest) -> dict[str, Any]:
    """Return the ``images.edit`` keyword arguments for ``request``."""
    kwargs: dict[str, Any] = {
        "model": EDIT_MODEL,
        "prompt": request.prompt,
        "image": [image.as_upload() for image in request.images],
        "n": 1,
    }
    if request.size is not None:
        kwargs["size"] = request.size
    if request.quality is not None:
        kwargs["quality"] = request.quality
    if request.mask is not None:
        kwargs["mask"] = request.mask.as_upload()
    return kwargs


def usage_from_response(response: Any) -> UsageInfo | None:
    """Map the SDK's ``usage`` block onto :class:`UsageInfo`, if present."""
    usage = getattr(response, "usage", None)
    if usage is None:
        return None

    details = getattr(usage, "input_tokens_details", None)
    return UsageInfo(
        total_tokens=usage.total_tokens,
        input_tokens=usage.input_tokens,
        output_tokens=usage.output_tokens,
        input_tokens_details=(
            InputTokensDetails(
                text_tokens=details.text_tokens,
                image_tokens=details.image_tokens,
            )
            if details is not None
            else None
        ),
    )


@producer_registry.register
class OpenAIImageProducer(ImageProducerBase):
    """Image producer backed by the OpenAI Images API.

    Args:
        config: Configuration with credential, timeout and retry settings.
        client: Pre-built ``AsyncOpenAI`` client (tests inject a mock here).
        http_client: Client used to download URL results (dall-e-3).
    """

    name = "openai"
    description = "OpenAI Images API (dall-e-3, gpt-image-1)"

    def __init__(
        self,
        config: ClickSooraConfig,
        client: AsyncOpenAI | None = None,
        http_client: httpx.AsyncClient | None = None,
    ) -> None:
        super().__init__(config)
        if client is None:
            logger.info(
                f"Creating OpenAI client (key length {len(config.openai_api_key or '')}, "
                f"timeout {config.upstream_timeout_seconds}s, "
                f"max_retries {config.upstream_max_retries})"
            )
            client = AsyncOpenAI(
                api_key=config.openai_api_key,
                base_url=config.openai_base_url,
                timeout=config.upstream_timeout_seconds,
                max_retries=config.upstream_max_retries,
            )
        self.client = client
        self._http = http_client or httpx.AsyncClient(timeout=config.upstream_timeout_seconds)

    async def _call(self, operation: str, awaitable: Awaitable[T]) -> T:
        """Await one upstream call under the configured deadline.

        SDK failures are translated into the bridge's error taxonomy.
        """
        timeout = self.config.upstream_timeout_seconds
        try:
            return await asyncio.wait_for(awaitable, timeout=timeout)
        except (asyncio.TimeoutError, APITimeoutError) as e:
            logger.error(f"OpenAI {operation} timed out after {timeout}s")
            raise UpstreamTimeoutError(timeout) from e
        except APIError as e:
            status = e.status_code if isinstance(e, APIStatusError) else None
            logger.error(
                f"OpenAI API error during {operation}: status={status}, "
                f"type={e.type}, code={e.code}, message={e.message}"
            )
            raise UpstreamError(
                e.message,
                status_code=status,
                error_type=e.type,
                code=e.code,
            ) from e

    async def _image_data(self, response: Any) -> str:
        """Extract base64 image data, downloading URL results if needed."""
        item = response.data[0] if response.data else None
        if item is not None and item.b64_json:
            return item.b64_json

        if item is not None and item.url:
            logger.info("Downloading image from result URL")
            try:
                download = await self._http.get(item.url)
                download.raise_for_status()
            except httpx.HTTPError as e:
                raise UpstreamError(f"Failed to download generated image: {e}") from e
            return base64.b64encode(download.content).decode("ascii")

        logger.error("No image data in upstream response")
        raise UpstreamError("No image was generated")

    async def generate(self, params: DallE3Params | GptImageParams) -> ImageResult:
        kwargs = build_generate_params(params)
        logger.info(
            f"Generating image: model={params.model}, "
            f"quality={kwargs.get('quality', 'auto')}, size={kwargs.get('size', 'auto')}, "
            f"prompt={params.prompt[:50]!r}"
        )

        response = await self._call("image generation", self.client.images.generate(**kwargs))
        image_data = await self._image_data(response)

        logger.info("Image generation response received")
        return ImageResult(image_data=image_data, usage=usage_from_response(response))

    async def edit(self, request: EditRequest) -> ImageResult:
        kwargs = build_edit_params(request)
        logger.info(
            f"Editing image: {len(kwargs['image'])} image(s), mask={'mask' in kwargs}, "
            f"quality={kwargs.get('quality', 'auto')}, size={kwargs.get('size', 'auto')}"
        )

        response = await self._call("image edit", self.client.images.edit(**kwargs))
        image_data = await self._image_data(response)

        usage = usage_from_response(response)
        if usage is not None:
            logger.info(f"Edit usage: {usage.total_tokens} total tokens")
        return ImageResult(image_data=image_data, usage=usage)

    async def list_models(self) -> list[str]:
        page = await self._call("model listing", self.client.models.list())
        return [model.id for model in page.data]

    async def aclose(self) -> None:
        await self._http.aclose()
        await self.client.close()
