"""Request entities and per-model parameter variants.

The two upstream models accept different parameter sets:

- **dall-e-3** takes a two-level quality (``standard`` / ``hd``) and the
  rectangular sizes ``1024x1024``, ``1792x1024`` and ``1024x1792``.
- **gpt-image-1** takes a four-level quality (``low`` / ``medium`` /
  ``high`` / ``auto``), the sizes ``1024x1024``, ``1536x1024``,
  ``1024x1536`` and ``auto``, an output format, and an optional transparent
  background.

The UI speaks a single loose vocabulary (``standard``, ``high``, ...), so
:func:`to_model_params` translates it into a :class:`DallE3Params` or
:class:`GptImageParams` instance.  Both are Pydantic models with a literal
``model`` discriminator, so an invalid combination cannot be constructed;
the producer layer only ever sees one of the two.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Literal

from pydantic import BaseModel, ConfigDict, Field

ImageModel = Literal["dall-e-3", "gpt-image-1"]
OutputFormat = Literal["jpeg", "png", "webp"]

SUPPORTED_MODELS: tuple[str, ...] = ("dall-e-3", "gpt-image-1")
OUTPUT_FORMATS: tuple[str, ...] = ("jpeg", "png", "webp")
TRANSPARENT_FORMATS: frozenset[str] = frozenset({"png", "webp"})

# Size and quality vocabularies accepted by each model upstream.
DALLE3_SIZES: tuple[str, ...] = ("1024x1024", "1792x1024", "1024x1792")
DALLE3_QUALITIES: tuple[str, ...] = ("standard", "hd")
GPT_IMAGE_SIZES: tuple[str, ...] = ("1024x1024", "1536x1024", "1024x1536", "auto")
GPT_IMAGE_QUALITIES: tuple[str, ...] = ("low", "medium", "high", "auto")

# Quality values the UI may send for each model.
UI_QUALITIES: dict[str, tuple[str, ...]] = {
    "dall-e-3": ("standard", "high", "hd"),
    "gpt-image-1": ("low", "medium", "high", "auto", "standard"),
}

# The UI's "standard" tier for gpt-image-1 is billed and rendered as "low".
_GPT_IMAGE_QUALITY_ALIASES = {"standard": "low"}

# DALL-E 3 rejects prompts longer than this regardless of configuration.
DALLE3_MAX_PROMPT_LENGTH = 4000

EDIT_MODEL = "gpt-image-1"

# Only these models are answered with the staged event stream.
STREAMING_MODELS: frozenset[str] = frozenset({"gpt-image-1"})


class DallE3Params(BaseModel):
    """Upstream parameters for a dall-e-3 generation call."""

    model_config = ConfigDict(frozen=True)

    model: Literal["dall-e-3"] = "dall-e-3"
    prompt: str
    quality: Literal["standard", "hd"] = "standard"
    size: Literal["1024x1024", "1792x1024", "1024x1792"] | None = "1024x1024"


class GptImageParams(BaseModel):
    """Upstream parameters for a gpt-image-1 generation call.

    ``transparent`` is already reduced to its effective value: it is only
    ``True`` when the output format can carry an alpha channel.
    """

    model_config = ConfigDict(frozen=True)

    model: Literal["gpt-image-1"] = "gpt-image-1"
    prompt: str
    quality: Literal["low", "medium", "high", "auto"] = "auto"
    size: Literal["1024x1024", "1536x1024", "1024x1536", "auto"] = "auto"
    output_format: OutputFormat = "jpeg"
    transparent: bool = False


def to_model_params(
    *,
    model: str,
    prompt: str,
    quality: str,
    size: str,
    output_format: str = "jpeg",
    transparent: bool = False,
) -> DallE3Params | GptImageParams:
    """Translate UI values into the parameter variant of ``model``.

    Args:
        model: ``"dall-e-3"`` or ``"gpt-image-1"``.
        prompt: The prompt text.
        quality: UI quality value (``standard``, ``high``, ``low``, ...).
        size: UI size value; ``auto`` delegates the default upstream.
        output_format: ``jpeg``, ``png`` or ``webp`` (gpt-image-1 only).
        transparent: Requested transparency (gpt-image-1 only).

    Returns:
        A frozen :class:`DallE3Params` or :class:`GptImageParams`.

    Raises:
        ValueError: If ``model`` is unknown.
        pydantic.ValidationError: If a value is outside the model's
            vocabulary.
    """
    if model == "dall-e-3":
        return DallE3Params(
            prompt=prompt,
            quality="hd" if quality in ("high", "hd") else "standard",
            size=None if size == "auto" else size,
        )
    if model == "gpt-image-1":
        return GptImageParams(
            prompt=prompt,
            quality=_GPT_IMAGE_QUALITY_ALIASES.get(quality, quality),
            size=size,
            output_format=output_format,
            transparent=transparent and output_format in TRANSPARENT_FORMATS,
        )
    raise ValueError(f"Invalid model specified: {model}")


@dataclass(frozen=True)
class UploadedImage:
    """One uploaded image blob.

    ``size`` is always the real byte count of ``data``; the size a client
    declares is never trusted.
    """

    field: str
    filename: str
    content_type: str
    data: bytes

    @property
    def size(self) -> int:
        return len(self.data)

    @property
    def size_mb(self) -> str:
        return f"{self.size / (1024 * 1024):.2f}MB"

    def as_upload(self) -> tuple[str, bytes, str]:
        """Return the ``(filename, content, mime)`` tuple the OpenAI SDK accepts."""
        return (self.filename or f"{self.field}.png", self.data, self.content_type)


@dataclass(frozen=True)
class EditRequest:
    """A validated image edit request.

    ``quality`` and ``size`` are ``None`` when the UI asked for ``auto``,
    meaning the parameter is omitted and the upstream default applies.
    """

    prompt: str
    main_image: UploadedImage
    component_images: tuple[UploadedImage, ...] = ()
    mask: UploadedImage | None = None
    quality: Literal["low", "medium", "high"] | None = None
    size: Literal["1024x1024", "1536x1024", "1024x1536"] | None = None
    requested_quality: str = "standard"

    @property
    def images(self) -> list[UploadedImage]:
        """Main image followed by the component images, in upload order."""
        return [self.main_image, *self.component_images]


class InputTokensDetails(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    text_tokens: int | None = Field(default=None, alias="textTokens")
    image_tokens: int | None = Field(default=None, alias="imageTokens")


class UsageInfo(BaseModel):
    """Token accounting attached to a successful upstream response.

    Purely informational; never validated against anything.
    """

    model_config = ConfigDict(populate_by_name=True)

    total_tokens: int | None = Field(default=None, alias="totalTokens")
    input_tokens: int | None = Field(default=None, alias="inputTokens")
    output_tokens: int | None = Field(default=None, alias="outputTokens")
    input_tokens_details: InputTokensDetails | None = Field(
        default=None, alias="inputTokensDetails"
    )


@dataclass
class ImageResult:
    """What an image producer hands back: base64 image data plus usage."""

    image_data: str
    usage: UsageInfo | None = None
