"""Validation of inbound generation and edit requests.

All checks run before any upstream call is made and fail fast on the first
violation.  The server is authoritative: sizes are measured from the bytes
actually received and MIME types are checked against an allow-list, no
matter what a client claims to have checked already.

Edit request checks, in order:

1. Required fields present (prompt, main image).
2. Prompt length within the model maximum.
3. Main image MIME type supported, size within the configured limit.
4. Component image count (at most 9), then each component's MIME type and
   size.
5. Mask, if present: PNG only, size within the limit.
6. Quality and size values understood by the edit model.
"""

from __future__ import annotations

import logging
from collections.abc import Sequence
from typing import Any

from pydantic import ValidationError as PydanticValidationError

from .config import ClickSooraConfig
from .errors import ClickSooraError
from .models import (
    DALLE3_MAX_PROMPT_LENGTH,
    EDIT_MODEL,
    SUPPORTED_MODELS,
    DallE3Params,
    EditRequest,
    GptImageParams,
    UploadedImage,
    to_model_params,
)

logger = logging.getLogger(__name__)

SUPPORTED_FORMATS: frozenset[str] = frozenset(
    {"image/png", "image/jpeg", "image/jpg", "image/webp"}
)
MASK_FORMAT = "image/png"

_EDIT_QUALITIES = {"low": "low", "medium": "medium", "high": "high", "standard": "low"}
_EDIT_SIZES = ("1024x1024", "1536x1024", "1024x1536")


class ValidationError(ClickSooraError):
    """User-friendly validation error.

    The message is intended to be displayed directly to the user.

    Attributes:
        constraint: Machine-readable name of the violated constraint, e.g.
            ``"image_too_large"`` or ``"mask_format"``.
    """

    status_code = 400
    kind = "validation"

    def __init__(
        self,
        error: str,
        *,
        constraint: str,
        message: str | None = None,
        details: dict[str, Any] | None = None,
    ) -> None:
        super().__init__(
            error,
            message=message,
            details={"constraint": constraint, **(details or {})},
        )
        self.constraint = constraint


def max_prompt_length_for(model: str, config: ClickSooraConfig) -> int:
    """Return the prompt ceiling for ``model`` under ``config``."""
    if model == "dall-e-3":
        return min(DALLE3_MAX_PROMPT_LENGTH, config.max_prompt_length)
    return config.max_prompt_length


def require_prompt(prompt: Any, message: str = "A prompt is required") -> str:
    """Check that ``prompt`` is a non-empty string.

    Raises:
        ValidationError: ``prompt_required``.
    """
    if not isinstance(prompt, str) or not prompt.strip():
        raise ValidationError(
            "Please provide a valid prompt",
            constraint="prompt_required",
            message=message,
        )
    return prompt


def validate_prompt_length(prompt: str, model: str, config: ClickSooraConfig) -> str:
    """Check that ``prompt`` fits the model limit.

    Raises:
        ValidationError: ``prompt_too_long``.
    """
    max_length = max_prompt_length_for(model, config)
    if len(prompt) > max_length:
        raise ValidationError(
            f"Prompt exceeds maximum length of {max_length} characters",
            constraint="prompt_too_long",
            message="Please shorten your prompt",
            details={"length": len(prompt), "maxLength": max_length},
        )
    return prompt


def validate_model(model: str) -> str:
    """Check that ``model`` is one of the supported upstream models.

    Raises:
        ValidationError: ``invalid_model``.
    """
    if model not in SUPPORTED_MODELS:
        raise ValidationError(
            "Invalid model specified",
            constraint="invalid_model",
            message=f"Received model: {model}. Supported models: {', '.join(SUPPORTED_MODELS)}",
        )
    return model


def validate_image(
    image: UploadedImage,
    label: str,
    config: ClickSooraConfig,
    *,
    allowed: frozenset[str] = SUPPORTED_FORMATS,
    format_error: str | None = None,
    format_constraint: str = "unsupported_format",
) -> None:
    """Check one uploaded image's MIME type and byte size.

    Args:
        image: The uploaded blob.
        label: Human-readable name used in messages ("Main image",
            "Component image 3", "Mask image").
        config: Source of the size limit.
        allowed: Accepted MIME types.
        format_error: Error text for a MIME mismatch.
        format_constraint: Constraint name for a MIME mismatch.

    Raises:
        ValidationError: On an unsupported MIME type or an oversized blob.
    """
    if image.content_type not in allowed:
        raise ValidationError(
            format_error or f"{label} must be in PNG, JPEG, or WebP format",
            constraint=format_constraint,
            message=f"Received format: {image.content_type}",
        )

    if image.size > config.max_image_size_bytes:
        raise ValidationError(
            f"{label} too large. Maximum size is {config.max_image_size_mb}MB.",
            constraint="image_too_large",
            details={
                "imageSize": image.size_mb,
                "maxSize": f"{config.max_image_size_mb}MB",
            },
        )


def validate_generate_request(
    *,
    prompt: Any,
    model: str,
    quality: str,
    size: str,
    output_format: str,
    transparent: bool,
    config: ClickSooraConfig,
) -> DallE3Params | GptImageParams:
    """Validate a generation request and shape it for its model.

    Returns:
        The parameter variant of the requested model.

    Raises:
        ValidationError: On the first violated constraint.
    """
    require_prompt(prompt)
    validate_model(model)
    validate_prompt_length(prompt, model, config)

    try:
        return to_model_params(
            model=model,
            prompt=prompt,
            quality=quality,
            size=size,
            output_format=output_format,
            transparent=transparent,
        )
    except PydanticValidationError as e:
        bad_fields = ", ".join(str(err["loc"][0]) for err in e.errors() if err["loc"])
        raise ValidationError(
            f"Unsupported {bad_fields or 'parameter'} for {model}",
            constraint="invalid_parameter",
            message=f"quality={quality}, size={size}, outputFormat={output_format}",
        ) from e


def validate_edit_request(
    *,
    prompt: Any,
    main_image: UploadedImage | None,
    component_images: Sequence[UploadedImage] = (),
    mask: UploadedImage | None = None,
    quality: str = "standard",
    size: str = "auto",
    model: str = "gpt-image-1",
    config: ClickSooraConfig,
) -> EditRequest:
    """Validate an edit request.

    Returns:
        A normalized :class:`EditRequest`.

    Raises:
        ValidationError: On the first violated constraint.
    """
    # --- Required fields ---------------------------------------------------
    require_prompt(prompt, "A prompt is required for image editing")
    if main_image is None:
        raise ValidationError(
            "Please provide a main image",
            constraint="main_image_required",
            message="A main image is required for editing",
        )

    validate_model(model)
    validate_prompt_length(prompt, EDIT_MODEL, config)

    # --- Main image --------------------------------------------------------
    validate_image(main_image, "Main image", config)

    # --- Component images --------------------------------------------------
    if len(component_images) > config.max_component_images:
        raise ValidationError(
            f"Maximum of {config.max_component_images} component images allowed",
            constraint="too_many_component_images",
            message=f"Received {len(component_images)} component images",
        )
    for index, image in enumerate(component_images, start=1):
        validate_image(
            image,
            f"Component image {index}",
            config,
            format_error="All component images must be in PNG, JPEG, or WebP format",
        )

    # --- Mask --------------------------------------------------------------
    if mask is not None:
        validate_image(
            mask,
            "Mask image",
            config,
            allowed=frozenset({MASK_FORMAT}),
            format_error="Mask must be in PNG format",
            format_constraint="mask_format",
        )

    # --- Edit parameters ---------------------------------------------------
    if quality != "auto" and quality not in _EDIT_QUALITIES:
        raise ValidationError(
            f"Unsupported quality for image editing: {quality}",
            constraint="invalid_parameter",
        )
    if size != "auto" and size not in _EDIT_SIZES:
        raise ValidationError(
            f"Unsupported size for image editing: {size}",
            constraint="invalid_parameter",
        )

    logger.debug(
        f"Edit request accepted: {1 + len(component_images)} image(s), mask={mask is not None}"
    )
    return EditRequest(
        prompt=prompt,
        main_image=main_image,
        component_images=tuple(component_images),
        mask=mask,
        quality=None if quality == "auto" else _EDIT_QUALITIES[quality],
        size=None if size == "auto" else size,
        requested_quality=quality,
    )
