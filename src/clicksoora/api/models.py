"""Pydantic request and response models for the image bridge API.

The wire format uses camelCase keys (``outputFormat``, ``imageData``,
``estimatedCost``) because the browser UI speaks JavaScript; the Python
attributes stay snake_case.  Every model accepts both spellings on input.

Models
------
GenerateRequest
    JSON payload for ``POST /api/generate``.
GenerateResponse
    Non-streaming reply of ``POST /api/generate``.
EditResponse
    Reply of ``POST /api/edit`` (the request itself is multipart form data).
HealthCheckResponse
    Reply of ``GET /api/health-check``.
ErrorResponse
    Uniform error payload returned by every endpoint.
"""

from __future__ import annotations

from typing import Any

from pydantic import BaseModel, ConfigDict, Field

from clicksoora.core.models import UsageInfo


class GenerateRequest(BaseModel):
    """Request body for the ``POST /api/generate`` endpoint.

    Attributes:
        prompt: Text prompt.  Presence and length are checked by the
            validator, not here, so a missing prompt gets the same error as
            an empty one.
        model: ``"gpt-image-1"`` (default) or ``"dall-e-3"``.
        quality: UI quality value; its meaning depends on the model.
        size: UI size value; ``"auto"`` leaves the choice to the upstream.
        output_format: ``jpeg``, ``png`` or ``webp`` (gpt-image-1 only).
        stream: Return an NDJSON event stream instead of one JSON reply.
            Only gpt-image-1 streams; dall-e-3 always replies with JSON.
        transparent: Ask for a transparent background.  Ignored unless the
            model is gpt-image-1 and the format is png or webp.
    """

    model_config = ConfigDict(populate_by_name=True)

    prompt: str | None = Field(default=None, description="Text prompt.")
    model: str = Field(default="gpt-image-1", description="Upstream model identifier.")
    quality: str = Field(default="standard", description="UI quality value.")
    size: str = Field(default="1024x1024", description="UI size value or 'auto'.")
    output_format: str = Field(
        default="jpeg",
        alias="outputFormat",
        description="Output format: jpeg, png or webp.",
    )
    stream: bool = Field(default=False, description="Stream staged NDJSON events.")
    transparent: bool = Field(default=False, description="Request a transparent background.")


class GenerateResponse(BaseModel):
    """Non-streaming reply of ``POST /api/generate``."""

    model_config = ConfigDict(populate_by_name=True)

    image_data: str = Field(..., alias="imageData")
    estimated_cost: float = Field(..., alias="estimatedCost")
    model: str
    quality: str
    size: str
    output_format: str = Field(..., alias="outputFormat")
    transparent: bool


class EditResponse(BaseModel):
    """Reply of ``POST /api/edit``."""

    model_config = ConfigDict(populate_by_name=True)

    image_data: str = Field(..., alias="imageData")
    estimated_cost: float = Field(..., alias="estimatedCost")
    usage: UsageInfo | None = None


class HealthCheckResponse(BaseModel):
    """Reply of ``GET /api/health-check`` when the upstream is reachable."""

    model_config = ConfigDict(populate_by_name=True)

    success: bool = True
    message: str = "OpenAI API is accessible"
    response_time: str = Field(..., alias="responseTime")
    models_count: int = Field(..., alias="modelsCount")
    has_gpt_image_1: bool = Field(..., alias="hasGptImage1")
    first_few_models: list[str] = Field(default_factory=list, alias="firstFewModels")


class ErrorResponse(BaseModel):
    """Uniform error payload.

    Attributes:
        error: Short message suitable for direct display.
        message: Optional secondary message.
        details: Optional machine-readable block; ``details.kind`` names the
            failure class.
    """

    error: str
    message: str | None = None
    details: dict[str, Any] | None = None
