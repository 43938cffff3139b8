"""ClickSoora Image Bridge — FastAPI Application.

This module is the single entry point for the web application.  It defines
the FastAPI ``app`` instance, all REST API routes, and the ``main()`` CLI
function that launches the uvicorn server.

Architecture
------------
The application is a stateless proxy in front of the OpenAI Images API:

- **Configuration** comes from :data:`~clicksoora.core.config.config`.
  When no credential is configured (and demo mode is off) every route
  except ``GET /api/config`` answers with a fixed 500 before it reads the
  request body.
- **Validation** runs in full before any upstream call
  (:mod:`clicksoora.core.validation`).
- **Upstream calls** go through one shared image producer created during
  the application lifespan and stored on ``app.state``.
- **Streaming** generation wraps the single upstream call in staged NDJSON
  events (:mod:`clicksoora.core.streaming`).
- **Errors** are converted at this boundary into the uniform
  ``{error, message, details}`` payload (:mod:`clicksoora.core.errors`).
  Once a stream has started, failures are reported in-band as an ``error``
  event instead.

Endpoints
---------
========  ======================  ==========================================
Method    Path                    Purpose
========  ======================  ==========================================
GET       ``/api/config``         Models, options, costs and limits
POST      ``/api/generate``       Generate an image (JSON or NDJSON stream)
POST      ``/api/edit``           Edit images with a prompt (multipart)
GET       ``/api/health-check``   Upstream reachability and credential check
========  ======================  ==========================================

Usage
-----
CLI (installed entry point)::

    clicksoora

Direct invocation::

    python -m clicksoora.api.main
"""

from __future__ import annotations

import json
import logging
import time
from collections.abc import AsyncIterator
from contextlib import asynccontextmanager
from typing import Any

from fastapi import Depends, FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse, StreamingResponse
from pydantic import ValidationError as PydanticValidationError
from starlette.datastructures import FormData, UploadFile

from clicksoora import __version__
from clicksoora.api.models import (
    EditResponse,
    ErrorResponse,
    GenerateRequest,
    GenerateResponse,
    HealthCheckResponse,
)
from clicksoora.core.config import ClickSooraConfig, config
from clicksoora.core.cost import EDIT_COSTS, IMAGE_COSTS, estimate, estimate_edit
from clicksoora.core.errors import ClickSooraError, ConfigurationError, normalize_error
from clicksoora.core.models import (
    DALLE3_SIZES,
    GPT_IMAGE_SIZES,
    OUTPUT_FORMATS,
    UI_QUALITIES,
    GptImageParams,
    UploadedImage,
)
from clicksoora.core.producers import ImageProducerBase, create_producer
from clicksoora.core.streaming import STREAM_HEADERS, STREAM_MEDIA_TYPE, stream_generation
from clicksoora.core.validation import (
    MASK_FORMAT,
    SUPPORTED_FORMATS,
    ValidationError,
    max_prompt_length_for,
    validate_edit_request,
    validate_generate_request,
)

logger = logging.getLogger(__name__)

ERROR_RESPONSES: dict[int | str, dict[str, Any]] = {
    400: {"model": ErrorResponse, "description": "Validation failure"},
    500: {"model": ErrorResponse, "description": "Configuration or upstream failure"},
}

# ---------------------------------------------------------------------------
# Application lifecycle: image producer setup and teardown.
# ---------------------------------------------------------------------------


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncIterator[None]:
    """Manage application startup and shutdown lifecycle.

    On startup:
        Creates the shared image producer (and with it the single OpenAI
        client) when the configuration allows serving requests.  Without a
        credential no producer is created and requests are refused with a
        configuration error.

    On shutdown:
        Closes the producer's network clients.

    Args:
        app: The FastAPI application instance.

    Yields:
        Control back to the application for the duration of its lifetime.
    """
    # --- Startup -----------------------------------------------------------
    app.state.producer = create_producer(config) if config.is_configured else None
    if app.state.producer is None:
        logger.warning("OpenAI API key is not configured; requests will be refused.")

    yield  # Application runs here.

    # --- Shutdown ----------------------------------------------------------
    if app.state.producer is not None:
        await app.state.producer.aclose()
        logger.info("Image producer closed on shutdown.")


# ---------------------------------------------------------------------------
# FastAPI application instance.
# ---------------------------------------------------------------------------
app = FastAPI(
    title="ClickSoora Image Bridge",
    description="Image generation and editing proxy for the OpenAI Images API.",
    version=__version__,
    lifespan=lifespan,
)

app.add_middleware(
    CORSMiddleware,
    allow_origins=config.cors_allow_origins,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


# ---------------------------------------------------------------------------
# Dependencies.
# ---------------------------------------------------------------------------


def get_config() -> ClickSooraConfig:
    """Return the process-wide configuration (overridden in tests)."""
    return config


def require_configured(cfg: ClickSooraConfig = Depends(get_config)) -> ClickSooraConfig:
    """Refuse the request when no credential is configured.

    Runs before the request body is read, so a misconfigured server never
    does any parsing work.

    Raises:
        ConfigurationError: If the credential is missing and demo mode is off.
    """
    if not cfg.is_configured:
        logger.error("OpenAI API key is missing")
        raise ConfigurationError()
    return cfg


def get_producer(
    request: Request,
    cfg: ClickSooraConfig = Depends(require_configured),
) -> ImageProducerBase:
    """Return the shared image producer, creating it if the lifespan did not."""
    producer = getattr(request.app.state, "producer", None)
    if producer is None:
        producer = create_producer(cfg)
        request.app.state.producer = producer
    return producer


# ---------------------------------------------------------------------------
# Error handling helpers.
# ---------------------------------------------------------------------------


def _error_response(exc: BaseException) -> JSONResponse:
    """Log ``exc`` and convert it into the uniform error response."""
    status, payload = normalize_error(exc)
    if isinstance(exc, ValidationError):
        logger.warning(f"Validation error ({exc.constraint}): {exc.error}")
    elif isinstance(exc, ClickSooraError):
        logger.error(f"Request failed ({exc.kind}, status {status}): {exc.error}")
    else:
        logger.error(f"Unexpected error: {exc}", exc_info=exc)
    return JSONResponse(payload, status_code=status)


@app.exception_handler(ClickSooraError)
async def handle_clicksoora_error(request: Request, exc: ClickSooraError) -> JSONResponse:
    """Convert failures raised by dependencies into the uniform payload."""
    return _error_response(exc)


async def _read_json(request: Request) -> Any:
    """Read the request body as JSON.

    Raises:
        ValidationError: If the body is not valid JSON.
    """
    try:
        return await request.json()
    except (json.JSONDecodeError, UnicodeDecodeError) as e:
        raise ValidationError(
            "Request body must be valid JSON",
            constraint="invalid_json",
            message=str(e),
        ) from e


def _parse_generate_request(body: Any) -> GenerateRequest:
    """Validate the JSON body's shape (types only, not business rules)."""
    if not isinstance(body, dict):
        raise ValidationError("Request body must be a JSON object", constraint="invalid_request")
    try:
        return GenerateRequest.model_validate(body)
    except PydanticValidationError as e:
        fields = ", ".join(".".join(str(p) for p in err["loc"]) for err in e.errors())
        raise ValidationError(
            f"Invalid request field(s): {fields}",
            constraint="invalid_request",
            message=e.errors()[0]["msg"],
        ) from e


def _form_text(form: FormData, key: str, default: str) -> str:
    value = form.get(key)
    return value if isinstance(value, str) and value else default


async def _read_upload(value: Any, field: str) -> UploadedImage | None:
    """Read one multipart file part into an :class:`UploadedImage`.

    Non-file values (plain text under a file field name) count as absent.
    """
    if not isinstance(value, UploadFile):
        return None
    data = await value.read()
    return UploadedImage(
        field=field,
        filename=value.filename or f"{field}.png",
        content_type=value.content_type or "application/octet-stream",
        data=data,
    )


# ---------------------------------------------------------------------------
# Routes.
# ---------------------------------------------------------------------------


@app.get("/api/config")
async def get_app_config(cfg: ClickSooraConfig = Depends(get_config)) -> dict:
    """Return models, options, costs and limits for the frontend.

    This route needs no credential, so a UI can render its option pickers
    (and pre-flight cost estimates) even on a misconfigured server.

    Returns:
        Dictionary with keys ``version``, ``models``, ``costs``,
        ``editCosts``, ``limits`` and ``demoMode``.
    """
    models = [
        {
            "id": "gpt-image-1",
            "label": "GPT Image 1",
            "qualities": list(UI_QUALITIES["gpt-image-1"]),
            "sizes": list(GPT_IMAGE_SIZES),
            "outputFormats": list(OUTPUT_FORMATS),
            "supportsTransparency": True,
            "supportsStreaming": True,
            "supportsEditing": True,
            "maxPromptLength": max_prompt_length_for("gpt-image-1", cfg),
        },
        {
            "id": "dall-e-3",
            "label": "DALL-E 3",
            "qualities": list(UI_QUALITIES["dall-e-3"]),
            "sizes": list(DALLE3_SIZES),
            "outputFormats": ["png"],
            "supportsTransparency": False,
            "supportsStreaming": False,
            "supportsEditing": False,
            "maxPromptLength": max_prompt_length_for("dall-e-3", cfg),
        },
    ]
    return {
        "version": __version__,
        "models": models,
        "costs": IMAGE_COSTS,
        "editCosts": EDIT_COSTS,
        "limits": {
            "maxImageSizeMb": cfg.max_image_size_mb,
            "maxComponentImages": cfg.max_component_images,
            "supportedFormats": sorted(SUPPORTED_FORMATS),
            "maskFormat": MASK_FORMAT,
        },
        "demoMode": cfg.demo_mode,
    }


@app.post("/api/generate", response_model=None, responses=ERROR_RESPONSES)
async def generate_image(
    request: Request,
    cfg: ClickSooraConfig = Depends(require_configured),
    producer: ImageProducerBase = Depends(get_producer),
) -> JSONResponse | StreamingResponse:
    """Generate one image from a prompt.

    This endpoint:

    1. Parses and validates the JSON body (nothing goes upstream on failure).
    2. Computes the cost estimate for the requested model and quality.
    3. For ``stream=true`` with gpt-image-1, returns the staged NDJSON
       event stream.  Otherwise makes the upstream call and returns one
       JSON reply.

    Returns:
        :class:`GenerateResponse` as JSON, or an NDJSON
        :class:`~fastapi.responses.StreamingResponse`.
    """
    try:
        req = _parse_generate_request(await _read_json(request))
        params = validate_generate_request(
            prompt=req.prompt,
            model=req.model,
            quality=req.quality,
            size=req.size,
            output_format=req.output_format,
            transparent=req.transparent,
            config=cfg,
        )

        estimated_cost = estimate(req.model, req.quality)
        transparent = isinstance(params, GptImageParams) and params.transparent
        logger.info(
            f"Generating image with parameters: model={req.model}, "
            f"prompt={req.prompt[:50]!r}, quality={req.quality}, size={req.size}, "
            f"stream={req.stream}, transparent={transparent}, outputFormat={req.output_format}"
        )
        echo = {
            "model": req.model,
            "quality": req.quality,
            "size": req.size,
            "outputFormat": req.output_format,
            "transparent": transparent,
        }

        if req.stream and isinstance(params, GptImageParams):
            return StreamingResponse(
                stream_generation(params, producer, estimated_cost=estimated_cost, echo=echo),
                media_type=STREAM_MEDIA_TYPE,
                headers=STREAM_HEADERS,
            )

        result = await producer.generate(params)
    except Exception as e:
        return _error_response(e)

    response = GenerateResponse(imageData=result.image_data, estimatedCost=estimated_cost, **echo)
    return JSONResponse(response.model_dump(by_alias=True))


@app.post("/api/edit", responses=ERROR_RESPONSES)
async def edit_image(
    request: Request,
    cfg: ClickSooraConfig = Depends(require_configured),
    producer: ImageProducerBase = Depends(get_producer),
) -> JSONResponse:
    """Edit a main image (plus up to 9 component images) with a prompt.

    Multipart fields: ``prompt``, ``mainImage`` (file), ``componentImages``
    (zero or more files under the same name), ``quality``, ``size``,
    ``model`` and optional ``mask`` (PNG file).  Always non-streaming.

    Returns:
        :class:`EditResponse` as JSON.
    """
    try:
        async with request.form() as form:
            prompt = form.get("prompt")
            main_image = await _read_upload(form.get("mainImage"), "mainImage")
            component_images = [
                image
                for image in [
                    await _read_upload(value, "componentImages")
                    for value in form.getlist("componentImages")
                ]
                if image is not None
            ]
            mask = await _read_upload(form.get("mask"), "mask")
            quality = _form_text(form, "quality", "standard")
            size = _form_text(form, "size", "auto")
            model = _form_text(form, "model", "gpt-image-1")

        logger.info(
            f"Edit request: prompt={str(prompt)[:50]!r}, "
            f"main_image={(main_image.content_type, main_image.size_mb) if main_image else None}, "
            f"components={len(component_images)}, mask={mask is not None}, "
            f"quality={quality}, size={size}, model={model}"
        )

        edit_request = validate_edit_request(
            prompt=prompt,
            main_image=main_image,
            component_images=component_images,
            mask=mask,
            quality=quality,
            size=size,
            model=model,
            config=cfg,
        )
        result = await producer.edit(edit_request)
    except Exception as e:
        return _error_response(e)

    estimated_cost = estimate_edit(quality)
    logger.info(f"Successfully edited image (estimated cost {estimated_cost})")
    response = EditResponse(imageData=result.image_data, estimatedCost=estimated_cost, usage=result.usage)
    return JSONResponse(response.model_dump(by_alias=True))


@app.get("/api/health-check", responses=ERROR_RESPONSES)
async def health_check(
    cfg: ClickSooraConfig = Depends(require_configured),
    producer: ImageProducerBase = Depends(get_producer),
) -> JSONResponse:
    """Verify upstream reachability and credential validity.

    Lists the models visible to the configured credential and reports how
    long that took.

    Returns:
        :class:`HealthCheckResponse` as JSON, or an error payload (with
        ``responseTime``) when the upstream cannot be reached.
    """
    logger.info(f"Testing OpenAI API with key of length {len(cfg.openai_api_key or '')}")
    start = time.perf_counter()
    try:
        model_ids = await producer.list_models()
    except Exception as e:
        elapsed_ms = int((time.perf_counter() - start) * 1000)
        logger.error(f"OpenAI API test failed after {elapsed_ms}ms: {e}")
        _, payload = normalize_error(e)
        payload["message"] = e.error if isinstance(e, ClickSooraError) else str(e)
        payload["error"] = "OpenAI API test failed"
        payload["responseTime"] = f"{elapsed_ms}ms"
        return JSONResponse(payload, status_code=500)

    elapsed_ms = int((time.perf_counter() - start) * 1000)
    response = HealthCheckResponse(
        responseTime=f"{elapsed_ms}ms",
        modelsCount=len(model_ids),
        hasGptImage1="gpt-image-1" in model_ids,
        firstFewModels=model_ids[:5],
    )
    return JSONResponse(response.model_dump(by_alias=True))


# ---------------------------------------------------------------------------
# CLI entry point.
# ---------------------------------------------------------------------------


def main() -> None:
    """Launch the uvicorn ASGI server.

    Reads host, port and log level from :data:`~clicksoora.core.config.config`
    (``CLICKSOORA_SERVER_HOST``, ``CLICKSOORA_SERVER_PORT`` and
    ``CLICKSOORA_LOG_LEVEL``).  Defaults to ``0.0.0.0:7860``.

    This function is registered as the ``clicksoora`` console script in
    ``pyproject.toml``.
    """
    import uvicorn

    logging.basicConfig(
        level=getattr(logging, config.log_level),
        format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
    )
    uvicorn.run(
        "clicksoora.api.main:app",
        host=config.server_host,
        port=config.server_port,
        reload=False,
    )


if __name__ == "__main__":
    main()
