"""Shared pytest fixtures for ClickSoora tests."""

from __future__ import annotations

from collections.abc import Callable, Generator
from io import BytesIO
from unittest.mock import AsyncMock, MagicMock

import pytest
from fastapi.testclient import TestClient
from PIL import Image

from clicksoora.api.main import app, get_config, get_producer
from clicksoora.core.config import ClickSooraConfig
from clicksoora.core.models import ImageResult, UploadedImage
from clicksoora.core.producers import ImageProducerBase

# Base64 of b"fake-image", used as image data in fake responses.
FAKE_IMAGE_DATA = "ZmFrZS1pbWFnZQ=="


@pytest.fixture
def test_config() -> ClickSooraConfig:
    """Create a configured test configuration that ignores the environment.

    Returns:
        ClickSooraConfig with a dummy credential and default limits
    """
    return ClickSooraConfig(
        openai_api_key="sk-test-key",
        demo_mode=False,
        upstream_timeout_seconds=5.0,
        client_timeout_seconds=5.0,
        _env_file=None,
    )


@pytest.fixture
def unconfigured_config() -> ClickSooraConfig:
    """Create a configuration with no credential and demo mode off."""
    return ClickSooraConfig(openai_api_key=None, demo_mode=False, _env_file=None)


@pytest.fixture
def png_bytes() -> bytes:
    """Encode a tiny real PNG image."""
    buffer = BytesIO()
    Image.new("RGBA", (8, 8), (255, 0, 0, 255)).save(buffer, format="PNG")
    return buffer.getvalue()


@pytest.fixture
def make_image(png_bytes: bytes) -> Callable[..., UploadedImage]:
    """Factory for uploaded images.

    Returns:
        Callable accepting ``content_type``, ``size`` (bytes, padded with
        zeros) and ``field``.
    """

    def _make(
        content_type: str = "image/png",
        size: int | None = None,
        field: str = "mainImage",
    ) -> UploadedImage:
        data = png_bytes if size is None else b"\x00" * size
        extension = content_type.split("/")[-1]
        return UploadedImage(
            field=field,
            filename=f"{field}.{extension}",
            content_type=content_type,
            data=data,
        )

    return _make


@pytest.fixture
def fake_producer() -> MagicMock:
    """Create a mocked image producer.

    ``generate``/``edit`` return :data:`FAKE_IMAGE_DATA` and
    ``list_models`` returns three model ids including gpt-image-1.
    """
    producer = MagicMock(spec=ImageProducerBase)
    producer.generate = AsyncMock(return_value=ImageResult(image_data=FAKE_IMAGE_DATA))
    producer.edit = AsyncMock(return_value=ImageResult(image_data=FAKE_IMAGE_DATA))
    producer.list_models = AsyncMock(return_value=["dall-e-3", "gpt-image-1", "gpt-4o"])
    producer.aclose = AsyncMock()
    return producer


def _override(cfg: ClickSooraConfig, producer: MagicMock) -> None:
    app.dependency_overrides[get_config] = lambda: cfg
    app.dependency_overrides[get_producer] = lambda: producer


@pytest.fixture
def test_client(
    test_config: ClickSooraConfig, fake_producer: MagicMock
) -> Generator[TestClient, None, None]:
    """FastAPI TestClient wired to ``test_config`` and ``fake_producer``.

    The client is not entered as a context manager, so the lifespan (which
    would build a real OpenAI client) never runs.
    """
    _override(test_config, fake_producer)
    try:
        yield TestClient(app)
    finally:
        app.dependency_overrides.clear()


@pytest.fixture
def unconfigured_client(
    unconfigured_config: ClickSooraConfig, fake_producer: MagicMock
) -> Generator[TestClient, None, None]:
    """FastAPI TestClient whose configuration has no credential."""
    _override(unconfigured_config, fake_producer)
    try:
        yield TestClient(app)
    finally:
        app.dependency_overrides.clear()
