"""Integration tests: the async client talking to the real FastAPI app.

Requests travel through ``httpx.ASGITransport`` into the application with
the mocked producer from ``conftest.py``, so the client's payloads and the
server's replies are exercised together.
"""

from __future__ import annotations

from collections.abc import AsyncGenerator
from unittest.mock import AsyncMock, MagicMock

import httpx
import pytest

from clicksoora.api.main import app, get_config, get_producer
from clicksoora.client import (
    EditImageParams,
    GenerateImageParams,
    ImageFile,
    ImageGenerationClient,
    ImageServiceError,
    StreamCallbacks,
)
from clicksoora.core.errors import UpstreamError


@pytest.fixture
async def client(test_config, fake_producer) -> AsyncGenerator[ImageGenerationClient, None]:
    """ImageGenerationClient bound to the app through an ASGI transport."""
    app.dependency_overrides[get_config] = lambda: test_config
    app.dependency_overrides[get_producer] = lambda: fake_producer
    http_client = httpx.AsyncClient(transport=httpx.ASGITransport(app=app), base_url="http://app")
    try:
        yield ImageGenerationClient(http_client=http_client, timeout_seconds=5)
    finally:
        await http_client.aclose()
        app.dependency_overrides.clear()


class TestClientRoundTrip:
    """The client and the server agree on the wire format."""

    async def test_generate(self, client, fake_producer):
        """Non-streaming generation returns the server's image and cost."""
        params = GenerateImageParams(prompt="a red bicycle", quality="high", output_format="png")
        result = await client.generate_image(params)

        assert result.image_data == "ZmFrZS1pbWFnZQ=="
        assert result.estimated_cost == client.estimate_generation_cost(params)
        fake_producer.generate.assert_awaited_once()

    async def test_stream(self, client):
        """Streaming generation drives all callbacks in order."""
        parent = MagicMock()
        callbacks = StreamCallbacks(
            on_start=parent.on_start,
            on_generating=parent.on_generating,
            on_progress=parent.on_progress,
            on_complete=parent.on_complete,
            on_error=parent.on_error,
        )

        await client.generate_image_with_stream(
            GenerateImageParams(prompt="a red bicycle", quality="medium"), callbacks
        )

        assert [name for name, _, _ in parent.mock_calls] == [
            "on_start",
            "on_generating",
            "on_progress",
            "on_complete",
        ]
        parent.on_progress.assert_called_once_with("ZmFrZS1pbWFnZQ==", 0.07)

    async def test_stream_upstream_error(self, client, fake_producer):
        """An in-band error event reaches on_error; no completion follows."""
        fake_producer.generate = AsyncMock(side_effect=UpstreamError("Rate limit reached", status_code=429))
        on_error = MagicMock()
        on_complete = MagicMock()

        await client.generate_image_with_stream(
            GenerateImageParams(prompt="p"),
            StreamCallbacks(on_error=on_error, on_complete=on_complete),
        )

        on_error.assert_called_once_with("Rate limit reached")
        on_complete.assert_not_called()

    async def test_stream_with_non_streaming_model(self, client, fake_producer):
        """dall-e-3 still drives every callback, and calls upstream once."""
        parent = MagicMock()
        callbacks = StreamCallbacks(
            on_start=parent.on_start,
            on_generating=parent.on_generating,
            on_progress=parent.on_progress,
            on_complete=parent.on_complete,
            on_error=parent.on_error,
        )
        params = GenerateImageParams(prompt="a red bicycle", model="dall-e-3")

        await client.generate_image_with_stream(params, callbacks)

        assert [name for name, _, _ in parent.mock_calls] == [
            "on_start",
            "on_generating",
            "on_progress",
            "on_complete",
        ]
        parent.on_progress.assert_called_once_with(
            "ZmFrZS1pbWFnZQ==", client.estimate_generation_cost(params)
        )
        fake_producer.generate.assert_awaited_once()
        assert fake_producer.generate.await_args.args[0].model == "dall-e-3"

    async def test_validation_error(self, client, fake_producer):
        """Server-side validation failures surface as ImageServiceError."""
        with pytest.raises(ImageServiceError) as exc_info:
            await client.generate_image(GenerateImageParams(prompt="x" * 32001))

        assert exc_info.value.status_code == 400
        assert exc_info.value.details["constraint"] == "prompt_too_long"
        fake_producer.generate.assert_not_called()

    async def test_edit(self, client, fake_producer, png_bytes):
        """Multipart edits reach the producer with every image in order."""
        params = EditImageParams(
            prompt="put the hat on the cat",
            main_image=ImageFile("cat.png", png_bytes),
            component_images=[ImageFile("hat.png", png_bytes)],
            mask=ImageFile("mask.png", png_bytes),
            quality="medium",
        )
        result = await client.edit_image(params)

        assert result.image_data == "ZmFrZS1pbWFnZQ=="
        assert result.estimated_cost == 0.07
        request = fake_producer.edit.await_args.args[0]
        assert [image.filename for image in request.images] == ["cat.png", "hat.png"]
        assert request.mask is not None

    async def test_health_check(self, client):
        """The health check payload is returned as-is."""
        data = await client.health_check()
        assert data["success"] is True
        assert data["hasGptImage1"] is True
