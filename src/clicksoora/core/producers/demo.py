"""Demo producer that serves a fixed sample image.

Enabled with ``CLICKSOORA_DEMO_MODE=true``.  No credential is needed and no
network call is ever made, which makes the bridge usable for UI work and
public demos without incurring cost.
"""

from __future__ import annotations

import base64
import logging
from functools import lru_cache
from io import BytesIO

from PIL import Image, ImageDraw

from ..models import DallE3Params, EditRequest, GptImageParams, ImageResult
from .base import ImageProducerBase, producer_registry

logger = logging.getLogger(__name__)

SAMPLE_SIZE = (512, 512)


@lru_cache(maxsize=1)
def sample_image_data() -> str:
    """Render the sample PNG once and return it base64-encoded."""
    width, height = SAMPLE_SIZE
    image = Image.new("RGB", SAMPLE_SIZE)
    draw = ImageDraw.Draw(image)

    # Vertical gradient from deep blue to teal.
    for y in range(height):
        ratio = y / (height - 1)
        color = (int(20 + 10 * ratio), int(40 + 140 * ratio), int(120 + 60 * ratio))
        draw.line([(0, y), (width, y)], fill=color)
    draw.rectangle([(32, 32), (width - 32, height - 32)], outline=(255, 255, 255), width=4)
    draw.text((width // 2 - 40, height // 2 - 6), "DEMO IMAGE", fill=(255, 255, 255))

    buffer = BytesIO()
    image.save(buffer, format="PNG")
    return base64.b64encode(buffer.getvalue()).decode("ascii")


@producer_registry.register
class DemoImageProducer(ImageProducerBase):
    """Returns the same sample image for every generation and edit."""

    name = "demo"
    description = "Canned sample output, no upstream calls"

    async def generate(self, params: DallE3Params | GptImageParams) -> ImageResult:
        logger.info(f"Demo mode: returning sample image for {params.model}")
        return ImageResult(image_data=sample_image_data())

    async def edit(self, request: EditRequest) -> ImageResult:
        logger.info("Demo mode: returning sample edited image")
        return ImageResult(image_data=sample_image_data())

    async def list_models(self) -> list[str]:
        return ["dall-e-3", "gpt-image-1"]
