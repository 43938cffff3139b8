"""ClickSoora Image Bridge - OpenAI image generation and editing proxy."""

__version__ = "0.1.0"

from clicksoora.core.config import ClickSooraConfig, config
from clicksoora.core.producers import ImageProducerBase, create_producer, producer_registry

__all__ = [
    "ClickSooraConfig",
    "config",
    "ImageProducerBase",
    "create_producer",
    "producer_registry",
]
