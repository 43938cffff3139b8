"""Image producers: the boundary between the bridge and the image service."""

from clicksoora.core.config import ClickSooraConfig
from clicksoora.core.producers.base import ImageProducerBase, ProducerRegistry, producer_registry

# Import producers to ensure they're registered
from clicksoora.core.producers.demo import DemoImageProducer
from clicksoora.core.producers.openai_images import (
    OpenAIImageProducer,
    build_edit_params,
    build_generate_params,
)


def create_producer(config: ClickSooraConfig, **kwargs) -> ImageProducerBase:
    """Instantiate the producer selected by ``config.demo_mode``."""
    name = DemoImageProducer.name if config.demo_mode else OpenAIImageProducer.name
    return producer_registry.instantiate(name, config, **kwargs)


__all__ = [
    "ImageProducerBase",
    "ProducerRegistry",
    "producer_registry",
    "create_producer",
    "DemoImageProducer",
    "OpenAIImageProducer",
    "build_edit_params",
    "build_generate_params",
]
