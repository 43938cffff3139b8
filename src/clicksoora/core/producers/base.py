"""Base class and registry for image producers.

An image producer is the boundary between the bridge and whatever actually
makes pixels.  Two implementations exist:

- **openai** (:class:`~clicksoora.core.producers.openai_images.OpenAIImageProducer`)
  calls the OpenAI Images API.
- **demo** (:class:`~clicksoora.core.producers.demo.DemoImageProducer`)
  returns a canned sample image without touching the network.

The implementation is chosen once, when the application starts, from
``config.demo_mode``.  It is never swapped in the middle of a request.

Usage Example
-------------
    >>> from clicksoora.core.config import config
    >>> from clicksoora.core.producers import create_producer
    >>>
    >>> producer = create_producer(config)
    >>> result = await producer.generate(params)
    >>> result.image_data[:10]
    'iVBORw0KGg'
"""

from __future__ import annotations

import logging
from abc import ABC, abstractmethod
from typing import Any

from ..config import ClickSooraConfig
from ..models import DallE3Params, EditRequest, GptImageParams, ImageResult

logger = logging.getLogger(__name__)


class ImageProducerBase(ABC):
    """Abstract base class for all image producers.

    Producers hold no per-request state, so a single instance is shared by
    every concurrent request.

    Attributes
    ----------
    name : str
        Registry name of the producer
    description : str
        Brief description of the producer
    config : ClickSooraConfig
        Configuration object (read-only)
    """

    name: str = "base"
    description: str = "Base class for image producers"

    def __init__(self, config: ClickSooraConfig) -> None:
        self.config = config
        logger.info(f"Initialized {self.name} image producer")

    @abstractmethod
    async def generate(self, params: DallE3Params | GptImageParams) -> ImageResult:
        """Generate one image from a prompt.

        Args:
            params: Model-specific parameters produced by the validator.

        Returns:
            ImageResult with base64 image data.

        Raises:
            UpstreamError: If the image service reports a failure.
            UpstreamTimeoutError: If the call exceeds its deadline.
        """

    @abstractmethod
    async def edit(self, request: EditRequest) -> ImageResult:
        """Edit images with a prompt and optional mask.

        Raises:
            UpstreamError: If the image service reports a failure.
            UpstreamTimeoutError: If the call exceeds its deadline.
        """

    @abstractmethod
    async def list_models(self) -> list[str]:
        """Return the model identifiers visible with the configured credential.

        Used by the health check to prove reachability and credential validity.
        """

    async def aclose(self) -> None:
        """Release network resources.  The default producer holds none."""


class ProducerRegistry:
    """Registry of available image producer classes.

    Usage
    -----
        >>> from clicksoora.core.producers import producer_registry
        >>> producer_registry.list_available()
        ['openai', 'demo']
        >>> producer = producer_registry.instantiate("demo", config)
    """

    def __init__(self) -> None:
        self._producers: dict[str, type[ImageProducerBase]] = {}

    def register(self, producer_class: type[ImageProducerBase]) -> type[ImageProducerBase]:
        """Register a producer class under its ``name``.

        Returns the class unchanged so this can be used as a decorator.
        """
        name = producer_class.name
        if name in self._producers:
            logger.warning(f"Image producer '{name}' is already registered, overwriting")

        self._producers[name] = producer_class
        logger.debug(f"Registered image producer: {name}")
        return producer_class

    def instantiate(self, name: str, config: ClickSooraConfig, **kwargs: Any) -> ImageProducerBase:
        """Create an instance of a registered producer.

        Raises
        ------
        KeyError
            If ``name`` is not registered
        """
        if name not in self._producers:
            available = ", ".join(self.list_available())
            raise KeyError(f"Image producer '{name}' not found. Available producers: {available}")

        instance = self._producers[name](config, **kwargs)
        logger.info(f"Instantiated image producer: {name}")
        return instance

    def list_available(self) -> list[str]:
        return list(self._producers.keys())


# Global producer registry instance
producer_registry = ProducerRegistry()
