"""Core request orchestration for the ClickSoora image bridge.

This package holds everything between an HTTP request and the upstream
image service, independent of the web framework:

- **Configuration** (config.py): Pydantic Settings, ``CLICKSOORA_`` prefix,
  global ``config`` instance.
- **Errors** (errors.py): failure taxonomy and the uniform error payload.
- **Models** (models.py): request entities and the per-model parameter
  variants.
- **Validation** (validation.py): fail-fast checks on generate and edit
  requests.
- **Cost** (cost.py): static per-image cost table shared by server and client.
- **Producers** (producers/): the upstream adapter, with an OpenAI and a
  demo implementation.
- **Streaming** (streaming.py): the staged NDJSON event stream.

Usage Example
-------------
    from clicksoora.core import config, create_producer
    from clicksoora.core.validation import validate_generate_request

    params = validate_generate_request(
        prompt="a lighthouse at dusk",
        model="gpt-image-1",
        quality="medium",
        size="1024x1024",
        output_format="png",
        transparent=False,
        config=config,
    )
    producer = create_producer(config)
    result = await producer.generate(params)
"""

from clicksoora.core.config import ClickSooraConfig, config
from clicksoora.core.errors import (
    ClickSooraError,
    ConfigurationError,
    StreamParseError,
    UpstreamError,
    UpstreamTimeoutError,
    normalize_error,
)
from clicksoora.core.producers import ImageProducerBase, create_producer, producer_registry
from clicksoora.core.validation import ValidationError

__all__ = [
    "ClickSooraConfig",
    "config",
    "ClickSooraError",
    "ConfigurationError",
    "StreamParseError",
    "UpstreamError",
    "UpstreamTimeoutError",
    "ValidationError",
    "normalize_error",
    "ImageProducerBase",
    "create_producer",
    "producer_registry",
]
