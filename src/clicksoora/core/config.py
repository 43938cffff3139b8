"""Configuration management for the ClickSoora image bridge.

This module provides centralized configuration management using Pydantic Settings.
All configuration is loaded from environment variables with the CLICKSOORA_ prefix,
allowing easy customization without code changes.

Environment Variable Loading
-----------------------------
Configuration values are loaded in the following priority order:
1. Environment variables (CLICKSOORA_* prefix)
2. .env file in the project root
3. Default values defined in ClickSooraConfig

The upstream credential is the one exception to the prefix rule: it is read
from ``CLICKSOORA_OPENAI_API_KEY`` or, failing that, from the conventional
``OPENAI_API_KEY`` variable that the OpenAI tooling already uses.

Example .env file:
    OPENAI_API_KEY=sk-...
    CLICKSOORA_UPSTREAM_TIMEOUT_SECONDS=300
    CLICKSOORA_MAX_IMAGE_SIZE_MB=4
    CLICKSOORA_DEMO_MODE=false

Global Configuration Instance
------------------------------
A global `config` instance is created automatically at module import time.
It is read-only after construction and shared by every request handler, so
it is safe to use from concurrent requests without locking.

Usage Example
-------------
    from clicksoora.core.config import config

    print(config.upstream_timeout_seconds)
    print(config.max_image_size_bytes)

Limits
------
- max_image_size_mb: local per-image ceiling (4 MiB by default).  The
  upstream service accepts up to 25 MiB; the tighter local limit keeps
  request latency predictable.
- max_prompt_length: prompt ceiling for gpt-image-1 (32,000 characters).
  DALL-E 3 has its own fixed ceiling, see ``clicksoora.core.models``.
- max_component_images: additional images allowed next to the main image
  of an edit request (9, for a total of 10).

See Also
--------
- .env.example: Template with all available configuration options
- ClickSooraConfig: Full configuration class documentation
"""

from typing import Literal

from pydantic import AliasChoices, Field
from pydantic_settings import BaseSettings, SettingsConfigDict


class ClickSooraConfig(BaseSettings):
    """Main configuration for the ClickSoora image bridge.

    Attributes
    ----------
    Upstream Settings:
        openai_api_key : str | None
            Credential for the OpenAI Images API.  ``None`` short-circuits
            every request with a configuration error (unless demo mode is on).
        openai_base_url : str | None
            Optional override of the OpenAI API base URL (proxies, mocks)
        upstream_timeout_seconds : float
            Ceiling for a single upstream call, retries included
        upstream_max_retries : int
            Low-level transient-error retries performed by the SDK

    Client Settings:
        client_timeout_seconds : float
            Wall-clock bound the Python client applies to a whole request

    Validation Limits:
        max_image_size_mb : int
            Per-image upload limit in MiB
        max_prompt_length : int
            Maximum prompt length in characters (gpt-image-1)
        max_component_images : int
            Maximum number of component images on an edit request

    Behaviour:
        demo_mode : bool
            Serve a canned sample image instead of calling the upstream API

    Server Settings:
        server_host : str
            Server bind address
        server_port : int
            Server port (1024-65535)
        log_level : str
            Root log level used by the CLI entry point
        cors_allow_origins : list[str]
            Origins allowed to call the API from a browser

    Examples
    --------
    Create a custom configuration:

        >>> custom_config = ClickSooraConfig(
        ...     openai_api_key="sk-test",
        ...     upstream_timeout_seconds=60,
        ... )
    """

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        env_prefix="CLICKSOORA_",
        case_sensitive=False,
        extra="ignore",
        populate_by_name=True,
    )

    # Upstream settings
    openai_api_key: str | None = Field(
        default=None,
        validation_alias=AliasChoices("CLICKSOORA_OPENAI_API_KEY", "OPENAI_API_KEY"),
        description="API key for the OpenAI Images API",
    )
    openai_base_url: str | None = Field(
        default=None,
        description="Optional override of the OpenAI API base URL",
    )
    upstream_timeout_seconds: float = Field(
        default=300.0,
        description="Ceiling for one upstream call (5 minutes)",
        gt=0,
    )
    upstream_max_retries: int = Field(
        default=2,
        description="Transient-error retries performed by the OpenAI SDK",
        ge=0,
        le=5,
    )

    # Client settings
    client_timeout_seconds: float = Field(
        default=180.0,
        description="Wall-clock bound for one client request (3 minutes)",
        gt=0,
    )

    # Validation limits
    max_image_size_mb: int = Field(default=4, ge=1, le=25)
    max_prompt_length: int = Field(default=32000, ge=1)
    max_component_images: int = Field(default=9, ge=0, le=9)

    demo_mode: bool = Field(
        default=False,
        description="Return a sample image instead of calling the upstream API",
    )

    # Server settings
    server_host: str = Field(
        default="0.0.0.0",
        description="Server bind address (0.0.0.0 for local network)",
    )
    server_port: int = Field(
        default=7860,
        description="Server port",
        ge=1024,
        le=65535,
    )
    log_level: Literal["DEBUG", "INFO", "WARNING", "ERROR"] = Field(default="INFO")
    cors_allow_origins: list[str] = Field(default_factory=lambda: ["*"])

    @property
    def max_image_size_bytes(self) -> int:
        """Per-image upload limit in bytes."""
        return self.max_image_size_mb * 1024 * 1024

    @property
    def is_configured(self) -> bool:
        """Whether requests can be served (credential present or demo mode)."""
        return self.demo_mode or bool(self.openai_api_key)


# Global configuration instance
# Loads values from environment variables (CLICKSOORA_* prefix) and .env file.
config = ClickSooraConfig()
