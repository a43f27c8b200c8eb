"""Configuration management for the embedding service.

This module centralizes environment-driven configuration. It builds on
``pydantic_settings.BaseSettings`` so configuration can be provided via
environment variables, ``.env`` files, or defaults.

Highlights
- Strongly-typed settings with sensible defaults
- One place to discover commonly used environment variables
- Legacy variable names (``PORT``, ``USE_SSL``, ``SSL_KEY_PATH``, ...) are
  still honoured next to the ``ML_*`` names

Usage
- Inject the config in your service entrypoint: ``config = EmbeddingConfig()``
- Or select dynamically: ``config = get_config("embedding")``
"""

from typing import List, Optional

from pydantic import AliasChoices, Field
from pydantic_settings import BaseSettings, SettingsConfigDict


class BaseConfig(BaseSettings):
    """Base configuration shared by every service entrypoint.

    Parameters are read from the process environment (case-insensitive).
    Defaults keep local development convenient while still being explicit.

    Notes
    - Add new shared settings here so downstream configs inherit them.
    - Prefer a typed field over reading ``os.environ`` directly.
    """

    model_config = SettingsConfigDict(
        env_file=".env",
        case_sensitive=False,
        extra="ignore",
    )

    # Environment
    ml_env: str = Field(default="local", description="Deployment environment name")

    # Logging
    ml_log_level: str = Field(default="INFO", description="DEBUG, INFO, WARNING or ERROR")
    ml_log_format: str = Field(default="json", description="json or console")

    # Performance
    ml_gpu_preference: str = Field(default="auto", description="auto, cpu or gpu")
    ml_max_batch_size: int = Field(default=32, ge=1, description="Encoder mini-batch size")

    # HTTP
    ml_cors_origins: List[str] = Field(default_factory=lambda: ["*"])


class EmbeddingConfig(BaseConfig):
    """Configuration for the embedding service.

    Includes model selection, the public model descriptor, role prefixes,
    the shared API key and the TLS listener settings.
    """

    ml_embedding_host: str = Field(
        default="0.0.0.0",
        validation_alias=AliasChoices("ml_embedding_host", "host"),
    )
    ml_embedding_port: int = Field(
        default=8082,
        validation_alias=AliasChoices("ml_embedding_port", "port"),
    )

    # Model
    ml_embedding_model: str = Field(default="google/embeddinggemma-300m")
    ml_embedding_model_id: str = Field(default="embeddinggemma-300m")
    ml_embedding_model_owner: str = Field(default="google")
    ml_embedding_model_created: int = Field(default=1756684800)
    ml_embedding_dimension: int = Field(default=768, ge=1)
    ml_embedding_cache_dir: Optional[str] = Field(default=None)
    ml_embedding_preload: bool = Field(default=True)

    # Role prefixes expected by the model's training convention
    ml_query_prefix: str = Field(default="task: search result | query: ")
    ml_document_prefix: str = Field(default="title: none | text: ")

    # Security
    ml_api_key: Optional[str] = Field(
        default=None,
        validation_alias=AliasChoices("ml_api_key", "api_key"),
    )

    # Transport
    ml_use_ssl: bool = Field(
        default=True,
        validation_alias=AliasChoices("ml_use_ssl", "use_ssl"),
    )
    ml_ssl_key_path: str = Field(
        default="certs/key.pem",
        validation_alias=AliasChoices("ml_ssl_key_path", "ssl_key_path"),
    )
    ml_ssl_cert_path: str = Field(
        default="certs/cert.pem",
        validation_alias=AliasChoices("ml_ssl_cert_path", "ssl_cert_path"),
    )

    @property
    def accepted_model_names(self) -> List[str]:
        """Model identifiers a client may send in the ``model`` field."""
        return [self.ml_embedding_model_id, self.ml_embedding_model]


def get_config(service_name: str) -> BaseConfig:
    """Get configuration for a specific service.

    Parameters
    - service_name: ``embedding``; anything else yields ``BaseConfig``.
    """
    config_map = {
        "embedding": EmbeddingConfig,
    }

    # Default to ``BaseConfig`` to avoid surprising crashes for unknown names.
    config_class = config_map.get(service_name, BaseConfig)
    return config_class()
