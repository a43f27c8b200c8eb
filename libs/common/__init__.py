"""Common utilities shared across the service.

Includes:
- ``config``: Pydantic-based configuration from environment variables.
- ``logging``: structured logging setup with structlog.
- ``errors``: error taxonomy rendered as structured API error bodies.
- ``auth``: shared API key verification and its FastAPI dependency.
- ``security``: secret masking and HTTP security headers.
- ``metrics``: Prometheus metrics helpers.

Import pattern:
- from libs.common.config import EmbeddingConfig
- from libs.common.logging import configure_logging
"""
