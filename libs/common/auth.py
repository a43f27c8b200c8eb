"""Shared-secret authentication for the embedding service.

Clients send the service API key in the ``Authorization`` header, either as
``Bearer <key>`` or as the bare key. The key configured on the server is
compared in constant time.

Design
- ``verify_api_key`` is a pure function so it can be unit tested directly
- ``create_api_key_dependency`` wraps it as a FastAPI dependency that reads
  the expected key from ``request.app.state.config``
"""

import secrets
from typing import Callable, Optional

from fastapi import Depends, Request
from fastapi.security import APIKeyHeader
import structlog

from .errors import AuthenticationError, ServerConfigurationError

logger = structlog.get_logger("auth")

BEARER_PREFIX = "bearer "


def extract_api_key(authorization: Optional[str]) -> Optional[str]:
    """Return the key from an ``Authorization`` header value.

    Accepts ``Bearer <key>`` (scheme is case-insensitive) or the bare key.
    """
    if authorization is None:
        return None
    value = authorization.strip()
    if value.lower() == BEARER_PREFIX.strip():
        return None
    if value.lower().startswith(BEARER_PREFIX):
        value = value[len(BEARER_PREFIX):].strip()
    return value or None


def verify_api_key(authorization: Optional[str], expected_key: Optional[str]) -> str:
    """Validate an ``Authorization`` header against the configured key.

    Raises
    - ``ServerConfigurationError`` when no key is configured server-side
    - ``AuthenticationError`` when the header is missing or does not match
    """
    if not expected_key:
        logger.error("API key is not configured on the server")
        raise ServerConfigurationError(
            "Server authentication is not configured",
            code="api_key_not_configured",
        )

    provided = extract_api_key(authorization)
    if provided is None:
        raise AuthenticationError(
            "Missing API key in Authorization header",
            code="missing_api_key",
            headers={"WWW-Authenticate": "Bearer"},
        )

    if not secrets.compare_digest(provided.encode("utf-8"), expected_key.encode("utf-8")):
        logger.warning("Rejected request with invalid API key")
        raise AuthenticationError(
            "Invalid API key",
            headers={"WWW-Authenticate": "Bearer"},
        )
    return provided


def create_api_key_dependency() -> Callable:
    """Create the FastAPI dependency that enforces the API key."""
    api_key_header = APIKeyHeader(name="Authorization", auto_error=False)

    def require_api_key(
        request: Request,
        authorization: Optional[str] = Depends(api_key_header),
    ) -> str:
        """FastAPI dependency validating the caller's API key."""
        return verify_api_key(authorization, request.app.state.config.ml_api_key)

    return require_api_key


require_api_key = create_api_key_dependency()
