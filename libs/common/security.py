"""Security utilities for the embedding service."""

import re
from typing import Any, Dict

import structlog

logger = structlog.get_logger("security")

MASK = "***MASKED***"


class DataMasker:
    """Masks sensitive data in logs and responses."""

    def __init__(self):
        self.sensitive_fields = {
            "password", "secret", "api_key", "apikey", "access_token",
            "auth_token", "credential", "authorization",
        }
        self.bearer_pattern = re.compile(r"(?i)\bbearer\s+\S+")

    def is_sensitive(self, key: str) -> bool:
        """Return True if a mapping key names a secret."""
        key_lower = key.lower()
        return any(sensitive in key_lower for sensitive in self.sensitive_fields)

    def mask_sensitive_data(self, data: Any) -> Any:
        """Mask sensitive data in various data structures."""
        if isinstance(data, dict):
            return self._mask_dict(data)
        elif isinstance(data, (list, tuple)):
            return [self.mask_sensitive_data(item) for item in data]
        elif isinstance(data, str):
            return self.bearer_pattern.sub("Bearer " + MASK, data)
        else:
            return data

    def _mask_dict(self, data: Dict[str, Any]) -> Dict[str, Any]:
        masked = {}
        for key, value in data.items():
            if isinstance(key, str) and self.is_sensitive(key):
                masked[key] = MASK
            else:
                masked[key] = self.mask_sensitive_data(value)
        return masked


class SecurityHeaders:
    """Security headers for HTTP responses."""

    @staticmethod
    def get_security_headers() -> Dict[str, str]:
        """Get recommended security headers for a JSON API."""
        return {
            "X-Content-Type-Options": "nosniff",
            "X-Frame-Options": "DENY",
            "Strict-Transport-Security": "max-age=31536000; includeSubDomains",
            "Content-Security-Policy": "default-src 'none'; frame-ancestors 'none'",
            "Referrer-Policy": "no-referrer",
            "Cross-Origin-Resource-Policy": "same-origin",
        }
