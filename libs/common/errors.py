"""Error taxonomy shared by the embedding service.

Every error carries the HTTP status it maps to plus a stable ``type`` and
``code`` so the API layer can render one structured body shape::

    {"error": {"message": "...", "type": "...", "code": "...", "param": ...}}

Messages are written for clients. Never put exception reprs, stack traces or
file paths into them; log those instead.
"""

from typing import Any, Dict, Optional


class ServiceError(Exception):
    """Base class for errors surfaced to API clients."""

    status_code: int = 500
    error_type: str = "server_error"
    code: str = "internal_error"

    def __init__(
        self,
        message: str,
        *,
        code: Optional[str] = None,
        param: Optional[str] = None,
        headers: Optional[Dict[str, str]] = None,
    ):
        super().__init__(message)
        self.message = message
        if code is not None:
            self.code = code
        self.param = param
        self.headers = headers

    def to_dict(self) -> Dict[str, Any]:
        """Render the error body returned to clients."""
        error: Dict[str, Any] = {
            "message": self.message,
            "type": self.error_type,
            "code": self.code,
        }
        if self.param is not None:
            error["param"] = self.param
        return {"error": error}


class InvalidRequestError(ServiceError):
    """Missing or malformed fields, out-of-range values, empty collections."""

    status_code = 400
    error_type = "invalid_request_error"
    code = "invalid_request"


class AuthenticationError(ServiceError):
    """Missing or invalid API key."""

    status_code = 401
    error_type = "authentication_error"
    code = "invalid_api_key"


class ServerConfigurationError(ServiceError):
    """The server is missing configuration it needs to serve the request."""

    status_code = 500
    error_type = "server_error"
    code = "server_misconfigured"


class ModelInitializationError(ServiceError):
    """The embedding model could not be loaded."""

    status_code = 503
    error_type = "server_error"
    code = "model_unavailable"


class InferenceError(ServiceError):
    """The encoder failed after the model was loaded."""

    status_code = 500
    error_type = "server_error"
    code = "inference_failed"


class NotFoundError(ServiceError):
    status_code = 404
    error_type = "invalid_request_error"
    code = "not_found"
