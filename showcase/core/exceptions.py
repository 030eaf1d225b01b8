"""Domain exceptions.

Each exception carries the HTTP status it maps to; the API layer turns
any ``ShowcaseError`` into a JSON error response.
"""

from typing import Any, Dict, Optional


class ShowcaseError(Exception):
    """Base class for all showcase errors."""
    status_code = 500

    def __init__(self, message: str, extra: Optional[Dict[str, Any]] = None):
        super().__init__(message)
        self.message = message
        self.extra = extra or {}


class ValidationError(ShowcaseError):
    status_code = 400


class AuthenticationError(ShowcaseError):
    status_code = 401


class AuthorizationError(ShowcaseError):
    status_code = 403


class NotFoundError(ShowcaseError):
    status_code = 404


class ConflictError(ShowcaseError):
    status_code = 409


class GoneError(ShowcaseError):
    status_code = 410


class PayloadTooLargeError(ShowcaseError):
    status_code = 413


class UpstreamError(ShowcaseError):
    status_code = 502


class ServiceUnavailableError(ShowcaseError):
    status_code = 503
