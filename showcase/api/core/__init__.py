"""API Core - Shared pieces for API routes.

This package provides:
- Domain exceptions (ValidationError, NotFoundError, etc.)
- Exception handlers turning them into JSON error responses
- Rate limiting (slowapi)
- Audit logging middleware

Usage:
    from showcase.api.core import NotFoundError
    from showcase.api.core.rate_limit import limiter, auth_rate_limit
"""

from ...core.exceptions import (
    ShowcaseError,
    ValidationError,
    AuthenticationError,
    AuthorizationError,
    NotFoundError,
    ConflictError,
    GoneError,
    PayloadTooLargeError,
    UpstreamError,
    ServiceUnavailableError,
)
from .errors import register_exception_handlers

__all__ = [
    # Exceptions
    "ShowcaseError",
    "ValidationError",
    "AuthenticationError",
    "AuthorizationError",
    "NotFoundError",
    "ConflictError",
    "GoneError",
    "PayloadTooLargeError",
    "UpstreamError",
    "ServiceUnavailableError",
    # Handlers
    "register_exception_handlers",
]
