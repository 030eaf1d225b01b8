"""Exception handlers.

``ShowcaseError`` subclasses become ``{"detail": message, ...extra}`` with
their status code. Anything unhandled becomes a 500 whose message is
hidden in production.
"""

import logging

from fastapi import FastAPI, Request
from fastapi.responses import JSONResponse
from slowapi.errors import RateLimitExceeded

from ...core.exceptions import ShowcaseError

logger = logging.getLogger(__name__)

RATE_LIMIT_MESSAGE = "Too many attempts. Please try again later."


def register_exception_handlers(app: FastAPI, is_production: bool) -> None:

    @app.exception_handler(ShowcaseError)
    async def showcase_error_handler(request: Request, exc: ShowcaseError):
        if exc.status_code >= 500:
            logger.error(f"{request.method} {request.url.path}: {exc.message}")
        content = {"detail": exc.message}
        content.update(exc.extra)
        return JSONResponse(status_code=exc.status_code, content=content)

    @app.exception_handler(RateLimitExceeded)
    async def rate_limit_handler(request: Request, exc: RateLimitExceeded):
        logger.warning(f"Rate limit exceeded for {request.client.host if request.client else 'unknown'} "
                       f"on {request.url.path}")
        return JSONResponse(status_code=429, content={"detail": RATE_LIMIT_MESSAGE})

    @app.exception_handler(Exception)
    async def unhandled_error_handler(request: Request, exc: Exception):
        logger.exception(f"Unhandled error on {request.method} {request.url.path}")
        message = "Internal server error" if is_production else str(exc) or "Internal server error"
        return JSONResponse(status_code=500, content={"detail": message})
