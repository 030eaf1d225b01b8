"""Request audit middleware.

Writes one ``http:request`` row per request under the audited API
prefixes, recording method, path, session user and response status.
"""

import logging

from starlette.concurrency import run_in_threadpool
from starlette.middleware.base import BaseHTTPMiddleware
from starlette.requests import Request

from ...core.constants import AUDITED_PREFIXES

logger = logging.getLogger(__name__)


def is_audited_path(path: str) -> bool:
    return any(path == prefix or path.startswith(prefix + "/") for prefix in AUDITED_PREFIXES)


class AuditLogMiddleware(BaseHTTPMiddleware):
    """Must sit inside SessionMiddleware so the session is readable."""

    async def dispatch(self, request: Request, call_next):
        try:
            response = await call_next(request)
        except Exception:
            # Unhandled errors become a 500 further out; record that status
            await self._record(request, 500)
            raise

        await self._record(request, response.status_code)
        return response

    @staticmethod
    async def _record(request: Request, status_code: int) -> None:
        if request.method == "OPTIONS" or not is_audited_path(request.url.path):
            return
        audit_service = getattr(request.app.state, "audit_service", None)
        if audit_service is None:
            return
        session = request.scope.get("session") or {}
        await run_in_threadpool(
            audit_service.record,
            action="http:request",
            resource_type="http",
            user_id=session.get("user_id"),
            ip_address=request.client.host if request.client else None,
            method=request.method,
            path=request.url.path,
            status_code=status_code,
        )
