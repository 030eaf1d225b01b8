"""FastAPI dependencies for the showcase API.

Provides shared dependencies (auth, database, services) via FastAPI's
Depends() injection system.
"""

import logging
from typing import Any, Dict, Optional

from fastapi import Depends, HTTPException, Request

from ..core.constants import ROLE_ADMIN, ROLE_PROSPECT, ROLE_VIEWER
from ..core.db.models import User
from ..core.utils import parse_uuid
from ..core.exceptions import NotFoundError

logger = logging.getLogger(__name__)


async def get_db_manager(request: Request):
    """Get DatabaseManager from app state."""
    return request.app.state.db_manager


async def get_app_settings(request: Request):
    """Get ShowcaseSettings from app state."""
    return request.app.state.settings


async def get_prototype_manager(request: Request):
    """Get PrototypeManager from app state."""
    return request.app.state.prototype_manager


async def get_link_manager(request: Request):
    """Get LinkManager from app state."""
    return request.app.state.link_manager


async def get_user_manager(request: Request):
    """Get UserManager from app state."""
    return request.app.state.user_manager


async def get_upload_service(request: Request):
    """Get UploadService from app state."""
    return request.app.state.upload_service


async def get_audit_service(request: Request):
    """Get AuditService from app state."""
    return request.app.state.audit_service


async def get_email_service(request: Request):
    """Get EmailService from app state."""
    return request.app.state.email_service


async def get_slack_service(request: Request):
    """Get SlackService from app state."""
    return request.app.state.slack_service


def client_ip(request: Request) -> Optional[str]:
    return request.client.host if request.client else None


def record_audit(
    request: Request,
    action: str,
    resource_type: str,
    resource_id: Optional[str] = None,
    user_id: Optional[str] = None,
    details: Optional[Dict[str, Any]] = None,
) -> None:
    """Write a domain audit event for the current request."""
    request.app.state.audit_service.record(
        action=action,
        resource_type=resource_type,
        resource_id=resource_id,
        user_id=user_id or request.session.get("user_id"),
        details=details,
        ip_address=client_ip(request),
        method=request.method,
        path=request.url.path,
    )


def _load_session_user(request: Request) -> Optional[dict]:
    """Re-read the session user from the database; drop stale sessions."""
    user_id = request.session.get("user_id")
    if not user_id:
        return None

    try:
        uid = parse_uuid(user_id, "User")
    except NotFoundError:
        request.session.clear()
        return None

    with request.app.state.db_manager.get_session() as db_session:
        user = db_session.query(User).filter(User.user_id == uid).first()
        if not user or not user.is_active:
            request.session.clear()
            return None

        request.session["role"] = user.role
        return {
            "user_id": str(user.user_id),
            "email": user.email,
            "name": user.name,
            "role": user.role,
        }


async def get_current_user(request: Request) -> dict:
    """FastAPI dependency for authentication.

    Checks session for logged-in user. Returns user dict or raises 401.
    """
    user = _load_session_user(request)
    if not user:
        raise HTTPException(status_code=401, detail="Not authenticated")
    return user


async def require_admin(user: dict = Depends(get_current_user)) -> dict:
    """Require admin role. Returns user dict or raises 403."""
    if user.get("role") != ROLE_ADMIN:
        raise HTTPException(status_code=403, detail="Admin access required")
    return user


async def require_viewer(user: dict = Depends(get_current_user)) -> dict:
    """Require viewer role. Returns user dict or raises 403."""
    if user.get("role") != ROLE_VIEWER:
        raise HTTPException(status_code=403, detail="Viewer access required")
    return user


async def require_prospect(user: dict = Depends(get_current_user)) -> dict:
    """Require prospect role. Returns user dict or raises 403."""
    if user.get("role") != ROLE_PROSPECT:
        raise HTTPException(status_code=403, detail="Prospect access required")
    return user
