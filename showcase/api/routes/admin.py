"""Admin API routes (FastAPI).

User administration, per-viewer prototype assignments, the audit log
and review of top-secret access requests. All routes are admin-only.
"""

import logging
from typing import Optional

from fastapi import APIRouter, BackgroundTasks, Depends, Query, Request
from pydantic import BaseModel

from showcase.core.auth import RBACService
from showcase.core.constants import ROLE_VIEWER
from showcase.core.db.models import MagicLink, Prototype, User
from showcase.core.links.link_manager import build_share_url
from showcase.core.prototype import AccessRequestService, request_to_dict
from showcase.core.utils import parse_uuid
from ..core import NotFoundError, ValidationError
from ..deps import (
    get_app_settings,
    get_audit_service,
    get_db_manager,
    get_email_service,
    get_slack_service,
    get_user_manager,
    record_audit,
    require_admin,
)

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/admin", tags=["admin"])


# ── Request/Response models ──────────────────────────────────────────────

class InviteRequest(BaseModel):
    email: str
    name: Optional[str] = None
    role: str = ROLE_VIEWER


class UserUpdate(BaseModel):
    name: Optional[str] = None
    role: Optional[str] = None
    is_active: Optional[bool] = None


class AssignPrototypeRequest(BaseModel):
    prototype_id: str


class ReviewRequest(BaseModel):
    status: str


def invite_url(client_url: str, token: str) -> str:
    return f"{(client_url or '').rstrip('/')}/invite/{token}"


# ── Users ────────────────────────────────────────────────────────────────

@router.get("/users")
async def list_users(
    user: dict = Depends(require_admin),
    um=Depends(get_user_manager),
):
    return {"users": um.list_users()}


@router.post("/users/invite", status_code=201)
async def invite_user(
    data: InviteRequest,
    request: Request,
    background_tasks: BackgroundTasks,
    user: dict = Depends(require_admin),
    um=Depends(get_user_manager),
    settings=Depends(get_app_settings),
    email_service=Depends(get_email_service),
):
    """Create an inactive account and email its invite link."""
    invited, token = um.invite_user(data.email, data.name, data.role)
    url = invite_url(settings.client_url, token)

    background_tasks.add_task(email_service.send_invite, invited["email"], url)
    record_audit(
        request, "user:invite", "user", resource_id=invited["id"],
        details={"email": invited["email"], "role": invited["role"]},
    )
    return {"user": invited, "invite_token": token, "invite_url": url}


@router.patch("/users/{user_id}")
async def update_user(
    user_id: str,
    data: UserUpdate,
    request: Request,
    user: dict = Depends(require_admin),
    um=Depends(get_user_manager),
):
    """Change a user's name, role or active flag."""
    changes = data.model_dump(exclude_unset=True)
    updated = um.update_user(user_id, actor_id=user["user_id"], **changes)
    record_audit(request, "user:update", "user", resource_id=updated["id"], details=changes)
    return {"user": updated}


@router.delete("/users/{user_id}")
async def delete_user(
    user_id: str,
    request: Request,
    user: dict = Depends(require_admin),
    um=Depends(get_user_manager),
):
    snapshot = um.delete_user(user_id, actor_id=user["user_id"])
    record_audit(
        request, "user:delete", "user", resource_id=snapshot["id"],
        details={"email": snapshot["email"]},
    )
    return {"message": "User deleted"}


# ── Prototype assignments ────────────────────────────────────────────────

def _get_user(session, user_id: str) -> User:
    target = session.query(User).filter(User.user_id == parse_uuid(user_id, "User")).first()
    if not target:
        raise NotFoundError("User not found")
    return target


@router.get("/users/{user_id}/prototypes")
async def list_user_prototypes(
    user_id: str,
    user: dict = Depends(require_admin),
    db_manager=Depends(get_db_manager),
):
    """Prototypes assigned to a user."""
    with db_manager.get_session() as session:
        target = _get_user(session, user_id)
        return {"prototypes": RBACService(session).list_user_prototypes(str(target.user_id))}


@router.post("/users/{user_id}/prototypes", status_code=201)
async def assign_prototype(
    user_id: str,
    data: AssignPrototypeRequest,
    request: Request,
    user: dict = Depends(require_admin),
    db_manager=Depends(get_db_manager),
):
    """Assign a prototype to a viewer. Assigning twice is a no-op."""
    with db_manager.get_session() as session:
        target = _get_user(session, user_id)
        if target.role != ROLE_VIEWER:
            raise ValidationError("Prototypes can only be assigned to viewers")

        pid = parse_uuid(data.prototype_id, "Prototype")
        if not session.query(Prototype).filter(Prototype.prototype_id == pid).first():
            raise NotFoundError("Prototype not found")

        created = RBACService(session).grant_prototype_access(
            str(target.user_id), str(pid), granted_by=user["user_id"]
        )
        target_id = str(target.user_id)

    if created:
        record_audit(request, "user:assign_prototype", "user", resource_id=target_id,
                     details={"prototype_id": str(pid)})
    return {"message": "Prototype assigned", "created": created}


@router.delete("/users/{user_id}/prototypes/{prototype_id}")
async def unassign_prototype(
    user_id: str,
    prototype_id: str,
    request: Request,
    user: dict = Depends(require_admin),
    db_manager=Depends(get_db_manager),
):
    with db_manager.get_session() as session:
        target = _get_user(session, user_id)
        pid = parse_uuid(prototype_id, "Prototype")
        removed = RBACService(session).revoke_prototype_access(str(target.user_id), str(pid))
        if not removed:
            raise NotFoundError("Assignment not found")
        target_id = str(target.user_id)

    record_audit(request, "user:unassign_prototype", "user", resource_id=target_id,
                 details={"prototype_id": str(pid)})
    return {"message": "Prototype unassigned"}


# ── Audit log ────────────────────────────────────────────────────────────

@router.get("/audit-logs")
async def list_audit_logs(
    action: Optional[str] = None,
    user_id: Optional[str] = None,
    resource_type: Optional[str] = None,
    limit: int = Query(200, ge=1, le=1000),
    user: dict = Depends(require_admin),
    audit=Depends(get_audit_service),
):
    """Audit entries, newest first."""
    return {
        "logs": audit.list_logs(
            action=action, user_id=user_id, resource_type=resource_type, limit=limit
        )
    }


# ── Access requests ──────────────────────────────────────────────────────

@router.get("/access-requests")
async def list_access_requests(
    status: Optional[str] = None,
    user: dict = Depends(require_admin),
    db_manager=Depends(get_db_manager),
):
    with db_manager.get_session() as session:
        return {"requests": AccessRequestService(session).list(status)}


@router.patch("/access-requests/{request_id}")
async def review_access_request(
    request_id: str,
    data: ReviewRequest,
    request: Request,
    background_tasks: BackgroundTasks,
    user: dict = Depends(require_admin),
    db_manager=Depends(get_db_manager),
    settings=Depends(get_app_settings),
    email_service=Depends(get_email_service),
    slack=Depends(get_slack_service),
):
    """Approve or deny a pending access request and notify the requester."""
    with db_manager.get_session() as session:
        access_request, granted = AccessRequestService(session).review(
            request_id, data.status, user["user_id"]
        )
        prototype = session.query(Prototype).filter(
            Prototype.prototype_id == access_request.prototype_id
        ).first()
        title = prototype.title if prototype else "Prototype"

        link = None
        if access_request.magic_link_id:
            link = session.query(MagicLink).filter(
                MagicLink.link_id == access_request.magic_link_id
            ).first()
        if link:
            viewer_url = build_share_url(settings.client_url, link.token, link.is_homepage)
        else:
            viewer_url = f"{settings.client_url.rstrip('/')}/viewer-dashboard"

        result = request_to_dict(access_request, prototype_title=title)

    status = result["status"]
    name = result["requester_name"]
    email = result["requester_email"]
    if status == "approved":
        background_tasks.add_task(email_service.send_access_approved, email, name, title, viewer_url)
    else:
        background_tasks.add_task(email_service.send_access_denied, email, name, title)
    background_tasks.add_task(
        slack.notify, f"access_{status}", {"prototype_title": title, "name": name, "email": email}
    )

    record_audit(
        request, f"access-request:{status}", "access_request", resource_id=result["id"],
        details={
            "requester_email": email,
            "prototype_id": result["prototype_id"],
            "decision": status,
            "viewer_access_granted": granted,
        },
    )
    return {"message": f"Access request {status}", "request": result}
