"""Logged-in viewer portal routes (FastAPI).

Viewers see the published prototypes an admin assigned to them. Top-secret
prototypes they were not assigned show up locked, with the state of their
access request.
"""

import logging
from typing import Optional

from fastapi import APIRouter, BackgroundTasks, Depends, Request
from fastapi.responses import FileResponse
from pydantic import BaseModel

from showcase.core.auth import RBACService
from showcase.core.db.models import AccessRequest, Prototype, UserPrototypeAccess
from showcase.core.feedback import FeedbackService, feedback_to_dict
from showcase.core.prototype import AccessRequestService, PrototypeManager, request_to_dict
from showcase.core.utils import parse_uuid
from ..core import AuthorizationError, NotFoundError, ValidationError
from ..core.rate_limit import general_rate_limit, limiter
from ..deps import get_db_manager, get_slack_service, get_upload_service, record_audit, require_viewer

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/viewer-dashboard", tags=["viewer-dashboard"])

FEEDBACK_LIMIT = 50


# ── Request/Response models ──────────────────────────────────────────────

class ViewerAccessRequest(BaseModel):
    reason: Optional[str] = None


def _assigned_prototype(session, user: dict, prototype_id: str) -> Prototype:
    """Published prototype assigned to the viewer.

    Raises:
        AuthorizationError: not assigned
        NotFoundError: unknown or unpublished prototype
    """
    pid = parse_uuid(prototype_id, "Prototype")
    if not RBACService(session).has_assignment(parse_uuid(user["user_id"], "User"), pid):
        raise AuthorizationError("You do not have access to this prototype")

    prototype = session.query(Prototype).filter(Prototype.prototype_id == pid).first()
    if not prototype or prototype.status != "published":
        raise NotFoundError("Prototype not found or not published")
    return prototype


# ── Routes ───────────────────────────────────────────────────────────────

@router.get("/prototypes")
async def list_prototypes(
    user: dict = Depends(require_viewer),
    db_manager=Depends(get_db_manager),
):
    """Assigned prototypes plus locked top-secret ones."""
    uid = parse_uuid(user["user_id"], "User")
    with db_manager.get_session() as session:
        assigned = session.query(Prototype).join(
            UserPrototypeAccess, UserPrototypeAccess.prototype_id == Prototype.prototype_id
        ).filter(
            UserPrototypeAccess.user_id == uid,
            Prototype.status == "published",
        ).order_by(Prototype.title).all()
        assigned_ids = {p.prototype_id for p in assigned}

        top_secret = session.query(Prototype).filter(
            Prototype.status == "published",
            Prototype.is_top_secret.is_(True),
        ).order_by(Prototype.title).all()

        latest_status = {}
        requests = session.query(AccessRequest).filter(
            AccessRequest.requester_email == user["email"]
        ).order_by(AccessRequest.created_at.asc()).all()
        for r in requests:
            latest_status[r.prototype_id] = r.status

        prototypes = []
        for prototype in assigned:
            item = PrototypeManager.public_view(prototype)
            item["access_granted"] = True
            prototypes.append(item)

        locked = []
        for prototype in top_secret:
            if prototype.prototype_id in assigned_ids:
                continue
            item = PrototypeManager.public_view(prototype)
            item["access_granted"] = False
            item["access_request_status"] = latest_status.get(prototype.prototype_id)
            locked.append(item)

        return {"prototypes": prototypes, "locked_prototypes": locked}


@router.get("/prototypes/{prototype_id}")
async def get_prototype(
    prototype_id: str,
    user: dict = Depends(require_viewer),
    db_manager=Depends(get_db_manager),
):
    """An assigned prototype with its latest feedback."""
    with db_manager.get_session() as session:
        prototype = _assigned_prototype(session, user, prototype_id)
        feedback = FeedbackService(session).list_for_prototype(prototype.prototype_id, limit=FEEDBACK_LIMIT)
        return {
            "prototype": PrototypeManager.public_view(prototype),
            "serve_url": f"/api/viewer-dashboard/prototypes/{prototype.prototype_id}/serve/",
            "feedback": [feedback_to_dict(f) for f in feedback],
        }


@router.get("/prototypes/{prototype_id}/serve/{path:path}")
async def serve_file(
    prototype_id: str,
    path: str,
    user: dict = Depends(require_viewer),
    db_manager=Depends(get_db_manager),
    uploads=Depends(get_upload_service),
):
    with db_manager.get_session() as session:
        prototype = _assigned_prototype(session, user, prototype_id)
        target = uploads.resolve_file(str(prototype.prototype_id), prototype.file_path, path)

    return FileResponse(target)


@router.post("/prototypes/{prototype_id}/request-access", status_code=201)
@limiter.limit(general_rate_limit)
async def request_access(
    prototype_id: str,
    data: ViewerAccessRequest,
    request: Request,
    background_tasks: BackgroundTasks,
    user: dict = Depends(require_viewer),
    db_manager=Depends(get_db_manager),
    slack=Depends(get_slack_service),
):
    """Ask an admin for access to a top-secret prototype."""
    with db_manager.get_session() as session:
        pid = parse_uuid(prototype_id, "Prototype")
        prototype = session.query(Prototype).filter(Prototype.prototype_id == pid).first()
        if not prototype or prototype.status != "published":
            raise NotFoundError("Prototype not found or not published")
        if not prototype.is_top_secret:
            raise ValidationError("This prototype does not require access requests")
        if RBACService(session).has_assignment(parse_uuid(user["user_id"], "User"), pid):
            raise ValidationError("You already have access to this prototype")

        access_request = AccessRequestService(session).create(
            prototype, name=user["name"] or user["email"], email=user["email"], reason=data.reason
        )
        result = request_to_dict(access_request, prototype_title=prototype.title)
        slack_data = {
            "prototype_title": prototype.title,
            "name": access_request.requester_name,
            "email": access_request.requester_email,
        }

    record_audit(request, "access-request:create", "access_request", resource_id=result["id"],
                 details={"prototype_id": result["prototype_id"]})
    background_tasks.add_task(slack.notify, "access_request", slack_data)
    return {"request": result}
