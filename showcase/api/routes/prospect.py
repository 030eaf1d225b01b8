"""Logged-in prospect portal routes (FastAPI).

A prospect sees the published prototypes shared with their email through
active magic links, and manages their own feedback on them.
"""

import logging
from typing import Optional, Tuple

from fastapi import APIRouter, BackgroundTasks, Depends, Request
from fastapi.responses import FileResponse
from pydantic import BaseModel

from showcase.core.auth import RBACService
from showcase.core.db.models import MagicLink, Prototype
from showcase.core.feedback import FeedbackService, feedback_to_dict
from showcase.core.links.access import active_link_filter
from showcase.core.links.viewer_service import ViewerService
from showcase.core.prototype import PrototypeManager
from showcase.core.utils import parse_uuid
from ..core import AuthorizationError, NotFoundError
from ..core.rate_limit import general_rate_limit, limiter
from ..deps import client_ip, get_db_manager, get_slack_service, get_upload_service, require_prospect

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/prospect", tags=["prospect"])


# ── Request/Response models ──────────────────────────────────────────────

class ProspectFeedbackRequest(BaseModel):
    comment: str = ""
    rating: Optional[int] = None
    category: Optional[str] = None


def _shared_prototype(session, user: dict, prototype_id: str) -> Tuple[Prototype, MagicLink]:
    """Published prototype shared with the prospect, and the link sharing it.

    Raises:
        AuthorizationError: no active link shares it with this email
        NotFoundError: unknown or unpublished prototype
    """
    pid = parse_uuid(prototype_id, "Prototype")
    link = RBACService(session).get_shared_link(user["email"], pid)
    if not link:
        raise AuthorizationError("This prototype has not been shared with you")

    prototype = session.query(Prototype).filter(Prototype.prototype_id == pid).first()
    if not prototype or prototype.status != "published":
        raise NotFoundError("Prototype not found or not published")
    return prototype, link


# ── Routes ───────────────────────────────────────────────────────────────

@router.get("/prototypes")
async def list_shared_prototypes(
    user: dict = Depends(require_prospect),
    db_manager=Depends(get_db_manager),
):
    """Published prototypes shared with the prospect, newest share first."""
    with db_manager.get_session() as session:
        rows = session.query(MagicLink, Prototype).join(
            Prototype, MagicLink.prototype_id == Prototype.prototype_id
        ).filter(
            MagicLink.recipient_email == user["email"],
            active_link_filter(),
            Prototype.status == "published",
        ).order_by(MagicLink.created_at.desc()).all()

        counts = FeedbackService(session).counts_by_prototype(parse_uuid(user["user_id"], "User"))

        prototypes, seen = [], set()
        for link, prototype in rows:
            if prototype.prototype_id in seen:
                continue
            seen.add(prototype.prototype_id)
            item = PrototypeManager.public_view(prototype)
            item.update({
                "magic_link_token": link.token,
                "share_label": link.label,
                "feedback_count": counts.get(prototype.prototype_id, 0),
            })
            prototypes.append(item)

        return {"prototypes": prototypes}


@router.get("/prototypes/{prototype_id}")
async def get_shared_prototype(
    prototype_id: str,
    request: Request,
    user: dict = Depends(require_prospect),
    db_manager=Depends(get_db_manager),
):
    """Open a shared prototype; records a view against the sharing link."""
    with db_manager.get_session() as session:
        prototype, link = _shared_prototype(session, user, prototype_id)

        identity = {"name": user["name"], "email": user["email"]}
        view = ViewerService(session).record_view(
            link, prototype.prototype_id, client_ip(request),
            request.headers.get("user-agent"), identity,
        )
        feedback = FeedbackService(session).list_for_prototype(
            prototype.prototype_id, user_id=parse_uuid(user["user_id"], "User")
        )
        return {
            "prototype": PrototypeManager.public_view(prototype),
            "serve_url": f"/api/prospect/prototypes/{prototype.prototype_id}/serve/",
            "view_id": str(view.view_id),
            "feedback": [feedback_to_dict(f) for f in feedback],
        }


@router.get("/prototypes/{prototype_id}/serve/{path:path}")
async def serve_shared_file(
    prototype_id: str,
    path: str,
    user: dict = Depends(require_prospect),
    db_manager=Depends(get_db_manager),
    uploads=Depends(get_upload_service),
):
    with db_manager.get_session() as session:
        prototype, _ = _shared_prototype(session, user, prototype_id)
        target = uploads.resolve_file(str(prototype.prototype_id), prototype.file_path, path)

    return FileResponse(target)


@router.post("/prototypes/{prototype_id}/feedback", status_code=201)
@limiter.limit(general_rate_limit)
async def submit_feedback(
    prototype_id: str,
    data: ProspectFeedbackRequest,
    request: Request,
    background_tasks: BackgroundTasks,
    user: dict = Depends(require_prospect),
    db_manager=Depends(get_db_manager),
    slack=Depends(get_slack_service),
):
    """Leave feedback as the logged-in prospect."""
    with db_manager.get_session() as session:
        prototype, link = _shared_prototype(session, user, prototype_id)
        feedback = FeedbackService(session).create(
            prototype.prototype_id,
            comment=data.comment,
            rating=data.rating,
            category=data.category,
            user_id=parse_uuid(user["user_id"], "User"),
            magic_link_id=link.link_id,
            reviewer_name=user["name"],
            reviewer_email=user["email"],
        )
        result = feedback_to_dict(feedback)
        slack_data = {
            "prototype_title": prototype.title,
            "rating": feedback.rating,
            "comment": feedback.comment,
            "email": feedback.reviewer_email,
        }

    background_tasks.add_task(slack.notify, "feedback", slack_data)
    return {"feedback": result}


@router.delete("/prototypes/{prototype_id}/feedback/{feedback_id}")
async def delete_feedback(
    prototype_id: str,
    feedback_id: str,
    user: dict = Depends(require_prospect),
    db_manager=Depends(get_db_manager),
):
    """Delete one of the prospect's own feedback entries."""
    with db_manager.get_session() as session:
        FeedbackService(session).delete_own(
            feedback_id,
            user_id=parse_uuid(user["user_id"], "User"),
            prototype_id=parse_uuid(prototype_id, "Prototype"),
        )

    return {"message": "Feedback deleted"}
