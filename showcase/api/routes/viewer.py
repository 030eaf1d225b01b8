"""Public magic-link viewer routes (FastAPI). No login required.

Per-link browser state lives in the session: ``unlocked_links`` holds the
ids of password links unlocked in this browser, ``prospects`` maps link id
to the identity the prospect entered.
"""

import logging
from typing import Dict, Optional

from fastapi import APIRouter, BackgroundTasks, Depends, Request
from fastapi.responses import FileResponse
from pydantic import BaseModel

from showcase.core.feedback import FeedbackService, feedback_to_dict
from showcase.core.links.viewer_service import ViewerService
from showcase.core.prototype import AnnotationService, annotation_to_dict
from showcase.core.settings import SettingsStore
from showcase.core.utils import isoformat, normalize_email
from ..core import ValidationError
from ..core.rate_limit import auth_rate_limit, general_rate_limit, limiter
from ..deps import client_ip, get_db_manager, get_slack_service, get_upload_service

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/viewer", tags=["viewer"])


# ── Request/Response models ──────────────────────────────────────────────

class UnlockRequest(BaseModel):
    password: str = ""


class IdentifyRequest(BaseModel):
    name: str
    email: str
    company: Optional[str] = None
    view_id: Optional[str] = None


class DurationRequest(BaseModel):
    duration_seconds: int


class FeedbackRequest(BaseModel):
    comment: str = ""
    rating: Optional[int] = None
    category: Optional[str] = None
    reviewer_name: Optional[str] = None
    reviewer_email: Optional[str] = None


class AccessRequestBody(BaseModel):
    name: str = ""
    email: str = ""
    company: Optional[str] = None
    reason: Optional[str] = None


class HomepageAccessRequestBody(AccessRequestBody):
    prototype_id: str


# ── Session helpers ──────────────────────────────────────────────────────

def _unlocked(request: Request) -> list:
    return request.session.get("unlocked_links", [])


def _mark_unlocked(request: Request, link_id: str) -> None:
    unlocked = list(_unlocked(request))
    if link_id not in unlocked:
        unlocked.append(link_id)
    request.session["unlocked_links"] = unlocked


def _identity(request: Request, link_id) -> Optional[Dict]:
    return request.session.get("prospects", {}).get(str(link_id))


def _clean_identity(name: str, email: str, company: Optional[str]) -> Dict:
    name = (name or "").strip()
    email = normalize_email(email)
    if not name or not email or "@" not in email:
        raise ValidationError("Name and a valid email are required")
    return {"name": name, "email": email, "company": (company or "").strip() or None}


def _remember_identity(request: Request, link_id, identity: Dict) -> None:
    prospects = dict(request.session.get("prospects", {}))
    prospects[str(link_id)] = identity
    request.session["prospects"] = prospects


def _link_info(link) -> dict:
    return {"label": link.label, "expires_at": isoformat(link.expires_at)}


# ── Prototype links ──────────────────────────────────────────────────────

@router.get("/{token}")
async def open_prototype_link(
    token: str,
    request: Request,
    background_tasks: BackgroundTasks,
    db_manager=Depends(get_db_manager),
    slack=Depends(get_slack_service),
):
    """Validate a link and record a view of its prototype."""
    with db_manager.get_session() as session:
        viewer = ViewerService(session)
        link = viewer.open_link(token, _unlocked(request))
        viewer.require_prototype_link(link)
        identity = _identity(request, link.link_id)
        prototype = viewer.authorize_prototype(link, link.prototype_id, identity)

        view = viewer.record_view(
            link, prototype.prototype_id, client_ip(request),
            request.headers.get("user-agent"), identity,
        )
        result = {
            "prototype": {
                "id": str(prototype.prototype_id),
                "title": prototype.title,
                "description": prototype.description or "",
                "type": prototype.type,
                "version": prototype.version,
            },
            "link": _link_info(link),
            "branding": SettingsStore(session).effective_branding(link.branding_config),
            "serve_url": f"/api/viewer/{token}/serve/",
            "view_id": str(view.view_id),
        }
        slack_data = {"prototype_title": prototype.title, "link_label": link.label}

    background_tasks.add_task(slack.notify, "view", slack_data)
    return result


@router.post("/{token}/unlock")
@limiter.limit(auth_rate_limit)
async def unlock_link(
    token: str,
    data: UnlockRequest,
    request: Request,
    db_manager=Depends(get_db_manager),
):
    """Check a link password and remember the unlock for this browser."""
    with db_manager.get_session() as session:
        link = ViewerService(session).unlock(token, data.password)
        link_id = str(link.link_id)

    _mark_unlocked(request, link_id)
    return {"message": "Unlocked"}


@router.post("/{token}/identify")
async def identify(
    token: str,
    data: IdentifyRequest,
    request: Request,
    db_manager=Depends(get_db_manager),
):
    """Remember who the prospect is; optionally stamp an existing view."""
    identity = _clean_identity(data.name, data.email, data.company)
    with db_manager.get_session() as session:
        viewer = ViewerService(session)
        link = viewer.open_link(token, _unlocked(request))
        if data.view_id:
            viewer.stamp_identity(link, data.view_id, identity)
        link_id = link.link_id

    _remember_identity(request, link_id, identity)
    return {"identity": identity}


@router.post("/{token}/views/{view_id}/duration")
async def record_duration(
    token: str,
    view_id: str,
    data: DurationRequest,
    request: Request,
    db_manager=Depends(get_db_manager),
):
    """Record how long a view lasted."""
    with db_manager.get_session() as session:
        viewer = ViewerService(session)
        link = viewer.open_link(token, _unlocked(request))
        viewer.record_duration(link, view_id, data.duration_seconds)

    return {"message": "Duration recorded"}


@router.get("/{token}/serve/{path:path}")
async def serve_file(
    token: str,
    path: str,
    request: Request,
    db_manager=Depends(get_db_manager),
    uploads=Depends(get_upload_service),
):
    """Serve a prototype file through the link's gates, without counting a view."""
    with db_manager.get_session() as session:
        viewer = ViewerService(session)
        link = viewer.open_link(token, _unlocked(request))
        viewer.require_prototype_link(link)
        prototype = viewer.authorize_prototype(link, link.prototype_id, _identity(request, link.link_id))
        target = uploads.resolve_file(str(prototype.prototype_id), prototype.file_path, path)

    return FileResponse(target)


@router.get("/{token}/annotations")
async def list_annotations(
    token: str,
    request: Request,
    page_path: Optional[str] = None,
    db_manager=Depends(get_db_manager),
):
    """Guided-tour annotations for the link's prototype, in step order."""
    with db_manager.get_session() as session:
        viewer = ViewerService(session)
        link = viewer.open_link(token, _unlocked(request))
        viewer.require_prototype_link(link)
        prototype = viewer.authorize_prototype(link, link.prototype_id, _identity(request, link.link_id))
        items = AnnotationService(session).list(str(prototype.prototype_id), page_path)
        return {"annotations": [annotation_to_dict(a) for a in items]}


@router.post("/{token}/feedback", status_code=201)
@limiter.limit(general_rate_limit)
async def submit_feedback(
    token: str,
    data: FeedbackRequest,
    request: Request,
    background_tasks: BackgroundTasks,
    db_manager=Depends(get_db_manager),
    slack=Depends(get_slack_service),
):
    """Leave feedback on the link's prototype."""
    with db_manager.get_session() as session:
        viewer = ViewerService(session)
        link = viewer.open_link(token, _unlocked(request))
        viewer.require_prototype_link(link)
        identity = _identity(request, link.link_id) or {}
        prototype = viewer.authorize_prototype(link, link.prototype_id, identity)

        feedback = FeedbackService(session).create(
            prototype.prototype_id,
            comment=data.comment,
            rating=data.rating,
            category=data.category,
            magic_link_id=link.link_id,
            reviewer_name=data.reviewer_name or identity.get("name"),
            reviewer_email=data.reviewer_email or identity.get("email") or link.recipient_email,
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


@router.post("/{token}/request-access", status_code=201)
@limiter.limit(general_rate_limit)
async def request_access(
    token: str,
    data: AccessRequestBody,
    request: Request,
    background_tasks: BackgroundTasks,
    db_manager=Depends(get_db_manager),
    slack=Depends(get_slack_service),
):
    """Ask for access to the link's top-secret prototype."""
    identity = _clean_identity(data.name, data.email, data.company)
    with db_manager.get_session() as session:
        viewer = ViewerService(session)
        link = viewer.open_link(token, _unlocked(request))
        viewer.require_prototype_link(link)
        access_request, prototype = viewer.request_access(
            link, link.prototype_id, identity["name"], identity["email"], identity["company"], data.reason
        )
        link_id = link.link_id
        slack_data = {
            "prototype_title": prototype.title,
            "name": access_request.requester_name,
            "email": access_request.requester_email,
        }
        request_id = str(access_request.request_id)

    _remember_identity(request, link_id, identity)
    background_tasks.add_task(slack.notify, "access_request", slack_data)
    return {
        "request": {"id": request_id, "status": "pending"},
        "message": "Access request submitted. You will be notified once it is reviewed.",
    }


# ── Homepage links ───────────────────────────────────────────────────────

@router.get("/{token}/homepage")
async def open_homepage(
    token: str,
    request: Request,
    db_manager=Depends(get_db_manager),
):
    """All published prototypes visible through a homepage link."""
    with db_manager.get_session() as session:
        viewer = ViewerService(session)
        link = viewer.open_link(token, _unlocked(request))
        viewer.require_homepage_link(link)
        identity = _identity(request, link.link_id)
        prototypes, restricted = viewer.homepage_listing(link, identity)

        view = viewer.record_view(
            link, None, client_ip(request), request.headers.get("user-agent"), identity
        )
        return {
            "link": _link_info(link),
            "branding": SettingsStore(session).effective_branding(link.branding_config),
            "prototypes": prototypes,
            "restricted_prototypes": restricted,
            "view_id": str(view.view_id),
        }


@router.post("/{token}/homepage/request-access", status_code=201)
@limiter.limit(general_rate_limit)
async def homepage_request_access(
    token: str,
    data: HomepageAccessRequestBody,
    request: Request,
    background_tasks: BackgroundTasks,
    db_manager=Depends(get_db_manager),
    slack=Depends(get_slack_service),
):
    """Ask for access to a top-secret prototype listed on the homepage."""
    identity = _clean_identity(data.name, data.email, data.company)
    with db_manager.get_session() as session:
        viewer = ViewerService(session)
        link = viewer.open_link(token, _unlocked(request))
        viewer.require_homepage_link(link)
        access_request, prototype = viewer.request_access(
            link, data.prototype_id, identity["name"], identity["email"], identity["company"], data.reason
        )
        link_id = link.link_id
        slack_data = {
            "prototype_title": prototype.title,
            "name": access_request.requester_name,
            "email": access_request.requester_email,
        }
        request_id = str(access_request.request_id)

    _remember_identity(request, link_id, identity)
    background_tasks.add_task(slack.notify, "access_request", slack_data)
    return {
        "request": {"id": request_id, "status": "pending"},
        "message": "Access request submitted. You will be notified once it is reviewed.",
    }


@router.get("/{token}/homepage/serve/{prototype_id}/{path:path}")
async def homepage_serve_file(
    token: str,
    prototype_id: str,
    path: str,
    request: Request,
    db_manager=Depends(get_db_manager),
    uploads=Depends(get_upload_service),
):
    """Serve a file of any prototype the homepage link may show."""
    with db_manager.get_session() as session:
        viewer = ViewerService(session)
        link = viewer.open_link(token, _unlocked(request))
        viewer.require_homepage_link(link)
        prototype = viewer.authorize_prototype(link, prototype_id, _identity(request, link.link_id))
        target = uploads.resolve_file(str(prototype.prototype_id), prototype.file_path, path)

    return FileResponse(target)
