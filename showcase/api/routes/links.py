"""Magic link management API routes (FastAPI). Admin-only."""

import logging
from datetime import datetime
from typing import Any, Dict, Optional

from fastapi import APIRouter, BackgroundTasks, Depends, Query, Request
from pydantic import BaseModel

from ..deps import get_email_service, get_link_manager, record_audit, require_admin

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/links", tags=["links"])


# ── Request/Response models ──────────────────────────────────────────────

class LinkCreate(BaseModel):
    prototype_id: Optional[str] = None
    label: Optional[str] = None
    recipient_email: Optional[str] = None
    expires_at: Optional[datetime] = None
    expires_in_days: Optional[int] = None
    password: Optional[str] = None
    branding: Optional[Dict[str, Any]] = None
    send_email: bool = False


class LinkUpdate(BaseModel):
    is_revoked: Optional[bool] = None
    expires_at: Optional[datetime] = None
    label: Optional[str] = None
    recipient_email: Optional[str] = None
    password: Optional[str] = None
    branding: Optional[Dict[str, Any]] = None


# ── Routes ───────────────────────────────────────────────────────────────

@router.get("")
async def list_links(
    page: int = Query(1, ge=1),
    limit: int = Query(25, ge=1, le=100),
    prototype_id: Optional[str] = None,
    user: dict = Depends(require_admin),
    lm=Depends(get_link_manager),
):
    """List magic links, newest first."""
    links, total = lm.list_links(page=page, limit=limit, prototype_id=prototype_id)
    return {
        "links": links,
        "pagination": {"page": page, "limit": limit, "total": total},
    }


@router.post("", status_code=201)
async def create_link(
    data: LinkCreate,
    request: Request,
    background_tasks: BackgroundTasks,
    user: dict = Depends(require_admin),
    lm=Depends(get_link_manager),
    email_service=Depends(get_email_service),
):
    """Create a prototype link, or a homepage link when no prototype is given."""
    link = lm.create_link(
        user_id=user["user_id"],
        prototype_id=data.prototype_id,
        label=data.label,
        recipient_email=data.recipient_email,
        expires_at=data.expires_at,
        expires_in_days=data.expires_in_days,
        password=data.password,
        branding=data.branding,
    )

    if data.send_email and link["recipient_email"]:
        background_tasks.add_task(
            email_service.send_link_shared,
            link["recipient_email"],
            link["share_url"],
            link["prototype_title"] or "Prototype showcase",
            user["name"],
            link["expires_at"],
        )

    record_audit(
        request, "link:create", "magic_link", resource_id=link["id"],
        details={"prototype_id": link["prototype_id"], "recipient_email": link["recipient_email"]},
    )
    return {"link": link, "share_url": link["share_url"]}


@router.get("/{link_id}")
async def get_link(
    link_id: str,
    user: dict = Depends(require_admin),
    lm=Depends(get_link_manager),
):
    """Link details with recent views and daily view counts."""
    return lm.get_link_detail(link_id)


@router.patch("/{link_id}")
async def update_link(
    link_id: str,
    data: LinkUpdate,
    request: Request,
    user: dict = Depends(require_admin),
    lm=Depends(get_link_manager),
):
    """Revoke, re-label, change expiry, password or branding."""
    changes = data.model_dump(exclude_unset=True)
    link = lm.update_link(link_id, changes)

    details = {k: v for k, v in changes.items() if k != "password"}
    if "password" in changes:
        details["password_changed"] = True
    if "expires_at" in details and details["expires_at"] is not None:
        details["expires_at"] = details["expires_at"].isoformat()
    record_audit(request, "link:update", "magic_link", resource_id=link["id"], details=details)
    return {"link": link}


@router.delete("/{link_id}")
async def delete_link(
    link_id: str,
    request: Request,
    user: dict = Depends(require_admin),
    lm=Depends(get_link_manager),
):
    """Delete a link and its view history."""
    snapshot = lm.delete_link(link_id)
    record_audit(
        request, "link:delete", "magic_link", resource_id=snapshot["id"],
        details={"label": snapshot["label"]},
    )
    return {"message": "Magic link deleted"}
