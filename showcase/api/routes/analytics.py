"""Analytics API: showcase-wide dashboard stats.

Single endpoint that aggregates users, prototypes, links, views,
feedback and pending access requests into one response.
"""

import logging
from datetime import timedelta

from fastapi import APIRouter, Depends
from sqlalchemy import func

from ..deps import get_db_manager, require_admin
from ...core.db.models import (
    AccessRequest, Feedback, LinkView, MagicLink, Prototype, User,
)
from ...core.links.access import active_link_filter
from ...core.utils import utcnow

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/admin/analytics", tags=["analytics"])

TOP_PROTOTYPES_LIMIT = 5


@router.get("")
async def get_analytics(
    user: dict = Depends(require_admin),
    db_manager=Depends(get_db_manager),
):
    """Aggregated showcase analytics for the admin dashboard."""
    with db_manager.get_session() as session:
        # ── Users and prototypes ─────────────────────────────────
        total_users = session.query(func.count(User.user_id)).scalar() or 0
        total_prototypes = session.query(func.count(Prototype.prototype_id)).scalar() or 0
        published_prototypes = (
            session.query(func.count(Prototype.prototype_id))
            .filter(Prototype.status == "published")
            .scalar()
        ) or 0

        # ── Links and views ──────────────────────────────────────
        total_links = session.query(func.count(MagicLink.link_id)).scalar() or 0
        active_links = (
            session.query(func.count(MagicLink.link_id))
            .filter(active_link_filter())
            .scalar()
        ) or 0
        total_views = session.query(func.count(LinkView.view_id)).scalar() or 0
        views_last_7_days = (
            session.query(func.count(LinkView.view_id))
            .filter(LinkView.viewed_at >= utcnow() - timedelta(days=7))
            .scalar()
        ) or 0

        # ── Feedback ─────────────────────────────────────────────
        total_feedback = session.query(func.count(Feedback.feedback_id)).scalar() or 0
        average_rating = session.query(func.avg(Feedback.rating)).scalar()

        pending_access_requests = (
            session.query(func.count(AccessRequest.request_id))
            .filter(AccessRequest.status == "pending")
            .scalar()
        ) or 0

        top_prototypes = _get_top_prototypes(session)

    return {
        "analytics": {
            "total_users": total_users,
            "total_prototypes": total_prototypes,
            "published_prototypes": published_prototypes,
            "total_links": total_links,
            "active_links": active_links,
            "total_views": total_views,
            "total_feedback": total_feedback,
            "average_rating": round(float(average_rating), 2) if average_rating is not None else None,
            "pending_access_requests": pending_access_requests,
            "views_last_7_days": views_last_7_days,
            "top_prototypes": top_prototypes,
        }
    }


def _get_top_prototypes(session) -> list:
    """Most viewed prototypes, views counted across all links."""
    view_count = func.count(LinkView.view_id).label("view_count")
    rows = (
        session.query(Prototype.prototype_id, Prototype.title, view_count)
        .join(LinkView, LinkView.prototype_id == Prototype.prototype_id)
        .group_by(Prototype.prototype_id, Prototype.title)
        .order_by(view_count.desc(), Prototype.title)
        .limit(TOP_PROTOTYPES_LIMIT)
        .all()
    )
    return [
        {"id": str(pid), "title": title, "view_count": count}
        for pid, title, count in rows
    ]
