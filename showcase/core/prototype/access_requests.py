"""Access requests for top-secret prototypes.

Prospects (through a magic link) and viewers ask for access; an admin
approves or denies. Approving a request from a viewer account also
assigns the prototype to that viewer.
"""

import logging
from typing import Dict, List, Optional, Tuple
from uuid import UUID

from sqlalchemy.orm import Session, aliased

from ..auth import RBACService
from ..constants import ACCESS_REQUEST_STATUSES, ROLE_VIEWER
from ..db.models import AccessRequest, MagicLink, Prototype, User
from ..exceptions import ConflictError, NotFoundError, ValidationError
from ..utils import isoformat, normalize_email, parse_uuid, utcnow

logger = logging.getLogger(__name__)

MAX_LISTED_REQUESTS = 500
REVIEW_DECISIONS = ("approved", "denied")


def request_to_dict(
    request: AccessRequest,
    prototype_title: Optional[str] = None,
    link_label: Optional[str] = None,
    reviewer_email: Optional[str] = None,
) -> Dict:
    return {
        "id": str(request.request_id),
        "prototype_id": str(request.prototype_id),
        "prototype_title": prototype_title,
        "magic_link_id": str(request.magic_link_id) if request.magic_link_id else None,
        "link_label": link_label,
        "requester_name": request.requester_name,
        "requester_email": request.requester_email,
        "requester_company": request.requester_company,
        "reason": request.reason,
        "status": request.status,
        "reviewed_by": str(request.reviewed_by) if request.reviewed_by else None,
        "reviewer_email": reviewer_email,
        "reviewed_at": isoformat(request.reviewed_at),
        "created_at": isoformat(request.created_at),
    }


class AccessRequestService:
    """Create, list and review access requests on a caller-provided session."""

    def __init__(self, db_session: Session):
        self._session = db_session

    def create(
        self,
        prototype: Prototype,
        name: Optional[str],
        email: Optional[str],
        company: Optional[str] = None,
        reason: Optional[str] = None,
        magic_link_id: Optional[UUID] = None,
    ) -> AccessRequest:
        """Open a pending request.

        Raises:
            ValidationError: prototype is not top secret, or name/email missing
            ConflictError: a pending or approved request already exists
        """
        if not prototype.is_top_secret:
            raise ValidationError("This prototype does not require access requests")

        name = (name or "").strip()
        email = normalize_email(email)
        if not name or not email:
            raise ValidationError("Name and email are required")

        existing = self._session.query(AccessRequest).filter(
            AccessRequest.prototype_id == prototype.prototype_id,
            AccessRequest.requester_email == email,
            AccessRequest.status.in_(("pending", "approved")),
        ).order_by(AccessRequest.created_at.desc()).first()
        if existing:
            message = (
                "Access already granted" if existing.status == "approved"
                else "An access request is already pending"
            )
            raise ConflictError(message, extra={"status": existing.status})

        request = AccessRequest(
            prototype_id=prototype.prototype_id,
            magic_link_id=magic_link_id,
            requester_name=name,
            requester_email=email,
            requester_company=(company or "").strip() or None,
            reason=(reason or "").strip() or None,
            status="pending",
        )
        self._session.add(request)
        self._session.flush()
        logger.info(f"Access request {request.request_id} for prototype {prototype.prototype_id} from {email}")
        return request

    def list(self, status: Optional[str] = None) -> List[Dict]:
        """Newest first, with prototype title, link label and reviewer email."""
        if status and status not in ACCESS_REQUEST_STATUSES:
            raise ValidationError(f"Status must be one of: {', '.join(ACCESS_REQUEST_STATUSES)}")

        reviewer = aliased(User)
        q = self._session.query(
            AccessRequest, Prototype.title, MagicLink.label, reviewer.email
        ).outerjoin(
            Prototype, AccessRequest.prototype_id == Prototype.prototype_id
        ).outerjoin(
            MagicLink, AccessRequest.magic_link_id == MagicLink.link_id
        ).outerjoin(
            reviewer, AccessRequest.reviewed_by == reviewer.user_id
        )
        if status:
            q = q.filter(AccessRequest.status == status)

        rows = q.order_by(AccessRequest.created_at.desc()).limit(MAX_LISTED_REQUESTS).all()
        return [request_to_dict(r, title, label, email) for r, title, label, email in rows]

    def review(self, request_id: str, status: str, reviewer_id: str) -> Tuple[AccessRequest, bool]:
        """Approve or deny a pending request.

        Returns:
            (request, granted) where ``granted`` says whether a viewer
            account was assigned the prototype.
        """
        if status not in REVIEW_DECISIONS:
            raise ValidationError("Status must be 'approved' or 'denied'")

        rid = parse_uuid(request_id, "Access request")
        request = self._session.query(AccessRequest).filter(AccessRequest.request_id == rid).first()
        if not request:
            raise NotFoundError("Access request not found")
        if request.status != "pending":
            raise ValidationError("Request has already been reviewed")

        request.status = status
        request.reviewed_by = parse_uuid(reviewer_id, "User")
        request.reviewed_at = utcnow()

        granted = False
        if status == "approved":
            viewer = self._session.query(User).filter(
                User.email == request.requester_email,
                User.role == ROLE_VIEWER,
            ).first()
            if viewer:
                RBACService(self._session).grant_prototype_access(
                    str(viewer.user_id), str(request.prototype_id), granted_by=reviewer_id
                )
                granted = True

        self._session.flush()
        logger.info(f"Access request {request_id} {status} by {reviewer_id}")
        return request, granted
