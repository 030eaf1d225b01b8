"""Magic-link access checks.

A link grants access while it is not revoked and not past ``expires_at``.
Top-secret prototypes additionally need an approved access request for
the prospect's email.
"""

import logging
from datetime import datetime
from typing import Iterable, Optional
from uuid import UUID

from sqlalchemy import and_, or_
from sqlalchemy.orm import Session

from ..db.models import AccessRequest, MagicLink
from ..exceptions import AuthorizationError, NotFoundError
from ..utils import normalize_email, utcnow

logger = logging.getLogger(__name__)

LINK_ACTIVE = "active"
LINK_REVOKED = "revoked"
LINK_EXPIRED = "expired"


def active_link_filter(now: Optional[datetime] = None):
    """SQL filter for links that currently grant access."""
    now = now or utcnow()
    return and_(
        MagicLink.is_revoked.is_(False),
        or_(MagicLink.expires_at.is_(None), MagicLink.expires_at > now),
    )


def link_status(link: MagicLink, now: Optional[datetime] = None) -> str:
    now = now or utcnow()
    if link.is_revoked:
        return LINK_REVOKED
    if link.expires_at and link.expires_at <= now:
        return LINK_EXPIRED
    return LINK_ACTIVE


def get_valid_link(session: Session, token: str) -> MagicLink:
    """Resolve a token to a usable link.

    Raises:
        NotFoundError: unknown token
        AuthorizationError: revoked or expired link
    """
    link = None
    if token:
        link = session.query(MagicLink).filter(MagicLink.token == token).first()
    if not link:
        raise NotFoundError("Invalid link")

    status = link_status(link)
    if status == LINK_REVOKED:
        raise AuthorizationError("Link has been revoked")
    if status == LINK_EXPIRED:
        raise AuthorizationError("Link has expired")
    return link


def latest_access_request(
    session: Session,
    prototype_id: UUID,
    emails: Iterable[Optional[str]],
) -> Optional[AccessRequest]:
    """Most recent access request for the prototype from any of ``emails``."""
    candidates = sorted({e for e in (normalize_email(x) for x in emails) if e})
    if not candidates:
        return None
    return session.query(AccessRequest).filter(
        AccessRequest.prototype_id == prototype_id,
        AccessRequest.requester_email.in_(candidates),
    ).order_by(AccessRequest.created_at.desc()).first()


def has_approved_access(
    session: Session,
    prototype_id: UUID,
    emails: Iterable[Optional[str]],
) -> bool:
    candidates = sorted({e for e in (normalize_email(x) for x in emails) if e})
    if not candidates:
        return False
    approved = session.query(AccessRequest).filter(
        AccessRequest.prototype_id == prototype_id,
        AccessRequest.requester_email.in_(candidates),
        AccessRequest.status == "approved",
    ).first()
    return approved is not None
