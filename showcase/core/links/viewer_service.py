"""Public magic-link viewing.

Every token request passes the same gates in order: link validity,
password unlock, prototype published, and for top-secret prototypes an
approved access request for the prospect's email. Session state (which
links are unlocked, who the prospect is) is owned by the API layer and
passed in.
"""

import logging
from typing import Dict, Iterable, List, Optional, Tuple
from uuid import UUID

from sqlalchemy.orm import Session

from ..auth import AuthService
from ..constants import MAX_VIEW_DURATION_SECONDS, USER_AGENT_MAX_LENGTH
from ..db.models import AccessRequest, LinkView, MagicLink, Prototype
from ..exceptions import AuthenticationError, AuthorizationError, NotFoundError, ValidationError
from ..prototype.access_requests import AccessRequestService
from ..utils import isoformat, normalize_email, parse_uuid
from .access import get_valid_link, has_approved_access, latest_access_request

logger = logging.getLogger(__name__)


def identity_emails(link: MagicLink, identity: Optional[Dict]) -> List[Optional[str]]:
    """Emails that may carry an approval: the stated identity, then the recipient."""
    return [(identity or {}).get("email"), link.recipient_email]


class ViewerService:
    """Token-gated access to prototypes, on a caller-provided session."""

    def __init__(self, db_session: Session):
        self._session = db_session

    # ── Gates ────────────────────────────────────────────────────────────

    def open_link(self, token: str, unlocked_link_ids: Iterable[str] = ()) -> MagicLink:
        """Valid link whose password (if any) was entered this session."""
        link = get_valid_link(self._session, token)
        if link.password_hash and str(link.link_id) not in set(unlocked_link_ids):
            raise AuthenticationError("This link is password protected", extra={"requires_password": True})
        return link

    @staticmethod
    def require_prototype_link(link: MagicLink) -> None:
        if link.is_homepage:
            raise ValidationError("Use the homepage endpoint")

    @staticmethod
    def require_homepage_link(link: MagicLink) -> None:
        if not link.is_homepage:
            raise ValidationError("This link is not a homepage link")

    def published_prototype(self, prototype_id) -> Prototype:
        prototype = None
        if prototype_id is not None:
            try:
                pid = parse_uuid(prototype_id, "Prototype")
            except NotFoundError:
                pid = None
            if pid is not None:
                prototype = self._session.query(Prototype).filter(Prototype.prototype_id == pid).first()
        if not prototype or prototype.status != "published":
            raise NotFoundError("Prototype not found or not published")
        return prototype

    def authorize_prototype(self, link: MagicLink, prototype_id, identity: Optional[Dict]) -> Prototype:
        """Published prototype the link may show; top secret needs approval.

        Raises:
            NotFoundError: missing or unpublished prototype
            AuthorizationError: top secret without an approved request
        """
        prototype = self.published_prototype(prototype_id)
        if prototype.is_top_secret:
            emails = identity_emails(link, identity)
            if not has_approved_access(self._session, prototype.prototype_id, emails):
                latest = latest_access_request(self._session, prototype.prototype_id, emails)
                raise AuthorizationError(
                    "This prototype requires approved access",
                    extra={
                        "requires_access_request": True,
                        "access_request_status": latest.status if latest else None,
                    },
                )
        return prototype

    # ── Password ─────────────────────────────────────────────────────────

    def unlock(self, token: str, password: Optional[str]) -> MagicLink:
        link = get_valid_link(self._session, token)
        if not link.password_hash:
            return link
        if not AuthService.verify_password(password or "", link.password_hash):
            logger.warning(f"Wrong password for magic link {link.link_id}")
            raise AuthenticationError("Incorrect password", extra={"requires_password": True})
        return link

    # ── Views ────────────────────────────────────────────────────────────

    def record_view(
        self,
        link: MagicLink,
        prototype_id: Optional[UUID],
        ip_address: Optional[str],
        user_agent: Optional[str],
        identity: Optional[Dict] = None,
    ) -> LinkView:
        identity = identity or {}
        view = LinkView(
            magic_link_id=link.link_id,
            prototype_id=prototype_id,
            ip_address=ip_address,
            user_agent=(user_agent or "")[:USER_AGENT_MAX_LENGTH] or None,
            prospect_name=identity.get("name"),
            prospect_email=identity.get("email"),
            prospect_company=identity.get("company"),
        )
        self._session.add(view)
        link.view_count = (link.view_count or 0) + 1
        self._session.flush()
        return view

    def _link_view(self, link: MagicLink, view_id) -> LinkView:
        vid = parse_uuid(view_id, "View")
        view = self._session.query(LinkView).filter(
            LinkView.view_id == vid,
            LinkView.magic_link_id == link.link_id,
        ).first()
        if not view:
            raise NotFoundError("View not found")
        return view

    def stamp_identity(self, link: MagicLink, view_id, identity: Dict) -> LinkView:
        view = self._link_view(link, view_id)
        view.prospect_name = identity.get("name")
        view.prospect_email = identity.get("email")
        view.prospect_company = identity.get("company")
        self._session.flush()
        return view

    def record_duration(self, link: MagicLink, view_id, duration_seconds: int) -> LinkView:
        if duration_seconds is None or not 0 <= duration_seconds <= MAX_VIEW_DURATION_SECONDS:
            raise ValidationError(f"duration_seconds must be between 0 and {MAX_VIEW_DURATION_SECONDS}")
        view = self._link_view(link, view_id)
        view.duration_seconds = int(duration_seconds)
        self._session.flush()
        return view

    # ── Homepage ─────────────────────────────────────────────────────────

    def homepage_listing(self, link: MagicLink, identity: Optional[Dict]) -> Tuple[List[Dict], List[Dict]]:
        """(visible prototypes, restricted top-secret prototypes)."""
        published = self._session.query(Prototype).filter(
            Prototype.status == "published"
        ).order_by(Prototype.created_at.desc()).all()

        emails = sorted({e for e in (normalize_email(x) for x in identity_emails(link, identity)) if e})
        latest_status: Dict[UUID, str] = {}
        if emails:
            requests = self._session.query(AccessRequest).filter(
                AccessRequest.requester_email.in_(emails)
            ).order_by(AccessRequest.created_at.asc()).all()
            approved = {r.prototype_id for r in requests if r.status == "approved"}
            for r in requests:
                latest_status[r.prototype_id] = r.status
            for pid in approved:
                latest_status[pid] = "approved"

        visible, restricted = [], []
        for prototype in published:
            item = {
                "id": str(prototype.prototype_id),
                "title": prototype.title,
                "description": prototype.description or "",
                "type": prototype.type,
                "version": prototype.version,
                "is_top_secret": bool(prototype.is_top_secret),
                "updated_at": isoformat(prototype.updated_at),
            }
            status = latest_status.get(prototype.prototype_id)
            if not prototype.is_top_secret or status == "approved":
                visible.append(item)
            else:
                item["access_request_status"] = status
                restricted.append(item)
        return visible, restricted

    # ── Access requests ──────────────────────────────────────────────────

    def request_access(
        self,
        link: MagicLink,
        prototype_id,
        name: Optional[str],
        email: Optional[str],
        company: Optional[str] = None,
        reason: Optional[str] = None,
    ) -> Tuple[AccessRequest, Prototype]:
        prototype = self.published_prototype(prototype_id)
        request = AccessRequestService(self._session).create(
            prototype,
            name=name,
            email=email,
            company=company,
            reason=reason,
            magic_link_id=link.link_id,
        )
        return request, prototype
