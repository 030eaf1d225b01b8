"""Magic Link Manager.

Admin-side CRUD for magic links: bearer-token URLs that open a single
prototype, or (with no prototype) a homepage listing every published one.
"""

import logging
from collections import Counter
from datetime import datetime, timedelta
from typing import Any, Dict, List, Optional, Tuple

from ..auth import AuthService
from ..constants import MAGIC_LINK_TOKEN_BYTES
from ..db import DatabaseManager
from ..db.models import LinkView, MagicLink, Prototype, User
from ..exceptions import NotFoundError, ValidationError
from ..settings import validate_branding
from ..utils import generate_token, isoformat, normalize_email, parse_uuid, to_naive_utc, utcnow
from .access import link_status

logger = logging.getLogger(__name__)

DEFAULT_PAGE_SIZE = 25
MAX_PAGE_SIZE = 100
RECENT_VIEWS_LIMIT = 100
DAILY_VIEWS_DAYS = 30

_UPDATABLE_FIELDS = ("is_revoked", "expires_at", "label", "password", "branding", "recipient_email")


def build_share_url(client_url: str, token: str, homepage: bool = False) -> str:
    base = (client_url or "").rstrip("/")
    return f"{base}/homepage/{token}" if homepage else f"{base}/view/{token}"


def view_to_dict(view: LinkView) -> Dict[str, Any]:
    return {
        "id": str(view.view_id),
        "magic_link_id": str(view.magic_link_id) if view.magic_link_id else None,
        "prototype_id": str(view.prototype_id) if view.prototype_id else None,
        "ip_address": view.ip_address,
        "user_agent": view.user_agent,
        "prospect_name": view.prospect_name,
        "prospect_email": view.prospect_email,
        "prospect_company": view.prospect_company,
        "duration_seconds": view.duration_seconds,
        "viewed_at": isoformat(view.viewed_at),
    }


class LinkManager:
    """Creates, lists, updates and deletes magic links."""

    def __init__(self, db_manager: DatabaseManager, client_url: str):
        self.db = db_manager
        self.client_url = client_url
        logger.info("LinkManager initialized")

    # =========================================================================
    # CRUD
    # =========================================================================

    def list_links(
        self,
        page: int = 1,
        limit: int = DEFAULT_PAGE_SIZE,
        prototype_id: Optional[str] = None,
    ) -> Tuple[List[Dict], int]:
        page = max(1, page)
        limit = min(max(1, limit), MAX_PAGE_SIZE)

        with self.db.get_session() as session:
            q = session.query(MagicLink)
            if prototype_id:
                q = q.filter(MagicLink.prototype_id == parse_uuid(prototype_id, "Prototype"))

            total = q.count()
            links = q.order_by(MagicLink.created_at.desc()).offset((page - 1) * limit).limit(limit).all()
            return [self.link_to_dict(link, self.client_url) for link in links], total

    def create_link(
        self,
        user_id: Optional[str],
        prototype_id: Optional[str] = None,
        label: Optional[str] = None,
        recipient_email: Optional[str] = None,
        expires_at: Optional[datetime] = None,
        expires_in_days: Optional[int] = None,
        password: Optional[str] = None,
        branding: Optional[Dict[str, Any]] = None,
    ) -> Dict:
        """Create a link; ``prototype_id=None`` makes a homepage link."""
        expires_at = self._resolve_expiry(expires_at, expires_in_days)

        with self.db.get_session() as session:
            prototype = None
            if prototype_id:
                pid = parse_uuid(prototype_id, "Prototype")
                prototype = session.query(Prototype).filter(Prototype.prototype_id == pid).first()
                if not prototype:
                    raise NotFoundError("Prototype not found")

            label = (label or "").strip()
            if not label:
                label = f"Link for {prototype.title}" if prototype else "Homepage link"

            link = MagicLink(
                token=generate_token(MAGIC_LINK_TOKEN_BYTES),
                prototype_id=prototype.prototype_id if prototype else None,
                label=label,
                recipient_email=normalize_email(recipient_email),
                created_by=parse_uuid(user_id, "User") if user_id else None,
                expires_at=expires_at,
                is_revoked=False,
                view_count=0,
                password_hash=AuthService.hash_password(password) if password else None,
                branding_config=validate_branding(branding) or None,
            )
            session.add(link)
            session.flush()

            kind = f"prototype {prototype.prototype_id}" if prototype else "homepage"
            logger.info(f"Created magic link {link.link_id} for {kind}")
            return self.link_to_dict(link, self.client_url)

    def get_link_detail(self, link_id: str) -> Dict:
        """Link plus its latest views and per-day view counts for 30 days."""
        lid = parse_uuid(link_id, "Magic link")
        with self.db.get_session() as session:
            link = session.query(MagicLink).filter(MagicLink.link_id == lid).first()
            if not link:
                raise NotFoundError("Magic link not found")

            views = session.query(LinkView).filter(
                LinkView.magic_link_id == lid
            ).order_by(LinkView.viewed_at.desc()).limit(RECENT_VIEWS_LIMIT).all()

            since = utcnow() - timedelta(days=DAILY_VIEWS_DAYS)
            timestamps = session.query(LinkView.viewed_at).filter(
                LinkView.magic_link_id == lid,
                LinkView.viewed_at >= since,
            ).all()
            per_day = Counter(ts.date().isoformat() for (ts,) in timestamps)

            return {
                "link": self.link_to_dict(link, self.client_url),
                "views": [view_to_dict(v) for v in views],
                "daily_views": [
                    {"date": day, "views": count}
                    for day, count in sorted(per_day.items(), reverse=True)
                ],
            }

    def update_link(self, link_id: str, changes: Dict[str, Any]) -> Dict:
        """Apply the provided fields.

        ``expires_at=None`` clears the expiry, ``password=""`` removes the
        password. Absent keys are left alone.
        """
        lid = parse_uuid(link_id, "Magic link")
        with self.db.get_session() as session:
            link = session.query(MagicLink).filter(MagicLink.link_id == lid).first()
            if not link:
                raise NotFoundError("Magic link not found")

            for key in changes:
                if key not in _UPDATABLE_FIELDS:
                    raise ValidationError(f"Field '{key}' cannot be updated")

            if "is_revoked" in changes and changes["is_revoked"] is not None:
                was_revoked = link.is_revoked
                link.is_revoked = bool(changes["is_revoked"])
                if link.is_revoked and not was_revoked:
                    logger.info(f"Revoked magic link {link_id}")

            if "expires_at" in changes:
                value = changes["expires_at"]
                link.expires_at = self._resolve_expiry(value, None) if value is not None else None

            if "label" in changes and changes["label"] is not None:
                label = changes["label"].strip()
                if not label:
                    raise ValidationError("Label cannot be empty")
                link.label = label

            if "recipient_email" in changes:
                link.recipient_email = normalize_email(changes["recipient_email"])

            if "password" in changes and changes["password"] is not None:
                password = changes["password"]
                link.password_hash = AuthService.hash_password(password) if password else None

            if "branding" in changes:
                link.branding_config = validate_branding(changes["branding"]) or None

            session.flush()
            return self.link_to_dict(link, self.client_url)

    def delete_link(self, link_id: str) -> Dict:
        lid = parse_uuid(link_id, "Magic link")
        with self.db.get_session() as session:
            link = session.query(MagicLink).filter(MagicLink.link_id == lid).first()
            if not link:
                raise NotFoundError("Magic link not found")
            snapshot = self.link_to_dict(link, self.client_url)
            session.delete(link)

        logger.info(f"Deleted magic link {link_id}")
        return snapshot

    # =========================================================================
    # Helpers
    # =========================================================================

    @staticmethod
    def _resolve_expiry(expires_at: Optional[datetime], expires_in_days: Optional[int]) -> Optional[datetime]:
        if expires_at is None and expires_in_days is not None:
            if expires_in_days <= 0:
                raise ValidationError("expires_in_days must be positive")
            return utcnow() + timedelta(days=expires_in_days)

        expires_at = to_naive_utc(expires_at)
        if expires_at is not None and expires_at <= utcnow():
            raise ValidationError("Expiration date must be in the future")
        return expires_at

    @staticmethod
    def link_to_dict(link: MagicLink, client_url: Optional[str] = None) -> Dict[str, Any]:
        """Serialize a link for admin views; never includes the password hash."""
        prototype = link.prototype
        creator: Optional[User] = link.creator
        data = {
            "id": str(link.link_id),
            "link_id": str(link.link_id),
            "token": link.token,
            "prototype_id": str(link.prototype_id) if link.prototype_id else None,
            "prototype_title": prototype.title if prototype else None,
            "prototype_status": prototype.status if prototype else None,
            "is_homepage": link.is_homepage,
            "label": link.label,
            "recipient_email": link.recipient_email,
            "created_by": str(link.created_by) if link.created_by else None,
            "created_by_name": creator.name if creator else None,
            "expires_at": isoformat(link.expires_at),
            "is_revoked": bool(link.is_revoked),
            "view_count": link.view_count or 0,
            "has_password": bool(link.password_hash),
            "branding_config": link.branding_config or {},
            "status": link_status(link),
            "created_at": isoformat(link.created_at),
        }
        if client_url is not None:
            data["share_url"] = build_share_url(client_url, link.token, link.is_homepage)
        return data

