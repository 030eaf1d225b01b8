"""Prototype Manager.

Provides CRUD operations for prototypes, their uploaded files and
admin-facing detail views, with database persistence.
"""

import logging
from typing import Dict, List, Optional, Tuple
from uuid import UUID, uuid4

from sqlalchemy import func, or_
from sqlalchemy.orm import Session

from ..auth import RBACService
from ..constants import PROTOTYPE_STATUSES
from ..db import DatabaseManager
from ..db.models import LinkView, MagicLink, Prototype, User
from ..exceptions import NotFoundError, ValidationError
from ..feedback import feedback_summary
from ..links.access import active_link_filter
from ..links.link_manager import LinkManager
from ..utils import isoformat, parse_uuid, slugify, utcnow
from .upload_service import UploadService

logger = logging.getLogger(__name__)

DEFAULT_PAGE_SIZE = 20
MAX_PAGE_SIZE = 100


def bump_version(version: Optional[str]) -> str:
    """'1.0' -> '1.1', '1.9' -> '2.0'; anything non-numeric restarts at '1.1'."""
    try:
        current = float(version)
    except (TypeError, ValueError):
        return "1.1"
    return f"{current + 0.1:.1f}"


class PrototypeManager:
    """Manages prototypes and their files with database persistence."""

    def __init__(self, db_manager: DatabaseManager, upload_service: UploadService):
        self.db = db_manager
        self.uploads = upload_service
        logger.info("PrototypeManager initialized")

    # =========================================================================
    # Prototype CRUD
    # =========================================================================

    def create_prototype(
        self,
        user_id: str,
        title: str,
        filename: Optional[str],
        content: Optional[bytes],
        description: str = "",
        status: str = "draft",
        is_top_secret: bool = False,
    ) -> Dict:
        """Create a prototype and store its uploaded file."""
        title = (title or "").strip()
        if not title:
            raise ValidationError("Title is required")
        self._validate_status(status)
        if not filename or not content:
            raise ValidationError("A file (HTML or ZIP) is required")

        with self.db.get_session() as session:
            prototype = Prototype(
                prototype_id=uuid4(),
                title=title,
                description=(description or "").strip(),
                slug=self._unique_slug(session, title),
                status=status,
                is_top_secret=bool(is_top_secret),
                version="1.0",
                created_by=UUID(str(user_id)) if user_id else None,
            )
            session.add(prototype)
            session.flush()

            result = self.uploads.process_upload(filename, content, str(prototype.prototype_id))
            prototype.type = result.type
            prototype.file_path = result.file_path

            logger.info(f"Created prototype: {prototype.prototype_id} ({title})")
            return self._prototype_to_dict(prototype)

    def get_prototype(self, prototype_id: str) -> Optional[Dict]:
        """Retrieve prototype details by ID."""
        try:
            pid = parse_uuid(prototype_id, "Prototype")
        except NotFoundError:
            return None

        with self.db.get_session() as session:
            prototype = session.query(Prototype).filter(Prototype.prototype_id == pid).first()
            if not prototype:
                return None
            return self._prototype_to_dict(prototype)

    def list_prototypes(
        self,
        status: Optional[str] = None,
        query: Optional[str] = None,
        page: int = 1,
        limit: int = DEFAULT_PAGE_SIZE,
    ) -> Tuple[List[Dict], int]:
        """List prototypes, newest first, with creator and active link counts."""
        if status:
            self._validate_status(status)
        page = max(1, page)
        limit = min(max(1, limit), MAX_PAGE_SIZE)

        with self.db.get_session() as session:
            q = session.query(Prototype, User.name).outerjoin(
                User, Prototype.created_by == User.user_id
            )
            if status:
                q = q.filter(Prototype.status == status)
            if query:
                pattern = f"%{query.strip().lower()}%"
                q = q.filter(or_(
                    func.lower(Prototype.title).like(pattern),
                    func.lower(Prototype.description).like(pattern),
                ))

            total = q.count()
            rows = q.order_by(Prototype.created_at.desc()).offset((page - 1) * limit).limit(limit).all()

            link_counts = dict(
                session.query(MagicLink.prototype_id, func.count())
                .filter(MagicLink.prototype_id.isnot(None), active_link_filter())
                .group_by(MagicLink.prototype_id)
                .all()
            )

            items = []
            for prototype, creator_name in rows:
                item = self._prototype_to_dict(prototype)
                item["creator_name"] = creator_name
                item["active_links"] = link_counts.get(prototype.prototype_id, 0)
                items.append(item)
            return items, total

    def get_prototype_detail(self, prototype_id: str, client_url: Optional[str] = None) -> Dict:
        """Prototype with its magic links, assigned viewers, total views and feedback summary."""
        pid = parse_uuid(prototype_id, "Prototype")
        with self.db.get_session() as session:
            prototype = session.query(Prototype).filter(Prototype.prototype_id == pid).first()
            if not prototype:
                raise NotFoundError("Prototype not found")

            links = session.query(MagicLink).filter(
                MagicLink.prototype_id == pid
            ).order_by(MagicLink.created_at.desc()).all()

            total_views = session.query(func.count(LinkView.view_id)).filter(
                LinkView.prototype_id == pid
            ).scalar() or 0

            detail = self._prototype_to_dict(prototype)
            if prototype.creator:
                detail["creator_name"] = prototype.creator.name

            return {
                "prototype": detail,
                "magic_links": [LinkManager.link_to_dict(link, client_url) for link in links],
                "assigned_viewers": RBACService(session).list_prototype_users(str(pid)),
                "total_views": total_views,
                "feedback_summary": feedback_summary(session, pid),
            }

    def update_prototype(
        self,
        prototype_id: str,
        title: Optional[str] = None,
        description: Optional[str] = None,
        status: Optional[str] = None,
        version: Optional[str] = None,
        is_top_secret: Optional[bool] = None,
    ) -> Dict:
        """Update prototype metadata; a new title re-derives the slug."""
        pid = parse_uuid(prototype_id, "Prototype")
        with self.db.get_session() as session:
            prototype = session.query(Prototype).filter(Prototype.prototype_id == pid).first()
            if not prototype:
                raise NotFoundError("Prototype not found")

            if title is not None:
                title = title.strip()
                if not title:
                    raise ValidationError("Title cannot be empty")
                if title != prototype.title:
                    prototype.title = title
                    prototype.slug = self._unique_slug(session, title, exclude_id=pid)

            if description is not None:
                prototype.description = description.strip()

            if status is not None:
                self._validate_status(status)
                prototype.status = status

            if version is not None and version.strip():
                prototype.version = version.strip()

            if is_top_secret is not None:
                prototype.is_top_secret = is_top_secret

            prototype.updated_at = utcnow()
            return self._prototype_to_dict(prototype)

    def delete_prototype(self, prototype_id: str) -> Dict:
        """Delete a prototype, its files and all associated rows (CASCADE)."""
        pid = parse_uuid(prototype_id, "Prototype")
        with self.db.get_session() as session:
            prototype = session.query(Prototype).filter(Prototype.prototype_id == pid).first()
            if not prototype:
                raise NotFoundError("Prototype not found")

            snapshot = self._prototype_to_dict(prototype)
            session.delete(prototype)

        self.uploads.delete_prototype_files(str(pid))
        logger.info(f"Deleted prototype: {prototype_id} ({snapshot['title']})")
        return snapshot

    def replace_upload(self, prototype_id: str, filename: Optional[str], content: Optional[bytes]) -> Dict:
        """Replace a prototype's files and bump its version."""
        pid = parse_uuid(prototype_id, "Prototype")
        with self.db.get_session() as session:
            prototype = session.query(Prototype).filter(Prototype.prototype_id == pid).first()
            if not prototype:
                raise NotFoundError("Prototype not found")

            result = self.uploads.process_upload(filename, content, str(pid))
            prototype.type = result.type
            prototype.file_path = result.file_path
            prototype.version = bump_version(prototype.version)
            prototype.updated_at = utcnow()

            logger.info(f"Replaced upload for prototype {prototype_id} (v{prototype.version})")
            return self._prototype_to_dict(prototype)

    def resolve_file(self, prototype: Dict, path: Optional[str]):
        """Resolve a served file for an already-authorized prototype dict."""
        return self.uploads.resolve_file(prototype["id"], prototype.get("file_path"), path)

    # =========================================================================
    # Helpers
    # =========================================================================

    @staticmethod
    def _validate_status(status: str) -> None:
        if status not in PROTOTYPE_STATUSES:
            raise ValidationError(f"Status must be one of: {', '.join(PROTOTYPE_STATUSES)}")

    @staticmethod
    def _unique_slug(session: Session, title: str, exclude_id: Optional[UUID] = None) -> str:
        base = slugify(title)
        candidate = base
        suffix = 2
        while True:
            q = session.query(Prototype.prototype_id).filter(Prototype.slug == candidate)
            if exclude_id is not None:
                q = q.filter(Prototype.prototype_id != exclude_id)
            if not q.first():
                return candidate
            candidate = f"{base}-{suffix}"
            suffix += 1

    @staticmethod
    def _prototype_to_dict(prototype: Prototype) -> Dict:
        """Convert a Prototype ORM object to a dict."""
        return {
            "id": str(prototype.prototype_id),
            "prototype_id": str(prototype.prototype_id),
            "title": prototype.title,
            "description": prototype.description or "",
            "slug": prototype.slug,
            "status": prototype.status,
            "type": prototype.type,
            "file_path": prototype.file_path,
            "thumbnail_path": prototype.thumbnail_path,
            "version": prototype.version,
            "is_top_secret": bool(prototype.is_top_secret),
            "created_by": str(prototype.created_by) if prototype.created_by else None,
            "created_at": isoformat(prototype.created_at),
            "updated_at": isoformat(prototype.updated_at),
        }

    @staticmethod
    def public_view(prototype: Prototype) -> Dict:
        """Fields safe to show to prospects and viewers."""
        return {
            "id": str(prototype.prototype_id),
            "title": prototype.title,
            "description": prototype.description or "",
            "type": prototype.type,
            "version": prototype.version,
            "is_top_secret": bool(prototype.is_top_secret),
            "created_at": isoformat(prototype.created_at),
            "updated_at": isoformat(prototype.updated_at),
        }

