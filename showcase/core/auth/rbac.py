"""RBAC (Role-Based Access Control) Service.

Each user carries exactly one role:
- admin: Full control of prototypes, links, users and settings
- viewer: Sees prototypes an admin assigned to them; may request
  access to top-secret prototypes
- prospect: Sees prototypes shared with their email via magic links

Permissions per role are defined in ``core/constants.py``.
"""

import logging
from typing import List, Optional, Set
from uuid import UUID

from sqlalchemy.orm import Session

from ..constants import ROLE_ADMIN, ROLE_PERMISSIONS, ROLE_PROSPECT, ROLE_VIEWER
from ..db.models import MagicLink, Prototype, User, UserPrototypeAccess
from ..links.access import active_link_filter
from ..utils import isoformat

logger = logging.getLogger(__name__)


class RBACService:
    """Role-Based Access Control service.

    Provides methods to check and enforce access control across all features.
    """

    def __init__(self, db_session: Session):
        self._session = db_session

    # ========== Roles & Permissions ==========

    def _get_user(self, user_id: str) -> Optional[User]:
        return self._session.query(User).filter(User.user_id == UUID(str(user_id))).first()

    def get_user_role(self, user_id: str) -> Optional[str]:
        user = self._get_user(user_id)
        return user.role if user else None

    def get_user_permissions(self, user_id: str) -> Set[str]:
        role = self.get_user_role(user_id)
        return set(ROLE_PERMISSIONS.get(role, []))

    def has_permission(self, user_id: str, permission: str) -> bool:
        return permission in self.get_user_permissions(user_id)

    def has_role(self, user_id: str, role_name: str) -> bool:
        return self.get_user_role(user_id) == role_name

    def is_admin(self, user_id: str) -> bool:
        return self.has_role(user_id, ROLE_ADMIN)

    # ========== Prototype Access ==========

    def can_view_prototype(self, user_id: str, prototype_id: str) -> bool:
        user = self._get_user(user_id)
        if not user or not user.is_active:
            return False
        if user.role == ROLE_ADMIN:
            return True

        prototype = self._session.query(Prototype).filter(
            Prototype.prototype_id == UUID(str(prototype_id))
        ).first()
        if not prototype or prototype.status != "published":
            return False

        if user.role == ROLE_VIEWER:
            return self.has_assignment(user.user_id, prototype.prototype_id)

        if user.role == ROLE_PROSPECT:
            return self.get_shared_link(user.email, prototype.prototype_id) is not None

        return False

    def has_assignment(self, user_id: UUID, prototype_id: UUID) -> bool:
        return self._session.query(UserPrototypeAccess).filter(
            UserPrototypeAccess.user_id == user_id,
            UserPrototypeAccess.prototype_id == prototype_id,
        ).first() is not None

    def get_shared_link(self, email: str, prototype_id: UUID) -> Optional[MagicLink]:
        """Newest active magic link sharing ``prototype_id`` with ``email``."""
        return self._session.query(MagicLink).filter(
            MagicLink.recipient_email == email,
            MagicLink.prototype_id == prototype_id,
            active_link_filter(),
        ).order_by(MagicLink.created_at.desc()).first()

    def grant_prototype_access(
        self,
        user_id: str,
        prototype_id: str,
        granted_by: Optional[str] = None,
    ) -> bool:
        """Assign a prototype to a user. Returns False if it already was."""
        uid = UUID(str(user_id))
        pid = UUID(str(prototype_id))
        if self.has_assignment(uid, pid):
            return False

        self._session.add(UserPrototypeAccess(
            user_id=uid,
            prototype_id=pid,
            assigned_by=UUID(str(granted_by)) if granted_by else None,
        ))
        self._session.flush()
        logger.info(f"Granted prototype {prototype_id} to user {user_id}")
        return True

    def revoke_prototype_access(self, user_id: str, prototype_id: str) -> bool:
        access = self._session.query(UserPrototypeAccess).filter(
            UserPrototypeAccess.user_id == UUID(str(user_id)),
            UserPrototypeAccess.prototype_id == UUID(str(prototype_id)),
        ).first()

        if not access:
            return False

        self._session.delete(access)
        self._session.flush()
        logger.info(f"Revoked prototype {prototype_id} from user {user_id}")
        return True

    def list_prototype_users(self, prototype_id: str) -> List[dict]:
        rows = self._session.query(UserPrototypeAccess, User).join(
            User, UserPrototypeAccess.user_id == User.user_id
        ).filter(
            UserPrototypeAccess.prototype_id == UUID(str(prototype_id))
        ).all()

        return [
            {
                "user_id": str(user.user_id),
                "email": user.email,
                "name": user.name,
                "assigned_at": isoformat(access.created_at),
            }
            for access, user in rows
        ]

    def list_user_prototypes(self, user_id: str) -> List[dict]:
        rows = self._session.query(UserPrototypeAccess, Prototype).join(
            Prototype, UserPrototypeAccess.prototype_id == Prototype.prototype_id
        ).filter(
            UserPrototypeAccess.user_id == UUID(str(user_id))
        ).order_by(Prototype.title).all()

        return [
            {
                "prototype_id": str(prototype.prototype_id),
                "title": prototype.title,
                "status": prototype.status,
                "is_top_secret": bool(prototype.is_top_secret),
                "assigned_at": isoformat(access.created_at),
            }
            for access, prototype in rows
        ]
