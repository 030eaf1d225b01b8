"""User Manager.

Admin-side user administration: listing, invitations, role and status
changes, deletion.
"""

import logging
from typing import Dict, List, Optional, Tuple

from ..auth import AuthService
from ..constants import ROLE_ADMIN, ROLES
from ..db import DatabaseManager
from ..db.models import User
from ..exceptions import ConflictError, NotFoundError, ValidationError
from ..utils import generate_token, isoformat, normalize_email, parse_uuid, utcnow

logger = logging.getLogger(__name__)

INVITE_TOKEN_BYTES = 32


def user_to_dict(user: User) -> Dict:
    return {
        "id": str(user.user_id),
        "email": user.email,
        "name": user.name,
        "role": user.role,
        "is_active": bool(user.is_active),
        "invite_pending": user.invite_token is not None,
        "created_at": isoformat(user.created_at),
        "updated_at": isoformat(user.updated_at),
    }


class UserManager:
    """Manages user accounts with database persistence."""

    def __init__(self, db_manager: DatabaseManager, invite_expiry_days: int = 7):
        self.db = db_manager
        self.invite_expiry_days = invite_expiry_days

    @staticmethod
    def _validate_role(role: str) -> None:
        if role not in ROLES:
            raise ValidationError(f"Role must be one of: {', '.join(ROLES)}")

    def list_users(self) -> List[Dict]:
        with self.db.get_session() as session:
            users = session.query(User).order_by(User.created_at).all()
            return [user_to_dict(u) for u in users]

    def invite_user(self, email: str, name: Optional[str], role: str) -> Tuple[Dict, str]:
        """Create an inactive account holding a fresh invite token.

        Returns:
            (user dict, invite token)
        """
        email = normalize_email(email)
        if not email or "@" not in email:
            raise ValidationError("A valid email is required")
        self._validate_role(role)

        with self.db.get_session() as session:
            if session.query(User).filter(User.email == email).first():
                raise ConflictError("User already exists")

            token = generate_token(INVITE_TOKEN_BYTES)
            user = User(
                email=email,
                name=(name or "").strip() or email.split("@", 1)[0],
                role=role,
                password_hash=None,
                is_active=False,
                invite_token=token,
                invite_expires_at=AuthService.invite_expiry(self.invite_expiry_days),
            )
            session.add(user)
            session.flush()

            logger.info(f"Invited user {user.user_id} ({email}) as {role}")
            return user_to_dict(user), token

    def update_user(
        self,
        user_id: str,
        actor_id: str,
        name: Optional[str] = None,
        role: Optional[str] = None,
        is_active: Optional[bool] = None,
    ) -> Dict:
        """Change name, role or active flag.

        Admins may not demote or deactivate their own account.
        """
        uid = parse_uuid(user_id, "User")
        with self.db.get_session() as session:
            user = session.query(User).filter(User.user_id == uid).first()
            if not user:
                raise NotFoundError("User not found")

            is_self = str(user.user_id) == str(actor_id)
            if role is not None:
                self._validate_role(role)
                if is_self and role != ROLE_ADMIN:
                    raise ValidationError("You cannot change your own role")
            if is_active is False and is_self:
                raise ValidationError("You cannot deactivate your own account")

            if name is not None:
                name = name.strip()
                if not name:
                    raise ValidationError("Name cannot be empty")
                user.name = name
            if role is not None:
                user.role = role
            if is_active is not None:
                user.is_active = is_active

            user.updated_at = utcnow()
            session.flush()
            logger.info(f"Updated user {user_id}")
            return user_to_dict(user)

    def delete_user(self, user_id: str, actor_id: str) -> Dict:
        uid = parse_uuid(user_id, "User")
        if str(uid) == str(actor_id):
            raise ValidationError("Cannot delete yourself")

        with self.db.get_session() as session:
            user = session.query(User).filter(User.user_id == uid).first()
            if not user:
                raise NotFoundError("User not found")
            snapshot = user_to_dict(user)
            session.delete(user)

        logger.info(f"Deleted user {user_id} ({snapshot['email']})")
        return snapshot
