"""Authentication service.

Password hashing (bcrypt), login checks, invite acceptance and
password changes. Operates on a caller-provided SQLAlchemy session.
"""

import logging
import re
from datetime import timedelta
from typing import List, Optional, Tuple
from uuid import UUID

import bcrypt
from sqlalchemy.orm import Session

from ..db.models import User
from ..utils import normalize_email, safe_compare, utcnow

logger = logging.getLogger(__name__)

# bcrypt only looks at the first 72 bytes
_BCRYPT_MAX_BYTES = 72
_BCRYPT_ROUNDS = 10

MIN_PASSWORD_LENGTH = 8


class AuthService:
    """Login, invite and password operations for user accounts."""

    def __init__(self, db_session: Session):
        self._session = db_session

    # ========== Password hashing ==========

    @staticmethod
    def hash_password(password: str) -> str:
        raw = password.encode("utf-8")[:_BCRYPT_MAX_BYTES]
        return bcrypt.hashpw(raw, bcrypt.gensalt(rounds=_BCRYPT_ROUNDS)).decode("utf-8")

    @staticmethod
    def verify_password(password: str, password_hash: Optional[str]) -> bool:
        if not password or not password_hash:
            return False
        try:
            return bcrypt.checkpw(
                password.encode("utf-8")[:_BCRYPT_MAX_BYTES],
                password_hash.encode("utf-8"),
            )
        except ValueError:
            logger.warning("Stored password hash is malformed")
            return False

    @staticmethod
    def validate_password_strength(password: str) -> List[str]:
        """Return a list of policy violations (empty when the password is fine)."""
        problems = []
        if len(password or "") < MIN_PASSWORD_LENGTH:
            problems.append(f"Password must be at least {MIN_PASSWORD_LENGTH} characters")
        if not re.search(r"[A-Z]", password or ""):
            problems.append("Password must contain an uppercase letter")
        if not re.search(r"[a-z]", password or ""):
            problems.append("Password must contain a lowercase letter")
        if not re.search(r"[0-9]", password or ""):
            problems.append("Password must contain a number")
        return problems

    # ========== Lookup ==========

    def get_user_by_id(self, user_id: str) -> Optional[User]:
        try:
            uid = UUID(str(user_id))
        except ValueError:
            return None
        return self._session.query(User).filter(User.user_id == uid).first()

    def get_user_by_email(self, email: str) -> Optional[User]:
        email = normalize_email(email)
        if not email:
            return None
        return self._session.query(User).filter(User.email == email).first()

    # ========== Login ==========

    def login(self, email: str, password: str) -> Tuple[Optional[User], Optional[str]]:
        """Check credentials.

        Returns:
            (user, None) on success, or (user_or_none, reason) where reason is
            one of ``unknown_email``, ``inactive_account``, ``wrong_password``.
        """
        user = self.get_user_by_email(email)
        if not user:
            return None, "unknown_email"
        if not user.is_active:
            return user, "inactive_account"
        if not self.verify_password(password, user.password_hash):
            return user, "wrong_password"
        return user, None

    def change_password(self, user_id: str, old_password: str, new_password: str) -> bool:
        user = self.get_user_by_id(user_id)
        if not user or not self.verify_password(old_password, user.password_hash):
            return False

        user.password_hash = self.hash_password(new_password)
        user.updated_at = utcnow()
        self._session.flush()
        logger.info(f"Password changed for user {user.user_id}")
        return True

    # ========== Invites ==========

    def find_by_invite_token(self, token: str) -> Optional[User]:
        """Find the pending user holding ``token`` (timing-safe)."""
        if not token:
            return None
        pending = self._session.query(User).filter(User.invite_token.isnot(None)).all()
        for user in pending:
            if safe_compare(user.invite_token, token):
                return user
        return None

    @staticmethod
    def invite_expired(user: User) -> bool:
        return bool(user.invite_expires_at and user.invite_expires_at < utcnow())

    def accept_invite(self, user: User, password: str) -> User:
        user.password_hash = self.hash_password(password)
        user.invite_token = None
        user.invite_expires_at = None
        user.is_active = True
        user.updated_at = utcnow()
        self._session.flush()
        logger.info(f"Invite accepted by {user.email}")
        return user

    @staticmethod
    def invite_expiry(days: int):
        return utcnow() + timedelta(days=days)

    # ========== Seeding ==========

    def ensure_admin(self, email: str, name: str, password: str) -> User:
        """Create (or re-activate) an admin account. Idempotent."""
        user = self.get_user_by_email(email)
        if user:
            if not user.is_active or user.role != "admin":
                user.is_active = True
                user.role = "admin"
                logger.info(f"Re-activated admin account {email}")
            return user

        user = User(
            email=normalize_email(email),
            name=name,
            password_hash=self.hash_password(password),
            role="admin",
            is_active=True,
        )
        self._session.add(user)
        self._session.flush()
        logger.info(f"Created default admin: {user.user_id} ({email})")
        return user
