"""Authentication and Authorization module.

Provides:
- Authentication: Login, invites, password management (bcrypt)
- RBAC: Single-role access control (admin, viewer, prospect)
"""

from .auth_service import AuthService
from .rbac import RBACService

__all__ = [
    "AuthService",
    "RBACService",
]
