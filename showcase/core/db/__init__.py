"""
Database module for the prototype showcase.

Exports:
- DatabaseManager: Database connection and session management
- get_database_manager: Factory function for DatabaseManager
- wait_for_db: Database availability checker with retry logic
- Models: User, Prototype, MagicLink, LinkView, Feedback, AccessRequest,
  UserPrototypeAccess, Annotation, AuditLog, AppSetting
- Base: SQLAlchemy declarative base
"""

from .db import DatabaseManager, get_database_manager, wait_for_db
from .models import (
    Base,
    User,
    Prototype,
    UserPrototypeAccess,
    MagicLink,
    LinkView,
    Feedback,
    AccessRequest,
    Annotation,
    AuditLog,
    AppSetting,
)

__all__ = [
    # Database management
    "DatabaseManager",
    "get_database_manager",
    "wait_for_db",

    # ORM models
    "Base",
    "User",
    "Prototype",
    "UserPrototypeAccess",
    "MagicLink",
    "LinkView",
    "Feedback",
    "AccessRequest",
    "Annotation",
    "AuditLog",
    "AppSetting",
]
