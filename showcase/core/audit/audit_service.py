"""Audit log writer and query service."""

import logging
from typing import Any, Dict, List, Optional
from uuid import UUID

from sqlalchemy.exc import SQLAlchemyError

from ..db import DatabaseManager
from ..db.models import AuditLog, User
from ..utils import isoformat

logger = logging.getLogger(__name__)

DEFAULT_LOG_LIMIT = 200
MAX_LOG_LIMIT = 1000


def _as_uuid(value) -> Optional[UUID]:
    if not value:
        return None
    try:
        return UUID(str(value))
    except ValueError:
        return None


class AuditService:
    """Writes audit rows in their own transaction.

    ``record()`` never raises: a failed audit write is logged and the
    caller carries on.
    """

    def __init__(self, db_manager: DatabaseManager):
        self.db = db_manager

    def record(
        self,
        action: str,
        resource_type: str,
        resource_id: Optional[str] = None,
        user_id: Optional[str] = None,
        details: Optional[Dict[str, Any]] = None,
        ip_address: Optional[str] = None,
        method: Optional[str] = None,
        path: Optional[str] = None,
        status_code: Optional[int] = None,
    ) -> Optional[str]:
        try:
            with self.db.get_session() as session:
                entry = AuditLog(
                    user_id=_as_uuid(user_id),
                    action=action,
                    resource_type=resource_type,
                    resource_id=str(resource_id) if resource_id is not None else None,
                    details=details or {},
                    ip_address=ip_address,
                    method=method,
                    path=path[:2048] if path else None,
                    status_code=status_code,
                )
                session.add(entry)
                session.flush()
                return str(entry.log_id)
        except SQLAlchemyError as e:
            logger.error(f"Failed to create audit log ({action}): {e}")
            return None

    def list_logs(
        self,
        action: Optional[str] = None,
        user_id: Optional[str] = None,
        resource_type: Optional[str] = None,
        limit: int = DEFAULT_LOG_LIMIT,
    ) -> List[Dict[str, Any]]:
        """Newest first, with the acting user's email."""
        limit = min(max(1, limit), MAX_LOG_LIMIT)
        with self.db.get_session() as session:
            q = session.query(AuditLog, User.email).outerjoin(User, AuditLog.user_id == User.user_id)
            if action:
                q = q.filter(AuditLog.action == action)
            if user_id:
                uid = _as_uuid(user_id)
                if uid is None:
                    return []
                q = q.filter(AuditLog.user_id == uid)
            if resource_type:
                q = q.filter(AuditLog.resource_type == resource_type)

            rows = q.order_by(AuditLog.created_at.desc()).limit(limit).all()
            return [self._log_to_dict(log, email) for log, email in rows]

    @staticmethod
    def _log_to_dict(log: AuditLog, user_email: Optional[str]) -> Dict[str, Any]:
        return {
            "id": str(log.log_id),
            "user_id": str(log.user_id) if log.user_id else None,
            "user_email": user_email,
            "action": log.action,
            "resource_type": log.resource_type,
            "resource_id": log.resource_id,
            "details": log.details or {},
            "ip_address": log.ip_address,
            "method": log.method,
            "path": log.path,
            "status_code": log.status_code,
            "created_at": isoformat(log.created_at),
        }
