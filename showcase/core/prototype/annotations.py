"""Guided-tour annotations: numbered hotspots placed over prototype pages."""

import logging
from typing import Any, Dict, List, Optional
from uuid import UUID

from sqlalchemy.orm import Session

from ..db.models import Annotation, Prototype
from ..exceptions import NotFoundError, ValidationError
from ..utils import isoformat, parse_uuid, utcnow

logger = logging.getLogger(__name__)

DEFAULT_PAGE_PATH = "index.html"

_UPDATABLE_FIELDS = ("title", "description", "x_percent", "y_percent", "step_order", "page_path")


def annotation_to_dict(annotation: Annotation) -> Dict[str, Any]:
    return {
        "id": str(annotation.annotation_id),
        "prototype_id": str(annotation.prototype_id),
        "title": annotation.title,
        "description": annotation.description,
        "x_percent": annotation.x_percent,
        "y_percent": annotation.y_percent,
        "step_order": annotation.step_order,
        "page_path": annotation.page_path,
        "created_by": str(annotation.created_by) if annotation.created_by else None,
        "created_at": isoformat(annotation.created_at),
        "updated_at": isoformat(annotation.updated_at),
    }


def _check_percent(name: str, value) -> int:
    if not isinstance(value, (int, float)) or isinstance(value, bool) or not 0 <= value <= 100:
        raise ValidationError(f"{name} must be between 0 and 100")
    return int(round(value))


def _check_step(value) -> int:
    if not isinstance(value, int) or isinstance(value, bool) or value < 1:
        raise ValidationError("step_order must be a positive integer")
    return value


def _clean_page_path(value: Optional[str]) -> str:
    return (value or "").strip().lstrip("/") or DEFAULT_PAGE_PATH


class AnnotationService:
    """Annotation CRUD scoped to one prototype, on a caller-provided session."""

    def __init__(self, db_session: Session):
        self._session = db_session

    def _require_prototype(self, prototype_id: str) -> UUID:
        pid = parse_uuid(prototype_id, "Prototype")
        exists = self._session.query(Prototype.prototype_id).filter(Prototype.prototype_id == pid).first()
        if not exists:
            raise NotFoundError("Prototype not found")
        return pid

    def _get(self, prototype_id: str, annotation_id: str) -> Annotation:
        pid = self._require_prototype(prototype_id)
        aid = parse_uuid(annotation_id, "Annotation")
        annotation = self._session.query(Annotation).filter(
            Annotation.annotation_id == aid,
            Annotation.prototype_id == pid,
        ).first()
        if not annotation:
            raise NotFoundError("Annotation not found")
        return annotation

    def list(self, prototype_id: str, page_path: Optional[str] = None) -> List[Annotation]:
        """Annotations in tour order, optionally for one page."""
        pid = self._require_prototype(prototype_id)
        q = self._session.query(Annotation).filter(Annotation.prototype_id == pid)
        if page_path:
            q = q.filter(Annotation.page_path == _clean_page_path(page_path))
        return q.order_by(Annotation.step_order, Annotation.created_at).all()

    def create(self, prototype_id: str, user_id: Optional[str], data: Dict[str, Any]) -> Annotation:
        pid = self._require_prototype(prototype_id)

        title = (data.get("title") or "").strip()
        if not title:
            raise ValidationError("Title is required")

        annotation = Annotation(
            prototype_id=pid,
            title=title,
            description=(data.get("description") or "").strip() or None,
            x_percent=_check_percent("x_percent", data.get("x_percent", 50)),
            y_percent=_check_percent("y_percent", data.get("y_percent", 50)),
            step_order=_check_step(data.get("step_order", 1)),
            page_path=_clean_page_path(data.get("page_path")),
            created_by=parse_uuid(user_id, "User") if user_id else None,
        )
        self._session.add(annotation)
        self._session.flush()
        logger.info(f"Annotation {annotation.annotation_id} added to prototype {prototype_id}")
        return annotation

    def update(self, prototype_id: str, annotation_id: str, changes: Dict[str, Any]) -> Annotation:
        annotation = self._get(prototype_id, annotation_id)

        for key, value in changes.items():
            if key not in _UPDATABLE_FIELDS or value is None:
                continue
            if key == "title":
                value = value.strip()
                if not value:
                    raise ValidationError("Title cannot be empty")
            elif key == "description":
                value = value.strip() or None
            elif key in ("x_percent", "y_percent"):
                value = _check_percent(key, value)
            elif key == "step_order":
                value = _check_step(value)
            elif key == "page_path":
                value = _clean_page_path(value)
            setattr(annotation, key, value)

        annotation.updated_at = utcnow()
        self._session.flush()
        return annotation

    def delete(self, prototype_id: str, annotation_id: str) -> None:
        annotation = self._get(prototype_id, annotation_id)
        self._session.delete(annotation)
        self._session.flush()
        logger.info(f"Annotation {annotation_id} deleted from prototype {prototype_id}")
