"""Prospect feedback on prototypes."""

import logging
from typing import Dict, List, Optional, Tuple
from uuid import UUID

from sqlalchemy import func
from sqlalchemy.orm import Session

from ..constants import DEFAULT_FEEDBACK_CATEGORY, FEEDBACK_CATEGORIES, MAX_FEEDBACK_LENGTH
from ..db.models import Feedback
from ..exceptions import NotFoundError, ValidationError
from ..utils import isoformat, normalize_email, parse_uuid

logger = logging.getLogger(__name__)


def validate_feedback(
    comment: Optional[str],
    rating: Optional[int],
    category: Optional[str],
) -> Tuple[str, Optional[int], str]:
    """Return the cleaned (comment, rating, category) or raise ValidationError."""
    comment = (comment or "").strip()
    if not comment:
        raise ValidationError("Comment is required")
    if len(comment) > MAX_FEEDBACK_LENGTH:
        raise ValidationError(f"Comment must be at most {MAX_FEEDBACK_LENGTH} characters")

    if rating is not None and not 1 <= rating <= 5:
        raise ValidationError("Rating must be between 1 and 5")

    category = category or DEFAULT_FEEDBACK_CATEGORY
    if category not in FEEDBACK_CATEGORIES:
        raise ValidationError(f"Category must be one of: {', '.join(FEEDBACK_CATEGORIES)}")

    return comment, rating, category


def feedback_to_dict(feedback: Feedback) -> Dict:
    return {
        "id": str(feedback.feedback_id),
        "prototype_id": str(feedback.prototype_id),
        "user_id": str(feedback.user_id) if feedback.user_id else None,
        "magic_link_id": str(feedback.magic_link_id) if feedback.magic_link_id else None,
        "comment": feedback.comment,
        "rating": feedback.rating,
        "category": feedback.category,
        "reviewer_name": feedback.reviewer_name,
        "reviewer_email": feedback.reviewer_email,
        "created_at": isoformat(feedback.created_at),
    }


def feedback_summary(session: Session, prototype_id: UUID) -> Dict:
    """Feedback count and average rating (None when nothing is rated)."""
    count, average = session.query(
        func.count(Feedback.feedback_id), func.avg(Feedback.rating)
    ).filter(Feedback.prototype_id == prototype_id).one()
    return {
        "count": count or 0,
        "average_rating": round(float(average), 2) if average is not None else None,
    }


class FeedbackService:
    """Feedback CRUD on a caller-provided session."""

    def __init__(self, db_session: Session):
        self._session = db_session

    def create(
        self,
        prototype_id: UUID,
        comment: Optional[str],
        rating: Optional[int] = None,
        category: Optional[str] = None,
        user_id: Optional[UUID] = None,
        magic_link_id: Optional[UUID] = None,
        reviewer_name: Optional[str] = None,
        reviewer_email: Optional[str] = None,
    ) -> Feedback:
        comment, rating, category = validate_feedback(comment, rating, category)
        feedback = Feedback(
            prototype_id=prototype_id,
            user_id=user_id,
            magic_link_id=magic_link_id,
            comment=comment,
            rating=rating,
            category=category,
            reviewer_name=(reviewer_name or "").strip() or None,
            reviewer_email=normalize_email(reviewer_email),
        )
        self._session.add(feedback)
        self._session.flush()
        logger.info(f"Feedback {feedback.feedback_id} added to prototype {prototype_id}")
        return feedback

    def list_for_prototype(
        self,
        prototype_id: UUID,
        user_id: Optional[UUID] = None,
        limit: Optional[int] = None,
    ) -> List[Feedback]:
        q = self._session.query(Feedback).filter(Feedback.prototype_id == prototype_id)
        if user_id is not None:
            q = q.filter(Feedback.user_id == user_id)
        q = q.order_by(Feedback.created_at.desc())
        if limit:
            q = q.limit(limit)
        return q.all()

    def counts_by_prototype(self, user_id: UUID) -> Dict[UUID, int]:
        rows = self._session.query(Feedback.prototype_id, func.count()).filter(
            Feedback.user_id == user_id
        ).group_by(Feedback.prototype_id).all()
        return dict(rows)

    def delete_own(self, feedback_id: str, user_id: UUID, prototype_id: Optional[UUID] = None) -> None:
        fid = parse_uuid(feedback_id, "Feedback")
        q = self._session.query(Feedback).filter(
            Feedback.feedback_id == fid,
            Feedback.user_id == user_id,
        )
        if prototype_id is not None:
            q = q.filter(Feedback.prototype_id == prototype_id)
        feedback = q.first()
        if not feedback:
            raise NotFoundError("Feedback not found")

        self._session.delete(feedback)
        self._session.flush()
        logger.info(f"Feedback {feedback_id} deleted by user {user_id}")
