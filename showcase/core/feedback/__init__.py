"""Prospect feedback."""

from .feedback_service import FeedbackService, feedback_summary, feedback_to_dict, validate_feedback

__all__ = [
    "FeedbackService",
    "feedback_summary",
    "feedback_to_dict",
    "validate_feedback",
]
