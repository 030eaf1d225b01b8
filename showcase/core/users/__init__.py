"""User administration."""

from .user_manager import UserManager, user_to_dict

__all__ = ["UserManager", "user_to_dict"]
