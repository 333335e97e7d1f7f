"""
Users module - portal users and roles.
"""

from kys_portal.modules.users.models import REVIEWER_ROLES, User, UserRole
from kys_portal.modules.users.repository import UserRepository

__all__ = ["User", "UserRole", "REVIEWER_ROLES", "UserRepository"]
