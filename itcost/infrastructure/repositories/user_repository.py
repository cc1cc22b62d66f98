"""
User Repository - Data access for profiles and role assignments.
"""
from typing import List, Optional
from sqlalchemy import func
from sqlalchemy.orm import Session

from itcost.models import Profile, UserRole
from .base_repository import BaseRepository


class UserRepository(BaseRepository[Profile]):
    """Repository for Profile entities and their single role row."""

    def __init__(self, session: Session):
        super().__init__(session, Profile)

    def get_by_email(self, email: str) -> Optional[Profile]:
        """Case-insensitive email lookup."""
        return self.session.query(Profile).filter(
            func.lower(Profile.email) == email.strip().lower()
        ).first()

    def list_users(self) -> List[Profile]:
        return self.session.query(Profile).order_by(Profile.email).all()

    def set_role(self, user: Profile, role: str) -> UserRole:
        """Replace the user's role assignment (one role row per user)."""
        if user.role is not None:
            user.role.role = role
            return user.role
        user_role = UserRole(role=role)
        user.role = user_role
        self.session.add(user_role)
        return user_role
