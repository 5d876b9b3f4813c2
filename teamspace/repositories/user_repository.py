"""Repository for User records."""

from typing import Optional
from uuid import UUID

from sqlmodel import Session, select

from teamspace.db.models import User, UserCreate, utcnow


class UserRepository:
    """Repository for User operations."""

    def __init__(self, session: Session):
        self.session = session

    def create(self, data: UserCreate) -> User:
        """Create a new user."""
        user = User.model_validate(data)
        self.session.add(user)
        self.session.commit()
        self.session.refresh(user)
        return user

    def get(self, user_id: UUID) -> Optional[User]:
        return self.session.get(User, user_id)

    def get_by_email(self, email: str) -> Optional[User]:
        statement = select(User).where(User.email == email.strip().lower())
        return self.session.exec(statement).first()

    def get_by_external_id(self, external_id: str) -> Optional[User]:
        statement = select(User).where(User.external_id == external_id)
        return self.session.exec(statement).first()

    def update(self, user_id: UUID, **kwargs) -> Optional[User]:
        """Update user fields."""
        user = self.get(user_id)
        if user:
            for key, value in kwargs.items():
                if hasattr(user, key):
                    setattr(user, key, value)
            user.updated_at = utcnow()
            self.session.add(user)
            self.session.commit()
            self.session.refresh(user)
        return user
