"""User model.

Users are owned by the identity layer. Everything else references them
by id only.
"""

from typing import Optional

from sqlmodel import Field, SQLModel

from teamspace.db.models.base import UUIDModel, TimestampMixin


class UserBase(SQLModel):
    """Base user fields shared across Create/Read."""

    full_name: Optional[str] = Field(default=None, index=True)
    email: str = Field(unique=True, index=True)

    @property
    def name(self) -> Optional[str]:
        """Alias for full_name."""
        return self.full_name


class User(UUIDModel, UserBase, TimestampMixin, table=True):
    """User table - global identity."""

    __tablename__ = "users"

    # Subject id issued by the external identity provider (e.g. user_xxx)
    external_id: Optional[str] = Field(default=None, unique=True, index=True)
    is_active: bool = Field(default=True)


class UserCreate(UserBase):
    """Schema for creating a new user."""

    external_id: Optional[str] = None
