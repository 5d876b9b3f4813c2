"""Workspace model for multi-tenancy.

Workspaces are the top-level tenant. Each has exactly one owner
(``owner_id``, immutable) plus an explicit roster of members and a list
of invitations (see membership.py).
"""

from typing import Any, Optional
from uuid import UUID

from sqlalchemy import JSON
from sqlmodel import Column, Field, Relationship, SQLModel

from teamspace.db.models.base import UUIDModel, TimestampMixin, VersionedMixin
from teamspace.db.models.membership import WorkspaceInvite, WorkspaceMember


class WorkspaceBase(SQLModel):
    """Base workspace fields shared across Create/Read."""

    name: str = Field(index=True)
    slug: str = Field(unique=True, index=True)
    description: Optional[str] = None


class Workspace(UUIDModel, WorkspaceBase, TimestampMixin, VersionedMixin, table=True):
    """Workspace table - the boundary of tenant isolation."""

    __tablename__ = "workspaces"

    # The single owner; never listed in members
    owner_id: UUID = Field(foreign_key="users.id", index=True)

    # Example: {"default_visibility": "private"}
    settings: Optional[dict[str, Any]] = Field(
        default=None,
        sa_column=Column(JSON, nullable=True),
    )

    members: list[WorkspaceMember] = Relationship(
        back_populates="workspace",
        sa_relationship_kwargs={
            "cascade": "all, delete-orphan",
            "order_by": "WorkspaceMember.joined_at",
        },
    )
    invites: list[WorkspaceInvite] = Relationship(
        back_populates="workspace",
        sa_relationship_kwargs={
            "cascade": "all, delete-orphan",
            "order_by": "WorkspaceInvite.created_at",
        },
    )

    def get_member(self, user_id: UUID) -> Optional[WorkspaceMember]:
        """Roster entry for a user, or None (always None for the owner)."""
        for member in self.members:
            if member.user_id == user_id:
                return member
        return None
