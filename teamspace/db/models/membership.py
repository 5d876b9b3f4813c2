"""Workspace membership and invitation models.

The workspace owner is implicit: it is identified by ``Workspace.owner_id``
and never has a WorkspaceMember row. Use ``teamspace.roles.effective_role``
instead of reading the roster directly when deciding what a user may do.
"""

from datetime import datetime
from enum import Enum
from typing import TYPE_CHECKING, Optional
from uuid import UUID

from sqlalchemy import Index, UniqueConstraint, text
from sqlmodel import Field, Relationship

from teamspace.db.custom_types import UTCDateTime
from teamspace.db.models.base import UUIDModel, VersionedMixin, utcnow

if TYPE_CHECKING:
    from teamspace.db.models.workspace import Workspace


class Role(str, Enum):
    """Role enum shared by workspaces and private projects.

    Totally ordered by privilege (see teamspace.roles.rank):
    - owner: the single workspace owner, all permissions
    - admin: manage members and invites
    - editor: create and edit projects
    - viewer: read-only access
    """

    owner = "owner"
    admin = "admin"
    editor = "editor"
    viewer = "viewer"


class WorkspaceMember(UUIDModel, table=True):
    """Explicit workspace roster entry (never the owner)."""

    __tablename__ = "workspace_members"
    __table_args__ = (
        UniqueConstraint("workspace_id", "user_id", name="uq_workspace_member_user"),
    )

    workspace_id: UUID = Field(foreign_key="workspaces.id", index=True)
    user_id: UUID = Field(foreign_key="users.id", index=True)
    role: Role = Field(default=Role.viewer)
    invited_by: Optional[UUID] = Field(default=None)
    invited_at: Optional[datetime] = Field(default=None, sa_type=UTCDateTime)
    joined_at: datetime = Field(default_factory=utcnow, nullable=False, sa_type=UTCDateTime)

    workspace: Optional["Workspace"] = Relationship(back_populates="members")


class WorkspaceInvite(UUIDModel, VersionedMixin, table=True):
    """Single-use, time-limited invitation for one email address.

    Immutable once created except for the accepted* fields, which are
    written exactly once by a version-checked update.
    """

    __tablename__ = "workspace_invites"
    __table_args__ = (
        # At most one unaccepted invite per (workspace, email). Expired rows
        # are deleted before a replacement invite is inserted.
        Index(
            "uq_workspace_invite_open_email",
            "workspace_id",
            "email",
            unique=True,
            postgresql_where=text("NOT accepted"),
            sqlite_where=text("accepted = 0"),
        ),
    )

    workspace_id: UUID = Field(foreign_key="workspaces.id", index=True)
    email: str = Field(index=True)
    role: Role = Field(default=Role.viewer)
    invited_by: UUID = Field(foreign_key="users.id")
    token: str = Field(unique=True, index=True)
    expires_at: datetime = Field(nullable=False, sa_type=UTCDateTime)
    created_at: datetime = Field(default_factory=utcnow, nullable=False, sa_type=UTCDateTime)

    accepted: bool = Field(default=False, nullable=False)
    accepted_at: Optional[datetime] = Field(default=None, sa_type=UTCDateTime)
    accepted_by: Optional[UUID] = Field(default=None)

    # Notification that carried the invitation email, if any
    notification_id: Optional[UUID] = Field(default=None)

    workspace: Optional["Workspace"] = Relationship(back_populates="invites")

    def is_expired(self, now: Optional[datetime] = None) -> bool:
        """True once the TTL has passed."""
        return (now or utcnow()) > self.expires_at

    def is_live(self, now: Optional[datetime] = None) -> bool:
        """True while the invite can still be accepted."""
        return not self.accepted and not self.is_expired(now)
