"""Project models.

A project's access is either inherited from its workspace (PUBLIC) or
governed by its own roster (PRIVATE). The roster table is only
meaningful for PRIVATE projects, so callers never read it directly:
``ProjectRepository.get_access`` returns a ``ProjectAccess`` variant and
only the ``PrivateAccess`` branch carries a roster.
"""

from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from typing import Optional, Union
from uuid import UUID

from sqlalchemy import UniqueConstraint
from sqlmodel import Field, SQLModel

from teamspace.db.custom_types import UTCDateTime
from teamspace.db.models.base import (
    UUIDModel,
    TimestampMixin,
    VersionedMixin,
    utcnow,
)
from teamspace.db.models.membership import Role


class ProjectVisibility(str, Enum):
    """Visibility modes for projects."""

    PUBLIC = "public"
    PRIVATE = "private"


class ProjectBase(SQLModel):
    """Base project fields shared across Create/Read."""

    name: str = Field(index=True)
    slug: str = Field(index=True)
    description: Optional[str] = None
    visibility: ProjectVisibility = Field(default=ProjectVisibility.PUBLIC)


class Project(UUIDModel, ProjectBase, TimestampMixin, VersionedMixin, table=True):
    """Project table. Slugs are unique within a workspace."""

    __tablename__ = "projects"
    __table_args__ = (
        UniqueConstraint("workspace_id", "slug", name="uq_project_workspace_slug"),
    )

    workspace_id: UUID = Field(foreign_key="workspaces.id", index=True)
    created_by: UUID = Field(foreign_key="users.id")


class ProjectMember(UUIDModel, table=True):
    """Private project roster entry."""

    __tablename__ = "project_members"
    __table_args__ = (
        UniqueConstraint("project_id", "user_id", name="uq_project_member_user"),
    )

    project_id: UUID = Field(foreign_key="projects.id", index=True)
    user_id: UUID = Field(foreign_key="users.id", index=True)
    role: Role = Field(default=Role.viewer)
    added_at: datetime = Field(default_factory=utcnow, nullable=False, sa_type=UTCDateTime)
    added_by: UUID = Field(foreign_key="users.id")


# =============================================================================
# Access variant
# =============================================================================


@dataclass(frozen=True)
class PublicAccess:
    """Membership is inherited from the owning workspace."""

    workspace_id: UUID


@dataclass(frozen=True)
class PrivateAccess:
    """Membership is the project's own roster."""

    roster: list[ProjectMember] = field(default_factory=list)


ProjectAccess = Union[PublicAccess, PrivateAccess]


@dataclass(frozen=True)
class EffectiveMember:
    """A user authorized on a project after resolving inheritance."""

    user_id: UUID
    role: Role
    added_at: datetime
    added_by: Optional[UUID]
    inherited: bool = False
