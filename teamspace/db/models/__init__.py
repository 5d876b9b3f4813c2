"""SQLModel table definitions.

This module exports all SQLModel table classes and domain types.
All primary keys use UUID for security and scalability.

Model Categories:
- Identity: User
- Tenancy: Workspace, WorkspaceMember, WorkspaceInvite, Role
- Projects: Project, ProjectMember, ProjectVisibility, ProjectAccess
- Delivery: Notification, NotificationType, NotificationStatus, EmailTemplate
"""

# Base classes
from teamspace.db.models.base import UUIDModel, TimestampMixin, VersionedMixin, utcnow

# Identity
from teamspace.db.models.user import User, UserCreate

# Tenancy
from teamspace.db.models.membership import (
    Role,
    WorkspaceMember,
    WorkspaceInvite,
)
from teamspace.db.models.workspace import Workspace

# Projects
from teamspace.db.models.project import (
    Project,
    ProjectMember,
    ProjectVisibility,
    ProjectAccess,
    PublicAccess,
    PrivateAccess,
    EffectiveMember,
)

# Delivery
from teamspace.db.models.notification import (
    Notification,
    NotificationType,
    NotificationStatus,
    EmailTemplate,
)

__all__ = [
    "UUIDModel",
    "TimestampMixin",
    "VersionedMixin",
    "utcnow",
    "User",
    "UserCreate",
    "Role",
    "WorkspaceMember",
    "WorkspaceInvite",
    "Workspace",
    "Project",
    "ProjectMember",
    "ProjectVisibility",
    "ProjectAccess",
    "PublicAccess",
    "PrivateAccess",
    "EffectiveMember",
    "Notification",
    "NotificationType",
    "NotificationStatus",
    "EmailTemplate",
]
