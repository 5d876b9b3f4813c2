"""Repositories over the teamspace tables.

Each repository wraps a caller-owned Session. Finders return None on a
miss rather than raising.
"""

from teamspace.repositories.user_repository import UserRepository
from teamspace.repositories.workspace_repository import (
    WorkspaceRepository,
    WorkspaceMemberRepository,
    WorkspaceInviteRepository,
)
from teamspace.repositories.project_repository import ProjectRepository
from teamspace.repositories.notification_repository import NotificationRepository

__all__ = [
    "UserRepository",
    "WorkspaceRepository",
    "WorkspaceMemberRepository",
    "WorkspaceInviteRepository",
    "ProjectRepository",
    "NotificationRepository",
]
