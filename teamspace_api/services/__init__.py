"""Teamspace services."""

from teamspace_api.services.identity_service import IdentityService
from teamspace_api.services.workspace_service import WorkspaceService
from teamspace_api.services.invite_service import InviteService
from teamspace_api.services.project_service import ProjectService
from teamspace_api.services.notification_service import NotificationService

__all__ = [
    "IdentityService",
    "WorkspaceService",
    "InviteService",
    "ProjectService",
    "NotificationService",
]
