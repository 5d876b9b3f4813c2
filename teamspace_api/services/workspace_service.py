"""Service for workspace management operations.

Provides workspace CRUD and the explicit member roster. The owner is
implicit (``Workspace.owner_id``) and is never written to the roster;
role checks go through ``teamspace.roles.effective_role``.
"""

from typing import Any, Optional
from uuid import UUID

from sqlmodel import Session

from teamspace import roles
from teamspace.db.models import Role, Workspace, utcnow
from teamspace.logging import get_logger
from teamspace.repositories import (
    WorkspaceInviteRepository,
    WorkspaceMemberRepository,
    WorkspaceRepository,
)
from teamspace_api.exceptions import (
    ConflictError,
    ForbiddenOperationError,
    NotFoundError,
    ValidationError,
    storage_errors,
)
from teamspace_api.schemas import MemberStats
from teamspace_api.services.slugs import generate_slug, validate_name, validate_slug

logger = get_logger(__name__)


class WorkspaceService:
    """Service for workspace management.

    Every method takes the caller's Session and commits its own unit of
    work.
    """

    # ==========================================================================
    # Workspaces
    # ==========================================================================

    def create_workspace(
        self,
        session: Session,
        name: str,
        owner_id: UUID,
        slug: Optional[str] = None,
        description: Optional[str] = None,
        settings: Optional[dict[str, Any]] = None,
    ) -> Workspace:
        """Create a new workspace owned by ``owner_id``.

        No roster row is written for the owner.

        Args:
            session: Database session
            name: Workspace display name
            owner_id: User ID of the workspace owner
            slug: URL-safe identifier (generated from name if not provided)
            description: Optional workspace description
            settings: Optional settings blob

        Returns:
            Created Workspace

        Raises:
            ValidationError: If the name is blank or the slug malformed
            ConflictError: If the slug is already taken
        """
        name = validate_name(name)
        slug = validate_slug(slug) if slug else generate_slug(name)

        repo = WorkspaceRepository(session)
        if repo.get_by_slug(slug):
            raise ConflictError("Workspace slug already taken", details={"slug": slug})

        workspace = Workspace(
            name=name,
            slug=slug,
            description=description,
            owner_id=owner_id,
            settings=settings,
        )
        with storage_errors(session, "Workspace slug already taken"):
            workspace = repo.create(workspace)

        logger.info(
            "workspace_created",
            workspace_id=str(workspace.id),
            owner_id=str(owner_id),
            slug=slug,
        )
        return workspace

    def get_workspace(self, session: Session, workspace_id: UUID) -> Optional[Workspace]:
        return WorkspaceRepository(session).get(workspace_id)

    def get_workspace_by_slug(self, session: Session, slug: str) -> Optional[Workspace]:
        return WorkspaceRepository(session).get_by_slug(slug)

    def list_user_workspaces(self, session: Session, user_id: UUID) -> list[Workspace]:
        """Workspaces the user owns or belongs to."""
        return WorkspaceRepository(session).list_by_user(user_id)

    def is_slug_available(self, session: Session, slug: str) -> bool:
        return WorkspaceRepository(session).get_by_slug(slug) is None

    def update_workspace(
        self,
        session: Session,
        workspace_id: UUID,
        name: Optional[str] = None,
        description: Optional[str] = None,
        settings: Optional[dict[str, Any]] = None,
    ) -> Workspace:
        """Update mutable workspace fields. ``owner_id`` and slug never change.

        Raises:
            NotFoundError: If the workspace does not exist
            ValidationError: If the new name is blank
        """
        self._require_workspace(session, workspace_id)
        updates: dict[str, Any] = {}
        if name is not None:
            updates["name"] = validate_name(name)
        if description is not None:
            updates["description"] = description
        if settings is not None:
            updates["settings"] = settings

        with storage_errors(session):
            return WorkspaceRepository(session).update(workspace_id, **updates)

    # ==========================================================================
    # Roster
    # ==========================================================================

    def add_member(
        self,
        session: Session,
        workspace_id: UUID,
        user_id: UUID,
        role: Role,
        invited_by: Optional[UUID] = None,
    ) -> Workspace:
        """Add a user to the roster directly.

        Raises:
            NotFoundError: If the workspace does not exist
            ValidationError: If role is owner
            ConflictError: If the user is the owner or already a member
        """
        workspace = self._require_workspace(session, workspace_id)
        role = Role(role)
        if role == Role.owner:
            raise ValidationError("The owner role cannot be granted")
        if roles.effective_role(workspace, user_id) is not None:
            raise ConflictError("User is already a member of this workspace")

        with storage_errors(session, "User is already a member of this workspace"):
            WorkspaceMemberRepository(session).add(
                workspace_id,
                user_id,
                role,
                invited_by=invited_by,
                invited_at=utcnow() if invited_by else None,
            )

        logger.info(
            "member_added",
            workspace_id=str(workspace_id),
            user_id=str(user_id),
            role=role.value,
        )
        session.refresh(workspace)
        return workspace

    def remove_member(self, session: Session, workspace_id: UUID, user_id: UUID) -> Workspace:
        """Remove a user from the roster.

        Removing a user who is not a member succeeds without changes.

        Raises:
            NotFoundError: If the workspace does not exist
            ForbiddenOperationError: If the user is the owner
        """
        workspace = self._require_workspace(session, workspace_id)
        if workspace.owner_id == user_id:
            raise ForbiddenOperationError("The workspace owner cannot be removed")

        member_repo = WorkspaceMemberRepository(session)
        member = member_repo.get_by_workspace_and_user(workspace_id, user_id)
        if member is None:
            return workspace

        with storage_errors(session):
            member_repo.delete(member)

        logger.info("member_removed", workspace_id=str(workspace_id), user_id=str(user_id))
        session.refresh(workspace)
        return workspace

    def change_member_role(
        self,
        session: Session,
        workspace_id: UUID,
        user_id: UUID,
        new_role: Role,
    ) -> Workspace:
        """Change a member's role.

        Raises:
            NotFoundError: If the workspace or member does not exist
            ForbiddenOperationError: If the user is the owner
            ValidationError: If new_role is owner
        """
        workspace = self._require_workspace(session, workspace_id)
        if workspace.owner_id == user_id:
            raise ForbiddenOperationError("The workspace owner's role cannot be changed")
        new_role = Role(new_role)
        if new_role == Role.owner:
            raise ValidationError("The owner role cannot be granted")

        member_repo = WorkspaceMemberRepository(session)
        member = member_repo.get_by_workspace_and_user(workspace_id, user_id)
        if member is None:
            raise NotFoundError("Member not found")

        if member.role != new_role:
            old_role = member.role
            with storage_errors(session):
                member_repo.update_role(member, new_role)
            logger.info(
                "member_role_changed",
                workspace_id=str(workspace_id),
                user_id=str(user_id),
                old_role=old_role.value,
                new_role=new_role.value,
            )

        session.refresh(workspace)
        return workspace

    def get_member_role(
        self, session: Session, workspace_id: UUID, user_id: UUID
    ) -> Optional[Role]:
        """Effective role of a user, or None if they have no access."""
        workspace = WorkspaceRepository(session).get(workspace_id)
        if workspace is None:
            return None
        return roles.effective_role(workspace, user_id)

    def require_role(
        self,
        session: Session,
        workspace_id: UUID,
        user_id: UUID,
        threshold: Role,
    ) -> Role:
        """Return the user's role if it is at least ``threshold``.

        Raises:
            NotFoundError: If the workspace does not exist
            ForbiddenOperationError: If the user's role is insufficient
        """
        workspace = self._require_workspace(session, workspace_id)
        role = roles.effective_role(workspace, user_id)
        if not roles.at_least(role, threshold):
            raise ForbiddenOperationError(
                f"Requires {Role(threshold).value} role or higher",
                details={"required_role": Role(threshold).value},
            )
        return role

    def get_member_stats(self, session: Session, workspace_id: UUID) -> MemberStats:
        """Roster counts with the owner counted once."""
        self._require_workspace(session, workspace_id)
        by_role = {role: 0 for role in Role}
        by_role[Role.owner] = 1
        for role, count in WorkspaceMemberRepository(session).count_by_role(workspace_id).items():
            by_role[role] += count
        pending = WorkspaceInviteRepository(session).count_pending(workspace_id, utcnow())
        return MemberStats(
            total=sum(by_role.values()),
            by_role=by_role,
            pending_invites=pending,
        )

    def _require_workspace(self, session: Session, workspace_id: UUID) -> Workspace:
        workspace = WorkspaceRepository(session).get(workspace_id)
        if workspace is None:
            raise NotFoundError("Workspace not found")
        return workspace
