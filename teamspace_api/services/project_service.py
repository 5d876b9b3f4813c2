"""Project membership resolution.

A PUBLIC project inherits its members from the owning workspace; a
PRIVATE project has its own roster. Which one applies is decided once,
by ``ProjectRepository.get_access``, and everything here branches on the
returned variant. A PUBLIC project's stored roster is never read.
"""

from typing import Optional
from uuid import UUID

from sqlmodel import Session

from teamspace import roles
from teamspace.db.models import (
    EffectiveMember,
    PrivateAccess,
    Project,
    ProjectAccess,
    ProjectMember,
    ProjectVisibility,
    PublicAccess,
    Role,
    Workspace,
)
from teamspace.logging import get_logger
from teamspace.repositories import ProjectRepository, WorkspaceRepository
from teamspace_api.exceptions import (
    ConflictError,
    ForbiddenOperationError,
    NotFoundError,
    ValidationError,
    storage_errors,
)
from teamspace_api.services.slugs import generate_slug, validate_name, validate_slug

logger = get_logger(__name__)

PUBLIC_ROSTER_MESSAGE = "Public projects inherit membership automatically"


class ProjectService:
    """Service for projects and their effective membership."""

    # ==========================================================================
    # Projects
    # ==========================================================================

    def create_project(
        self,
        session: Session,
        workspace_id: UUID,
        name: str,
        created_by: UUID,
        visibility: ProjectVisibility = ProjectVisibility.PUBLIC,
        slug: Optional[str] = None,
        description: Optional[str] = None,
    ) -> Project:
        """Create a project in a workspace.

        A generated slug gets a numeric suffix (-2, -3, ...) until it is
        unique within the workspace; an explicit slug must be free. A
        PRIVATE project starts with its creator on the roster.

        Raises:
            ValidationError: If the name is blank or the slug malformed
            NotFoundError: If the workspace does not exist
            ForbiddenOperationError: If the creator is below editor
            ConflictError: If an explicit slug is taken
        """
        name = validate_name(name)
        visibility = ProjectVisibility(visibility)
        workspace = self._require_workspace(session, workspace_id)

        creator_role = roles.effective_role(workspace, created_by)
        if not roles.at_least(creator_role, Role.editor):
            raise ForbiddenOperationError("Only editors and above can create projects")

        repo = ProjectRepository(session)
        if slug:
            slug = validate_slug(slug)
            if repo.get_by_slug(workspace_id, slug):
                raise ConflictError("Project slug already taken", details={"slug": slug})
        else:
            slug = self._unique_slug(repo, workspace_id, generate_slug(name, fallback="project"))

        project = Project(
            workspace_id=workspace_id,
            name=name,
            slug=slug,
            description=description,
            visibility=visibility,
            created_by=created_by,
        )
        roster = None
        if visibility == ProjectVisibility.PRIVATE:
            seed_role = Role.owner if creator_role == Role.owner else Role.admin
            roster = [ProjectMember(user_id=created_by, role=seed_role, added_by=created_by)]

        with storage_errors(session, "Project slug already taken"):
            project = repo.create(project, initial_roster=roster)

        logger.info(
            "project_created",
            project_id=str(project.id),
            workspace_id=str(workspace_id),
            visibility=visibility.value,
        )
        return project

    def get_project(self, session: Session, project_id: UUID) -> Optional[Project]:
        return ProjectRepository(session).get(project_id)

    def list_workspace_projects(self, session: Session, workspace_id: UUID) -> list[Project]:
        return ProjectRepository(session).list_by_workspace(workspace_id)

    def set_visibility(
        self,
        session: Session,
        project_id: UUID,
        new_visibility: ProjectVisibility,
    ) -> Project:
        """Switch between PUBLIC and PRIVATE.

        Going PRIVATE starts with an empty roster that must be populated
        explicitly; going PUBLIC discards the stored roster. Setting the
        current visibility again changes nothing.

        Raises:
            NotFoundError: If the project does not exist
            ConflictError: If the project changed concurrently
        """
        project = self._require_project(session, project_id)
        new_visibility = ProjectVisibility(new_visibility)
        if project.visibility == new_visibility:
            return project

        old_visibility = project.visibility
        with storage_errors(session):
            changed = ProjectRepository(session).set_visibility(project, new_visibility)
        if not changed:
            raise ConflictError("Project was modified concurrently")

        logger.info(
            "project_visibility_changed",
            project_id=str(project_id),
            old_visibility=old_visibility.value,
            new_visibility=new_visibility.value,
        )
        return project

    # ==========================================================================
    # Effective membership
    # ==========================================================================

    def get_access(self, session: Session, project_id: UUID) -> ProjectAccess:
        project = self._require_project(session, project_id)
        return ProjectRepository(session).get_access(project)

    def get_effective_members(self, session: Session, project_id: UUID) -> list[EffectiveMember]:
        """Users authorized on a project after resolving visibility.

        PRIVATE: the stored roster, as stored.
        PUBLIC: the workspace owner (as owner) plus every workspace member,
        one entry per user, owner first.
        """
        access = self.get_access(session, project_id)
        if isinstance(access, PrivateAccess):
            return [
                EffectiveMember(
                    user_id=member.user_id,
                    role=member.role,
                    added_at=member.added_at,
                    added_by=member.added_by,
                )
                for member in access.roster
            ]

        workspace = self._require_workspace(session, access.workspace_id)
        members = [
            EffectiveMember(
                user_id=workspace.owner_id,
                role=Role.owner,
                added_at=workspace.created_at,
                added_by=workspace.owner_id,
                inherited=True,
            )
        ]
        seen = {workspace.owner_id}
        for member in workspace.members:
            if member.user_id in seen:
                continue
            seen.add(member.user_id)
            members.append(
                EffectiveMember(
                    user_id=member.user_id,
                    role=member.role,
                    added_at=member.joined_at,
                    added_by=member.invited_by,
                    inherited=True,
                )
            )
        return members

    def get_effective_role(
        self, session: Session, project_id: UUID, user_id: UUID
    ) -> Optional[Role]:
        """Role a user holds on a project, or None."""
        access = self.get_access(session, project_id)
        if isinstance(access, PublicAccess):
            workspace = self._require_workspace(session, access.workspace_id)
            return roles.effective_role(workspace, user_id)
        for member in access.roster:
            if member.user_id == user_id:
                return member.role
        return None

    def can_access(self, session: Session, project_id: UUID, user_id: UUID) -> bool:
        return self.get_effective_role(session, project_id, user_id) is not None

    # ==========================================================================
    # Private roster
    # ==========================================================================

    def add_member_to_project(
        self,
        session: Session,
        project_id: UUID,
        user_id: UUID,
        role: Role,
        added_by: UUID,
    ) -> ProjectMember:
        """Add a user to a PRIVATE project's roster.

        Raises:
            NotFoundError: If the project does not exist
            ValidationError: If the project is PUBLIC or the user is not
                in the workspace
            ConflictError: If the user is already on the roster
        """
        project, access = self._require_private(session, project_id)
        workspace = self._require_workspace(session, project.workspace_id)
        if roles.effective_role(workspace, user_id) is None:
            raise ValidationError("User must belong to the workspace first")
        if any(member.user_id == user_id for member in access.roster):
            raise ConflictError("User is already a member of this project")

        with storage_errors(session, "User is already a member of this project"):
            member = ProjectRepository(session).add_member(
                access, project, user_id, Role(role), added_by
            )

        logger.info(
            "project_member_added",
            project_id=str(project_id),
            user_id=str(user_id),
            role=Role(role).value,
        )
        return member

    def remove_member_from_project(
        self, session: Session, project_id: UUID, user_id: UUID
    ) -> None:
        """Remove a user from a PRIVATE project's roster.

        Raises:
            NotFoundError: If the project or roster entry does not exist
            ValidationError: If the project is PUBLIC
        """
        project, access = self._require_private(session, project_id)
        member = self._roster_entry(access, user_id)
        with storage_errors(session):
            ProjectRepository(session).remove_member(access, project, member)
        logger.info("project_member_removed", project_id=str(project_id), user_id=str(user_id))

    def update_project_member_role(
        self,
        session: Session,
        project_id: UUID,
        user_id: UUID,
        role: Role,
    ) -> ProjectMember:
        """Change a roster entry's role on a PRIVATE project.

        Raises:
            NotFoundError: If the project or roster entry does not exist
            ValidationError: If the project is PUBLIC
        """
        project, access = self._require_private(session, project_id)
        member = self._roster_entry(access, user_id)
        with storage_errors(session):
            member = ProjectRepository(session).update_member_role(
                access, project, member, Role(role)
            )
        logger.info(
            "project_member_role_changed",
            project_id=str(project_id),
            user_id=str(user_id),
            role=member.role.value,
        )
        return member

    # ==========================================================================
    # Internals
    # ==========================================================================

    def _unique_slug(self, repo: ProjectRepository, workspace_id: UUID, base: str) -> str:
        slug = base
        suffix = 2
        while repo.get_by_slug(workspace_id, slug):
            slug = f"{base}-{suffix}"
            suffix += 1
        return slug

    def _require_private(self, session: Session, project_id: UUID) -> tuple[Project, PrivateAccess]:
        project = self._require_project(session, project_id)
        access = ProjectRepository(session).get_access(project)
        if not isinstance(access, PrivateAccess):
            raise ValidationError(PUBLIC_ROSTER_MESSAGE)
        return project, access

    def _roster_entry(self, access: PrivateAccess, user_id: UUID) -> ProjectMember:
        for member in access.roster:
            if member.user_id == user_id:
                return member
        raise NotFoundError("Project member not found")

    def _require_project(self, session: Session, project_id: UUID) -> Project:
        project = ProjectRepository(session).get(project_id)
        if project is None:
            raise NotFoundError("Project not found")
        return project

    def _require_workspace(self, session: Session, workspace_id: UUID) -> Workspace:
        workspace = WorkspaceRepository(session).get(workspace_id)
        if workspace is None:
            raise NotFoundError("Workspace not found")
        return workspace
