"""Repository for Project and its private roster.

The roster table is read only through ``get_access`` and only for
PRIVATE projects. A PUBLIC project may still have stale roster rows from
an earlier visibility state if a migration left them behind; they are
never returned.
"""

from typing import Optional
from uuid import UUID

from sqlalchemy import delete, update
from sqlmodel import Session, select

from teamspace.db.models import (
    PrivateAccess,
    Project,
    ProjectAccess,
    ProjectMember,
    ProjectVisibility,
    PublicAccess,
    Role,
    utcnow,
)


class ProjectRepository:
    """Repository for Project operations."""

    def __init__(self, session: Session):
        self.session = session

    def create(
        self,
        project: Project,
        initial_roster: Optional[list[ProjectMember]] = None,
    ) -> Project:
        """Persist a project and, for PRIVATE projects, its first roster rows."""
        self.session.add(project)
        if initial_roster and project.visibility == ProjectVisibility.PRIVATE:
            for member in initial_roster:
                member.project_id = project.id
                self.session.add(member)
        self.session.commit()
        self.session.refresh(project)
        return project

    def get(self, project_id: UUID) -> Optional[Project]:
        return self.session.get(Project, project_id)

    def get_by_slug(self, workspace_id: UUID, slug: str) -> Optional[Project]:
        statement = select(Project).where(
            Project.workspace_id == workspace_id,
            Project.slug == slug,
        )
        return self.session.exec(statement).first()

    def list_by_workspace(self, workspace_id: UUID) -> list[Project]:
        statement = (
            select(Project)
            .where(Project.workspace_id == workspace_id)
            .order_by(Project.created_at)
        )
        return list(self.session.exec(statement).all())

    # =========================================================================
    # Access
    # =========================================================================

    def get_access(self, project: Project) -> ProjectAccess:
        """Resolve the access variant for a project."""
        if project.visibility == ProjectVisibility.PUBLIC:
            return PublicAccess(workspace_id=project.workspace_id)
        statement = (
            select(ProjectMember)
            .where(ProjectMember.project_id == project.id)
            .order_by(ProjectMember.added_at)
        )
        return PrivateAccess(roster=list(self.session.exec(statement).all()))

    def add_member(
        self,
        access: PrivateAccess,
        project: Project,
        user_id: UUID,
        role: Role,
        added_by: UUID,
    ) -> ProjectMember:
        """Append to a private roster.

        Roster writes take the resolved PrivateAccess so a PUBLIC project
        cannot reach them.
        """
        member = ProjectMember(
            project_id=project.id,
            user_id=user_id,
            role=role,
            added_by=added_by,
        )
        self.session.add(member)
        self._touch(project)
        self.session.commit()
        self.session.refresh(member)
        return member

    def update_member_role(
        self, access: PrivateAccess, project: Project, member: ProjectMember, role: Role
    ) -> ProjectMember:
        member.role = role
        self.session.add(member)
        self._touch(project)
        self.session.commit()
        self.session.refresh(member)
        return member

    def remove_member(
        self, access: PrivateAccess, project: Project, member: ProjectMember
    ) -> None:
        self.session.delete(member)
        self._touch(project)
        self.session.commit()

    def set_visibility(self, project: Project, visibility: ProjectVisibility) -> bool:
        """Switch visibility, clearing the stored roster in the same transaction.

        Both directions start the new state with no stored roster: going
        PUBLIC discards it, going PRIVATE starts empty. Returns False if
        the project changed since it was read.
        """
        result = self.session.execute(
            update(Project)
            .where(Project.id == project.id, Project.version == project.version)
            .values(
                visibility=visibility,
                version=Project.version + 1,
                updated_at=utcnow(),
            )
            .execution_options(synchronize_session=False)
        )
        if result.rowcount != 1:
            self.session.rollback()
            return False
        self.session.execute(
            delete(ProjectMember)
            .where(ProjectMember.project_id == project.id)
            .execution_options(synchronize_session=False)
        )
        self.session.commit()
        self.session.refresh(project)
        return True

    def _touch(self, project: Project) -> None:
        project.version += 1
        project.updated_at = utcnow()
        self.session.add(project)
