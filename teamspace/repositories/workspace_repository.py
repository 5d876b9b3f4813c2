"""Repository classes for Workspace, WorkspaceMember and WorkspaceInvite.

Finders return None on a miss. Writes that must be atomic across rows
(accepting an invite) are single repository methods that commit once.
"""

from datetime import datetime
from typing import Optional
from uuid import UUID

from sqlalchemy import func, or_, update
from sqlmodel import Session, select

from teamspace.db.models import (
    Role,
    Workspace,
    WorkspaceInvite,
    WorkspaceMember,
    utcnow,
)


# =============================================================================
# Workspace Repository
# =============================================================================


class WorkspaceRepository:
    """Repository for Workspace operations."""

    def __init__(self, session: Session):
        self.session = session

    def create(self, workspace: Workspace) -> Workspace:
        """Persist a new workspace."""
        self.session.add(workspace)
        self.session.commit()
        self.session.refresh(workspace)
        return workspace

    def get(self, workspace_id: UUID) -> Optional[Workspace]:
        """Get a workspace by ID."""
        return self.session.get(Workspace, workspace_id)

    def get_by_slug(self, slug: str) -> Optional[Workspace]:
        """Get a workspace by slug."""
        statement = select(Workspace).where(Workspace.slug == slug)
        return self.session.exec(statement).first()

    def list_by_user(self, user_id: UUID) -> list[Workspace]:
        """List workspaces a user owns or is a member of."""
        member_of = select(WorkspaceMember.workspace_id).where(
            WorkspaceMember.user_id == user_id
        )
        statement = (
            select(Workspace)
            .where(
                or_(
                    Workspace.owner_id == user_id,
                    Workspace.id.in_(member_of),
                )
            )
            .order_by(Workspace.created_at)
        )
        return list(self.session.exec(statement).all())

    def update(self, workspace_id: UUID, **kwargs) -> Optional[Workspace]:
        """Update workspace fields."""
        workspace = self.get(workspace_id)
        if workspace:
            for key, value in kwargs.items():
                if hasattr(workspace, key):
                    setattr(workspace, key, value)
            workspace.updated_at = utcnow()
            workspace.version += 1
            self.session.add(workspace)
            self.session.commit()
            self.session.refresh(workspace)
        return workspace

    def touch(self, workspace_id: UUID) -> None:
        """Bump version and updated_at inside the current transaction."""
        self.session.execute(
            update(Workspace)
            .where(Workspace.id == workspace_id)
            .values(version=Workspace.version + 1, updated_at=utcnow())
            .execution_options(synchronize_session=False)
        )


# =============================================================================
# Workspace Member Repository
# =============================================================================


class WorkspaceMemberRepository:
    """Repository for the explicit workspace roster."""

    def __init__(self, session: Session):
        self.session = session

    def get_by_workspace_and_user(
        self, workspace_id: UUID, user_id: UUID
    ) -> Optional[WorkspaceMember]:
        """Get the roster entry for a specific workspace and user."""
        statement = select(WorkspaceMember).where(
            WorkspaceMember.workspace_id == workspace_id,
            WorkspaceMember.user_id == user_id,
        )
        return self.session.exec(statement).first()

    def list_by_workspace(self, workspace_id: UUID) -> list[WorkspaceMember]:
        """List roster entries, oldest first."""
        statement = (
            select(WorkspaceMember)
            .where(WorkspaceMember.workspace_id == workspace_id)
            .order_by(WorkspaceMember.joined_at)
        )
        return list(self.session.exec(statement).all())

    def add(
        self,
        workspace_id: UUID,
        user_id: UUID,
        role: Role,
        invited_by: Optional[UUID] = None,
        invited_at: Optional[datetime] = None,
    ) -> WorkspaceMember:
        """Append a roster entry and commit."""
        member = WorkspaceMember(
            workspace_id=workspace_id,
            user_id=user_id,
            role=role,
            invited_by=invited_by,
            invited_at=invited_at,
        )
        self.session.add(member)
        WorkspaceRepository(self.session).touch(workspace_id)
        self.session.commit()
        self.session.refresh(member)
        return member

    def update_role(self, member: WorkspaceMember, role: Role) -> WorkspaceMember:
        """Change a member's role."""
        member.role = role
        self.session.add(member)
        WorkspaceRepository(self.session).touch(member.workspace_id)
        self.session.commit()
        self.session.refresh(member)
        return member

    def delete(self, member: WorkspaceMember) -> None:
        """Remove a roster entry."""
        workspace_id = member.workspace_id
        self.session.delete(member)
        WorkspaceRepository(self.session).touch(workspace_id)
        self.session.commit()

    def count_by_role(self, workspace_id: UUID) -> dict[Role, int]:
        """Roster size per role (the owner is not included)."""
        statement = (
            select(WorkspaceMember.role, func.count())
            .where(WorkspaceMember.workspace_id == workspace_id)
            .group_by(WorkspaceMember.role)
        )
        return {Role(role): count for role, count in self.session.exec(statement).all()}


# =============================================================================
# Workspace Invite Repository
# =============================================================================


class WorkspaceInviteRepository:
    """Repository for WorkspaceInvite operations."""

    def __init__(self, session: Session):
        self.session = session

    def create(self, invite: WorkspaceInvite) -> WorkspaceInvite:
        """Persist a new invite."""
        self.session.add(invite)
        self.session.commit()
        self.session.refresh(invite)
        return invite

    def get(self, invite_id: UUID) -> Optional[WorkspaceInvite]:
        return self.session.get(WorkspaceInvite, invite_id)

    def get_by_token(
        self, workspace_id: UUID, token: str
    ) -> Optional[WorkspaceInvite]:
        """Find an invite by token, scoped to its workspace."""
        statement = select(WorkspaceInvite).where(
            WorkspaceInvite.workspace_id == workspace_id,
            WorkspaceInvite.token == token,
        )
        return self.session.exec(statement).first()

    def get_open_by_email(
        self, workspace_id: UUID, email: str
    ) -> Optional[WorkspaceInvite]:
        """Find the unaccepted invite for an email, expired or not."""
        statement = select(WorkspaceInvite).where(
            WorkspaceInvite.workspace_id == workspace_id,
            WorkspaceInvite.email == email,
            WorkspaceInvite.accepted == False,  # noqa: E712
        )
        return self.session.exec(statement).first()

    def list_by_workspace(self, workspace_id: UUID) -> list[WorkspaceInvite]:
        statement = (
            select(WorkspaceInvite)
            .where(WorkspaceInvite.workspace_id == workspace_id)
            .order_by(WorkspaceInvite.created_at)
        )
        return list(self.session.exec(statement).all())

    def list_pending_by_email(self, email: str, now: datetime) -> list[WorkspaceInvite]:
        """List live invites addressed to an email across all workspaces."""
        statement = (
            select(WorkspaceInvite)
            .where(
                WorkspaceInvite.email == email,
                WorkspaceInvite.accepted == False,  # noqa: E712
                WorkspaceInvite.expires_at >= now,
            )
            .order_by(WorkspaceInvite.created_at)
        )
        return list(self.session.exec(statement).all())

    def count_pending(self, workspace_id: UUID, now: datetime) -> int:
        statement = select(func.count()).select_from(WorkspaceInvite).where(
            WorkspaceInvite.workspace_id == workspace_id,
            WorkspaceInvite.accepted == False,  # noqa: E712
            WorkspaceInvite.expires_at >= now,
        )
        return self.session.exec(statement).one()

    def delete(self, invite: WorkspaceInvite, commit: bool = True) -> None:
        self.session.delete(invite)
        if commit:
            self.session.commit()

    def set_notification(self, invite: WorkspaceInvite, notification_id: UUID) -> None:
        """Record which notification carried the invitation email."""
        invite.notification_id = notification_id
        self.session.add(invite)
        self.session.commit()

    def accept(
        self,
        invite: WorkspaceInvite,
        user_id: UUID,
        now: Optional[datetime] = None,
    ) -> bool:
        """Mark the invite accepted and add the member in one transaction.

        The invite update is conditional on the version the caller read
        and on ``accepted`` still being false. Returns False (and writes
        nothing) if another transaction got there first. Constraint
        violations on the member insert roll back both writes and
        propagate.
        """
        now = now or utcnow()
        workspace_id = invite.workspace_id
        result = self.session.execute(
            update(WorkspaceInvite)
            .where(
                WorkspaceInvite.id == invite.id,
                WorkspaceInvite.version == invite.version,
                WorkspaceInvite.accepted == False,  # noqa: E712
            )
            .values(
                accepted=True,
                accepted_at=now,
                accepted_by=user_id,
                version=WorkspaceInvite.version + 1,
            )
            .execution_options(synchronize_session=False)
        )
        if result.rowcount != 1:
            self.session.rollback()
            return False

        try:
            self.session.add(
                WorkspaceMember(
                    workspace_id=workspace_id,
                    user_id=user_id,
                    role=invite.role,
                    invited_by=invite.invited_by,
                    invited_at=invite.created_at,
                    joined_at=now,
                )
            )
            WorkspaceRepository(self.session).touch(workspace_id)
            self.session.commit()
        except Exception:
            self.session.rollback()
            raise
        return True
