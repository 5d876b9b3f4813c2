"""Service for workspace invitations.

Handles the invite lifecycle:
- Creating invites (create_invite, create_invites)
- Checking an invite before accepting it (validate_invite)
- Accepting invites (accept_invite)
- Revoking pending invites (revoke_invite)
- Re-sending the invitation email (resend_invite_email)

An invite is consumable at most once. Accepting it adds the roster row
and marks the invite accepted in a single version-checked transaction
(see WorkspaceInviteRepository.accept).
"""

import secrets
from datetime import timedelta
from typing import Optional
from uuid import UUID

from pydantic import EmailStr, TypeAdapter
from pydantic import ValidationError as PydanticValidationError
from sqlmodel import Session

from teamspace import config, roles
from teamspace.db.models import (
    EmailTemplate,
    Role,
    User,
    Workspace,
    WorkspaceInvite,
    utcnow,
)
from teamspace.logging import get_logger
from teamspace.repositories import (
    UserRepository,
    WorkspaceInviteRepository,
    WorkspaceRepository,
)
from teamspace_api.exceptions import (
    ConflictError,
    ExpiredError,
    ForbiddenOperationError,
    NotFoundError,
    TransportError,
    ValidationError,
    storage_errors,
)
from teamspace_api.schemas import BulkInviteResult, EmailMessage, InviteView
from teamspace_api.services.notification_service import NotificationService

logger = get_logger(__name__)

_email_adapter = TypeAdapter(EmailStr)


def normalize_email(email: str) -> str:
    """Lowercase and validate an email address.

    Raises:
        ValidationError: If the address is malformed
    """
    candidate = (email or "").strip().lower()
    try:
        return _email_adapter.validate_python(candidate).lower()
    except PydanticValidationError as e:
        raise ValidationError("Invalid email address", details={"email": email}) from e


def generate_invite_token() -> str:
    """256 bits of randomness, URL-safe."""
    return secrets.token_urlsafe(32)


def invite_url(workspace_id: UUID, token: str) -> str:
    return f"{config.APP_BASE_URL}/invite/workspace/{workspace_id}?token={token}"


class InviteService:
    """Service for managing workspace invitations."""

    def __init__(self, notification_service: Optional[NotificationService] = None):
        self._notification_service = notification_service

    @property
    def notifications(self) -> NotificationService:
        if self._notification_service is None:
            self._notification_service = NotificationService()
        return self._notification_service

    # ==========================================================================
    # Creating
    # ==========================================================================

    def create_invite(
        self,
        session: Session,
        workspace_id: UUID,
        email: str,
        role: Role,
        invited_by: UUID,
        send_email: bool = True,
    ) -> WorkspaceInvite:
        """Invite an email address to a workspace.

        Args:
            session: Database session
            workspace_id: Workspace to invite to
            email: Address of the invitee (normalized to lowercase)
            role: Role granted on acceptance (cannot be owner)
            invited_by: User sending the invite; must be admin or owner
            send_email: Deliver the invitation email after creating the invite

        Returns:
            Created WorkspaceInvite

        Raises:
            ValidationError: If the email is malformed or role is owner
            NotFoundError: If the workspace does not exist
            ForbiddenOperationError: If the inviter may not invite members
            ConflictError: If the email already belongs to a member or has
                a live invite
        """
        email = normalize_email(email)
        role = Role(role)
        if role == Role.owner:
            raise ValidationError("Cannot invite as owner")

        workspace = self._require_workspace(session, workspace_id)
        inviter_role = roles.effective_role(workspace, invited_by)
        if not roles.can_invite_members(inviter_role):
            raise ForbiddenOperationError("Only owners and admins can invite members")

        invite = self._create_one(session, workspace, email, role, invited_by)

        if send_email:
            inviter = UserRepository(session).get(invited_by)
            self._send_invite_email(session, workspace, invite, inviter)

        return invite

    def create_invites(
        self,
        session: Session,
        workspace_id: UUID,
        emails: list[str],
        role: Role,
        invited_by: UUID,
        send_email: bool = True,
    ) -> BulkInviteResult:
        """Invite several addresses at once.

        Addresses that are malformed, already members or already invited
        are reported in ``skipped`` instead of failing the whole batch.

        Raises:
            ValidationError: If role is owner
            NotFoundError: If the workspace does not exist
            ForbiddenOperationError: If the inviter may not invite members
        """
        role = Role(role)
        if role == Role.owner:
            raise ValidationError("Cannot invite as owner")

        workspace = self._require_workspace(session, workspace_id)
        if not roles.can_invite_members(roles.effective_role(workspace, invited_by)):
            raise ForbiddenOperationError("Only owners and admins can invite members")
        inviter = UserRepository(session).get(invited_by)

        result = BulkInviteResult()
        seen: set[str] = set()
        for raw_email in emails:
            try:
                email = normalize_email(raw_email)
                if email in seen:
                    raise ConflictError("Duplicate email in request")
                seen.add(email)
                invite = self._create_one(session, workspace, email, role, invited_by)
            except (ValidationError, ConflictError) as e:
                result.skipped.append({"email": raw_email, "reason": e.message})
                continue

            if send_email:
                self._send_invite_email(session, workspace, invite, inviter)
            result.created.append(invite)

        logger.info(
            "bulk_invites_created",
            workspace_id=str(workspace_id),
            created=len(result.created),
            skipped=len(result.skipped),
        )
        return result

    def _create_one(
        self,
        session: Session,
        workspace: Workspace,
        email: str,
        role: Role,
        invited_by: UUID,
    ) -> WorkspaceInvite:
        existing_user = UserRepository(session).get_by_email(email)
        if existing_user and roles.effective_role(workspace, existing_user.id) is not None:
            raise ConflictError("User is already a member of this workspace")

        invite_repo = WorkspaceInviteRepository(session)
        now = utcnow()
        open_invite = invite_repo.get_open_by_email(workspace.id, email)
        if open_invite is not None:
            if open_invite.is_live(now):
                raise ConflictError("A pending invite already exists for this email")
            # Expired: make room under the one-open-invite index
            with storage_errors(session):
                invite_repo.delete(open_invite)

        invite = WorkspaceInvite(
            workspace_id=workspace.id,
            email=email,
            role=role,
            invited_by=invited_by,
            token=generate_invite_token(),
            created_at=now,
            expires_at=now + timedelta(days=config.INVITE_TTL_DAYS),
        )
        with storage_errors(session, "A pending invite already exists for this email"):
            invite = invite_repo.create(invite)

        logger.info(
            "invite_created",
            workspace_id=str(workspace.id),
            invite_id=str(invite.id),
            role=role.value,
        )
        return invite

    # ==========================================================================
    # Reading
    # ==========================================================================

    def validate_invite(self, session: Session, workspace_id: UUID, token: str) -> InviteView:
        """Describe an invite without changing it.

        Raises:
            NotFoundError: If the token is unknown under this workspace
        """
        invite = WorkspaceInviteRepository(session).get_by_token(workspace_id, token)
        if invite is None:
            raise NotFoundError("Invite not found")
        workspace = WorkspaceRepository(session).get(workspace_id)
        return self._to_view(invite, workspace)

    def list_invites(
        self,
        session: Session,
        workspace_id: UUID,
        include_expired: bool = False,
    ) -> list[WorkspaceInvite]:
        """Unaccepted invites for a workspace, oldest first."""
        self._require_workspace(session, workspace_id)
        now = utcnow()
        return [
            invite
            for invite in WorkspaceInviteRepository(session).list_by_workspace(workspace_id)
            if not invite.accepted and (include_expired or not invite.is_expired(now))
        ]

    def list_pending_invites_for_email(self, session: Session, email: str) -> list[InviteView]:
        """Live invites addressed to an email, across workspaces."""
        email = normalize_email(email)
        invites = WorkspaceInviteRepository(session).list_pending_by_email(email, utcnow())
        workspace_repo = WorkspaceRepository(session)
        return [
            self._to_view(invite, workspace_repo.get(invite.workspace_id))
            for invite in invites
        ]

    # ==========================================================================
    # Accepting
    # ==========================================================================

    def accept_invite(
        self,
        session: Session,
        workspace_id: UUID,
        token: str,
        accepting_user_id: UUID,
        accepting_user_email: str,
    ) -> Workspace:
        """Accept a workspace invitation.

        The accepting account's email must match the invite email, so a
        leaked link cannot be consumed by a different account.

        Args:
            session: Database session
            workspace_id: Workspace the invite belongs to
            token: The invite token
            accepting_user_id: User accepting the invite
            accepting_user_email: That user's email address

        Returns:
            The workspace with its updated roster

        Raises:
            NotFoundError: If the token is unknown under this workspace
            ConflictError: If the invite was already accepted or the user
                already belongs to the workspace
            ExpiredError: If the invite has expired
            ValidationError: If the email does not match the invite
        """
        invite_repo = WorkspaceInviteRepository(session)
        invite = invite_repo.get_by_token(workspace_id, token)
        if invite is None:
            raise NotFoundError("Invite not found")
        if invite.accepted:
            raise ConflictError("Invite already accepted")

        now = utcnow()
        if invite.is_expired(now):
            raise ExpiredError()

        if (accepting_user_email or "").strip().lower() != invite.email:
            raise ValidationError("Invite was sent to a different email address")

        workspace = self._require_workspace(session, workspace_id)
        if roles.effective_role(workspace, accepting_user_id) is not None:
            raise ConflictError("User is already a member of this workspace")

        with storage_errors(session, "User is already a member of this workspace"):
            accepted = invite_repo.accept(invite, accepting_user_id, now)
        if not accepted:
            logger.warning(
                "invite_accept_lost_race",
                workspace_id=str(workspace_id),
                invite_id=str(invite.id),
            )
            raise ConflictError("Invite already accepted")

        logger.info(
            "invite_accepted",
            workspace_id=str(workspace_id),
            invite_id=str(invite.id),
            user_id=str(accepting_user_id),
        )
        session.refresh(workspace)
        return workspace

    # ==========================================================================
    # Revoking and re-sending
    # ==========================================================================

    def revoke_invite(self, session: Session, workspace_id: UUID, invite_id: UUID) -> bool:
        """Delete an unaccepted invite.

        Raises:
            NotFoundError: If the invite does not exist in this workspace
            ConflictError: If the invite was already accepted
        """
        invite_repo = WorkspaceInviteRepository(session)
        invite = invite_repo.get(invite_id)
        if invite is None or invite.workspace_id != workspace_id:
            raise NotFoundError("Invite not found")
        if invite.accepted:
            raise ConflictError("Invite already accepted")

        with storage_errors(session):
            invite_repo.delete(invite)
        logger.info("invite_revoked", workspace_id=str(workspace_id), invite_id=str(invite_id))
        return True

    def resend_invite_email(
        self,
        session: Session,
        workspace_id: UUID,
        invite_id: UUID,
    ) -> WorkspaceInvite:
        """Send the invitation email again for a live invite.

        Raises:
            NotFoundError: If the invite does not exist in this workspace
            ConflictError: If the invite was already accepted
            ExpiredError: If the invite has expired
        """
        invite = WorkspaceInviteRepository(session).get(invite_id)
        if invite is None or invite.workspace_id != workspace_id:
            raise NotFoundError("Invite not found")
        if invite.accepted:
            raise ConflictError("Invite already accepted")
        if invite.is_expired():
            raise ExpiredError()

        workspace = self._require_workspace(session, workspace_id)
        inviter = UserRepository(session).get(invite.invited_by)
        self._send_invite_email(session, workspace, invite, inviter)
        return invite

    # ==========================================================================
    # Internals
    # ==========================================================================

    def _send_invite_email(
        self,
        session: Session,
        workspace: Workspace,
        invite: WorkspaceInvite,
        inviter: Optional[User],
    ) -> None:
        """Deliver the invitation email and link the notification to the invite.

        Delivery failures are recorded on the notification; storage
        failures while recording are logged, leaving the invite in place
        so the email can be re-sent.
        """
        inviter_name = (inviter.full_name or inviter.email) if inviter else "A teammate"
        message = EmailMessage(
            to=[invite.email],
            template=EmailTemplate.WORKSPACE_INVITATION,
            template_data={
                "inviter_name": inviter_name,
                "workspace_name": workspace.name,
                "invite_url": invite_url(workspace.id, invite.token),
                "recipient_email": invite.email,
                "expires_in_days": config.INVITE_TTL_DAYS,
            },
            workspace_id=workspace.id,
        )
        try:
            result = self.notifications.send(session, message)
            WorkspaceInviteRepository(session).set_notification(invite, result.notification.id)
        except TransportError as e:
            logger.warning(
                "invite_email_not_recorded",
                workspace_id=str(workspace.id),
                invite_id=str(invite.id),
                error_code=e.error_code,
            )
            return

        if not result.success:
            logger.warning(
                "invite_email_failed",
                workspace_id=str(workspace.id),
                invite_id=str(invite.id),
                notification_id=str(result.notification.id),
            )

    def _to_view(self, invite: WorkspaceInvite, workspace: Optional[Workspace]) -> InviteView:
        return InviteView(
            id=invite.id,
            workspace_id=invite.workspace_id,
            workspace_name=workspace.name if workspace else "",
            email=invite.email,
            role=invite.role,
            invited_by=invite.invited_by,
            created_at=invite.created_at,
            expires_at=invite.expires_at,
            accepted=invite.accepted,
            accepted_at=invite.accepted_at,
            accepted_by=invite.accepted_by,
            expired=invite.is_expired(),
        )

    def _require_workspace(self, session: Session, workspace_id: UUID) -> Workspace:
        workspace = WorkspaceRepository(session).get(workspace_id)
        if workspace is None:
            raise NotFoundError("Workspace not found")
        return workspace
