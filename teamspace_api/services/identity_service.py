"""Identity resolution.

Maps an authenticated principal from the external identity provider to
an internal User. Principals arrive as validated ExternalPrincipal
models, never as raw provider payloads.
"""

from typing import Optional
from uuid import UUID

from sqlmodel import Session

from teamspace.db.models import User, UserCreate
from teamspace.logging import get_logger
from teamspace.repositories import UserRepository
from teamspace_api.exceptions import NotFoundError, storage_errors
from teamspace_api.schemas import ExternalPrincipal

logger = get_logger(__name__)


class IdentityService:
    """Resolve and sync users from the identity provider."""

    def resolve(self, session: Session, principal: ExternalPrincipal) -> UUID:
        """Internal user id for a principal.

        Looks up by external id first, then by email for users created
        before they ever signed in.

        Raises:
            NotFoundError: If no user matches
        """
        repo = UserRepository(session)
        user = repo.get_by_external_id(principal.external_id)
        if not user:
            user = repo.get_by_email(principal.email)
        if not user:
            raise NotFoundError("User not found")
        return user.id

    def sync_user(self, session: Session, principal: ExternalPrincipal) -> User:
        """Create or update the user behind a principal.

        Called from identity-provider webhooks (user.created /
        user.updated). Links an existing email-only user to the external
        id on first sight.

        Raises:
            ConflictError: If the email already belongs to a user linked
                to a different external id
        """
        repo = UserRepository(session)
        user = repo.get_by_external_id(principal.external_id)
        if not user:
            user = repo.get_by_email(principal.email)

        with storage_errors(session, "Email already belongs to another user"):
            if user:
                user = repo.update(
                    user.id,
                    external_id=principal.external_id,
                    email=principal.email,
                    full_name=principal.full_name or user.full_name,
                )
                logger.info("user_synced", user_id=str(user.id), created=False)
                return user

            user = repo.create(
                UserCreate(
                    email=principal.email,
                    full_name=principal.full_name,
                    external_id=principal.external_id,
                )
            )
        logger.info("user_synced", user_id=str(user.id), created=True)
        return user

    def get_user(self, session: Session, user_id: UUID) -> Optional[User]:
        return UserRepository(session).get(user_id)
