"""Boundary structs for the teamspace services.

Loosely-typed external payloads (identity-provider user objects, email
template data) are validated into these models before they reach domain
logic.
"""

from dataclasses import dataclass, field
from datetime import datetime
from typing import Any, Optional
from uuid import UUID

from pydantic import BaseModel, EmailStr, Field, field_validator

from teamspace.db.models import EmailTemplate, Notification, Role


class ExternalPrincipal(BaseModel):
    """An authenticated identity as reported by the identity provider."""

    external_id: str = Field(min_length=1)
    email: EmailStr
    full_name: Optional[str] = None

    @field_validator("email")
    @classmethod
    def normalize_email(cls, value: str) -> str:
        return value.strip().lower()


class EmailMessage(BaseModel):
    """A logical email to deliver through the notification engine."""

    to: list[EmailStr] = Field(min_length=1)
    cc: list[EmailStr] = Field(default_factory=list)
    bcc: list[EmailStr] = Field(default_factory=list)
    template: EmailTemplate
    template_data: dict[str, Any] = Field(default_factory=dict)
    # Overrides the template's subject line when set
    subject: Optional[str] = None
    workspace_id: Optional[UUID] = None

    @property
    def recipient(self) -> str:
        """Primary recipient, used for history lookups."""
        return self.to[0]


class InviteView(BaseModel):
    """Read-only view of an invite, as shown before accepting it."""

    id: UUID
    workspace_id: UUID
    workspace_name: str
    email: str
    role: Role
    invited_by: UUID
    created_at: datetime
    expires_at: datetime
    accepted: bool
    accepted_at: Optional[datetime] = None
    accepted_by: Optional[UUID] = None
    expired: bool


# =============================================================================
# Operation results
# =============================================================================


@dataclass
class DeliveryResult:
    """Outcome of a send/resend.

    ``success`` is False when the provider failed; the failure is also
    recorded on ``notification``. Record-keeping failures raise instead.
    """

    success: bool
    notification: Notification
    error: Optional[str] = None


@dataclass
class BatchResult:
    """Counts reported by process_retries/process_pending."""

    processed: int = 0
    successful: int = 0
    failed: int = 0
    # Records another worker claimed first
    skipped: int = 0
    cancelled: bool = False


@dataclass
class BulkInviteResult:
    """Outcome of inviting several emails at once."""

    created: list = field(default_factory=list)
    skipped: list[dict[str, str]] = field(default_factory=list)


@dataclass
class MemberStats:
    """Roster counts for a workspace (owner included once)."""

    total: int
    by_role: dict[Role, int]
    pending_invites: int
