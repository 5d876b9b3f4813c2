"""Notification delivery records.

A Notification tracks one outbound message through the delivery state
machine:

    PENDING -> SENT | FAILED
    SENT    -> DELIVERED | BOUNCED   (provider callbacks)
    FAILED  -> PENDING               (retry, at most max_retries times)

Retry state lives only on this record; every transition is a
version-checked update (see NotificationRepository).
"""

from datetime import datetime
from enum import Enum
from typing import Any, Optional
from uuid import UUID

from sqlalchemy import JSON
from sqlmodel import Column, Field, SQLModel

from teamspace.db.custom_types import UTCDateTime
from teamspace.db.models.base import UUIDModel, TimestampMixin, VersionedMixin


# =============================================================================
# Enums
# =============================================================================


class NotificationType(str, Enum):
    """Delivery channels. Only EMAIL can be resent."""
    EMAIL = "email"
    SMS = "sms"
    PUSH = "push"


class NotificationStatus(str, Enum):
    """Delivery states."""
    PENDING = "pending"
    SENT = "sent"
    DELIVERED = "delivered"
    FAILED = "failed"
    BOUNCED = "bounced"


class EmailTemplate(str, Enum):
    """Email templates known to the renderer."""
    WORKSPACE_INVITATION = "workspace_invitation"
    PROJECT_INVITATION = "project_invitation"
    PASSWORD_RESET = "password_reset"
    EMAIL_VERIFICATION = "email_verification"
    WELCOME = "welcome"
    PROJECT_SHARED = "project_shared"


# =============================================================================
# Notification
# =============================================================================


class NotificationBase(SQLModel):
    """Base fields for notifications."""

    notification_type: NotificationType = Field(default=NotificationType.EMAIL)
    recipient: str = Field(index=True)
    subject: Optional[str] = None
    content: str = ""
    template_id: Optional[EmailTemplate] = None


class Notification(UUIDModel, NotificationBase, TimestampMixin, VersionedMixin, table=True):
    """Individual notification records."""

    __tablename__ = "notifications"

    status: NotificationStatus = Field(default=NotificationStatus.PENDING, index=True)

    template_data: Optional[dict[str, Any]] = Field(
        default=None,
        sa_column=Column(JSON, nullable=True),
    )
    # Full message (recipients, cc, bcc, template data) so the record can
    # be dispatched or resent without the caller
    payload: Optional[dict[str, Any]] = Field(
        default=None,
        sa_column=Column(JSON, nullable=True),
    )
    workspace_id: Optional[UUID] = Field(default=None, index=True)

    provider_message_id: Optional[str] = Field(default=None, index=True)

    scheduled_at: Optional[datetime] = Field(default=None, index=True, sa_type=UTCDateTime)
    # Set while a dispatcher owns the PENDING record
    claimed_at: Optional[datetime] = Field(default=None, sa_type=UTCDateTime)
    sent_at: Optional[datetime] = Field(default=None, sa_type=UTCDateTime)
    delivered_at: Optional[datetime] = Field(default=None, sa_type=UTCDateTime)
    failed_at: Optional[datetime] = Field(default=None, index=True, sa_type=UTCDateTime)
    failure_reason: Optional[str] = None

    retry_count: int = Field(default=0, nullable=False)
    max_retries: int = Field(default=3, nullable=False)

    def can_retry(self) -> bool:
        """True for a FAILED record that still has retries left."""
        return (
            self.status == NotificationStatus.FAILED
            and self.retry_count < self.max_retries
        )

    @property
    def is_terminal(self) -> bool:
        if self.status in (NotificationStatus.DELIVERED, NotificationStatus.BOUNCED):
            return True
        return (
            self.status == NotificationStatus.FAILED
            and self.retry_count >= self.max_retries
        )
