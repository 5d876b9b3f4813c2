"""Repository for Notification records.

Every state transition is a conditional UPDATE filtered on the version
the caller read (and on the expected status), so a retry sweep and a
manual resend racing on the same record cannot both win.
"""

from datetime import datetime
from typing import Any, Optional
from uuid import UUID

from sqlalchemy import func, or_, update
from sqlmodel import Session, select

from teamspace.db.models import (
    Notification,
    NotificationStatus,
    NotificationType,
    utcnow,
)


class NotificationRepository:
    """Repository for Notification operations."""

    def __init__(self, session: Session):
        self.session = session

    def create(self, notification: Notification) -> Notification:
        self.session.add(notification)
        self.session.commit()
        self.session.refresh(notification)
        return notification

    def get(self, notification_id: UUID) -> Optional[Notification]:
        return self.session.get(Notification, notification_id)

    def get_by_provider_message_id(self, provider_message_id: str) -> Optional[Notification]:
        statement = select(Notification).where(
            Notification.provider_message_id == provider_message_id
        )
        return self.session.exec(statement).first()

    def list_by_recipient(self, recipient: str, limit: int = 50) -> list[Notification]:
        statement = (
            select(Notification)
            .where(Notification.recipient == recipient)
            .order_by(Notification.created_at.desc())
            .limit(limit)
        )
        return list(self.session.exec(statement).all())

    def find_for_retry(self, limit: int = 50) -> list[Notification]:
        """FAILED email records with retries left, oldest failure first."""
        statement = (
            select(Notification)
            .where(
                Notification.notification_type == NotificationType.EMAIL,
                Notification.status == NotificationStatus.FAILED,
                Notification.retry_count < Notification.max_retries,
            )
            .order_by(Notification.failed_at, Notification.created_at)
            .limit(limit)
        )
        return list(self.session.exec(statement).all())

    def find_pending(
        self,
        now: datetime,
        stale_before: datetime,
        limit: int = 100,
    ) -> list[Notification]:
        """Due, unclaimed (or abandoned) PENDING records, oldest first."""
        statement = (
            select(Notification)
            .where(
                Notification.status == NotificationStatus.PENDING,
                or_(
                    Notification.scheduled_at.is_(None),
                    Notification.scheduled_at <= now,
                ),
                or_(
                    Notification.claimed_at.is_(None),
                    Notification.claimed_at < stale_before,
                ),
            )
            .order_by(Notification.created_at)
            .limit(limit)
        )
        return list(self.session.exec(statement).all())

    # =========================================================================
    # Version-checked transitions
    # =========================================================================

    def transition(
        self,
        notification: Notification,
        expected_status: NotificationStatus,
        **values: Any,
    ) -> bool:
        """Apply ``values`` if the record is still at the version and status read.

        Returns False, writing nothing, when another writer moved it first.
        On success the instance is refreshed from the database.
        """
        return self._conditional_update(
            notification,
            [Notification.status == expected_status],
            values,
        )

    def claim_for_retry(self, notification: Notification, now: Optional[datetime] = None) -> bool:
        """FAILED -> PENDING, counting the retry before the provider is called."""
        return self._conditional_update(
            notification,
            [
                Notification.status == NotificationStatus.FAILED,
                Notification.retry_count < Notification.max_retries,
            ],
            {
                "status": NotificationStatus.PENDING,
                "retry_count": Notification.retry_count + 1,
                "claimed_at": now or utcnow(),
            },
        )

    def claim_pending(
        self,
        notification: Notification,
        stale_before: datetime,
        now: Optional[datetime] = None,
    ) -> bool:
        """Take ownership of a PENDING record for dispatch."""
        return self._conditional_update(
            notification,
            [
                Notification.status == NotificationStatus.PENDING,
                or_(
                    Notification.claimed_at.is_(None),
                    Notification.claimed_at < stale_before,
                ),
            ],
            {"claimed_at": now or utcnow()},
        )

    def _conditional_update(
        self,
        notification: Notification,
        conditions: list,
        values: dict[str, Any],
    ) -> bool:
        result = self.session.execute(
            update(Notification)
            .where(
                Notification.id == notification.id,
                Notification.version == notification.version,
                *conditions,
            )
            .values(
                version=Notification.version + 1,
                updated_at=utcnow(),
                **values,
            )
            .execution_options(synchronize_session=False)
        )
        if result.rowcount != 1:
            self.session.rollback()
            self.session.refresh(notification)
            return False
        self.session.commit()
        self.session.refresh(notification)
        return True

    # =========================================================================
    # Reporting
    # =========================================================================

    def count_by_status(self, start: datetime, end: datetime) -> dict[NotificationStatus, int]:
        """Number of notifications created in [start, end) per status."""
        statement = (
            select(Notification.status, func.count())
            .where(
                Notification.created_at >= start,
                Notification.created_at < end,
            )
            .group_by(Notification.status)
        )
        return {
            NotificationStatus(status): count
            for status, count in self.session.exec(statement).all()
        }
