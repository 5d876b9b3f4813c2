"""Notification delivery engine.

Turns a logical message into a tracked Notification, dispatches it
through the configured delivery provider and manages bounded retries.

State machine (see teamspace.db.models.notification):

    PENDING -> SENT | FAILED
    SENT    -> DELIVERED | BOUNCED
    FAILED  -> PENDING   (resend; retry_count + 1, at most max_retries)

Provider failures never raise: they are recorded on the notification and
reported through ``DeliveryResult.success``. Storage failures raise
StorageError so callers can tell "delivery failed" from "record-keeping
failed".
"""

import threading
from concurrent.futures import ThreadPoolExecutor
from concurrent.futures import TimeoutError as FutureTimeoutError
from datetime import datetime, timedelta
from typing import Optional
from uuid import UUID

from sqlmodel import Session

from teamspace import config
from teamspace.db.models import (
    Notification,
    NotificationStatus,
    NotificationType,
    utcnow,
)
from teamspace.logging import get_logger
from teamspace.repositories import NotificationRepository
from teamspace_api.exceptions import (
    ConflictError,
    NotFoundError,
    RetryLimitExceededError,
    ValidationError,
    storage_errors,
)
from teamspace_api.providers import (
    BaseDeliveryProvider,
    ProviderResult,
    RenderedMessage,
    get_provider,
)
from teamspace_api.schemas import BatchResult, DeliveryResult, EmailMessage
from teamspace_api.services import email_templates

logger = get_logger(__name__)

# Extra time granted to a provider past its own timeout before the
# engine stops waiting for it
_TIMEOUT_GRACE_SECONDS = 1.0


class NotificationService:
    """Service for sending, scheduling and retrying notifications."""

    def __init__(
        self,
        provider: Optional[BaseDeliveryProvider] = None,
        timeout: Optional[float] = None,
        max_retries: Optional[int] = None,
    ):
        self.provider = provider or get_provider()
        self.timeout = config.DELIVERY_TIMEOUT_SECONDS if timeout is None else timeout
        self.max_retries = (
            config.NOTIFICATION_MAX_RETRIES if max_retries is None else max_retries
        )

    # ==========================================================================
    # Sending
    # ==========================================================================

    def send(
        self,
        session: Session,
        message: EmailMessage,
        timeout: Optional[float] = None,
    ) -> DeliveryResult:
        """Create a notification and deliver it now.

        Raises:
            ValidationError: If the template data does not fit the template
            StorageError: If the notification could not be recorded
        """
        rendered = self._render(message)
        notification = self._build(message, rendered)
        notification.claimed_at = utcnow()

        with storage_errors(session):
            NotificationRepository(session).create(notification)

        logger.info(
            "notification_created",
            notification_id=str(notification.id),
            template=message.template.value,
            recipient=message.recipient,
        )
        return self._dispatch(session, notification, rendered, timeout)

    def schedule(
        self,
        session: Session,
        message: EmailMessage,
        scheduled_at: datetime,
    ) -> Notification:
        """Store a PENDING notification for process_pending() to dispatch later."""
        rendered = self._render(message)
        notification = self._build(message, rendered)
        notification.scheduled_at = scheduled_at

        with storage_errors(session):
            NotificationRepository(session).create(notification)

        logger.info(
            "notification_scheduled",
            notification_id=str(notification.id),
            scheduled_at=scheduled_at.isoformat(),
        )
        return notification

    def resend(
        self,
        session: Session,
        notification_id: UUID,
        timeout: Optional[float] = None,
    ) -> DeliveryResult:
        """Retry a FAILED email notification.

        The retry is counted before the provider is called, under a
        version check, so concurrent resends of one record cannot both
        proceed or overrun max_retries.

        Raises:
            NotFoundError: If the notification does not exist
            ValidationError: If it is not an email notification, or its
                stored message cannot be rebuilt (the record is then closed
                to further retries)
            ConflictError: If it is not FAILED, or another worker claimed it
            RetryLimitExceededError: If it has no retries left
        """
        repo = NotificationRepository(session)
        notification = repo.get(notification_id)
        if not notification:
            raise NotFoundError("Notification not found")
        if notification.notification_type != NotificationType.EMAIL:
            raise ValidationError("Only email notifications can be resent")
        if notification.status != NotificationStatus.FAILED:
            raise ConflictError("Only failed notifications can be resent")
        if notification.retry_count >= notification.max_retries:
            logger.error(
                "notification_retries_exhausted",
                notification_id=str(notification.id),
                retry_count=notification.retry_count,
                max_retries=notification.max_retries,
            )
            raise RetryLimitExceededError()

        try:
            rendered = self._render(self._message_from(notification))
        except ValidationError as e:
            # A payload that cannot be rebuilt never will be; stop retrying it
            with storage_errors(session):
                repo.transition(
                    notification,
                    NotificationStatus.FAILED,
                    retry_count=notification.max_retries,
                    failure_reason=f"Invalid message: {e.message}",
                )
            logger.error(
                "notification_payload_invalid",
                notification_id=str(notification.id),
                error=e.message,
            )
            raise

        with storage_errors(session):
            claimed = repo.claim_for_retry(notification)
        if not claimed:
            raise ConflictError("Notification is already being retried")

        logger.info(
            "notification_resending",
            notification_id=str(notification.id),
            retry_count=notification.retry_count,
        )
        return self._dispatch(session, notification, rendered, timeout)

    # ==========================================================================
    # Batch processing
    # ==========================================================================

    def process_retries(
        self,
        session: Session,
        batch_size: int = 50,
        cancel_event: Optional[threading.Event] = None,
    ) -> BatchResult:
        """Resend FAILED notifications with retries left, oldest failure first.

        Each record is claimed independently; records another worker
        claims first are counted as skipped. Setting ``cancel_event``
        stops the sweep before the next record.
        """
        result = BatchResult()
        candidates = NotificationRepository(session).find_for_retry(batch_size)

        for notification in candidates:
            if cancel_event is not None and cancel_event.is_set():
                result.cancelled = True
                break
            try:
                outcome = self.resend(session, notification.id)
            except ValidationError as e:
                logger.error(
                    "notification_retry_invalid",
                    notification_id=str(notification.id),
                    error=e.message,
                )
                result.processed += 1
                result.failed += 1
                continue
            except ConflictError:
                result.skipped += 1
                continue

            result.processed += 1
            if outcome.success:
                result.successful += 1
            else:
                result.failed += 1

        logger.info(
            "retry_processing_completed",
            processed=result.processed,
            successful=result.successful,
            failed=result.failed,
            skipped=result.skipped,
            cancelled=result.cancelled,
        )
        return result

    def process_pending(
        self,
        session: Session,
        batch_size: int = 100,
        cancel_event: Optional[threading.Event] = None,
        now: Optional[datetime] = None,
    ) -> BatchResult:
        """Dispatch due PENDING notifications, oldest created first.

        Picks up scheduled notifications whose time has come and records
        whose dispatcher claim is older than CLAIM_TIMEOUT_SECONDS. Each
        record is claimed before dispatch so it is sent once per sweep.
        """
        now = now or utcnow()
        stale_before = now - timedelta(seconds=config.CLAIM_TIMEOUT_SECONDS)
        repo = NotificationRepository(session)
        result = BatchResult()

        for notification in repo.find_pending(now, stale_before, batch_size):
            if cancel_event is not None and cancel_event.is_set():
                result.cancelled = True
                break
            if notification.notification_type != NotificationType.EMAIL:
                result.skipped += 1
                continue

            with storage_errors(session):
                claimed = repo.claim_pending(notification, stale_before, now)
            if not claimed:
                result.skipped += 1
                continue

            try:
                rendered = self._render(self._message_from(notification))
            except ValidationError as e:
                self._record_failure(session, notification, f"Invalid message: {e.message}")
                result.processed += 1
                result.failed += 1
                continue

            try:
                outcome = self._dispatch(session, notification, rendered, None)
            except ConflictError:
                result.skipped += 1
                continue

            result.processed += 1
            if outcome.success:
                result.successful += 1
            else:
                result.failed += 1

        logger.info(
            "pending_processing_completed",
            processed=result.processed,
            successful=result.successful,
            failed=result.failed,
            skipped=result.skipped,
            cancelled=result.cancelled,
        )
        return result

    # ==========================================================================
    # Provider callbacks
    # ==========================================================================

    def mark_delivered(self, session: Session, provider_message_id: str) -> Notification:
        """SENT -> DELIVERED when the provider confirms delivery. Idempotent."""
        return self._confirm(
            session,
            provider_message_id,
            NotificationStatus.DELIVERED,
            delivered_at=utcnow(),
        )

    def mark_bounced(
        self,
        session: Session,
        provider_message_id: str,
        reason: Optional[str] = None,
    ) -> Notification:
        """SENT -> BOUNCED when the provider reports a bounce. Idempotent."""
        return self._confirm(
            session,
            provider_message_id,
            NotificationStatus.BOUNCED,
            failure_reason=reason or "Bounced",
        )

    def _confirm(
        self,
        session: Session,
        provider_message_id: str,
        target: NotificationStatus,
        **values,
    ) -> Notification:
        repo = NotificationRepository(session)
        notification = repo.get_by_provider_message_id(provider_message_id)
        if not notification:
            raise NotFoundError("Notification not found")
        if notification.status == target:
            return notification
        if notification.status != NotificationStatus.SENT:
            raise ConflictError(
                f"Cannot mark a {notification.status.value} notification as {target.value}"
            )
        with storage_errors(session):
            moved = repo.transition(
                notification, NotificationStatus.SENT, status=target, **values
            )
        if not moved and notification.status != target:
            raise ConflictError("Notification was modified concurrently")
        logger.info(
            "notification_confirmed",
            notification_id=str(notification.id),
            status=target.value,
        )
        return notification

    # ==========================================================================
    # Reading
    # ==========================================================================

    def get_notification(self, session: Session, notification_id: UUID) -> Notification:
        notification = NotificationRepository(session).get(notification_id)
        if not notification:
            raise NotFoundError("Notification not found")
        return notification

    def get_history(self, session: Session, recipient: str, limit: int = 50) -> list[Notification]:
        """Most recent notifications for a recipient."""
        return NotificationRepository(session).list_by_recipient(
            recipient.strip().lower(), limit
        )

    def get_delivery_stats(
        self,
        session: Session,
        start: datetime,
        end: datetime,
    ) -> dict[str, int]:
        """Counts of notifications created in [start, end) by status."""
        counts = NotificationRepository(session).count_by_status(start, end)
        stats = {status.value: counts.get(status, 0) for status in NotificationStatus}
        stats["total"] = sum(counts.values())
        return stats

    # ==========================================================================
    # Internals
    # ==========================================================================

    def _render(self, message: EmailMessage) -> RenderedMessage:
        template = email_templates.render(message.template, message.template_data)
        return RenderedMessage(
            to=[str(a) for a in message.to],
            cc=[str(a) for a in message.cc],
            bcc=[str(a) for a in message.bcc],
            subject=message.subject or template.subject,
            text=template.text,
            html=template.html,
        )

    def _build(self, message: EmailMessage, rendered: RenderedMessage) -> Notification:
        return Notification(
            notification_type=NotificationType.EMAIL,
            status=NotificationStatus.PENDING,
            recipient=message.recipient.lower(),
            subject=rendered.subject,
            content=rendered.text,
            template_id=message.template,
            template_data=message.template_data,
            payload=message.model_dump(mode="json"),
            workspace_id=message.workspace_id,
            max_retries=self.max_retries,
        )

    def _message_from(self, notification: Notification) -> EmailMessage:
        """Rebuild the original message from the stored payload."""
        payload = notification.payload or {
            "to": [notification.recipient],
            "template": notification.template_id,
            "template_data": notification.template_data or {},
            "subject": notification.subject,
        }
        try:
            return EmailMessage.model_validate(payload)
        except ValueError as e:
            raise ValidationError("Stored notification payload is invalid") from e

    def _call_provider(self, rendered: RenderedMessage, timeout: float) -> ProviderResult:
        """Call the provider, bounded by ``timeout``.

        Exceptions and timeouts become failed results.
        """
        executor = ThreadPoolExecutor(max_workers=1)
        try:
            future = executor.submit(self.provider.deliver, rendered, timeout)
            return future.result(timeout=timeout + _TIMEOUT_GRACE_SECONDS)
        except (FutureTimeoutError, TimeoutError):
            return ProviderResult(success=False, error="Delivery timed out")
        except Exception as e:
            logger.exception("provider_error", provider=self.provider.name)
            return ProviderResult(success=False, error=f"Provider error: {type(e).__name__}")
        finally:
            executor.shutdown(wait=False)

    def _dispatch(
        self,
        session: Session,
        notification: Notification,
        rendered: RenderedMessage,
        timeout: Optional[float],
    ) -> DeliveryResult:
        """Deliver a claimed PENDING notification and record SENT or FAILED."""
        result = self._call_provider(
            rendered, self.timeout if timeout is None else timeout
        )
        now = utcnow()

        if result.success:
            values = {
                "status": NotificationStatus.SENT,
                "sent_at": now,
                "provider_message_id": result.provider_message_id,
                "failure_reason": None,
                "claimed_at": None,
            }
        else:
            values = {
                "status": NotificationStatus.FAILED,
                "failed_at": now,
                "failure_reason": result.error or "Unknown error",
                "claimed_at": None,
            }

        with storage_errors(session):
            moved = NotificationRepository(session).transition(
                notification, NotificationStatus.PENDING, **values
            )
        if not moved:
            raise ConflictError("Notification was modified concurrently")

        if result.success:
            logger.info(
                "notification_sent",
                notification_id=str(notification.id),
                provider=self.provider.name,
                provider_message_id=result.provider_message_id,
            )
        elif notification.retry_count >= notification.max_retries:
            logger.error(
                "notification_failed_permanently",
                notification_id=str(notification.id),
                retry_count=notification.retry_count,
                error=notification.failure_reason,
            )
        else:
            logger.warning(
                "notification_failed",
                notification_id=str(notification.id),
                retry_count=notification.retry_count,
                error=notification.failure_reason,
            )

        return DeliveryResult(
            success=result.success,
            notification=notification,
            error=None if result.success else notification.failure_reason,
        )

    def _record_failure(self, session: Session, notification: Notification, reason: str) -> None:
        with storage_errors(session):
            NotificationRepository(session).transition(
                notification,
                NotificationStatus.PENDING,
                status=NotificationStatus.FAILED,
                failed_at=utcnow(),
                failure_reason=reason,
                claimed_at=None,
            )
