"""Escalation of undeliverable notifications to operators."""

from dataclasses import dataclass
from typing import Optional

from infrastructure.logging import get_module_logger
from modules.notifications.directory import RecipientDirectory
from modules.notifications.dispatcher import NotificationDispatcher
from modules.notifications.errors import NotificationError, NotificationStoreError
from modules.notifications.models import (
    Notification,
    NotificationPriority,
    NotificationRequest,
    NotificationType,
    utc_now,
)
from modules.notifications.store import NotificationStore

logger = get_module_logger()

ESCALATION_TITLE = "Notification Delivery Failed - Escalation Required"


@dataclass
class EscalationResult:
    """Outcome of one escalation attempt.

    Attributes:
        escalated: True when this call marked the record escalated
        operators_notified: Operators whose escalation notice was created
        failures: Operators whose escalation notice could not be created
        reason: Why nothing was escalated, when ``escalated`` is False
    """

    escalated: bool
    operators_notified: int = 0
    failures: int = 0
    reason: Optional[str] = None


class EscalationPolicy:
    """Notifies operators once per exhausted notification.

    The record is marked escalated with a conditional write before any
    operator is notified, so only one caller ever fans out for it.
    """

    def __init__(
        self,
        store: NotificationStore,
        dispatcher: NotificationDispatcher,
        directory: RecipientDirectory,
    ):
        self.store = store
        self.dispatcher = dispatcher
        self.directory = directory

    def build_request(self, notification: Notification, operator_id: str) -> NotificationRequest:
        """Build the urgent escalation notice for one operator."""
        failed_channels = [channel.value for channel in notification.failing_channels]
        return NotificationRequest(
            recipient=operator_id,
            type=NotificationType.NOTIFICATION_ESCALATION,
            title=ESCALATION_TITLE,
            message=(
                f"A notification to {notification.recipient} has failed delivery "
                f"after {notification.retry_count} retry attempts."
            ),
            data={
                "originalNotificationId": notification.id,
                "recipient": notification.recipient,
                "notificationType": notification.type.value,
                "title": notification.title,
                "message": notification.message,
                "retryCount": notification.retry_count,
                "failedChannels": failed_channels,
                "createdAt": notification.created_at.isoformat(),
            },
            priority=NotificationPriority.URGENT,
        )

    def escalate(self, notification: Notification) -> EscalationResult:
        if notification.is_escalation:
            return EscalationResult(escalated=False, reason="escalation notices are never escalated")
        if notification.escalated:
            return EscalationResult(escalated=False, reason="already escalated")

        try:
            marked = self.store.mark_escalated(notification.id, utc_now())
        except NotificationStoreError as e:
            logger.error(
                "escalation_mark_failed",
                notification_id=notification.id,
                error=str(e),
            )
            return EscalationResult(escalated=False, reason="store error")

        if not marked:
            logger.info("escalation_already_claimed", notification_id=notification.id)
            return EscalationResult(escalated=False, reason="already escalated")

        operators = self.directory.list_operators()
        if not operators:
            logger.warning("escalation_no_operators", notification_id=notification.id)

        result = EscalationResult(escalated=True)
        for operator in operators:
            try:
                self.dispatcher.send(self.build_request(notification, operator.recipient_id))
                result.operators_notified += 1
            except NotificationError as e:
                result.failures += 1
                logger.error(
                    "escalation_send_failed",
                    notification_id=notification.id,
                    operator=operator.recipient_id,
                    error=str(e),
                )

        logger.warning(
            "escalation_triggered",
            notification_id=notification.id,
            recipient=notification.recipient,
            retry_count=notification.retry_count,
            operators_notified=result.operators_notified,
            failures=result.failures,
        )
        return result
