"""Notification channel abstract base class.

All channel implementations (realtime, email, chat webhook, push) implement
this interface so the dispatcher can fan out without knowing the platform.
"""

from abc import ABC, abstractmethod

from infrastructure.operations import OperationResult
from modules.notifications.models import (
    Channel,
    DeliveryOutcome,
    Notification,
    RecipientProfile,
)


class NotificationChannel(ABC):
    """Abstract base class for notification channels.

    Each channel delivers one notification to one recipient through a single
    platform and reports the attempt as a DeliveryOutcome.

    Example Implementation:
        class ChatChannel(NotificationChannel):

            @property
            def channel(self) -> Channel:
                return Channel.CHAT

            def deliver(self, context, notification) -> DeliveryOutcome:
                result = webhook.post_message(context.chat_webhook_url, ...)
                return outcome_from_result(result)
    """

    @property
    @abstractmethod
    def channel(self) -> Channel:
        """Channel identifier used for routing, state and logging."""

    @abstractmethod
    def deliver(
        self, context: RecipientProfile, notification: Notification
    ) -> DeliveryOutcome:
        """Deliver the notification to the recipient.

        Must handle errors gracefully and return a failed DeliveryOutcome
        rather than raising.

        Args:
            context: Resolved recipient profile (addresses, webhook URL)
            notification: Stored notification record

        Returns:
            DeliveryOutcome for this channel
        """

    def health_check(self) -> OperationResult:
        """Check channel configuration.

        Returns:
            OperationResult indicating channel health. Channels without
            external configuration are always healthy.
        """
        return OperationResult.success(message=f"{self.channel.value} channel ready")


def outcome_from_result(result: OperationResult) -> DeliveryOutcome:
    """Convert an integration OperationResult into a DeliveryOutcome."""
    if result.is_success:
        return DeliveryOutcome.ok()
    return DeliveryOutcome.failure(result.message, permanent=not result.is_transient)
