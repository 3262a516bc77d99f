"""Chat channel posting Block Kit messages to incoming webhooks."""

from infrastructure.logging import get_module_logger
from integrations.slack import webhook
from modules.notifications.channels.base import NotificationChannel, outcome_from_result
from modules.notifications.models import (
    Channel,
    DeliveryOutcome,
    Notification,
    RecipientProfile,
)
from modules.notifications.templates import render_chat_message

logger = get_module_logger()


class ChatChannel(NotificationChannel):
    """Chat webhook notification channel."""

    def __init__(self, base_url: str, timeout_seconds: int = 10):
        self.base_url = base_url
        self.timeout_seconds = timeout_seconds

    @property
    def channel(self) -> Channel:
        return Channel.CHAT

    def deliver(
        self, context: RecipientProfile, notification: Notification
    ) -> DeliveryOutcome:
        if not context.chat_webhook_url:
            return DeliveryOutcome.failure("recipient has no chat webhook", permanent=True)

        message = render_chat_message(notification, self.base_url)
        result = webhook.post_message(
            context.chat_webhook_url,
            text=message["text"],
            blocks=message["blocks"],
            timeout=self.timeout_seconds,
        )
        if not result.is_success:
            logger.warning(
                "chat_delivery_failed",
                recipient=context.recipient_id,
                error=result.message,
            )
        return outcome_from_result(result)
