"""Email channel using the transactional email API."""

from infrastructure.logging import get_module_logger
from infrastructure.operations import OperationResult
from integrations.email import client as email_client
from modules.notifications.channels.base import NotificationChannel, outcome_from_result
from modules.notifications.models import (
    Channel,
    DeliveryOutcome,
    Notification,
    RecipientProfile,
)
from modules.notifications.templates import render_email

logger = get_module_logger()


class EmailChannel(NotificationChannel):
    """Renders the notification email and submits it in one API call."""

    def __init__(self, base_url: str, settings=None):
        self.base_url = base_url
        self.settings = settings

    @property
    def channel(self) -> Channel:
        return Channel.EMAIL

    def deliver(
        self, context: RecipientProfile, notification: Notification
    ) -> DeliveryOutcome:
        if not context.email:
            return DeliveryOutcome.failure("recipient has no email address", permanent=True)

        content = render_email(notification, context, self.base_url)
        result = email_client.send_email(
            to=context.email,
            subject=content.subject,
            html_body=content.html,
            text_body=content.text,
        )
        if not result.is_success:
            logger.warning(
                "email_delivery_failed",
                recipient=context.recipient_id,
                error=result.message,
                error_code=result.error_code,
            )
        return outcome_from_result(result)

    def health_check(self) -> OperationResult:
        if self.settings is not None and not (
            self.settings.EMAIL_API_URL and self.settings.EMAIL_API_KEY
        ):
            return OperationResult.permanent_error(
                "Email API is not configured", error_code="NOT_CONFIGURED"
            )
        return OperationResult.success(message="email channel ready")
