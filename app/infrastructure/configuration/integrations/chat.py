"""Chat webhook settings."""

from pydantic import Field

from infrastructure.configuration.base import IntegrationSettings


class ChatSettings(IntegrationSettings):
    """Outbound chat webhook configuration.

    Webhook URLs are per recipient and come from the recipient directory;
    only transport behaviour is configured here.

    Environment Variables:
        CHAT_WEBHOOK_TIMEOUT_SECONDS: Per-request timeout (default: 10)
    """

    CHAT_WEBHOOK_TIMEOUT_SECONDS: int = Field(
        default=10, alias="CHAT_WEBHOOK_TIMEOUT_SECONDS"
    )
