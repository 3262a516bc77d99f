"""Transactional email API settings."""

from pydantic import Field

from infrastructure.configuration.base import IntegrationSettings


class EmailSettings(IntegrationSettings):
    """Transactional email API configuration.

    Environment Variables:
        EMAIL_API_URL: Endpoint accepting JSON email submissions
        EMAIL_API_KEY: API key sent in the Authorization header
        EMAIL_FROM_ADDRESS: Sender address for notification emails
        EMAIL_TIMEOUT_SECONDS: Per-request timeout (default: 10)

    Example:
        ```python
        from infrastructure.services import get_settings

        settings = get_settings()

        api_url = settings.email.EMAIL_API_URL
        ```
    """

    EMAIL_API_URL: str = Field(default="", alias="EMAIL_API_URL")
    EMAIL_API_KEY: str | None = Field(default=None, alias="EMAIL_API_KEY")
    EMAIL_FROM_ADDRESS: str = Field(
        default="notifications@example.com", alias="EMAIL_FROM_ADDRESS"
    )
    EMAIL_TIMEOUT_SECONDS: float = Field(default=10.0, alias="EMAIL_TIMEOUT_SECONDS")
