"""Server settings."""

from pydantic import Field

from infrastructure.configuration.base import InfrastructureSettings


class ServerSettings(InfrastructureSettings):
    """Server and client-facing URL configuration.

    Environment Variables:
        CLIENT_BASE_URL: Web client base URL used in email/chat action links
        REALTIME_SEND_TIMEOUT_SECONDS: Per-session websocket send timeout
    """

    CLIENT_BASE_URL: str = Field(
        default="http://localhost:3000", alias="CLIENT_BASE_URL"
    )
    REALTIME_SEND_TIMEOUT_SECONDS: float = Field(
        default=5.0, alias="REALTIME_SEND_TIMEOUT_SECONDS"
    )
