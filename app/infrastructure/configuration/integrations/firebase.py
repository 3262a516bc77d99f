"""Firebase Cloud Messaging settings."""

from pydantic import Field

from infrastructure.configuration.base import IntegrationSettings


class FirebaseSettings(IntegrationSettings):
    """Firebase Cloud Messaging configuration.

    Environment Variables:
        FIREBASE_CREDENTIALS_JSON: Service account JSON (string). When empty,
            application default credentials are used.
        FIREBASE_PROJECT_ID: Optional project id override
    """

    FIREBASE_CREDENTIALS_JSON: str | None = Field(
        default=None, alias="FIREBASE_CREDENTIALS_JSON"
    )
    FIREBASE_PROJECT_ID: str | None = Field(default=None, alias="FIREBASE_PROJECT_ID")

    @property
    def enabled(self) -> bool:
        """Push delivery is enabled when credentials or a project id are set."""
        return bool(self.FIREBASE_CREDENTIALS_JSON or self.FIREBASE_PROJECT_ID)
