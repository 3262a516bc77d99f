"""Base classes for the relay's settings sections.

Every section reads the same ``.env`` file with case-sensitive variable
names. The three subclasses only group sections by concern: external
services, notification features, and the relay's own storage and server.
"""

from pydantic_settings import BaseSettings, SettingsConfigDict


class RelaySettingsSection(BaseSettings):
    model_config = SettingsConfigDict(
        env_file=".env",
        case_sensitive=True,
        extra="ignore",
    )


class IntegrationSettings(RelaySettingsSection):
    """Email API, chat webhook, push gateway and AWS."""


class FeatureSettings(RelaySettingsSection):
    """Retry and escalation, push batching."""


class InfrastructureSettings(RelaySettingsSection):
    """Store backend and HTTP server."""
