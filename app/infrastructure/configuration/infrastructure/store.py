"""Notification persistence settings."""

from pydantic import Field

from infrastructure.configuration.base import InfrastructureSettings


class StoreSettings(InfrastructureSettings):
    """Storage backend configuration for notifications and device tokens.

    Environment Variables:
        NOTIFICATION_STORE_BACKEND: 'memory' or 'dynamodb' (default: memory)
        NOTIFICATIONS_TABLE_NAME: DynamoDB table holding notification records
        DEVICE_TOKENS_TABLE_NAME: DynamoDB table holding device tokens

    Backends:
        - memory: process-local store (development, testing)
        - dynamodb: shared store for multi-instance deployments
    """

    backend: str = Field(
        default="memory",
        alias="NOTIFICATION_STORE_BACKEND",
        description="Store backend: 'memory' or 'dynamodb'",
    )
    notifications_table: str = Field(
        default="notification-relay-notifications",
        alias="NOTIFICATIONS_TABLE_NAME",
    )
    tokens_table: str = Field(
        default="notification-relay-device-tokens",
        alias="DEVICE_TOKENS_TABLE_NAME",
    )
