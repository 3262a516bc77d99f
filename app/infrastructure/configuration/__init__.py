"""Infrastructure configuration module - public API.

Centralized configuration for the notification relay using Pydantic
BaseSettings with domain-based organization.

Exports:
    Settings: Main settings class
    NotificationRetrySettings, PushSettings, StoreSettings: section classes
        (for tests and overrides)

Example:
    ```python
    from infrastructure.services import get_settings

    settings = get_settings()

    interval = settings.retry.interval_seconds
    batch_size = settings.push.batch_size
    ```
"""

from infrastructure.configuration.settings import Settings
from infrastructure.configuration.features import (
    NotificationRetrySettings,
    PushSettings,
)
from infrastructure.configuration.infrastructure import StoreSettings

__all__ = ["Settings", "NotificationRetrySettings", "PushSettings", "StoreSettings"]
