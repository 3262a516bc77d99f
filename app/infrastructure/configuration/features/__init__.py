"""Feature settings __init__ - exports notification feature settings."""

from infrastructure.configuration.features.push import PushSettings
from infrastructure.configuration.features.retry import NotificationRetrySettings

__all__ = [
    "NotificationRetrySettings",
    "PushSettings",
]
