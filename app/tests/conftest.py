import pytest

from infrastructure.configuration import Settings
from infrastructure.configuration.features import NotificationRetrySettings, PushSettings
from infrastructure.configuration.infrastructure import StoreSettings
from infrastructure.services import reset_settings


@pytest.fixture(autouse=True)
def clear_settings_cache():
    """Every test starts from freshly loaded settings."""
    reset_settings()
    yield
    reset_settings()


@pytest.fixture
def settings_factory():
    """Factory for Settings with the in-memory backend and fast push batching.

    Example:
        settings = settings_factory(retry={"NOTIFICATION_MAX_RETRIES": 2})
    """

    def _factory(retry=None, push=None, **sections) -> Settings:
        retry_values = {"NOTIFICATION_RETRY_ENABLED": False, **(retry or {})}
        push_values = {"PUSH_BATCH_DELAY_SECONDS": 0, **(push or {})}
        sections.setdefault("store", StoreSettings(NOTIFICATION_STORE_BACKEND="memory"))
        return Settings(
            retry=NotificationRetrySettings(**retry_values),
            push=PushSettings(**push_values),
            **sections,
        )

    return _factory
