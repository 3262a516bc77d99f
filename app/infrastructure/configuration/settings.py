"""Top-level relay settings built from per-concern sections."""

from typing import ClassVar, Dict, List, Type

from pydantic_settings import BaseSettings

from infrastructure.configuration.base import RelaySettingsSection
from infrastructure.configuration.features import (
    NotificationRetrySettings,
    PushSettings,
)
from infrastructure.configuration.infrastructure import (
    ServerSettings,
    StoreSettings,
)
from infrastructure.configuration.integrations import (
    AwsSettings,
    ChatSettings,
    EmailSettings,
    FirebaseSettings,
)


class Settings(RelaySettingsSection):
    """Everything the relay reads from its environment.

    Sections:
        aws, email, chat, firebase: external services deliveries go through
        retry: retry cycle, escalation threshold and record cleanup
        push: batching delays and the per-recipient device token cap
        store: ``memory`` or ``dynamodb`` backend and table names
        server: client base URL for action links, realtime send timeout

    Environment Variables:
        PREFIX: Non-empty outside production (e.g. ``dev-``)
        LOG_LEVEL: Root log level (default: INFO)
        GIT_SHA: Commit deployed, served by ``/version``

    Any section can be passed as a keyword to replace the one loaded from the
    environment, which is how tests build settings with the memory backend:

        Settings(store=StoreSettings(NOTIFICATION_STORE_BACKEND="memory"))
    """

    SECTIONS: ClassVar[Dict[str, Type[BaseSettings]]] = {
        "aws": AwsSettings,
        "email": EmailSettings,
        "chat": ChatSettings,
        "firebase": FirebaseSettings,
        "retry": NotificationRetrySettings,
        "push": PushSettings,
        "store": StoreSettings,
        "server": ServerSettings,
    }

    PREFIX: str = ""
    LOG_LEVEL: str = "INFO"
    GIT_SHA: str = "Unknown"

    aws: AwsSettings
    email: EmailSettings
    chat: ChatSettings
    firebase: FirebaseSettings
    retry: NotificationRetrySettings
    push: PushSettings
    store: StoreSettings
    server: ServerSettings

    def __init__(self, **kwargs):
        for name, section in self.SECTIONS.items():
            kwargs.setdefault(name, section())
        super().__init__(**kwargs)

    @property
    def is_production(self) -> bool:
        return not self.PREFIX

    def section_keys(self) -> Dict[str, List[str]]:
        """Field names per section, for startup logging without values."""
        return {
            name: list(type(getattr(self, name)).model_fields)
            for name in self.SECTIONS
        }
