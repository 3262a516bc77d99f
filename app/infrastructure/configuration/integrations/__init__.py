"""Integration settings __init__ - exports all integration settings."""

from infrastructure.configuration.integrations.aws import AwsSettings
from infrastructure.configuration.integrations.chat import ChatSettings
from infrastructure.configuration.integrations.email import EmailSettings
from infrastructure.configuration.integrations.firebase import FirebaseSettings

__all__ = [
    "AwsSettings",
    "ChatSettings",
    "EmailSettings",
    "FirebaseSettings",
]
