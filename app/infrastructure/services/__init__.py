"""Shared providers and their FastAPI dependency aliases."""

from infrastructure.services.dependencies import SettingsDep
from infrastructure.services.providers import get_settings, reset_settings

__all__ = [
    "SettingsDep",
    "get_settings",
    "reset_settings",
]
