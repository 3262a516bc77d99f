"""Annotated aliases for FastAPI route signatures."""

from typing import Annotated

from fastapi import Depends

from infrastructure.configuration import Settings
from infrastructure.services.providers import get_settings

SettingsDep = Annotated[Settings, Depends(get_settings)]

__all__ = [
    "SettingsDep",
]
