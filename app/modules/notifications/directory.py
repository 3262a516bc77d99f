"""Recipient directory.

Resolves recipient ids to profiles (addresses, webhook URL, channel
preferences) and lists the operators that receive escalations. User
management lives elsewhere; the relay only reads profiles.
"""

import threading
from typing import Dict, List, Optional, Protocol

from modules.notifications.models import RecipientProfile


class RecipientDirectory(Protocol):
    """Read-only lookup of recipient profiles."""

    def get_recipient(self, recipient_id: str) -> Optional[RecipientProfile]:
        """Return the profile or None when unknown."""
        ...

    def list_operators(self) -> List[RecipientProfile]:
        """Return active operator profiles."""
        ...


class InMemoryRecipientDirectory:
    """Thread-safe in-memory RecipientDirectory, populated with ``upsert``."""

    def __init__(self, profiles: Optional[List[RecipientProfile]] = None):
        self._profiles: Dict[str, RecipientProfile] = {}
        self._lock = threading.Lock()
        for profile in profiles or []:
            self.upsert(profile)

    def upsert(self, profile: RecipientProfile) -> None:
        with self._lock:
            self._profiles[profile.recipient_id] = profile.model_copy(deep=True)

    def get_recipient(self, recipient_id: str) -> Optional[RecipientProfile]:
        with self._lock:
            profile = self._profiles.get(recipient_id)
            return profile.model_copy(deep=True) if profile else None

    def list_operators(self) -> List[RecipientProfile]:
        with self._lock:
            return [
                profile.model_copy(deep=True)
                for profile in self._profiles.values()
                if profile.is_operator and profile.active
            ]
