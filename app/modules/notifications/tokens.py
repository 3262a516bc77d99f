"""Device token registry.

Owns the set of push endpoints per recipient: validates token format,
deduplicates by token value, caps tokens per recipient (oldest registration
evicted first) and removes tokens the push gateway reports as permanently
invalid from every recipient holding them.
"""

import re
from typing import Iterable, List, Optional

from infrastructure.logging import get_module_logger
from modules.notifications.errors import InvalidTokenError
from modules.notifications.models import DeviceToken, Platform, utc_now
from modules.notifications.token_store import TokenStore

logger = get_module_logger()

MIN_TOKEN_LENGTH = 50
TOKEN_PATTERN = re.compile(r"^[A-Za-z0-9_:\-]+$")


def is_valid_token_format(token: object) -> bool:
    """String, longer than 50 characters, URL-safe characters only."""
    return (
        isinstance(token, str)
        and len(token) > MIN_TOKEN_LENGTH
        and TOKEN_PATTERN.match(token) is not None
    )


class DeviceTokenRegistry:
    """Per-recipient device token registry.

    Attributes:
        store: TokenStore backend
        max_tokens: Maximum tokens kept per recipient
    """

    def __init__(self, store: TokenStore, max_tokens: int = 5):
        self.store = store
        self.max_tokens = max_tokens

    def register_token(
        self,
        recipient: str,
        token: str,
        platform: Platform = Platform.WEB,
        device_id: Optional[str] = None,
        app_version: Optional[str] = None,
    ) -> DeviceToken:
        """Register (or refresh) a token and enforce the per-recipient cap.

        Raises:
            InvalidTokenError: token fails format validation
        """
        if not is_valid_token_format(token):
            raise InvalidTokenError("Device token has an invalid format")

        now = utc_now()
        device_token = DeviceToken(
            token=token,
            platform=platform,
            device_id=device_id,
            app_version=app_version,
            registered_at=now,
            last_used=now,
        )
        created = self.store.upsert(recipient, device_token)

        tokens = self.store.list(recipient)
        evicted = self._evict_overflow(recipient, tokens)

        logger.info(
            "device_token_registered",
            recipient=recipient,
            platform=platform.value,
            created=created,
            evicted=evicted,
        )
        for stored in tokens:
            if stored.token == token:
                return stored
        return device_token

    def _evict_overflow(self, recipient: str, tokens: List[DeviceToken]) -> int:
        overflow = len(tokens) - self.max_tokens
        if overflow <= 0:
            return 0
        oldest = sorted(tokens, key=lambda t: t.registered_at)[:overflow]
        for stale in oldest:
            self.store.remove(recipient, stale.token)
            tokens.remove(stale)
        return overflow

    def unregister_token(self, recipient: str, token: str) -> bool:
        """Remove a token from a recipient. True if it was registered."""
        removed = self.store.remove(recipient, token)
        logger.info("device_token_unregistered", recipient=recipient, removed=removed)
        return removed

    def get_tokens(self, recipient: str) -> List[DeviceToken]:
        """Return the recipient's tokens and refresh their ``last_used``."""
        tokens = self.store.list(recipient)
        if tokens:
            now = utc_now()
            self.store.touch(recipient, [t.token for t in tokens], now)
            for t in tokens:
                t.last_used = now
        return tokens

    def cleanup_invalid_tokens(self, tokens: Iterable[str]) -> int:
        """Remove each token from every recipient holding it.

        Returns:
            Number of (recipient, token) entries removed
        """
        removed = 0
        for token in set(tokens):
            for recipient in self.store.recipients_for(token):
                if self.store.remove(recipient, token):
                    removed += 1
        if removed:
            logger.info("invalid_tokens_removed", removed=removed)
        return removed
