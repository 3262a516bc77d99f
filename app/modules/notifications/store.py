"""Notification record storage.

This module provides the storage interface and the in-memory implementation
for notification records. The protocol-based design allows multiple backends
(in-memory, DynamoDB) with the same atomicity guarantees:

- every mutation is scoped to one record id
- the retry guard (``is_retrying``) is taken with a check-and-set
- escalation is marked at most once per record
"""

import threading
from datetime import datetime, timedelta
from typing import Dict, List, Optional, Protocol

from infrastructure.logging import get_module_logger
from modules.notifications.models import (
    Channel,
    ChannelState,
    Notification,
)

logger = get_module_logger()


class NotificationStore(Protocol):
    """Storage interface for notification records.

    Implementations raise ``NotificationStoreError`` when the backend is
    unavailable; "not found" and "lost the race" are return values.
    """

    def create(self, notification: Notification) -> Notification:
        """Persist a new record and return it."""
        ...

    def get(self, notification_id: str) -> Optional[Notification]:
        """Return the record or None."""
        ...

    def update_channel(
        self, notification_id: str, channel: Channel, state: ChannelState
    ) -> None:
        """Replace one channel's state on the record (single atomic merge)."""
        ...

    def find_retry_candidates(
        self,
        now: datetime,
        max_retries: int,
        max_age: timedelta,
        limit: int,
    ) -> List[Notification]:
        """Return records eligible for a retry cycle.

        Eligible: at least one failing channel, ``retry_count < max_retries``,
        ``next_retry_at`` unset or due, created within ``max_age``, not
        retrying, not escalated. Exhausted records still awaiting escalation
        are included regardless of ``next_retry_at``. Ordered by priority
        descending then ``created_at`` ascending, at most ``limit`` records.
        """
        ...

    def try_begin_retry(self, notification_id: str) -> bool:
        """Atomically set ``is_retrying`` if it is clear. False if held or missing."""
        ...

    def complete_retry(
        self,
        notification_id: str,
        channel_states: Dict[Channel, ChannelState],
        retry_count: int,
        next_retry_at: Optional[datetime],
    ) -> Notification:
        """Write a finished cycle's results and clear ``is_retrying`` in one merge."""
        ...

    def release_retry(self, notification_id: str) -> None:
        """Clear ``is_retrying`` without other changes (error path)."""
        ...

    def mark_escalated(self, notification_id: str, at: datetime) -> bool:
        """Set ``escalated``/``escalated_at`` once. False if already escalated."""
        ...

    def delete_expired(self, cutoff: datetime, max_retries: int) -> int:
        """Delete terminal records created before ``cutoff``; return the count."""
        ...

    def mark_read(
        self, recipient: str, notification_ids: Optional[List[str]], at: datetime
    ) -> int:
        """Mark the recipient's unread records (all, or the given ids) read."""
        ...

    def unread_count(self, recipient: str) -> int:
        """Count the recipient's unread records."""
        ...


def retry_sort_key(notification: Notification):
    """Priority descending, then oldest first."""
    return (-notification.priority.rank, notification.created_at)


class InMemoryNotificationStore:
    """Thread-safe in-memory implementation of NotificationStore.

    Suitable for single-instance deployments, development and tests. Records
    are copied on the way in and out so callers never share mutable state
    with the store.
    """

    def __init__(self) -> None:
        self._records: Dict[str, Notification] = {}
        self._lock = threading.Lock()

    def create(self, notification: Notification) -> Notification:
        with self._lock:
            self._records[notification.id] = notification.model_copy(deep=True)
        logger.debug(
            "notification_record_created",
            notification_id=notification.id,
            recipient=notification.recipient,
        )
        return notification.model_copy(deep=True)

    def get(self, notification_id: str) -> Optional[Notification]:
        with self._lock:
            record = self._records.get(notification_id)
            return record.model_copy(deep=True) if record else None

    def update_channel(
        self, notification_id: str, channel: Channel, state: ChannelState
    ) -> None:
        with self._lock:
            record = self._records.get(notification_id)
            if record is None:
                logger.warning(
                    "channel_update_record_missing",
                    notification_id=notification_id,
                    channel=channel.value,
                )
                return
            record.channels.set(channel, state.model_copy())

    def find_retry_candidates(
        self,
        now: datetime,
        max_retries: int,
        max_age: timedelta,
        limit: int,
    ) -> List[Notification]:
        cutoff = now - max_age
        with self._lock:
            candidates = [
                record.model_copy(deep=True)
                for record in self._records.values()
                if record.is_retry_candidate(now, max_retries, cutoff)
            ]
        candidates.sort(key=retry_sort_key)
        return candidates[:limit]

    def try_begin_retry(self, notification_id: str) -> bool:
        with self._lock:
            record = self._records.get(notification_id)
            if record is None or record.is_retrying:
                return False
            record.is_retrying = True
            return True

    def complete_retry(
        self,
        notification_id: str,
        channel_states: Dict[Channel, ChannelState],
        retry_count: int,
        next_retry_at: Optional[datetime],
    ) -> Notification:
        with self._lock:
            record = self._records[notification_id]
            for channel, state in channel_states.items():
                record.channels.set(channel, state.model_copy())
            record.retry_count = retry_count
            record.next_retry_at = next_retry_at
            record.is_retrying = False
            return record.model_copy(deep=True)

    def release_retry(self, notification_id: str) -> None:
        with self._lock:
            record = self._records.get(notification_id)
            if record is not None:
                record.is_retrying = False

    def mark_escalated(self, notification_id: str, at: datetime) -> bool:
        with self._lock:
            record = self._records.get(notification_id)
            if record is None or record.escalated:
                return False
            record.escalated = True
            record.escalated_at = at
            return True

    def delete_expired(self, cutoff: datetime, max_retries: int) -> int:
        with self._lock:
            expired = [
                notification_id
                for notification_id, record in self._records.items()
                if record.created_at < cutoff and record.is_terminal(max_retries)
            ]
            for notification_id in expired:
                del self._records[notification_id]
        return len(expired)

    def mark_read(
        self, recipient: str, notification_ids: Optional[List[str]], at: datetime
    ) -> int:
        wanted = set(notification_ids) if notification_ids is not None else None
        changed = 0
        with self._lock:
            for record in self._records.values():
                if record.recipient != recipient or record.read:
                    continue
                if wanted is not None and record.id not in wanted:
                    continue
                record.read = True
                record.read_at = at
                changed += 1
        return changed

    def unread_count(self, recipient: str) -> int:
        with self._lock:
            return sum(
                1
                for record in self._records.values()
                if record.recipient == recipient and not record.read
            )
