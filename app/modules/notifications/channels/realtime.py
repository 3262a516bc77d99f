"""Realtime channel backed by the websocket session registry."""

from infrastructure.logging import get_module_logger
from modules.notifications.channels.base import NotificationChannel
from modules.notifications.models import (
    Channel,
    DeliveryOutcome,
    Notification,
    RecipientProfile,
)
from modules.notifications.sessions import RealtimeSessionRegistry
from modules.notifications.store import NotificationStore
from modules.notifications.templates import realtime_event

logger = get_module_logger()


class RealtimeChannel(NotificationChannel):
    """Pushes ``notification`` and ``notification_count_update`` events.

    A recipient with no live session is not an error: the notification is
    stored and picked up on next load.
    """

    def __init__(self, sessions: RealtimeSessionRegistry, store: NotificationStore):
        self.sessions = sessions
        self.store = store

    @property
    def channel(self) -> Channel:
        return Channel.REALTIME

    def deliver(
        self, context: RecipientProfile, notification: Notification
    ) -> DeliveryOutcome:
        recipient = context.recipient_id
        if not self.sessions.has_sessions(recipient):
            logger.debug("realtime_recipient_offline", recipient=recipient)
            return DeliveryOutcome.ok()

        delivered = self.sessions.publish(
            recipient, "notification", realtime_event(notification)
        )
        if delivered == 0:
            return DeliveryOutcome.failure("realtime publish failed for every session")

        try:
            unread = self.store.unread_count(recipient)
            self.sessions.publish(
                recipient, "notification_count_update", {"unreadCount": unread}
            )
        except Exception as e:  # pylint: disable=broad-except
            logger.warning("realtime_count_update_failed", recipient=recipient, error=str(e))

        return DeliveryOutcome.ok()
