"""Notification dispatcher with concurrent multi-channel fan-out.

Creates the notification record, then delivers it through every channel
the recipient's preferences enable, concurrently. Each channel result is
written to the store as soon as it is known, so a slow channel never
delays the state of a fast one.

Usage Example:
    dispatcher = NotificationDispatcher(
        store=InMemoryNotificationStore(),
        directory=directory,
        channels={Channel.EMAIL: email_channel, Channel.REALTIME: realtime},
    )

    notification = dispatcher.send(
        NotificationRequest(
            recipient="user-123",
            type=NotificationType.TASK_ASSIGNED,
            title="New task",
            message="You were assigned 'Quarterly report'",
        )
    )
"""

import contextvars
from concurrent.futures import ALL_COMPLETED, ThreadPoolExecutor, wait
from typing import Dict, Iterable, List, Optional

from infrastructure.logging import bind_notification_context, get_module_logger
from modules.notifications.channels.base import NotificationChannel
from modules.notifications.directory import RecipientDirectory
from modules.notifications.errors import (
    NotificationError,
    NotificationStoreError,
    RecipientNotFoundError,
)
from modules.notifications.models import (
    BulkSendResult,
    Channel,
    ChannelState,
    ChannelStates,
    DeliveryOutcome,
    Notification,
    NotificationRequest,
    RecipientProfile,
    utc_now,
)
from modules.notifications.store import NotificationStore

logger = get_module_logger()


class NotificationDispatcher:
    """Multi-channel notification dispatcher.

    Attributes:
        store: NotificationStore holding the records
        directory: RecipientDirectory resolving recipient profiles
        channels: Dict mapping Channel to its NotificationChannel adapter
    """

    def __init__(
        self,
        store: NotificationStore,
        directory: RecipientDirectory,
        channels: Dict[Channel, NotificationChannel],
    ):
        self.store = store
        self.directory = directory
        self.channels = channels

        logger.info(
            "initialized_notification_dispatcher",
            channels=[channel.value for channel in channels],
        )

    def _resolve(self, recipient_id: str) -> RecipientProfile:
        profile = self.directory.get_recipient(recipient_id)
        if profile is None:
            raise RecipientNotFoundError(f"Unknown recipient: {recipient_id}")
        return profile

    def send(self, request: NotificationRequest) -> Notification:
        """Create a notification and deliver it on every eligible channel.

        Channel failures are recorded on the record, never raised.

        Raises:
            RecipientNotFoundError: the directory has no such recipient
            NotificationStoreError: the record could not be created
        """
        profile = self._resolve(request.recipient)
        eligible = [
            channel
            for channel in profile.eligible_channels(request.type)
            if channel in self.channels
        ]

        channel_states = ChannelStates()
        for channel in eligible:
            channel_states.set(channel, ChannelState())

        notification = self.store.create(
            Notification(
                recipient=request.recipient,
                type=request.type,
                title=request.title,
                message=request.message,
                data=request.data,
                priority=request.priority,
                channels=channel_states,
            )
        )

        with bind_notification_context(
            notification_id=notification.id, recipient=notification.recipient
        ):
            outcomes = self._fan_out(profile, notification, eligible, persist=True)
            failed = [c.value for c, outcome in outcomes.items() if not outcome.success]
            logger.info(
                "notification_sent",
                notification_type=notification.type.value,
                priority=notification.priority.value,
                channels=[c.value for c in eligible],
                failed_channels=failed,
            )

        try:
            return self.store.get(notification.id) or notification
        except NotificationStoreError as e:
            logger.warning(
                "notification_reread_failed", notification_id=notification.id, error=str(e)
            )
            for channel, outcome in outcomes.items():
                notification.channels.set(channel, outcome.to_state())
            return notification

    def retry_channels(
        self, notification: Notification, channels: Iterable[Channel]
    ) -> Dict[Channel, DeliveryOutcome]:
        """Re-deliver on the given channels only; the store is not touched.

        Raises:
            RecipientNotFoundError: the recipient was removed from the directory
        """
        profile = self._resolve(notification.recipient)
        wanted = list(channels)
        outcomes = self._fan_out(profile, notification, wanted, persist=False)
        for channel in wanted:
            if channel not in outcomes:
                outcomes[channel] = DeliveryOutcome.failure(
                    f"channel {channel.value} is not available", permanent=True
                )
        return outcomes

    def send_bulk(
        self, recipients: List[str], request: NotificationRequest
    ) -> BulkSendResult:
        """Send the same notification to several recipients.

        Per-recipient failures are collected, never raised.
        """
        result = BulkSendResult(sent=[], failed=[])
        for recipient in recipients:
            try:
                notification = self.send(request.model_copy(update={"recipient": recipient}))
                result.sent.append(notification)
            except (NotificationError, ValueError) as e:
                logger.warning("bulk_send_recipient_failed", recipient=recipient, error=str(e))
                result.failed.append({"recipient": recipient, "error": str(e)})

        logger.info(
            "bulk_send_completed",
            notification_type=request.type.value,
            sent=len(result.sent),
            failed=len(result.failed),
        )
        return result

    def mark_read(
        self, recipient: str, notification_ids: Optional[List[str]] = None
    ) -> int:
        """Mark the recipient's notifications read; return how many changed."""
        changed = self.store.mark_read(recipient, notification_ids, utc_now())
        logger.info("notifications_marked_read", recipient=recipient, count=changed)
        return changed

    def unread_count(self, recipient: str) -> int:
        return self.store.unread_count(recipient)

    def _fan_out(
        self,
        profile: RecipientProfile,
        notification: Notification,
        channels: List[Channel],
        persist: bool,
    ) -> Dict[Channel, DeliveryOutcome]:
        adapters = [self.channels[c] for c in channels if c in self.channels]
        if not adapters:
            return {}

        with ThreadPoolExecutor(max_workers=len(adapters)) as executor:
            futures = {
                executor.submit(
                    contextvars.copy_context().run,
                    self._deliver,
                    adapter,
                    profile,
                    notification,
                    persist,
                ): adapter.channel
                for adapter in adapters
            }
            wait(futures, return_when=ALL_COMPLETED)

        return {channel: future.result() for future, channel in futures.items()}

    def _deliver(
        self,
        adapter: NotificationChannel,
        profile: RecipientProfile,
        notification: Notification,
        persist: bool,
    ) -> DeliveryOutcome:
        channel = adapter.channel
        try:
            outcome = adapter.deliver(profile, notification)
        except Exception as e:  # pylint: disable=broad-except
            logger.error(
                "notification_channel_error",
                channel=channel.value,
                error=str(e),
                exc_info=True,
            )
            outcome = DeliveryOutcome.failure(f"{type(e).__name__}: {e}")

        if outcome.success:
            logger.debug("notification_channel_delivered", channel=channel.value)
        else:
            logger.warning(
                "notification_channel_failed",
                channel=channel.value,
                error=outcome.error,
                permanent=outcome.permanent,
            )

        if persist:
            try:
                self.store.update_channel(
                    notification.id, channel, outcome.to_state(utc_now())
                )
            except NotificationStoreError as e:
                logger.error(
                    "notification_channel_state_write_failed",
                    channel=channel.value,
                    error=str(e),
                    error_code=e.error_code,
                )
        return outcome
