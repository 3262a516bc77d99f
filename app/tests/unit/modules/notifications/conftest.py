"""Fixtures for notification relay tests."""

import threading
from datetime import datetime, timedelta
from typing import Dict, List, Optional

import pytest

from infrastructure.operations import OperationResult
from modules.notifications.channels.base import NotificationChannel
from modules.notifications.directory import InMemoryRecipientDirectory
from modules.notifications.dispatcher import NotificationDispatcher
from modules.notifications.escalation import EscalationPolicy
from modules.notifications.models import (
    Channel,
    ChannelState,
    ChannelStates,
    DeliveryOutcome,
    Notification,
    NotificationPriority,
    NotificationType,
    RecipientProfile,
    utc_now,
)
from modules.notifications.retry import RetryConfig, RetryMetrics, RetryScheduler
from modules.notifications.store import InMemoryNotificationStore
from modules.notifications.token_store import InMemoryTokenStore
from modules.notifications.tokens import DeviceTokenRegistry


class FakeChannel(NotificationChannel):
    """Channel adapter returning scripted outcomes.

    ``outcomes`` is consumed in order; the last outcome repeats.
    """

    def __init__(self, channel: Channel, outcomes: Optional[List[DeliveryOutcome]] = None):
        self._channel = channel
        self.outcomes = list(outcomes or [DeliveryOutcome.ok()])
        self.calls: List[str] = []
        self.raises: Optional[Exception] = None
        self._lock = threading.Lock()

    @property
    def channel(self) -> Channel:
        return self._channel

    def deliver(self, context, notification) -> DeliveryOutcome:
        with self._lock:
            self.calls.append(notification.id)
            if self.raises is not None:
                raise self.raises
            if len(self.outcomes) > 1:
                return self.outcomes.pop(0)
            return self.outcomes[0]


@pytest.fixture
def fake_channel_factory():
    """Factory for FakeChannel.

    Example:
        email = fake_channel_factory(Channel.EMAIL, DeliveryOutcome.failure("500"))
    """

    def _factory(channel: Channel, *outcomes: DeliveryOutcome) -> FakeChannel:
        return FakeChannel(channel, list(outcomes) or None)

    return _factory


@pytest.fixture
def recipient_factory():
    """Factory for RecipientProfile instances.

    Example:
        profile = recipient_factory("user-1", channels=[Channel.EMAIL])
        operator = recipient_factory("op-1", is_operator=True)
    """

    def _factory(
        recipient_id: str = "user-1",
        channels: Optional[List[Channel]] = None,
        email: Optional[str] = "user@example.com",
        chat_webhook_url: Optional[str] = "https://hooks.example.com/T000/B000",
        is_operator: bool = False,
        active: bool = True,
        display_name: Optional[str] = "Test User",
    ) -> RecipientProfile:
        enabled = channels if channels is not None else [Channel.REALTIME, Channel.EMAIL]
        preferences = {
            channel: {notification_type: True for notification_type in NotificationType}
            for channel in enabled
        }
        return RecipientProfile(
            recipient_id=recipient_id,
            email=email,
            display_name=display_name,
            chat_webhook_url=chat_webhook_url,
            is_operator=is_operator,
            active=active,
            preferences=preferences,
        )

    return _factory


@pytest.fixture
def notification_factory():
    """Factory for Notification records.

    ``failing`` lists channels with a recorded error, ``sent`` channels that
    delivered.

    Example:
        record = notification_factory(failing=[Channel.EMAIL], retry_count=1)
    """

    def _factory(
        recipient: str = "user-1",
        notification_type: NotificationType = NotificationType.TASK_ASSIGNED,
        priority: NotificationPriority = NotificationPriority.MEDIUM,
        failing: Optional[List[Channel]] = None,
        sent: Optional[List[Channel]] = None,
        created_at: Optional[datetime] = None,
        data: Optional[Dict] = None,
        **fields,
    ) -> Notification:
        states = ChannelStates()
        for channel in sent or []:
            states.set(channel, ChannelState.delivered())
        for channel in failing or []:
            states.set(channel, ChannelState.failed(f"{channel.value} unavailable"))
        return Notification(
            recipient=recipient,
            type=notification_type,
            data=data or {},
            priority=priority,
            channels=states,
            created_at=created_at or utc_now(),
            **{
                "title": "New task",
                "message": "You were assigned 'Quarterly report'",
                **fields,
            },
        )

    return _factory


@pytest.fixture
def store():
    return InMemoryNotificationStore()


@pytest.fixture
def directory():
    return InMemoryRecipientDirectory()


@pytest.fixture
def token_registry():
    return DeviceTokenRegistry(InMemoryTokenStore(), max_tokens=5)


@pytest.fixture
def make_token():
    """Build a well-formed device token from a short suffix."""

    def _make(suffix: str) -> str:
        return f"fcm:{'A' * 60}_{suffix}"

    return _make


@pytest.fixture
def fake_push_gateway():
    """Push gateway recording calls and answering per token.

    Set ``gateway.errors[token] = code`` to fail a token, or
    ``gateway.batch_failure = OperationResult...`` to fail whole batches.
    """

    class FakeGateway:
        def __init__(self):
            self.calls: List[List[str]] = []
            self.errors: Dict[str, str] = {}
            self.batch_failure: Optional[OperationResult] = None
            self.kwargs: List[Dict] = []

        def __call__(self, tokens, title, body, data, android_priority="normal"):
            self.calls.append(list(tokens))
            self.kwargs.append(
                {"title": title, "body": body, "data": data, "android_priority": android_priority}
            )
            if self.batch_failure is not None:
                return self.batch_failure
            return OperationResult.success(
                data=[
                    {
                        "token": token,
                        "success": token not in self.errors,
                        "error_code": self.errors.get(token),
                        "message": self.errors.get(token),
                    }
                    for token in tokens
                ]
            )

    return FakeGateway()


@pytest.fixture
def relay(store, directory, fake_channel_factory):
    """Dispatcher, escalation policy and retry scheduler over fake channels.

    Returns a namespace-like dict; channels start as always-succeeding fakes
    and can be replaced through ``relay["channels"][Channel.EMAIL] = ...``.
    """
    channels = {
        channel: fake_channel_factory(channel)
        for channel in (Channel.REALTIME, Channel.EMAIL, Channel.CHAT, Channel.PUSH)
    }
    dispatcher = NotificationDispatcher(store, directory, channels)
    escalation = EscalationPolicy(store, dispatcher, directory)
    config = RetryConfig(max_retries=3, backoff_multiplier=2.0, base_delay_seconds=60)
    scheduler = RetryScheduler(store, dispatcher, escalation, config, RetryMetrics())
    return {
        "store": store,
        "directory": directory,
        "channels": channels,
        "dispatcher": dispatcher,
        "escalation": escalation,
        "scheduler": scheduler,
        "config": config,
    }


@pytest.fixture
def frozen_now(monkeypatch):
    """Control ``utc_now`` in the retry and cleanup modules.

    Example:
        clock = frozen_now()
        clock.advance(minutes=5)
    """

    class Clock:
        def __init__(self):
            self.now = utc_now()

        def __call__(self):
            return self.now

        def advance(self, **delta):
            self.now = self.now + timedelta(**delta)

    def _install() -> Clock:
        clock = Clock()
        monkeypatch.setattr("modules.notifications.retry.utc_now", clock)
        monkeypatch.setattr("modules.notifications.cleanup.utc_now", clock)
        return clock

    return _install
