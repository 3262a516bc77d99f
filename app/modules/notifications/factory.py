"""Composition root for the notification relay.

Builds every component once from settings and wires them by reference, so
the retry scheduler, cleanup sweeper and HTTP layer share the same store,
metrics and session registry.
"""

from dataclasses import dataclass
from typing import Dict, Optional

from infrastructure.configuration import Settings
from infrastructure.logging import get_module_logger
from infrastructure.services.providers import get_settings
from modules.notifications.batching import PushBatchAggregator, PushGateway
from modules.notifications.channels import (
    ChatChannel,
    EmailChannel,
    NotificationChannel,
    PushChannel,
    RealtimeChannel,
)
from modules.notifications.cleanup import CleanupSweeper
from modules.notifications.directory import InMemoryRecipientDirectory, RecipientDirectory
from modules.notifications.dispatcher import NotificationDispatcher
from modules.notifications.dynamodb_store import DynamoDBNotificationStore
from modules.notifications.escalation import EscalationPolicy
from modules.notifications.models import Channel
from modules.notifications.retry import RetryConfig, RetryMetrics, RetryScheduler
from modules.notifications.sessions import RealtimeSessionRegistry
from modules.notifications.store import InMemoryNotificationStore, NotificationStore
from modules.notifications.token_store import (
    DynamoDBTokenStore,
    InMemoryTokenStore,
    TokenStore,
)
from modules.notifications.tokens import DeviceTokenRegistry

logger = get_module_logger()

BACKEND_MEMORY = "memory"
BACKEND_DYNAMODB = "dynamodb"


@dataclass
class NotificationService:
    """Wired notification relay components."""

    settings: Settings
    store: NotificationStore
    token_store: TokenStore
    tokens: DeviceTokenRegistry
    directory: RecipientDirectory
    sessions: RealtimeSessionRegistry
    channels: Dict[Channel, NotificationChannel]
    dispatcher: NotificationDispatcher
    escalation: EscalationPolicy
    retry_scheduler: RetryScheduler
    cleanup: CleanupSweeper


def create_notification_store(settings: Settings) -> NotificationStore:
    """Create the configured notification store backend."""
    backend = settings.store.backend
    if backend == BACKEND_DYNAMODB:
        return DynamoDBNotificationStore(
            table_name=settings.store.notifications_table,
            max_retries=settings.retry.max_retries,
        )
    if backend == BACKEND_MEMORY:
        return InMemoryNotificationStore()
    raise ValueError(f"Unknown notification store backend: {backend}")


def create_token_store(settings: Settings) -> TokenStore:
    """Create the configured device token store backend."""
    backend = settings.store.backend
    if backend == BACKEND_DYNAMODB:
        return DynamoDBTokenStore(table_name=settings.store.tokens_table)
    if backend == BACKEND_MEMORY:
        return InMemoryTokenStore()
    raise ValueError(f"Unknown token store backend: {backend}")


def build_notification_service(
    settings: Optional[Settings] = None,
    store: Optional[NotificationStore] = None,
    token_store: Optional[TokenStore] = None,
    directory: Optional[RecipientDirectory] = None,
    push_gateway: Optional[PushGateway] = None,
) -> NotificationService:
    """Build the notification relay.

    Args:
        settings: Settings, defaults to the process settings
        store: Optional notification store overriding the configured backend
        token_store: Optional token store overriding the configured backend
        directory: Optional recipient directory (in-memory by default)
        push_gateway: Optional push gateway replacing Firebase multicast

    Returns:
        NotificationService with nothing started
    """
    settings = settings or get_settings()
    store = store if store is not None else create_notification_store(settings)
    token_store = token_store if token_store is not None else create_token_store(settings)
    directory = directory if directory is not None else InMemoryRecipientDirectory()

    tokens = DeviceTokenRegistry(token_store, max_tokens=settings.push.max_tokens_per_recipient)
    aggregator_kwargs = {
        "batch_size": settings.push.batch_size,
        "batch_delay_seconds": settings.push.batch_delay_seconds,
    }
    if push_gateway is not None:
        aggregator_kwargs["gateway"] = push_gateway
    aggregator = PushBatchAggregator(tokens, **aggregator_kwargs)

    sessions = RealtimeSessionRegistry()
    base_url = settings.server.CLIENT_BASE_URL
    channels: Dict[Channel, NotificationChannel] = {
        Channel.REALTIME: RealtimeChannel(sessions, store),
        Channel.EMAIL: EmailChannel(base_url, settings.email),
        Channel.CHAT: ChatChannel(base_url, settings.chat.CHAT_WEBHOOK_TIMEOUT_SECONDS),
        Channel.PUSH: PushChannel(
            tokens,
            aggregator,
            gateway_enabled=push_gateway is not None or settings.firebase.enabled,
        ),
    }

    dispatcher = NotificationDispatcher(store, directory, channels)
    escalation = EscalationPolicy(store, dispatcher, directory)
    config = RetryConfig.from_settings(settings.retry)
    metrics = RetryMetrics()
    retry_scheduler = RetryScheduler(store, dispatcher, escalation, config, metrics)
    cleanup = CleanupSweeper(store, config, metrics)

    logger.info(
        "notification_service_built",
        backend=settings.store.backend,
        channels=[channel.value for channel in channels],
    )
    return NotificationService(
        settings=settings,
        store=store,
        token_store=token_store,
        tokens=tokens,
        directory=directory,
        sessions=sessions,
        channels=channels,
        dispatcher=dispatcher,
        escalation=escalation,
        retry_scheduler=retry_scheduler,
        cleanup=cleanup,
    )
