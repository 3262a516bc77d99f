"""Push channel delivering through the batch aggregator."""

from infrastructure.logging import get_module_logger
from infrastructure.operations import OperationResult
from modules.notifications.batching import PushBatchAggregator, build_push_payload
from modules.notifications.channels.base import NotificationChannel
from modules.notifications.errors import NotificationStoreError
from modules.notifications.models import (
    Channel,
    DeliveryOutcome,
    Notification,
    RecipientProfile,
)
from modules.notifications.tokens import DeviceTokenRegistry

logger = get_module_logger()


class PushChannel(NotificationChannel):
    """Mobile/web push channel.

    Succeeds when at least one device accepted the message.
    """

    def __init__(
        self,
        registry: DeviceTokenRegistry,
        aggregator: PushBatchAggregator,
        gateway_enabled: bool = True,
    ):
        self.registry = registry
        self.aggregator = aggregator
        self.gateway_enabled = gateway_enabled

    @property
    def channel(self) -> Channel:
        return Channel.PUSH

    def deliver(
        self, context: RecipientProfile, notification: Notification
    ) -> DeliveryOutcome:
        try:
            tokens = self.registry.get_tokens(context.recipient_id)
        except NotificationStoreError as e:
            logger.error("push_token_lookup_failed", recipient=context.recipient_id, error=str(e))
            return DeliveryOutcome.failure(f"device token lookup failed: {e}")

        if not tokens:
            return DeliveryOutcome.failure("no registered device tokens")

        report = self.aggregator.send_push(
            [t.token for t in tokens], build_push_payload(notification)
        )
        if report.delivered:
            return DeliveryOutcome.ok()

        if report.errors:
            error = report.errors[0]
        elif report.invalid_tokens:
            error = f"{len(report.invalid_tokens)} device tokens are no longer valid"
        else:
            error = "push delivered to no device"
        return DeliveryOutcome.failure(error)

    def health_check(self) -> OperationResult:
        if not self.gateway_enabled:
            return OperationResult.permanent_error(
                "Push gateway credentials are not configured",
                error_code="NOT_CONFIGURED",
            )
        return OperationResult.success(message="push channel ready")
