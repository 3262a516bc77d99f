"""Push batch aggregation.

Partitions a recipient's token set into gateway-sized batches, sends the
batches one after another with a short pause, merges the per-token outcomes
and feeds permanently invalid tokens back to the device token registry.
"""

import time
from dataclasses import dataclass, field
from typing import Any, Callable, Dict, List

from infrastructure.logging import get_module_logger
from infrastructure.operations import OperationResult
from integrations.firebase import client as firebase_client
from modules.notifications.errors import NotificationStoreError
from modules.notifications.models import Notification, NotificationPriority
from modules.notifications.tokens import DeviceTokenRegistry, is_valid_token_format

logger = get_module_logger()

INVALID_TOKEN_CODES = frozenset(
    {
        firebase_client.INVALID_REGISTRATION_TOKEN,
        firebase_client.TOKEN_NOT_REGISTERED,
        firebase_client.INVALID_ARGUMENT,
    }
)

PushGateway = Callable[..., OperationResult]


@dataclass
class PushPayload:
    """Gateway-ready push content. ``data`` values are strings."""

    title: str
    body: str
    data: Dict[str, str] = field(default_factory=dict)
    android_priority: str = "normal"


@dataclass
class PushSendReport:
    """Merged outcome of a push send across all batches."""

    success_count: int = 0
    failure_count: int = 0
    invalid_format: int = 0
    invalid_tokens: List[str] = field(default_factory=list)
    errors: List[str] = field(default_factory=list)

    @property
    def delivered(self) -> bool:
        """At least one token accepted the message."""
        return self.success_count > 0


def build_push_payload(notification: Notification) -> PushPayload:
    """Build the push payload for a notification.

    Data carries the type, a timestamp, the notification id and every entry
    of ``notification.data``, stringified. Urgent notifications use high
    Android priority.
    """
    data: Dict[str, Any] = {
        "type": notification.type.value,
        "timestamp": notification.created_at.isoformat(),
        "notificationId": notification.id,
        **notification.data,
    }
    return PushPayload(
        title=notification.title,
        body=notification.message,
        data={key: str(value) for key, value in data.items() if value is not None},
        android_priority=(
            "high" if notification.priority == NotificationPriority.URGENT else "normal"
        ),
    )


class PushBatchAggregator:
    """Sends push payloads to token sets in sequential batches.

    Attributes:
        registry: DeviceTokenRegistry receiving invalid-token feedback
        gateway: Callable sending one batch (firebase send_multicast signature)
        batch_size: Tokens per gateway call
        batch_delay_seconds: Pause between consecutive batches
    """

    def __init__(
        self,
        registry: DeviceTokenRegistry,
        gateway: PushGateway = firebase_client.send_multicast,
        batch_size: int = 500,
        batch_delay_seconds: float = 0.1,
    ):
        self.registry = registry
        self.gateway = gateway
        self.batch_size = batch_size
        self.batch_delay_seconds = batch_delay_seconds

    def send_push(self, tokens: List[str], payload: PushPayload) -> PushSendReport:
        """Send ``payload`` to ``tokens``.

        Malformed tokens are counted and never sent. A gateway call that
        fails or raises marks its whole batch failed and the next batch still
        goes out. A failed invalid-token cleanup is logged, never raised.
        """
        report = PushSendReport()
        valid = []
        for token in dict.fromkeys(tokens):
            if is_valid_token_format(token):
                valid.append(token)
            else:
                report.invalid_format += 1

        if report.invalid_format:
            logger.warning("push_tokens_invalid_format", count=report.invalid_format)

        batches = [
            valid[i : i + self.batch_size] for i in range(0, len(valid), self.batch_size)
        ]
        for index, batch in enumerate(batches):
            if index > 0 and self.batch_delay_seconds > 0:
                time.sleep(self.batch_delay_seconds)
            self._send_batch(batch, payload, report)

        if report.invalid_tokens:
            try:
                self.registry.cleanup_invalid_tokens(report.invalid_tokens)
            except NotificationStoreError as e:
                logger.error(
                    "invalid_token_cleanup_failed",
                    count=len(report.invalid_tokens),
                    error=str(e),
                )

        logger.info(
            "push_send_completed",
            batches=len(batches),
            success_count=report.success_count,
            failure_count=report.failure_count,
            invalid_format=report.invalid_format,
            invalid_tokens=len(report.invalid_tokens),
        )
        return report

    def _send_batch(
        self, batch: List[str], payload: PushPayload, report: PushSendReport
    ) -> None:
        try:
            result = self.gateway(
                batch,
                payload.title,
                payload.body,
                payload.data,
                android_priority=payload.android_priority,
            )
        except Exception as e:  # pylint: disable=broad-except
            result = OperationResult.transient_error(
                f"Push gateway error: {type(e).__name__}: {e}", error_code="GATEWAY_ERROR"
            )
            logger.error("push_gateway_raised", batch_size=len(batch), exc_info=True)

        if not result.is_success:
            report.failure_count += len(batch)
            report.errors.append(result.message)
            logger.warning(
                "push_batch_failed", batch_size=len(batch), error=result.message
            )
            return

        for outcome in result.data or []:
            if outcome["success"]:
                report.success_count += 1
                continue
            report.failure_count += 1
            if outcome["error_code"] in INVALID_TOKEN_CODES:
                report.invalid_tokens.append(outcome["token"])
            elif outcome.get("message"):
                report.errors.append(outcome["message"])
