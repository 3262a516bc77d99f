"""Notification domain models.

Uses Pydantic BaseModel for persisted records and API-facing inputs:
- Runtime validation of requests (blank titles, unknown types)
- JSON round-trips through the stores (``model_dump(mode="json")``)

Per-channel delivery state is a typed record with one field per channel,
so updates name the channel instead of building string paths.
"""

from dataclasses import dataclass
from datetime import datetime, timezone
from enum import Enum
from typing import Any, Dict, List, Optional
from uuid import uuid4

from pydantic import BaseModel, Field, field_validator, model_validator


def utc_now() -> datetime:
    """Timezone-aware current UTC time."""
    return datetime.now(timezone.utc)


class Channel(str, Enum):
    """Delivery channels."""

    REALTIME = "realtime"
    EMAIL = "email"
    CHAT = "chat"
    PUSH = "push"


class NotificationType(str, Enum):
    """Business event that produced the notification."""

    TASK_ASSIGNED = "task_assigned"
    TASK_COMPLETED = "task_completed"
    TASK_OVERDUE = "task_overdue"
    TASK_ESCALATED = "task_escalated"
    TASK_UPDATED = "task_updated"
    TASK_DELETED = "task_deleted"
    TASK_COMMENT = "task_comment"
    WORKFLOW_COMPLETED = "workflow_completed"
    SYSTEM_ALERT = "system_alert"
    NOTIFICATION_ESCALATION = "notification_escalation"


class NotificationPriority(str, Enum):
    """Notification priority levels, ordered low to urgent."""

    LOW = "low"
    MEDIUM = "medium"
    HIGH = "high"
    URGENT = "urgent"

    @property
    def rank(self) -> int:
        """Sort rank, higher is more urgent."""
        return PRIORITY_RANK[self]


PRIORITY_RANK = {
    NotificationPriority.LOW: 0,
    NotificationPriority.MEDIUM: 1,
    NotificationPriority.HIGH: 2,
    NotificationPriority.URGENT: 3,
}


class ChannelState(BaseModel):
    """Delivery state of one channel on one notification.

    ``sent`` and ``error`` are mutually exclusive; neither set means the
    channel was never attempted. Use ``delivered()`` / ``failed()`` to build
    attempted states.
    """

    sent: bool = False
    sent_at: Optional[datetime] = None
    error: Optional[str] = None

    @model_validator(mode="after")
    def check_sent_excludes_error(self) -> "ChannelState":
        if self.sent and self.error:
            raise ValueError("A sent channel cannot carry an error")
        return self

    @classmethod
    def delivered(cls, at: Optional[datetime] = None) -> "ChannelState":
        return cls(sent=True, sent_at=at or utc_now(), error=None)

    @classmethod
    def failed(cls, error: str) -> "ChannelState":
        return cls(sent=False, sent_at=None, error=error or "unknown error")

    @property
    def is_failing(self) -> bool:
        """Attempted, not sent, error recorded."""
        return not self.sent and bool(self.error)


class ChannelStates(BaseModel):
    """Per-channel states. ``None`` means the channel was not eligible."""

    realtime: Optional[ChannelState] = None
    email: Optional[ChannelState] = None
    chat: Optional[ChannelState] = None
    push: Optional[ChannelState] = None

    def get(self, channel: Channel) -> Optional[ChannelState]:
        return getattr(self, channel.value)

    def set(self, channel: Channel, state: ChannelState) -> None:
        setattr(self, channel.value, state)

    def eligible(self) -> Dict[Channel, ChannelState]:
        """Channels that have a state, in declaration order."""
        return {
            channel: state
            for channel in Channel
            if (state := self.get(channel)) is not None
        }

    def failing(self) -> List[Channel]:
        return [channel for channel, state in self.eligible().items() if state.is_failing]


class Notification(BaseModel):
    """Persisted notification record.

    Created once by the dispatcher, then only mutated in place (channel
    states, retry bookkeeping, read flag) until the cleanup sweeper deletes it.
    """

    id: str = Field(default_factory=lambda: uuid4().hex)
    recipient: str
    type: NotificationType
    title: str
    message: str
    data: Dict[str, Any] = Field(default_factory=dict)
    priority: NotificationPriority = NotificationPriority.MEDIUM
    channels: ChannelStates = Field(default_factory=ChannelStates)
    retry_count: int = 0
    next_retry_at: Optional[datetime] = None
    is_retrying: bool = False
    escalated: bool = False
    escalated_at: Optional[datetime] = None
    read: bool = False
    read_at: Optional[datetime] = None
    created_at: datetime = Field(default_factory=utc_now)

    @property
    def failing_channels(self) -> List[Channel]:
        return self.channels.failing()

    @property
    def is_escalation(self) -> bool:
        return self.type == NotificationType.NOTIFICATION_ESCALATION

    def awaits_escalation(self, max_retries: int) -> bool:
        """Retry budget spent, still failing, and no operator told yet."""
        return (
            bool(self.failing_channels)
            and self.retry_count >= max_retries
            and not self.escalated
            and not self.is_escalation
        )

    def is_retry_candidate(self, now: datetime, max_retries: int, max_age_cutoff: datetime) -> bool:
        """Whether the retry scheduler should pick this record up at ``now``.

        Exhausted records whose escalation has not been recorded stay
        candidates so a later cycle can escalate them.
        """
        if self.is_retrying or self.escalated or self.created_at <= max_age_cutoff:
            return False
        if self.awaits_escalation(max_retries):
            return True
        return (
            bool(self.failing_channels)
            and self.retry_count < max_retries
            and (self.next_retry_at is None or self.next_retry_at <= now)
        )

    def is_terminal(self, max_retries: int) -> bool:
        """Exhausted or escalated; eligible for cleanup once old enough."""
        return self.retry_count >= max_retries or self.escalated


class NotificationRequest(BaseModel):
    """Inbound "send notification" request.

    Example:
        request = NotificationRequest(
            recipient="user-123",
            type=NotificationType.TASK_ASSIGNED,
            title="New task",
            message="You were assigned 'Quarterly report'",
            data={"taskId": "t-1", "projectName": "Finance"},
        )
    """

    recipient: str
    type: NotificationType
    title: str
    message: str
    data: Dict[str, Any] = Field(default_factory=dict)
    priority: NotificationPriority = NotificationPriority.MEDIUM

    @field_validator("recipient", "title", "message")
    @classmethod
    def validate_not_blank(cls, v: str) -> str:
        """Ensure required text fields are not empty."""
        if not v or not v.strip():
            raise ValueError("Field cannot be empty")
        return v


class Platform(str, Enum):
    """Device platforms for push tokens."""

    WEB = "web"
    IOS = "ios"
    ANDROID = "android"


class DeviceToken(BaseModel):
    """Push endpoint owned by a recipient."""

    token: str
    platform: Platform = Platform.WEB
    device_id: Optional[str] = None
    app_version: Optional[str] = None
    registered_at: datetime = Field(default_factory=utc_now)
    last_used: datetime = Field(default_factory=utc_now)


class RecipientProfile(BaseModel):
    """Resolved recipient configuration supplied by the recipient directory.

    ``preferences`` maps channel to per-type flags. A channel is eligible for
    a notification only when the map has the channel and the type's flag is
    True.
    """

    recipient_id: str
    email: Optional[str] = None
    display_name: Optional[str] = None
    chat_webhook_url: Optional[str] = None
    is_operator: bool = False
    active: bool = True
    preferences: Dict[Channel, Dict[NotificationType, bool]] = Field(
        default_factory=dict
    )

    def eligible_channels(self, notification_type: NotificationType) -> List[Channel]:
        return [
            channel
            for channel in Channel
            if self.preferences.get(channel, {}).get(notification_type, False)
        ]


@dataclass(frozen=True)
class DeliveryOutcome:
    """Result of one channel delivery attempt.

    Attributes:
        success: Whether the channel delivered
        error: Failure reason, None on success
        permanent: True when retrying the same attempt cannot succeed
    """

    success: bool
    error: Optional[str] = None
    permanent: bool = False

    @classmethod
    def ok(cls) -> "DeliveryOutcome":
        return cls(success=True)

    @classmethod
    def failure(cls, error: str, permanent: bool = False) -> "DeliveryOutcome":
        return cls(success=False, error=error, permanent=permanent)

    def to_state(self, at: Optional[datetime] = None) -> ChannelState:
        if self.success:
            return ChannelState.delivered(at)
        return ChannelState.failed(self.error or "unknown error")


@dataclass
class BulkSendResult:
    """Outcome of a bulk send: created records and per-recipient failures."""

    sent: List[Notification]
    failed: List[Dict[str, str]]
