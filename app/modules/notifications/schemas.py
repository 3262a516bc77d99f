"""API request and response schemas for the notification endpoints.

Key distinction from models.py:
  - schemas.py: HTTP contracts
  - models.py: records and domain values shared with the stores
"""

from datetime import datetime
from typing import Dict, List, Optional

from pydantic import BaseModel, Field, field_validator

from modules.notifications.models import (
    DeliveryOutcome,
    Notification,
    NotificationPriority,
    NotificationType,
    Platform,
)


class BulkSendRequest(BaseModel):
    """Same notification to many recipients."""

    recipients: List[str] = Field(min_length=1, max_length=1000)
    type: NotificationType
    title: str
    message: str
    data: Dict = Field(default_factory=dict)
    priority: NotificationPriority = NotificationPriority.MEDIUM


class BulkFailure(BaseModel):
    recipient: str
    error: str


class BulkSendResponse(BaseModel):
    sent: List[Notification]
    failed: List[BulkFailure]


class MarkReadRequest(BaseModel):
    """Mark some (``notification_ids``) or all unread notifications read."""

    recipient: str
    notification_ids: Optional[List[str]] = None


class MarkReadResponse(BaseModel):
    updated: int


class UnreadCountResponse(BaseModel):
    recipient: str
    unread_count: int


class RegisterTokenRequest(BaseModel):
    recipient: str
    token: str
    platform: Platform = Platform.WEB
    device_id: Optional[str] = None
    app_version: Optional[str] = None

    @field_validator("recipient")
    @classmethod
    def validate_recipient(cls, v: str) -> str:
        if not v.strip():
            raise ValueError("Field cannot be empty")
        return v


class UnregisterTokenRequest(BaseModel):
    recipient: str
    token: str


class DeviceTokenResponse(BaseModel):
    """Registered token, shown without its value."""

    platform: Platform
    device_id: Optional[str] = None
    app_version: Optional[str] = None
    registered_at: datetime
    last_used: datetime


class UnregisterTokenResponse(BaseModel):
    removed: bool


class ChannelOutcomeResponse(BaseModel):
    success: bool
    error: Optional[str] = None
    permanent: bool = False

    @classmethod
    def from_outcome(cls, outcome: DeliveryOutcome) -> "ChannelOutcomeResponse":
        return cls(success=outcome.success, error=outcome.error, permanent=outcome.permanent)


class ManualRetryResponse(BaseModel):
    notification: Notification
    outcomes: Dict[str, ChannelOutcomeResponse]
    escalated: bool
