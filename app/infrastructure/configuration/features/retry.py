"""Notification retry, escalation and cleanup settings."""

from pydantic import Field, field_validator

from infrastructure.configuration.base import FeatureSettings


class NotificationRetrySettings(FeatureSettings):
    """Retry scheduler and cleanup sweeper configuration.

    Environment Variables:
        NOTIFICATION_RETRY_ENABLED: Run the background retry/cleanup loops
        NOTIFICATION_RETRY_INTERVAL_SECONDS: Retry cycle interval (default: 300)
        NOTIFICATION_MAX_RETRIES: Retry cycles before escalation (default: 3)
        NOTIFICATION_BACKOFF_MULTIPLIER: Exponential base (default: 2.0)
        NOTIFICATION_BACKOFF_BASE_DELAY_SECONDS: Backoff unit (default: 60)
        NOTIFICATION_RETRY_BATCH_SIZE: Candidates per cycle (default: 100)
        NOTIFICATION_MAX_AGE_DAYS: Retry window and cleanup age (default: 7)
        NOTIFICATION_CLEANUP_INTERVAL_SECONDS: Sweep interval (default: 86400)

    Backoff:
        next_retry_at = now + multiplier ** retry_count * base_delay, where
        retry_count is the value after the cycle's increment.

        Example with defaults (multiplier=2, base=60s):
            After cycle 1: 120s
            After cycle 2: 240s
            After cycle 3: none (exhausted, escalated)
    """

    enabled: bool = Field(
        default=True,
        alias="NOTIFICATION_RETRY_ENABLED",
        description="Run the background retry and cleanup loops",
    )
    interval_seconds: int = Field(
        default=300,
        alias="NOTIFICATION_RETRY_INTERVAL_SECONDS",
        description="Seconds between retry cycles",
    )
    max_retries: int = Field(
        default=3,
        alias="NOTIFICATION_MAX_RETRIES",
        description="Retry cycles allowed before escalation",
    )
    backoff_multiplier: float = Field(
        default=2.0,
        alias="NOTIFICATION_BACKOFF_MULTIPLIER",
        description="Exponential backoff base",
    )
    base_delay_seconds: int = Field(
        default=60,
        alias="NOTIFICATION_BACKOFF_BASE_DELAY_SECONDS",
        description="Backoff unit delay (seconds)",
    )
    batch_size: int = Field(
        default=100,
        alias="NOTIFICATION_RETRY_BATCH_SIZE",
        description="Maximum candidates processed per cycle",
    )
    max_age_days: int = Field(
        default=7,
        alias="NOTIFICATION_MAX_AGE_DAYS",
        description="Records older than this are neither retried nor kept once terminal",
    )
    cleanup_interval_seconds: int = Field(
        default=86400,
        alias="NOTIFICATION_CLEANUP_INTERVAL_SECONDS",
        description="Seconds between cleanup sweeps",
    )

    @field_validator("backoff_multiplier")
    @classmethod
    def validate_multiplier(cls, v: float) -> float:
        """Backoff must grow between retries."""
        if v <= 1:
            raise ValueError("NOTIFICATION_BACKOFF_MULTIPLIER must be greater than 1")
        return v
