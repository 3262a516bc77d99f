"""Push delivery and device token settings."""

from pydantic import Field

from infrastructure.configuration.base import FeatureSettings


class PushSettings(FeatureSettings):
    """Push batch aggregation and device token registry configuration.

    Environment Variables:
        PUSH_BATCH_SIZE: Tokens per gateway call (default: 500)
        PUSH_BATCH_DELAY_SECONDS: Pause between batches (default: 0.1)
        PUSH_MAX_TOKENS_PER_RECIPIENT: Token cap per recipient (default: 5)
    """

    batch_size: int = Field(default=500, alias="PUSH_BATCH_SIZE")
    batch_delay_seconds: float = Field(default=0.1, alias="PUSH_BATCH_DELAY_SECONDS")
    max_tokens_per_recipient: int = Field(
        default=5, alias="PUSH_MAX_TOKENS_PER_RECIPIENT"
    )
