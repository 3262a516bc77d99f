"""Context binding for structured logging.

Binds notification-scoped context (notification id, recipient, cycle id)
so every log line emitted while a record is being processed carries it,
including lines from channel adapters running on worker threads that copy
the context explicitly.

Usage:
    from infrastructure.logging import bind_notification_context

    with bind_notification_context(notification_id="abc", recipient="u1"):
        logger.info("retrying_channels")
"""

from contextlib import contextmanager
from typing import Any, Generator, Optional

import structlog


@contextmanager
def bind_notification_context(
    notification_id: Optional[str] = None,
    recipient: Optional[str] = None,
    **extra_context: Any,
) -> Generator[None, None, None]:
    """Bind notification context to all logs within the block.

    Only non-None values are bound; the previous context is restored on exit.
    """
    context = {
        "notification_id": notification_id,
        "recipient": recipient,
        **extra_context,
    }
    context = {k: v for k, v in context.items() if v is not None}

    tokens = structlog.contextvars.bind_contextvars(**context)
    try:
        yield
    finally:
        structlog.contextvars.reset_contextvars(**tokens)
