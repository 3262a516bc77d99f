"""Structured logging infrastructure.

Public API:
    - configure_logging(): Initialize logging for the application
    - get_module_logger(): Get a logger for the calling module
    - bind_notification_context(): Bind notification-scoped log context
"""

from infrastructure.logging.setup import (
    configure_logging,
    get_module_logger,
)
from infrastructure.logging.context import bind_notification_context

__all__ = [
    "configure_logging",
    "get_module_logger",
    "bind_notification_context",
]
