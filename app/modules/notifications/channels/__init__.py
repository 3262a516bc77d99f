"""Notification channel implementations.

Contains:

- base: NotificationChannel interface and result conversion
- realtime: websocket session delivery
- email: transactional email API delivery
- chat: chat webhook delivery
- push: device push delivery via the batch aggregator
"""

from modules.notifications.channels.base import NotificationChannel, outcome_from_result
from modules.notifications.channels.chat import ChatChannel
from modules.notifications.channels.email import EmailChannel
from modules.notifications.channels.push import PushChannel
from modules.notifications.channels.realtime import RealtimeChannel

__all__ = [
    "NotificationChannel",
    "outcome_from_result",
    "RealtimeChannel",
    "EmailChannel",
    "ChatChannel",
    "PushChannel",
]
