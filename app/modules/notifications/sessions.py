"""Realtime session registry.

Tracks live sessions per recipient. Delivery from worker threads goes
through ``RealtimeSession.send``; websocket sessions hop onto the event
loop that owns the socket.
"""

import asyncio
import threading
from collections import defaultdict
from typing import Any, Dict, List, Protocol

from fastapi import WebSocket

from infrastructure.logging import get_module_logger

logger = get_module_logger()


class RealtimeSession(Protocol):
    """A live connection able to receive JSON events."""

    def send(self, message: Dict[str, Any]) -> None:
        """Deliver one message; raise on failure."""
        ...


class WebSocketSession:
    """Adapts a FastAPI WebSocket to RealtimeSession.

    ``send`` is called from dispatcher worker threads, so the coroutine is
    scheduled on the loop that accepted the socket and awaited with a timeout.
    """

    def __init__(
        self,
        websocket: WebSocket,
        loop: asyncio.AbstractEventLoop,
        timeout_seconds: float = 5.0,
    ):
        self.websocket = websocket
        self.loop = loop
        self.timeout_seconds = timeout_seconds

    def send(self, message: Dict[str, Any]) -> None:
        future = asyncio.run_coroutine_threadsafe(
            self.websocket.send_json(message), self.loop
        )
        future.result(timeout=self.timeout_seconds)


class RealtimeSessionRegistry:
    """Active realtime sessions grouped by recipient."""

    def __init__(self) -> None:
        self._sessions: Dict[str, List[RealtimeSession]] = defaultdict(list)
        self._lock = threading.Lock()

    def connect(self, recipient: str, session: RealtimeSession) -> None:
        with self._lock:
            self._sessions[recipient].append(session)
        logger.info("realtime_session_connected", recipient=recipient)

    def disconnect(self, recipient: str, session: RealtimeSession) -> None:
        with self._lock:
            sessions = self._sessions.get(recipient)
            if not sessions:
                return
            if session in sessions:
                sessions.remove(session)
            if not sessions:
                del self._sessions[recipient]
        logger.info("realtime_session_disconnected", recipient=recipient)

    def has_sessions(self, recipient: str) -> bool:
        with self._lock:
            return bool(self._sessions.get(recipient))

    def publish(self, recipient: str, event: str, payload: Dict[str, Any]) -> int:
        """Send ``{"event", "data"}`` to every session of the recipient.

        Sessions that fail are dropped. Returns how many sessions received it.
        """
        with self._lock:
            sessions = list(self._sessions.get(recipient, []))

        delivered = 0
        for session in sessions:
            try:
                session.send({"event": event, "data": payload})
                delivered += 1
            except Exception as e:  # pylint: disable=broad-except
                logger.warning(
                    "realtime_session_send_failed",
                    recipient=recipient,
                    realtime_event=event,
                    error=str(e),
                )
                self.disconnect(recipient, session)
        return delivered
