"""
SeaNotes - Server-Sent Events v1.0

Copyright (c) 2025 Brent Lefebure / EhkoLabs
Licensed under AGPLv3 - See LICENSE in repository root

Pushes live updates (AI-generated titles) to the note owner's open
browser tabs. Each open /api/events stream owns one queue; broadcasting
to a user enqueues on all of that user's queues.
"""

import json
import logging
import queue
import threading
import time
from typing import Any, Dict, Iterator, List, Optional

logger = logging.getLogger(__name__)

EVENT_CONNECTED = "connected"
EVENT_PING = "ping"
EVENT_TITLE_UPDATED = "title_updated"

# Put on a queue to end its stream
CLOSE_STREAM = object()

DEFAULT_HEARTBEAT_SECONDS = 25.0


def format_sse(event: Dict[str, Any]) -> str:
    return f"data: {json.dumps(event, default=str)}\n\n"


class EventManager:
    """Per-user subscriber queues for SSE streams."""

    def __init__(self):
        self._connections: Dict[str, List[queue.Queue]] = {}
        self._lock = threading.Lock()

    def connect(self, user_id: str) -> queue.Queue:
        """Register a new stream for user_id and return its queue."""
        subscriber: queue.Queue = queue.Queue()
        with self._lock:
            self._connections.setdefault(user_id, []).append(subscriber)
        logger.debug("SSE connected", extra={"user_id": user_id})
        return subscriber

    def disconnect(self, user_id: str, subscriber: queue.Queue) -> None:
        with self._lock:
            queues = self._connections.get(user_id)
            if not queues:
                return
            if subscriber in queues:
                queues.remove(subscriber)
            if not queues:
                del self._connections[user_id]
        logger.debug("SSE disconnected", extra={"user_id": user_id})

    def broadcast(self, user_id: str, event_type: str, data: Any = None) -> int:
        """
        Send an event to every stream of user_id.

        Returns:
            Number of queues the event was delivered to
        """
        event = {
            "type": event_type,
            "data": data,
            "timestamp": int(time.time() * 1000),
        }

        with self._lock:
            queues = list(self._connections.get(user_id, []))

        delivered = 0
        for subscriber in queues:
            try:
                subscriber.put_nowait(event)
                delivered += 1
            except queue.Full:
                logger.error(f"SSE queue full, dropped {event_type}", extra={"user_id": user_id})
        return delivered

    def broadcast_title_update(self, note_id: str, title: str, user_id: str) -> int:
        return self.broadcast(user_id, EVENT_TITLE_UPDATED, {
            "noteId": note_id,
            "title": title,
            "userId": user_id,
        })

    def get_active_connections_count(self) -> int:
        """Number of users with at least one open stream."""
        with self._lock:
            return len(self._connections)

    def has_active_connection(self, user_id: str) -> bool:
        with self._lock:
            return bool(self._connections.get(user_id))

    def close_user_connection(self, user_id: str) -> None:
        """End every stream of user_id."""
        with self._lock:
            queues = self._connections.pop(user_id, [])
        for subscriber in queues:
            subscriber.put_nowait(CLOSE_STREAM)

    def stream(
        self,
        user_id: str,
        subscriber: queue.Queue,
        heartbeat_seconds: float = DEFAULT_HEARTBEAT_SECONDS,
        max_events: Optional[int] = None,
    ) -> Iterator[str]:
        """
        Yield SSE frames for one subscriber until it is closed.

        Starts with a connected event and sends a ping whenever the queue
        stays idle for heartbeat_seconds. max_events bounds the number of
        frames after the connected event.
        """
        sent = 0
        try:
            yield format_sse({
                "type": EVENT_CONNECTED,
                "message": "SSE connection established",
                "timestamp": int(time.time() * 1000),
            })
            while max_events is None or sent < max_events:
                try:
                    event = subscriber.get(timeout=heartbeat_seconds)
                except queue.Empty:
                    event = {"type": EVENT_PING, "timestamp": int(time.time() * 1000)}

                if event is CLOSE_STREAM:
                    break
                yield format_sse(event)
                sent += 1
        finally:
            self.disconnect(user_id, subscriber)


# Process-wide instance used by the API and background tasks
event_manager = EventManager()


__all__ = [
    "EventManager",
    "event_manager",
    "format_sse",
    "EVENT_CONNECTED",
    "EVENT_PING",
    "EVENT_TITLE_UPDATED",
    "CLOSE_STREAM",
]
