"""Outbound event channel for UI consumers."""

import logging
import threading
from collections.abc import Callable
from typing import Any

logger = logging.getLogger(__name__)

JOBS_UPDATE = "jobs-update"
JOB_STATUS = "job-status"
CONNECTION_STATUS = "connection-status"
STATS_UPDATE = "stats-update"

EVENTS = (JOBS_UPDATE, JOB_STATUS, CONNECTION_STATUS, STATS_UPDATE)


class EventBus:
    """Fire-and-forget publish/subscribe channel.

    Subscribers run synchronously on the emitting thread. A subscriber that
    raises is logged and skipped; the error never reaches the emitter.
    """

    def __init__(self):
        self._subscribers: dict[str, list[Callable[[Any], None]]] = {}
        self._lock = threading.Lock()

    def subscribe(self, event: str, callback: Callable[[Any], None]) -> None:
        with self._lock:
            self._subscribers.setdefault(event, []).append(callback)

    def unsubscribe(self, event: str, callback: Callable[[Any], None]) -> None:
        with self._lock:
            callbacks = self._subscribers.get(event, [])
            if callback in callbacks:
                callbacks.remove(callback)

    def emit(self, event: str, payload: Any = None) -> None:
        with self._lock:
            callbacks = list(self._subscribers.get(event, []))

        for callback in callbacks:
            try:
                callback(payload)
            except Exception:
                logger.exception(f"Subscriber for '{event}' failed")
