"""
Repository Base Helpers
=======================

Change-listener registry shared by the stores that stream updates to
subscribers (``on_readings_update``, ``on_logs_update``).

Listeners are keyed by user id. A listener is called once on subscription
with the current snapshot and again after every successful write for that
user. Listener errors are logged and never reach the writer.
"""

from __future__ import annotations

import logging
import threading
from collections import defaultdict
from typing import Callable, Generic, TypeVar

logger = logging.getLogger(__name__)

T = TypeVar("T")

Listener = Callable[[list[T]], None]


class ChangeListeners(Generic[T]):
    """Thread-safe per-user callback registry."""

    def __init__(self, name: str) -> None:
        self._name = name
        self._lock = threading.Lock()
        self._listeners: dict[int, list[Listener]] = defaultdict(list)

    def add(self, user_id: int, callback: Listener) -> Callable[[], None]:
        with self._lock:
            self._listeners[user_id].append(callback)

        def unsubscribe() -> None:
            with self._lock:
                callbacks = self._listeners.get(user_id, [])
                if callback in callbacks:
                    callbacks.remove(callback)

        return unsubscribe

    def has_listeners(self, user_id: int) -> bool:
        with self._lock:
            return bool(self._listeners.get(user_id))

    def notify(self, user_id: int, snapshot: list[T]) -> None:
        with self._lock:
            callbacks = list(self._listeners.get(user_id, []))
        for callback in callbacks:
            self.deliver(callback, snapshot)

    def deliver(self, callback: Listener, snapshot: list[T]) -> None:
        try:
            callback(snapshot)
        except Exception as exc:
            logger.error("%s listener failed: %s", self._name, exc, exc_info=True)
