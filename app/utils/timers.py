"""
Cancellable periodic tasks.

Each PeriodicTask owns one daemon thread that calls its callback at a fixed
rate (the next run advances from the scheduled time, not from "now").
``stop()`` is idempotent and never joins the worker thread, so it is safe to
call while holding a lock the callback may be waiting on. Callers that share
state with a callback must therefore tolerate one late tick after ``stop()``.
"""

from __future__ import annotations

import logging
import threading
import time
from typing import Callable, Protocol

logger = logging.getLogger(__name__)


class TaskHandle(Protocol):
    name: str

    @property
    def running(self) -> bool: ...

    def start(self) -> "TaskHandle": ...

    def stop(self) -> None: ...


TimerFactory = Callable[[str, int, Callable[[], None]], TaskHandle]


class PeriodicTask:
    """Run ``callback`` every ``interval_ms`` milliseconds until stopped."""

    def __init__(self, name: str, interval_ms: int, callback: Callable[[], None]) -> None:
        if interval_ms <= 0:
            raise ValueError("interval_ms must be positive")
        self.name = name
        self.interval_ms = int(interval_ms)
        self._callback = callback
        self._lock = threading.Lock()
        self._stop_event: threading.Event | None = None
        self._thread: threading.Thread | None = None
        self.run_count = 0
        self.failure_count = 0

    @property
    def running(self) -> bool:
        with self._lock:
            return self._stop_event is not None and not self._stop_event.is_set()

    def start(self) -> "PeriodicTask":
        with self._lock:
            if self._stop_event is not None and not self._stop_event.is_set():
                return self
            stop_event = threading.Event()
            thread = threading.Thread(
                target=self._run,
                args=(stop_event,),
                name=f"PeriodicTask-{self.name}",
                daemon=True,
            )
            self._stop_event = stop_event
            self._thread = thread
        thread.start()
        logger.debug("Started periodic task %s (every %sms)", self.name, self.interval_ms)
        return self

    def stop(self) -> None:
        with self._lock:
            if self._stop_event is None or self._stop_event.is_set():
                return
            self._stop_event.set()
            self._thread = None
        logger.debug("Stopped periodic task %s", self.name)

    def _run(self, stop_event: threading.Event) -> None:
        interval = self.interval_ms / 1000.0
        next_run = time.monotonic() + interval
        while not stop_event.wait(max(0.0, next_run - time.monotonic())):
            try:
                self._callback()
                self.run_count += 1
            except Exception as exc:
                self.failure_count += 1
                logger.error("Periodic task %s failed: %s", self.name, exc, exc_info=True)
            next_run += interval
            now = time.monotonic()
            if next_run < now:
                # Skip missed ticks instead of firing a burst
                next_run = now + interval


def default_timer_factory(name: str, interval_ms: int, callback: Callable[[], None]) -> PeriodicTask:
    return PeriodicTask(name, interval_ms, callback)
