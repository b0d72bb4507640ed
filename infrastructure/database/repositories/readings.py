from __future__ import annotations

import logging
import math
import sqlite3
from typing import Callable

from app.domain.ph import OperationResult, Reading
from app.enums import ReadingSource
from app.utils.time import epoch_ms
from infrastructure.database.ops.ph_readings import PHReadingOperations
from infrastructure.database.repositories.base import ChangeListeners

logger = logging.getLogger(__name__)


class ReadingRepository:
    """pH reading store: write results, ordered queries and change streams."""

    def __init__(self, backend: PHReadingOperations, stream_limit: int = 500) -> None:
        self._backend = backend
        self._stream_limit = stream_limit
        self._listeners: ChangeListeners[Reading] = ChangeListeners("readings")

    def add_reading(
        self,
        user_id: int,
        value: float,
        source: ReadingSource = ReadingSource.SENSOR,
        timestamp: int | None = None,
    ) -> OperationResult[Reading]:
        if user_id is None:
            return OperationResult.fail("no_user")
        try:
            value = float(value)
        except (TypeError, ValueError):
            return OperationResult.fail("invalid_value", value=repr(value))
        if not math.isfinite(value):
            return OperationResult.fail("invalid_value", value=repr(value))

        ts = epoch_ms() if timestamp is None else int(timestamp)
        try:
            row = self._backend.upsert_ph_reading(user_id, value, ReadingSource(source).value, ts)
        except sqlite3.Error as exc:
            logger.error("Failed to store pH reading for user %s: %s", user_id, exc)
            return OperationResult.fail("storage_error", message=str(exc))

        reading = Reading.from_row(row)
        if self._listeners.has_listeners(user_id):
            self._listeners.notify(user_id, self.readings(user_id, limit=self._stream_limit))
        return OperationResult.ok(reading)

    def readings(self, user_id: int, since: int | None = None, limit: int | None = None) -> list[Reading]:
        return [Reading.from_row(row) for row in self._backend.get_ph_readings(user_id, since, limit)]

    def count(self, user_id: int) -> int:
        return self._backend.count_ph_readings(user_id)

    def on_readings_update(self, user_id: int, callback: Callable[[list[Reading]], None]) -> Callable[[], None]:
        """Stream the ordered reading list to ``callback``. Returns an unsubscribe callable."""
        unsubscribe = self._listeners.add(user_id, callback)
        self._listeners.deliver(callback, self.readings(user_id, limit=self._stream_limit))
        return unsubscribe

    def prune_readings(self, older_than_ms: int, user_id: int | None = None) -> OperationResult[int]:
        try:
            deleted = self._backend.delete_ph_readings_before(older_than_ms, user_id)
        except sqlite3.Error as exc:
            logger.error("Failed to prune pH readings: %s", exc)
            return OperationResult.fail("storage_error", message=str(exc))
        if deleted:
            logger.info("Pruned %s pH readings older than %s", deleted, older_than_ms)
        return OperationResult.ok(deleted)
