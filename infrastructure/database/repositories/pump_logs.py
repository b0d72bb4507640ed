from __future__ import annotations

import logging
import sqlite3
from typing import Callable

from app.domain.ph import OperationResult, PumpEvent
from app.enums import PumpOrigin, PumpType
from app.utils.time import epoch_ms
from infrastructure.database.ops.pump_logs import PumpLogOperations
from infrastructure.database.repositories.base import ChangeListeners

logger = logging.getLogger(__name__)


class PumpLogRepository:
    """Pump activity log with change streams."""

    def __init__(self, backend: PumpLogOperations, stream_limit: int = 50) -> None:
        self._backend = backend
        self._stream_limit = stream_limit
        self._listeners: ChangeListeners[PumpEvent] = ChangeListeners("pump logs")

    def log_activity(
        self,
        user_id: int,
        pump_type: PumpType | str,
        reagent: str,
        concentration: str,
        ph_before: float | None = None,
        origin: PumpOrigin = PumpOrigin.CONTROLLER,
        timestamp: int | None = None,
    ) -> OperationResult[PumpEvent]:
        if user_id is None:
            return OperationResult.fail("no_user")
        try:
            pump = PumpType(pump_type)
        except ValueError:
            return OperationResult.fail("invalid_pump_type", pump_type=str(pump_type))

        try:
            row = self._backend.insert_pump_log(
                {
                    "user_id": user_id,
                    "pump_type": pump.value,
                    "reagent": reagent,
                    "concentration": concentration,
                    "ph_before": ph_before,
                    "origin": PumpOrigin(origin).value,
                    "timestamp_ms": epoch_ms() if timestamp is None else int(timestamp),
                }
            )
        except sqlite3.Error as exc:
            logger.error("Failed to log %s pump activity for user %s: %s", pump.value, user_id, exc)
            return OperationResult.fail("storage_error", message=str(exc))

        event = PumpEvent.from_row(row)
        if self._listeners.has_listeners(user_id):
            self._listeners.notify(user_id, self.recent(user_id, self._stream_limit))
        return OperationResult.ok(event)

    def recent(self, user_id: int, limit: int = 50, pump_type: PumpType | None = None) -> list[PumpEvent]:
        """Most recent first."""
        rows = self._backend.get_pump_logs(user_id, limit, pump_type.value if pump_type else None)
        return [PumpEvent.from_row(row) for row in rows]

    def counts(self, user_id: int, since: int | None = None) -> dict[str, int]:
        counts = self._backend.get_pump_counts(user_id, since)
        return {pump.value: counts.get(pump.value, 0) for pump in PumpType}

    def on_logs_update(self, user_id: int, callback: Callable[[list[PumpEvent]], None]) -> Callable[[], None]:
        unsubscribe = self._listeners.add(user_id, callback)
        self._listeners.deliver(callback, self.recent(user_id, self._stream_limit))
        return unsubscribe
