"""pH monitoring sessions.

MonitoringService owns one PHRegulationController per user session and wires
it to storage:

- Session start loads the farm profile, resolves the optimal band and seeds the
  controller with stored history before starting the staleness check.
- Readings and pump events are applied to the controller first and persisted
  by EventBus subscribers. A crop change swaps the band and then writes the
  profile row on the calling thread, serialized so the stored crop always
  matches the one in memory. Storage failures are logged and kept as the
  session's last persistence error; local state is never rolled back.
- Operations on a user without a session return a failed OperationResult.
"""

from __future__ import annotations

import logging
import threading
from typing import Any, Callable

from app.control_loops.ph_controller import Clock, PHRegulationController
from app.control_loops.simulator import UniformSource
from app.domain.control import ControllerSettings
from app.domain.crops import find_crop
from app.domain.exceptions import ValidationError
from app.domain.ph import OperationResult, OptimalRange, PumpEvent, Reading
from app.domain.ph_analytics import classify_ph, filter_by_range, scale_position, summarize
from app.enums import ControlEvent, PumpOrigin, PumpType, ReadingSource, SensorEvent, SessionEvent, TimeRange
from app.hardware.sensor_link import parse_sensor_line
from app.schemas.ph import PHMessage, PumpCommand
from app.utils.event_bus import EventBus
from app.utils.time import epoch_ms, iso_now, ms_to_iso
from app.utils.timers import TimerFactory
from infrastructure.database.repositories.profiles import ProfileRepository
from infrastructure.database.repositories.pump_logs import PumpLogRepository
from infrastructure.database.repositories.readings import ReadingRepository

logger = logging.getLogger(__name__)

DAY_MS = 24 * 60 * 60 * 1000
HISTORY_SEED_LIMIT = 500
PUMP_HISTORY_SEED_LIMIT = 50


class MonitoringService:
    """Per-user pH monitoring sessions backed by SQLite repositories."""

    def __init__(
        self,
        reading_repo: ReadingRepository,
        pump_log_repo: PumpLogRepository,
        profile_repo: ProfileRepository,
        event_bus: EventBus,
        settings: ControllerSettings | None = None,
        *,
        retention_days: int = 30,
        clock: Clock | None = None,
        uniform: UniformSource | None = None,
        timer_factory: TimerFactory | None = None,
    ):
        self.reading_repo = reading_repo
        self.pump_log_repo = pump_log_repo
        self.profile_repo = profile_repo
        self.event_bus = event_bus
        self.settings = settings or ControllerSettings()
        self.retention_days = retention_days
        self._clock = clock or epoch_ms
        self._uniform = uniform
        self._timer_factory = timer_factory
        # Optional check for hardware already connected when a session starts
        self.device_status: Callable[[int], bool] | None = None

        self._sessions: dict[int, PHRegulationController] = {}
        self._persistence_errors: dict[int, dict[str, Any]] = {}
        self._lock = threading.Lock()
        self._crop_lock = threading.Lock()
        self._unsubscribers: list[Callable[[], None]] = [
            event_bus.subscribe(SensorEvent.PH_UPDATE, self._persist_reading),
            event_bus.subscribe(ControlEvent.PUMP_ACTIVATED, self._persist_pump_event),
        ]

    # ==================== Sessions ====================

    def start_session(self, user_id: int | None) -> OperationResult[dict[str, Any]]:
        """Create and start the user's controller. Starting twice is a no-op."""
        if user_id is None:
            return OperationResult.fail("no_user")

        with self._lock:
            controller = self._sessions.get(user_id)
            created = controller is None
            if created:
                controller = self._build_controller(user_id)
                self._sessions[user_id] = controller
                self._persistence_errors.pop(user_id, None)

        if created:
            if self.device_status is not None:
                controller.set_device_connected(self.device_status(user_id))
            controller.start()
            self.profile_repo.update(user_id, last_visited=iso_now())
            self.event_bus.publish(
                SessionEvent.SESSION_STARTED,
                {"user_id": user_id, "optimal_range": controller.optimal_range.to_dict()},
            )
        return OperationResult.ok(self._status_payload(user_id, controller))

    def end_session(self, user_id: int | None) -> OperationResult[bool]:
        with self._lock:
            controller = self._sessions.pop(user_id, None) if user_id is not None else None
        if controller is None:
            return OperationResult.fail("no_session")
        controller.stop()
        self.event_bus.publish(SessionEvent.SESSION_ENDED, {"user_id": user_id})
        return OperationResult.ok(True)

    def has_session(self, user_id: int | None) -> bool:
        with self._lock:
            return user_id in self._sessions

    def controller_for(self, user_id: int | None) -> PHRegulationController | None:
        with self._lock:
            return self._sessions.get(user_id) if user_id is not None else None

    def shutdown(self) -> None:
        """End every active session and drop bus subscriptions."""
        with self._lock:
            user_ids = list(self._sessions)
        for user_id in user_ids:
            self.end_session(user_id)
        for unsubscribe in self._unsubscribers:
            unsubscribe()
        self._unsubscribers = []

    def _build_controller(self, user_id: int) -> PHRegulationController:
        profile = self.profile_repo.get_or_default(user_id)
        try:
            optimal_range = profile.optimal_range(self.settings.default_range)
        except ValidationError as exc:
            logger.warning("Stored pH range for user %s is invalid (%s); using defaults", user_id, exc)
            optimal_range = self.settings.default_range

        controller = PHRegulationController(
            user_id,
            settings=self.settings,
            event_bus=self.event_bus,
            optimal_range=optimal_range,
            clock=self._clock,
            uniform=self._uniform,
            timer_factory=self._timer_factory,
        )

        since = self._clock() - self.retention_days * DAY_MS
        history = self.reading_repo.readings(user_id, since=since, limit=HISTORY_SEED_LIMIT)
        pump_history = self.pump_log_repo.recent(user_id, PUMP_HISTORY_SEED_LIMIT)
        controller.seed_history(history, pump_history)
        logger.info(
            "Monitoring session for user %s: crop=%s range=%s history=%s readings",
            user_id,
            profile.current_crop,
            optimal_range.to_dict(),
            len(history),
        )
        return controller

    # ==================== Ingestion ====================

    def ingest_value(
        self,
        user_id: int | None,
        value: float,
        source: ReadingSource = ReadingSource.SENSOR,
        timestamp: int | None = None,
    ) -> OperationResult[Reading]:
        controller = self.controller_for(user_id)
        if controller is None:
            return OperationResult.fail("no_session")
        reading = controller.ingest_value(value, source=source, timestamp=timestamp)
        if reading is None:
            return OperationResult.fail("invalid_value", value=repr(value))
        return OperationResult.ok(reading)

    def handle_sensor_line(self, user_id: int | None, line: str | bytes) -> OperationResult[Any]:
        """Apply one line from the sensor board. Malformed lines are ignored."""
        controller = self.controller_for(user_id)
        if controller is None:
            return OperationResult.fail("no_session")

        message = parse_sensor_line(line)
        if message is None:
            return OperationResult.fail("malformed_line")

        if isinstance(message, PHMessage):
            reading = controller.ingest_value(message.ph, source=ReadingSource.SENSOR)
            return OperationResult.ok(reading) if reading else OperationResult.fail("invalid_value")

        if message.pump == PumpCommand.OFF:
            controller.record_device_pump(None)
            return OperationResult.ok(None)
        return OperationResult.ok(controller.record_device_pump(PumpType(message.pump.value)))

    def set_device_connected(self, user_id: int | None, connected: bool) -> OperationResult[bool]:
        controller = self.controller_for(user_id)
        if controller is None:
            return OperationResult.fail("no_session")
        controller.set_device_connected(connected)
        return OperationResult.ok(connected)

    # ==================== Crop selection ====================

    def select_crop(self, user_id: int | None, crop_value: str) -> OperationResult[dict[str, Any]]:
        """Replace the active band, then store the crop on the farm profile.

        A failed profile write is reported through the status payload; the new
        band stays active.
        """
        controller = self.controller_for(user_id)
        if controller is None:
            return OperationResult.fail("no_session")
        crop = find_crop(crop_value)
        if crop is None:
            return OperationResult.fail("unknown_crop", crop=crop_value)

        band = crop.optimal_range
        with self._crop_lock:
            controller.set_optimal_range(band, crop=crop.value)
            stored = self.profile_repo.set_current_crop(user_id, crop.value, band.min, band.max)
        if not stored.success:
            self._record_persistence_error(user_id, "crop", stored)
        return OperationResult.ok({"crop": crop.to_dict(), "optimal_range": band.to_dict()})

    # ==================== Queries ====================

    def get_status(self, user_id: int | None) -> OperationResult[dict[str, Any]]:
        controller = self.controller_for(user_id)
        if controller is None:
            return OperationResult.fail("no_session")
        return OperationResult.ok(self._status_payload(user_id, controller))

    def _status_payload(self, user_id: int, controller: PHRegulationController) -> dict[str, Any]:
        status = controller.snapshot()
        value = status.get("current_value")
        optimal_range = controller.optimal_range
        status.update(
            {
                "ph_status": classify_ph(value, optimal_range).value if value is not None else None,
                "scale_position": scale_position(value) if value is not None else None,
                "last_real_sample": ms_to_iso(status.get("last_real_sample_at")),
                "persistence_error": self.persistence_error(user_id),
            }
        )
        return status

    def get_readings(
        self, user_id: int | None, time_range: TimeRange | str | None = None
    ) -> OperationResult[list[Reading]]:
        if user_id is None:
            return OperationResult.fail("no_user")
        window = time_range if isinstance(time_range, TimeRange) else TimeRange.parse(time_range)
        now = self._clock()
        controller = self.controller_for(user_id)
        if controller is not None:
            readings = filter_by_range(controller.readings(), window, now)
        else:
            readings = self.reading_repo.readings(user_id, since=now - window.milliseconds)
        return OperationResult.ok(readings)

    def get_statistics(
        self, user_id: int | None, time_range: TimeRange | str | None = None
    ) -> OperationResult[dict[str, Any]]:
        readings_result = self.get_readings(user_id, time_range)
        if not readings_result.success:
            return OperationResult.fail(readings_result.error or "no_user")
        window = time_range if isinstance(time_range, TimeRange) else TimeRange.parse(time_range)
        cutoff = self._clock() - window.milliseconds
        pump_events = [event for event in self._pump_events(user_id) if event.timestamp > cutoff]
        summary = summarize(readings_result.value or [], pump_events).to_dict()
        summary["range"] = window.value
        return OperationResult.ok(summary)

    def get_pump_logs(self, user_id: int | None, limit: int = 50) -> OperationResult[list[PumpEvent]]:
        if user_id is None:
            return OperationResult.fail("no_user")
        limit = max(1, int(limit))
        controller = self.controller_for(user_id)
        if controller is None:
            return OperationResult.ok(self.pump_log_repo.recent(user_id, limit))
        events = sorted(controller.pump_events(), key=lambda event: event.timestamp, reverse=True)
        return OperationResult.ok(events[:limit])

    def _pump_events(self, user_id: int) -> list[PumpEvent]:
        controller = self.controller_for(user_id)
        if controller is not None:
            return controller.pump_events()
        return self.pump_log_repo.recent(user_id, limit=1000)

    # ==================== Maintenance ====================

    def prune_history(self, now: int | None = None) -> OperationResult[int]:
        """Delete readings older than the retention window, stored and in memory."""
        cutoff = (self._clock() if now is None else now) - self.retention_days * DAY_MS
        with self._lock:
            controllers = list(self._sessions.values())
        for controller in controllers:
            controller.prune_before(cutoff)
        return self.reading_repo.prune_readings(cutoff)

    # ==================== Persistence subscribers ====================

    def _persist_reading(self, payload: dict[str, Any]) -> None:
        reading = payload.get("reading") or {}
        user_id = payload.get("user_id")
        result = self.reading_repo.add_reading(
            user_id,
            reading.get("value"),
            source=ReadingSource(reading.get("source", ReadingSource.SENSOR.value)),
            timestamp=reading.get("timestamp"),
        )
        if not result.success:
            self._record_persistence_error(user_id, "reading", result)

    def _persist_pump_event(self, payload: dict[str, Any]) -> None:
        user_id = payload.get("user_id")
        result = self.pump_log_repo.log_activity(
            user_id,
            payload.get("pump_type"),
            payload.get("reagent", ""),
            payload.get("concentration", ""),
            ph_before=payload.get("ph_before"),
            origin=PumpOrigin(payload.get("origin", PumpOrigin.CONTROLLER.value)),
            timestamp=payload.get("timestamp"),
        )
        if not result.success:
            self._record_persistence_error(user_id, "pump_log", result)

    def _record_persistence_error(self, user_id: int | None, kind: str, result: OperationResult) -> None:
        logger.error("Persisting %s for user %s failed: %s %s", kind, user_id, result.error, result.detail)
        if user_id is None:
            return
        with self._lock:
            self._persistence_errors[user_id] = {
                "kind": kind,
                "error": result.error,
                "at": iso_now(),
            }

    def persistence_error(self, user_id: int) -> dict[str, Any] | None:
        with self._lock:
            error = self._persistence_errors.get(user_id)
            return dict(error) if error else None

    def optimal_range_for(self, user_id: int) -> OptimalRange:
        controller = self.controller_for(user_id)
        if controller is not None:
            return controller.optimal_range
        profile = self.profile_repo.get_or_default(user_id)
        return profile.optimal_range(self.settings.default_range)
