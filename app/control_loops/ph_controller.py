"""
pH Regulation Controller
========================

Owns the state of one monitoring session:

- Reading ingestion into a time-ordered series (identical timestamps overwrite)
- Staleness detection that flips LIVE -> SIMULATED when the sensor goes quiet
- A simulator task that feeds synthetic readings while SIMULATED
- Pump decisions with a cooldown window

All public operations and timer ticks run under one re-entrant lock. Events
are collected while the lock is held and published after it is released, so
slow subscribers never block the next tick.

Events published:
    SensorEvent.PH_UPDATE, ControlEvent.DATA_MODE_CHANGED,
    ControlEvent.PUMP_ACTIVATED, ControlEvent.PUMP_STATUS_CHANGED,
    ControlEvent.OPTIMAL_RANGE_CHANGED, DeviceEvent.CONNECTIVITY_CHANGED
"""

from __future__ import annotations

import bisect
import logging
import threading
from typing import TYPE_CHECKING, Any, Callable

from app.control_loops.pump_decision import PumpDecisionEngine, in_cooldown
from app.control_loops.simulator import PHSimulator, UniformSource
from app.domain.control import ControllerSettings, ControlMetrics
from app.domain.ph import ControllerState, OptimalRange, PumpEvent, Reading
from app.enums import (
    ControlEvent,
    DataMode,
    DeviceEvent,
    EventType,
    PumpOrigin,
    PumpStatus,
    PumpType,
    ReadingSource,
    SensorEvent,
)
from app.utils.time import epoch_ms
from app.utils.timers import TaskHandle, TimerFactory, default_timer_factory

if TYPE_CHECKING:
    from app.utils.event_bus import EventBus

logger = logging.getLogger(__name__)

Clock = Callable[[], int]


class PHRegulationController:
    """
    State machine for one user's pH monitoring session.

    Args:
        user_id: Owner of the session, copied into every event payload
        settings: Timing, simulator and reagent settings
        event_bus: Bus for state-change events (optional)
        optimal_range: Initial band (defaults to ``settings.default_range``)
        clock: Returns epoch milliseconds
        uniform: Random source for the simulator, ``uniform(a, b)``
        timer_factory: Builds the periodic staleness and simulator tasks
    """

    def __init__(
        self,
        user_id: int,
        settings: ControllerSettings | None = None,
        event_bus: "EventBus | None" = None,
        optimal_range: OptimalRange | None = None,
        clock: Clock | None = None,
        uniform: UniformSource | None = None,
        timer_factory: TimerFactory | None = None,
    ):
        self.user_id = user_id
        self.settings = settings or ControllerSettings()
        self.event_bus = event_bus
        self._clock = clock or epoch_ms
        self._timer_factory = timer_factory or default_timer_factory

        self._lock = threading.RLock()
        self._state = ControllerState()
        self._optimal_range = optimal_range or self.settings.default_range
        self._readings: list[Reading] = []
        self._timestamps: list[int] = []
        self._pump_events: list[PumpEvent] = []
        self.metrics = ControlMetrics()

        self.engine = PumpDecisionEngine(self.settings)
        self.simulator = PHSimulator(self.settings, uniform)

        # Staleness baseline until the first sensor sample arrives
        self.session_started_at = self._clock()
        self._staleness_task: TaskHandle | None = None
        self._simulator_task: TaskHandle | None = None
        self._closed = False

    # ==================== Lifecycle ====================

    def start(self) -> None:
        """Reset the staleness baseline and start the periodic staleness check."""
        with self._lock:
            if self._closed:
                raise RuntimeError("controller has been stopped")
            if self._staleness_task is not None:
                return
            self.session_started_at = self._clock()
            self._staleness_task = self._timer_factory(
                f"ph-staleness-{self.user_id}",
                self.settings.staleness_check_interval_ms,
                self.check_staleness,
            )
            self._staleness_task.start()
        logger.info("pH controller started for user %s (range %s)", self.user_id, self._optimal_range.to_dict())

    def stop(self) -> None:
        """Cancel every task. Safe to call more than once."""
        with self._lock:
            if self._closed:
                return
            self._closed = True
            self._stop_simulator()
            if self._staleness_task is not None:
                self._staleness_task.stop()
                self._staleness_task = None
        logger.info("pH controller stopped for user %s", self.user_id)

    @property
    def running(self) -> bool:
        with self._lock:
            return self._staleness_task is not None and not self._closed

    # ==================== Ingestion ====================

    def ingest(self, reading: Reading) -> Reading | None:
        """
        Add a reading to the series and run the decision engine.

        Returns the stored reading, or None when the value is not a finite
        number (dropped silently).
        """
        pending: list[tuple[EventType, dict[str, Any]]] = []
        with self._lock:
            stored = self._ingest_locked(reading, pending)
        self._publish_all(pending)
        return stored

    def ingest_value(
        self,
        value: float,
        source: ReadingSource = ReadingSource.SENSOR,
        timestamp: int | None = None,
    ) -> Reading | None:
        ts = self._clock() if timestamp is None else int(timestamp)
        return self.ingest(Reading(value=value, timestamp=ts, source=source))

    def seed_history(self, readings: list[Reading], pump_events: list[PumpEvent] | None = None) -> None:
        """Load stored history without evaluating or publishing."""
        with self._lock:
            for reading in readings:
                if reading.is_valid():
                    self._insert(reading)
            for event in pump_events or []:
                self._pump_events.append(event)
            self._pump_events.sort(key=lambda event: event.timestamp)
            if self._readings and self._state.current_value is None:
                self._state.current_value = self._readings[-1].value

    def _ingest_locked(self, reading: Reading, pending: list) -> Reading | None:
        if not reading.is_valid():
            self.metrics.readings_dropped += 1
            logger.debug("Dropped non-numeric pH reading: %r", reading.value)
            return None

        reading = Reading(float(reading.value), int(reading.timestamp), reading.source)
        now = self._clock()
        self._insert(reading)
        self.metrics.readings_ingested += 1
        self._state.current_value = reading.value
        self._state.last_update_at = now

        if reading.is_sensor:
            self._state.last_real_sample_at = now
            if self._state.mode == DataMode.SIMULATED:
                self._stop_simulator()
                self._set_mode(DataMode.LIVE, pending, reason="sensor_resumed")
        else:
            self.metrics.simulated_readings += 1

        pending.append((SensorEvent.PH_UPDATE, self._payload(reading=reading.to_dict(), mode=self._state.mode.value)))
        self._evaluate_locked(now, pending)
        return reading

    def _insert(self, reading: Reading) -> None:
        index = bisect.bisect_left(self._timestamps, reading.timestamp)
        if index < len(self._timestamps) and self._timestamps[index] == reading.timestamp:
            self._readings[index] = reading
            return
        self._timestamps.insert(index, reading.timestamp)
        self._readings.insert(index, reading)

    # ==================== Pump decisions ====================

    def evaluate(self, now: int | None = None) -> PumpEvent | None:
        """Run the decision engine against the current value."""
        pending: list[tuple[EventType, dict[str, Any]]] = []
        with self._lock:
            event = self._evaluate_locked(self._clock() if now is None else now, pending)
        self._publish_all(pending)
        return event

    def _evaluate_locked(self, now: int, pending: list) -> PumpEvent | None:
        value = self._state.current_value
        suppressed = in_cooldown(self._state, now, self.settings.pump_cooldown_ms)
        event = self.engine.evaluate(value, self._optimal_range, self._state, now)

        if event is None:
            if value is not None and suppressed and not self._optimal_range.contains(value):
                self.metrics.suppressed_by_cooldown += 1
            elif value is not None and self._optimal_range.contains(value):
                self._set_pump_status(PumpStatus.IDLE, pending)
            return None

        self._record_pump(event, pending)
        logger.info(
            "Pump %s activated for user %s (pH %.2f outside %.2f-%.2f)",
            event.pump_type.value,
            self.user_id,
            event.ph_before,
            self._optimal_range.min,
            self._optimal_range.max,
        )
        return event

    def record_device_pump(self, pump_type: PumpType | None, now: int | None = None) -> PumpEvent | None:
        """
        Apply pump activity reported by the hardware.

        ``None`` means the device switched its pump off. A reported pump
        restarts the cooldown window.
        """
        pending: list[tuple[EventType, dict[str, Any]]] = []
        with self._lock:
            ts = self._clock() if now is None else now
            if pump_type is None:
                self._set_pump_status(PumpStatus.IDLE, pending)
                event = None
            else:
                event = PumpEvent(
                    pump_type=pump_type,
                    reagent=self.settings.reagent_for(pump_type),
                    concentration=self.settings.concentration,
                    ph_before=self._state.current_value,
                    timestamp=ts,
                    origin=PumpOrigin.DEVICE,
                )
                self._state.last_pump_at = ts
                self._record_pump(event, pending)
        self._publish_all(pending)
        return event

    def _record_pump(self, event: PumpEvent, pending: list) -> None:
        self._pump_events.append(event)
        self.metrics.pump_events += 1
        self.metrics.last_pump_at = event.timestamp
        pending.append((ControlEvent.PUMP_ACTIVATED, self._payload(**event.to_dict())))
        self._set_pump_status(PumpStatus.for_pump(event.pump_type), pending)

    def _set_pump_status(self, status: PumpStatus, pending: list) -> None:
        if self._state.pump_status == status:
            return
        previous = self._state.pump_status
        self._state.pump_status = status
        pending.append(
            (
                ControlEvent.PUMP_STATUS_CHANGED,
                self._payload(previous=previous.value, status=status.value),
            )
        )

    # ==================== Staleness & simulation ====================

    def check_staleness(self, now: int | None = None) -> bool:
        """
        Switch to SIMULATED when no sensor sample arrived within the threshold.

        Returns True only on the call that performs the transition.
        """
        pending: list[tuple[EventType, dict[str, Any]]] = []
        with self._lock:
            if self._closed or self._state.mode != DataMode.LIVE:
                return False
            ts = self._clock() if now is None else now
            baseline = self._state.last_real_sample_at
            if baseline is None:
                baseline = self.session_started_at
            if ts - baseline <= self.settings.stale_threshold_ms:
                return False

            self._set_mode(DataMode.SIMULATED, pending, reason="sensor_stale")
            self._start_simulator()
        self._publish_all(pending)
        return True

    def simulate_tick(self) -> Reading | None:
        """Emit one simulated reading. No-op unless the controller is SIMULATED."""
        pending: list[tuple[EventType, dict[str, Any]]] = []
        with self._lock:
            # A tick can still land after the task was cancelled
            if self._closed or self._state.mode != DataMode.SIMULATED:
                return None
            value = self.simulator.next_value(self._state.current_value)
            reading = self._ingest_locked(Reading(value, self._clock(), ReadingSource.SIMULATED), pending)
        self._publish_all(pending)
        return reading

    def _start_simulator(self) -> None:
        self._stop_simulator()
        self._simulator_task = self._timer_factory(
            f"ph-simulator-{self.user_id}",
            self.settings.sim_interval_ms,
            self.simulate_tick,
        )
        self._simulator_task.start()

    def _stop_simulator(self) -> None:
        if self._simulator_task is not None:
            self._simulator_task.stop()
            self._simulator_task = None

    def _set_mode(self, mode: DataMode, pending: list, reason: str) -> None:
        previous = self._state.mode
        self._state.mode = mode
        self.metrics.mode_transitions += 1
        logger.info("pH data mode for user %s: %s -> %s (%s)", self.user_id, previous.value, mode.value, reason)
        pending.append(
            (
                ControlEvent.DATA_MODE_CHANGED,
                self._payload(previous=previous.value, mode=mode.value, reason=reason),
            )
        )

    # ==================== Range & connectivity ====================

    @property
    def optimal_range(self) -> OptimalRange:
        with self._lock:
            return self._optimal_range

    def set_optimal_range(self, optimal_range: OptimalRange, crop: str | None = None) -> None:
        """Replace the band atomically. The next reading is judged against it."""
        with self._lock:
            previous = self._optimal_range
            self._optimal_range = optimal_range
        logger.info("Optimal pH range for user %s set to %s", self.user_id, optimal_range.to_dict())
        self._publish(
            ControlEvent.OPTIMAL_RANGE_CHANGED,
            self._payload(previous=previous.to_dict(), range=optimal_range.to_dict(), crop=crop),
        )

    def set_device_connected(self, connected: bool) -> None:
        with self._lock:
            if self._state.device_connected == connected:
                return
            self._state.device_connected = connected
        logger.info("Sensor device for user %s %s", self.user_id, "connected" if connected else "disconnected")
        self._publish(DeviceEvent.CONNECTIVITY_CHANGED, self._payload(connected=connected))

    # ==================== Queries ====================

    @property
    def state(self) -> ControllerState:
        """Copy of the current state."""
        with self._lock:
            return ControllerState(**vars(self._state))

    @property
    def mode(self) -> DataMode:
        with self._lock:
            return self._state.mode

    @property
    def simulator_running(self) -> bool:
        with self._lock:
            return self._simulator_task is not None

    def readings(self, since: int | None = None) -> list[Reading]:
        with self._lock:
            if since is None:
                return list(self._readings)
            index = bisect.bisect_right(self._timestamps, since)
            return self._readings[index:]

    def prune_before(self, cutoff: int) -> int:
        """Drop readings and pump events older than ``cutoff``. Current state is kept."""
        with self._lock:
            index = bisect.bisect_left(self._timestamps, cutoff)
            del self._timestamps[:index]
            del self._readings[:index]
            kept = [event for event in self._pump_events if event.timestamp >= cutoff]
            removed = index + len(self._pump_events) - len(kept)
            self._pump_events = kept
        if removed:
            logger.debug("Pruned %s in-memory entries for user %s", removed, self.user_id)
        return removed

    def pump_events(self) -> list[PumpEvent]:
        with self._lock:
            return list(self._pump_events)

    def snapshot(self) -> dict[str, Any]:
        with self._lock:
            payload = self._state.to_dict()
            payload.update(
                {
                    "user_id": self.user_id,
                    "optimal_range": self._optimal_range.to_dict(),
                    "reading_count": len(self._readings),
                    "pump_event_count": len(self._pump_events),
                    "simulator_running": self._simulator_task is not None,
                    "metrics": self.metrics.to_dict(),
                }
            )
            return payload

    # ==================== Events ====================

    def _payload(self, **data: Any) -> dict[str, Any]:
        return {"user_id": self.user_id, **data}

    def _publish(self, topic: EventType, payload: dict[str, Any]) -> None:
        if self.event_bus is None:
            return
        self.event_bus.publish(topic, payload)

    def _publish_all(self, pending: list[tuple[EventType, dict[str, Any]]]) -> None:
        for topic, payload in pending:
            self._publish(topic, payload)
