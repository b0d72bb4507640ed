"""
Serial sensor link.

The pH board writes one JSON object per line:

    {"pH": 6.84}
    {"pump": "basic"}      # or "acidic" / "off"

``parse_sensor_line`` turns a line into a validated message or None.
``SerialSensorLink`` reads lines from a pyserial port on a daemon thread,
hands each non-empty line to a callback and reports connection changes.
The port is reopened after a read or open failure until the link is stopped.
"""

from __future__ import annotations

import json
import logging
import threading
from typing import Any, Callable

import serial
from pydantic import ValidationError

from app.schemas.ph import PHMessage, PumpMessage

logger = logging.getLogger(__name__)

SensorMessage = PHMessage | PumpMessage


def parse_sensor_line(line: str | bytes | None) -> SensorMessage | None:
    """Parse one transport line. Anything malformed yields None."""
    if line is None:
        return None
    if isinstance(line, bytes):
        line = line.decode("utf-8", errors="ignore")
    line = line.strip()
    if not line:
        return None

    try:
        data: Any = json.loads(line)
    except json.JSONDecodeError:
        logger.debug("Ignoring non-JSON sensor line: %r", line)
        return None
    if not isinstance(data, dict):
        return None

    try:
        if "pH" in data:
            return PHMessage.model_validate(data)
        if "pump" in data:
            return PumpMessage.model_validate(data)
    except ValidationError as exc:
        logger.debug("Ignoring invalid sensor line %r: %s", line, exc.errors())
        return None
    return None


class SerialSensorLink:
    """Background reader for a line-oriented serial port."""

    def __init__(
        self,
        port: str,
        baudrate: int,
        on_line: Callable[[str], Any],
        on_connection_change: Callable[[bool], Any] | None = None,
        *,
        read_timeout: float = 1.0,
        reconnect_delay: float = 5.0,
        serial_factory: Callable[..., Any] = serial.Serial,
    ) -> None:
        self.port = port
        self.baudrate = baudrate
        self._on_line = on_line
        self._on_connection_change = on_connection_change
        self._read_timeout = read_timeout
        self._reconnect_delay = reconnect_delay
        self._serial_factory = serial_factory

        self._lock = threading.Lock()
        self._stop_event = threading.Event()
        self._stop_event.set()
        self._thread: threading.Thread | None = None
        self._connected = False
        self.lines_received = 0

    @property
    def connected(self) -> bool:
        with self._lock:
            return self._connected

    @property
    def running(self) -> bool:
        with self._lock:
            return self._thread is not None and not self._stop_event.is_set()

    def start(self) -> None:
        with self._lock:
            if self._thread is not None:
                return
            # Each run owns its event; a reader left over from a timed-out stop() stays stopped
            self._stop_event = threading.Event()
            self._thread = threading.Thread(
                target=self._run,
                args=(self._stop_event,),
                name=f"SerialSensorLink-{self.port}",
                daemon=True,
            )
            thread = self._thread
        thread.start()
        logger.info("Serial sensor link starting on %s @ %s baud", self.port, self.baudrate)

    def stop(self, timeout: float = 2.0) -> None:
        """Stop reading. Safe to call repeatedly."""
        with self._lock:
            thread = self._thread
            if thread is None:
                return
            self._thread = None
            stop_event = self._stop_event
        stop_event.set()
        if thread is not threading.current_thread():
            thread.join(timeout=timeout)
            if thread.is_alive():
                logger.warning("Serial reader on %s did not exit within %.1fs", self.port, timeout)
        self._set_connected(False)
        logger.info("Serial sensor link on %s stopped", self.port)

    def _set_connected(self, connected: bool) -> None:
        with self._lock:
            if self._connected == connected:
                return
            self._connected = connected
        if self._on_connection_change is not None:
            try:
                self._on_connection_change(connected)
            except Exception as exc:
                logger.error("Connection callback failed: %s", exc, exc_info=True)

    def _run(self, stop_event: threading.Event) -> None:
        while not stop_event.is_set():
            try:
                with self._serial_factory(self.port, self.baudrate, timeout=self._read_timeout) as port:
                    logger.info("Connected to sensor board on %s", self.port)
                    if not stop_event.is_set():
                        self._set_connected(True)
                    self._read_lines(port, stop_event)
            except (serial.SerialException, OSError) as exc:
                logger.warning("Serial link on %s unavailable: %s", self.port, exc)
            if stop_event.is_set():
                return
            self._set_connected(False)
            stop_event.wait(self._reconnect_delay)

    def _read_lines(self, port: Any, stop_event: threading.Event) -> None:
        while not stop_event.is_set():
            raw = port.readline()
            if not raw:
                continue
            line = raw.decode("utf-8", errors="ignore").strip()
            if not line or stop_event.is_set():
                continue
            self.lines_received += 1
            try:
                self._on_line(line)
            except Exception as exc:
                logger.error("Sensor line handler failed for %r: %s", line, exc, exc_info=True)
