"""
Shared test fixtures for the EcoSterile backend test suite.

Provides:
- Temporary-file SQLite database with all tables created
- Repository instances wired to the test database
- A controllable clock, a manual timer factory and an inline EventBus
- Service factories and a Flask test client

Usage:
    def test_example(reading_repo):
        result = reading_repo.add_reading(1, 6.8, timestamp=1000)
        assert result.success
"""

from __future__ import annotations

import logging
from unittest.mock import MagicMock

import pytest

from app.config import AppConfig
from app.domain.control import ControllerSettings
from app.utils.event_bus import EventBus
from infrastructure.database.repositories.profiles import ProfileRepository
from infrastructure.database.repositories.pump_logs import PumpLogRepository
from infrastructure.database.repositories.readings import ReadingRepository
from infrastructure.database.sqlite_handler import SQLiteDatabaseHandler

# ---------------------------------------------------------------------------
# Logging: keep test output quiet
# ---------------------------------------------------------------------------
logging.getLogger("infrastructure").setLevel(logging.WARNING)
logging.getLogger("app").setLevel(logging.WARNING)

START_MS = 1_700_000_000_000


# ========================== Test Doubles ===================================


class FakeClock:
    """Epoch-millisecond clock advanced by hand."""

    def __init__(self, start: int = START_MS) -> None:
        self.start = start
        self.now = start

    def __call__(self) -> int:
        return self.now

    def advance(self, ms: int) -> int:
        self.now += ms
        return self.now


class ManualTask:
    """TaskHandle whose ticks are fired explicitly by the test."""

    def __init__(self, name: str, interval_ms: int, callback) -> None:
        self.name = name
        self.interval_ms = interval_ms
        self.callback = callback
        self.started = False
        self.stopped = False

    @property
    def running(self) -> bool:
        return self.started and not self.stopped

    def start(self) -> "ManualTask":
        self.started = True
        return self

    def stop(self) -> None:
        self.stopped = True

    def fire(self, times: int = 1):
        result = None
        for _ in range(times):
            result = self.callback()
        return result


class ManualTimerFactory:
    """Records every task a controller asks for."""

    def __init__(self) -> None:
        self.tasks: list[ManualTask] = []

    def __call__(self, name: str, interval_ms: int, callback) -> ManualTask:
        task = ManualTask(name, interval_ms, callback)
        self.tasks.append(task)
        return task

    def named(self, prefix: str) -> list[ManualTask]:
        return [task for task in self.tasks if task.name.startswith(prefix)]

    def latest(self, prefix: str) -> ManualTask:
        return self.named(prefix)[-1]


class FixedUniform:
    """``uniform(a, b)`` replacement returning queued offsets (0.0 when empty)."""

    def __init__(self, *values: float) -> None:
        self.values = list(values)
        self.calls: list[tuple[float, float]] = []

    def __call__(self, low: float, high: float) -> float:
        self.calls.append((low, high))
        return self.values.pop(0) if self.values else 0.0


# ========================== Core Fixtures ==================================


@pytest.fixture()
def clock():
    return FakeClock()


@pytest.fixture()
def timers():
    return ManualTimerFactory()


@pytest.fixture()
def uniform():
    return FixedUniform()


@pytest.fixture()
def settings():
    return ControllerSettings()


@pytest.fixture()
def event_bus():
    """Inline EventBus: subscribers run on the publishing thread."""
    return EventBus(worker_count=0)


@pytest.fixture()
def recorded_events(event_bus):
    """List of (topic, payload) for every event the bus sees."""
    from app.enums import ControlEvent, DeviceEvent, SensorEvent, SessionEvent

    events: list[tuple[str, dict]] = []
    for family in (SensorEvent, ControlEvent, DeviceEvent, SessionEvent):
        for topic in family:
            event_bus.subscribe(topic, lambda payload, name=topic.value: events.append((name, payload)))
    return events


@pytest.fixture()
def mock_event_bus():
    """Mock EventBus that records publish calls."""
    bus = MagicMock()
    bus.publish = MagicMock()
    bus.subscribe = MagicMock(return_value=lambda: None)
    return bus


# ========================== Database Fixtures ==============================


@pytest.fixture()
def db_handler(tmp_path):
    """SQLite database file under tmp_path with all tables created.

    Each test gets a fresh database file.
    """
    handler = SQLiteDatabaseHandler(str(tmp_path / "ecosterile-test.db"))
    handler.create_tables()
    yield handler
    handler.close_db()


@pytest.fixture()
def reading_repo(db_handler):
    return ReadingRepository(db_handler)


@pytest.fixture()
def pump_log_repo(db_handler):
    return PumpLogRepository(db_handler)


@pytest.fixture()
def profile_repo(db_handler):
    return ProfileRepository(db_handler)


# ========================== Service Factory Fixtures =======================


@pytest.fixture()
def monitoring_service(reading_repo, pump_log_repo, profile_repo, event_bus, settings, clock, uniform, timers):
    """MonitoringService with real repos, inline bus and manual timers."""
    from app.services.application.monitoring_service import MonitoringService

    service = MonitoringService(
        reading_repo,
        pump_log_repo,
        profile_repo,
        event_bus,
        settings,
        clock=clock,
        uniform=uniform,
        timer_factory=timers,
    )
    yield service
    service.shutdown()


@pytest.fixture()
def app_config(tmp_path):
    return AppConfig(
        environment="testing",
        database_path=str(tmp_path / "ecosterile-app.db"),
        weather_enabled=False,
        serial_enabled=False,
        log_file="",
    )


@pytest.fixture()
def container(app_config, event_bus, clock, uniform, timers):
    from app.services.container import ServiceContainer

    built = ServiceContainer.build(
        app_config,
        event_bus=event_bus,
        clock=clock,
        uniform=uniform,
        timer_factory=timers,
        start_background=False,
    )
    yield built
    built.shutdown()


@pytest.fixture()
def app(container):
    from app import create_app

    flask_app = create_app(container=container, bootstrap_runtime=False)
    flask_app.config["TESTING"] = True
    return flask_app


@pytest.fixture()
def client(app):
    return app.test_client()
