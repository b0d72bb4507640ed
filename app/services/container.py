from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import Optional

from app.config import AppConfig
from app.control_loops.ph_controller import Clock
from app.control_loops.simulator import UniformSource
from app.hardware.sensor_link import SerialSensorLink
from app.services.application.crop_service import CropService
from app.services.application.monitoring_service import MonitoringService
from app.services.utilities.weather_service import WeatherService
from app.utils.event_bus import EventBus
from app.utils.timers import TaskHandle, TimerFactory, default_timer_factory
from infrastructure.database.repositories.chat_logs import ChatLogRepository
from infrastructure.database.repositories.profiles import ProfileRepository
from infrastructure.database.repositories.pump_logs import PumpLogRepository
from infrastructure.database.repositories.readings import ReadingRepository
from infrastructure.database.sqlite_handler import SQLiteDatabaseHandler

logger = logging.getLogger(__name__)

RETENTION_INTERVAL_MS = 60 * 60 * 1000  # hourly


@dataclass
class ServiceContainer:
    """Aggregate and manage core backend services."""

    config: AppConfig
    database: SQLiteDatabaseHandler
    event_bus: EventBus
    reading_repo: ReadingRepository
    pump_log_repo: PumpLogRepository
    profile_repo: ProfileRepository
    chat_log_repo: ChatLogRepository
    monitoring_service: MonitoringService
    crop_service: CropService
    weather_service: WeatherService
    sensor_link: Optional[SerialSensorLink] = None
    background_tasks: list[TaskHandle] = field(default_factory=list)

    @classmethod
    def build(
        cls,
        config: AppConfig,
        *,
        event_bus: EventBus | None = None,
        clock: Clock | None = None,
        uniform: UniformSource | None = None,
        timer_factory: TimerFactory | None = None,
        start_background: bool = True,
    ) -> "ServiceContainer":
        """Construct the service container with all dependencies.

        Args:
            config: Application configuration
            event_bus: Bus to use (defaults to a pooled bus sized from config)
            clock, uniform, timer_factory: Controller overrides, mostly for tests
            start_background: Start the retention task and the serial link
        """
        logger.info("Building ServiceContainer...")
        database = SQLiteDatabaseHandler(config.database_path)
        database.create_tables()

        bus = event_bus or EventBus(
            worker_count=config.persistence_workers,
            queue_size=config.eventbus_queue_size,
        )
        reading_repo = ReadingRepository(database)
        pump_log_repo = PumpLogRepository(database)
        profile_repo = ProfileRepository(database)

        monitoring_service = MonitoringService(
            reading_repo,
            pump_log_repo,
            profile_repo,
            bus,
            config.controller_settings(),
            retention_days=config.reading_retention_days,
            clock=clock,
            uniform=uniform,
            timer_factory=timer_factory,
        )
        container = cls(
            config=config,
            database=database,
            event_bus=bus,
            reading_repo=reading_repo,
            pump_log_repo=pump_log_repo,
            profile_repo=profile_repo,
            chat_log_repo=ChatLogRepository(database),
            monitoring_service=monitoring_service,
            crop_service=CropService(profile_repo),
            weather_service=WeatherService(timeout=config.weather_timeout, enabled=config.weather_enabled),
        )

        if start_background:
            container.start_background(timer_factory or default_timer_factory)

        logger.info("ServiceContainer built successfully.")
        return container

    def start_background(self, timer_factory: TimerFactory) -> None:
        """Start retention pruning and, when enabled, the serial sensor link."""
        retention = timer_factory("ph-retention", RETENTION_INTERVAL_MS, self.monitoring_service.prune_history)
        retention.start()
        self.background_tasks.append(retention)

        if self.config.serial_enabled and self.sensor_link is None:
            user_id = self.config.serial_user_id
            self.sensor_link = SerialSensorLink(
                self.config.serial_port,
                self.config.serial_baudrate,
                on_line=lambda line: self._on_sensor_line(user_id, line),
                on_connection_change=lambda connected: self.monitoring_service.set_device_connected(
                    user_id, connected
                ),
            )
            link = self.sensor_link
            self.monitoring_service.device_status = lambda uid: uid == user_id and link.connected
            self.sensor_link.start()

    def _on_sensor_line(self, user_id: int, line: str) -> None:
        result = self.monitoring_service.handle_sensor_line(user_id, line)
        if not result.success:
            logger.debug("Sensor line not applied (%s): %r", result.error, line)

    def shutdown(self) -> None:
        """Release external resources before process exit."""
        if self.sensor_link is not None:
            self.sensor_link.stop()
        for task in self.background_tasks:
            task.stop()
        self.background_tasks = []

        self.monitoring_service.shutdown()
        self.event_bus.drain(timeout=5.0)
        self.event_bus.shutdown()
        self.database.close_db()
        logger.info("ServiceContainer shutdown complete.")
