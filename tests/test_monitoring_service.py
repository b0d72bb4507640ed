"""Tests for MonitoringService: sessions, persistence subscribers and queries."""

import threading

import pytest

from app.domain.ph import OperationResult, OptimalRange
from app.enums import DataMode, PumpOrigin, PumpType, ReadingSource
from app.services.application.monitoring_service import MonitoringService
from app.utils.event_bus import EventBus

DAY_MS = 24 * 60 * 60 * 1000


@pytest.fixture()
def session(monitoring_service):
    result = monitoring_service.start_session(1)
    assert result.success
    return monitoring_service.controller_for(1)


class TestSessions:
    def test_start_session_returns_status(self, monitoring_service, recorded_events):
        result = monitoring_service.start_session(1)

        assert result.success
        assert result.value["mode"] == "live"
        assert result.value["optimal_range"] == {"min": 6.5, "max": 7.5}
        assert monitoring_service.has_session(1)
        assert ("session_started", {"user_id": 1, "optimal_range": {"min": 6.5, "max": 7.5}}) in recorded_events

    def test_start_session_is_idempotent(self, monitoring_service, timers):
        monitoring_service.start_session(1)
        controller = monitoring_service.controller_for(1)
        monitoring_service.start_session(1)

        assert monitoring_service.controller_for(1) is controller
        assert len(timers.named("ph-staleness")) == 1

    def test_start_session_records_visit(self, monitoring_service, profile_repo):
        monitoring_service.start_session(1)
        assert profile_repo.get(1).last_visited is not None

    def test_start_session_without_user(self, monitoring_service):
        assert monitoring_service.start_session(None).error == "no_user"

    def test_stored_crop_band_is_used(self, monitoring_service, profile_repo):
        profile_repo.set_current_crop(1, "potato", 5.0, 6.0)
        monitoring_service.start_session(1)
        assert monitoring_service.controller_for(1).optimal_range == OptimalRange(5.0, 6.0)

    def test_invalid_stored_band_falls_back_to_default(self, monitoring_service, profile_repo):
        profile_repo.update(1, crop_min_ph=8.0, crop_max_ph=6.0)
        monitoring_service.start_session(1)
        assert monitoring_service.controller_for(1).optimal_range == OptimalRange(6.5, 7.5)

    def test_history_is_seeded(self, monitoring_service, reading_repo, pump_log_repo, clock):
        reading_repo.add_reading(1, 6.6, timestamp=clock.now - 2_000)
        reading_repo.add_reading(1, 6.7, timestamp=clock.now - 1_000)
        reading_repo.add_reading(1, 6.0, timestamp=clock.now - 40 * DAY_MS)
        pump_log_repo.log_activity(1, PumpType.BASIC, "NH4OH", "1%", timestamp=clock.now - 3_000)

        monitoring_service.start_session(1)
        controller = monitoring_service.controller_for(1)

        assert [r.value for r in controller.readings()] == [6.6, 6.7]
        assert controller.state.current_value == 6.7
        assert len(controller.pump_events()) == 1
        # seeding does not write the history back
        assert reading_repo.count(1) == 3

    def test_device_status_check_applies_on_start(self, monitoring_service):
        monitoring_service.device_status = lambda user_id: user_id == 1
        monitoring_service.start_session(1)
        assert monitoring_service.get_status(1).value["device_connected"] is True

    def test_end_session_stops_tasks(self, monitoring_service, session, timers, clock):
        clock.advance(10_001)
        session.check_staleness()

        assert monitoring_service.end_session(1).success
        assert not monitoring_service.has_session(1)
        assert all(task.stopped for task in timers.tasks)
        assert monitoring_service.end_session(1).error == "no_session"

    def test_shutdown_ends_all_sessions(self, monitoring_service):
        monitoring_service.start_session(1)
        monitoring_service.start_session(2)
        monitoring_service.shutdown()
        assert not monitoring_service.has_session(1)
        assert not monitoring_service.has_session(2)


class TestIngestion:
    def test_operations_need_a_session(self, monitoring_service):
        assert monitoring_service.ingest_value(1, 7.0).error == "no_session"
        assert monitoring_service.select_crop(1, "rice").error == "no_session"
        assert monitoring_service.get_status(1).error == "no_session"
        assert monitoring_service.handle_sensor_line(1, '{"pH": 7}').error == "no_session"
        assert monitoring_service.set_device_connected(1, True).error == "no_session"

    def test_readings_are_persisted(self, monitoring_service, session, reading_repo, clock):
        monitoring_service.ingest_value(1, 6.9)
        monitoring_service.ingest_value(1, 7.1, timestamp=clock.now + 500)

        assert [r.value for r in reading_repo.readings(1)] == [6.9, 7.1]

    def test_invalid_value_is_rejected(self, monitoring_service, session, reading_repo):
        result = monitoring_service.ingest_value(1, float("nan"))
        assert result.error == "invalid_value"
        assert reading_repo.count(1) == 0

    def test_pump_events_are_persisted(self, monitoring_service, session, pump_log_repo):
        monitoring_service.ingest_value(1, 5.5)

        logs = pump_log_repo.recent(1)
        assert len(logs) == 1
        assert logs[0].pump_type == PumpType.BASIC
        assert logs[0].ph_before == 5.5
        assert logs[0].reagent == "Ammonium Hydroxide (NH4OH)"

    def test_simulated_readings_are_persisted(self, monitoring_service, session, reading_repo, timers, clock):
        clock.advance(10_001)
        timers.latest("ph-staleness").fire()
        clock.advance(2_000)
        timers.latest("ph-simulator").fire()

        stored = reading_repo.readings(1)
        assert len(stored) == 1
        assert stored[0].source == ReadingSource.SIMULATED
        assert session.mode == DataMode.SIMULATED

    def test_persistence_failure_keeps_local_state(self, monitoring_service, session, reading_repo, monkeypatch):
        monkeypatch.setattr(
            reading_repo,
            "add_reading",
            lambda *args, **kwargs: OperationResult.fail("storage_error", message="disk full"),
        )

        assert monitoring_service.ingest_value(1, 7.0).success
        assert session.readings()[0].value == 7.0
        error = monitoring_service.get_status(1).value["persistence_error"]
        assert error["kind"] == "reading"
        assert error["error"] == "storage_error"

    def test_sensor_lines(self, monitoring_service, session):
        reading = monitoring_service.handle_sensor_line(1, b'{"pH": 6.85}\n')
        assert reading.success
        assert reading.value.value == 6.85

        assert monitoring_service.handle_sensor_line(1, "not json").error == "malformed_line"

        pump = monitoring_service.handle_sensor_line(1, '{"pump": "ACIDIC"}')
        assert pump.value.origin == PumpOrigin.DEVICE
        assert session.state.pump_status.value == "acidic"

        assert monitoring_service.handle_sensor_line(1, '{"pump": "off"}').success
        assert session.state.pump_status.value == "idle"

    def test_device_connectivity(self, monitoring_service, session):
        assert monitoring_service.set_device_connected(1, True).value is True
        assert session.state.device_connected is True


class TestCropSelection:
    def test_select_crop_updates_range_and_profile(self, monitoring_service, session, profile_repo):
        result = monitoring_service.select_crop(1, "Rice")

        assert result.success
        assert result.value["optimal_range"] == {"min": 5.5, "max": 6.5}
        assert session.optimal_range == OptimalRange(5.5, 6.5)
        profile = profile_repo.get(1)
        assert profile.current_crop == "rice"
        assert (profile.crop_min_ph, profile.crop_max_ph) == (5.5, 6.5)

    def test_unknown_crop(self, monitoring_service, session):
        result = monitoring_service.select_crop(1, "dragonfruit")
        assert result.error == "unknown_crop"
        assert session.optimal_range == OptimalRange(6.5, 7.5)

    def test_next_reading_uses_new_range(self, monitoring_service, session):
        monitoring_service.select_crop(1, "potato")
        monitoring_service.ingest_value(1, 6.5)
        assert session.pump_events()[0].pump_type == PumpType.ACIDIC

    def test_stored_crop_follows_the_last_selection(
        self, reading_repo, pump_log_repo, profile_repo, settings, clock, timers, monkeypatch
    ):
        bus = EventBus(worker_count=2)
        service = MonitoringService(
            reading_repo, pump_log_repo, profile_repo, bus, settings, clock=clock, timer_factory=timers
        )
        service.start_session(1)

        write_started = threading.Event()
        release_write = threading.Event()
        original = profile_repo.set_current_crop

        def slow_first_write(self, user_id, crop, min_ph, max_ph):
            if crop == "rice":
                write_started.set()
                release_write.wait(2.0)
            return original(user_id, crop, min_ph, max_ph)

        monkeypatch.setattr(type(profile_repo), "set_current_crop", slow_first_write)
        try:
            first = threading.Thread(target=service.select_crop, args=(1, "rice"))
            first.start()
            assert write_started.wait(2.0)
            second = threading.Thread(target=service.select_crop, args=(1, "wheat"))
            second.start()
            release_write.set()
            first.join(2.0)
            second.join(2.0)
            assert bus.drain(timeout=2.0)

            assert service.controller_for(1).optimal_range == OptimalRange(6.0, 7.5)
            assert profile_repo.get(1).current_crop == "wheat"
        finally:
            service.shutdown()
            bus.shutdown()

    def test_failed_crop_write_keeps_new_band(self, monitoring_service, session, profile_repo, monkeypatch):
        monkeypatch.setattr(
            type(profile_repo),
            "set_current_crop",
            lambda *args: OperationResult.fail("storage_error", message="read-only"),
        )

        assert monitoring_service.select_crop(1, "rice").success
        assert session.optimal_range == OptimalRange(5.5, 6.5)
        assert monitoring_service.get_status(1).value["persistence_error"]["kind"] == "crop"

    def test_optimal_range_for_without_session(self, monitoring_service, profile_repo):
        profile_repo.set_current_crop(2, "rice", 5.5, 6.5)
        assert monitoring_service.optimal_range_for(2) == OptimalRange(5.5, 6.5)
        assert monitoring_service.optimal_range_for(3) == OptimalRange(6.5, 7.5)


class TestQueries:
    def test_status_classification(self, monitoring_service, session):
        monitoring_service.ingest_value(1, 7.0)
        status = monitoring_service.get_status(1).value

        assert status["ph_status"] == "optimal"
        assert status["scale_position"] == pytest.approx(50.0)
        assert status["last_real_sample"] is not None
        assert status["persistence_error"] is None

    def test_status_before_any_reading(self, monitoring_service, session):
        status = monitoring_service.get_status(1).value
        assert status["current_value"] is None
        assert status["ph_status"] is None

    def test_readings_window(self, monitoring_service, session, clock):
        monitoring_service.ingest_value(1, 6.8, timestamp=clock.now - 2 * DAY_MS)
        monitoring_service.ingest_value(1, 6.9)

        assert [r.value for r in monitoring_service.get_readings(1, "24h").value] == [6.9]
        assert len(monitoring_service.get_readings(1, "7d").value) == 2

    def test_readings_without_session_come_from_store(self, monitoring_service, reading_repo, clock):
        reading_repo.add_reading(1, 6.6, timestamp=clock.now - 1_000)
        assert [r.value for r in monitoring_service.get_readings(1).value] == [6.6]

    def test_statistics(self, monitoring_service, session, clock):
        monitoring_service.ingest_value(1, 6.0)
        clock.advance(1_000)
        monitoring_service.ingest_value(1, 7.0)

        stats = monitoring_service.get_statistics(1, "24h").value
        assert stats["count"] == 2
        assert stats["average"] == 6.5
        assert stats["basic_pump_count"] == 1
        assert stats["range"] == "24h"

    def test_pump_logs_newest_first(self, monitoring_service, session, clock):
        monitoring_service.ingest_value(1, 5.0)
        clock.advance(10_000)
        monitoring_service.ingest_value(1, 9.0)

        logs = monitoring_service.get_pump_logs(1, limit=1).value
        assert [log.pump_type for log in logs] == [PumpType.ACIDIC]

    def test_pump_logs_without_session(self, monitoring_service, pump_log_repo):
        pump_log_repo.log_activity(1, PumpType.BASIC, "NH4OH", "1%")
        assert len(monitoring_service.get_pump_logs(1).value) == 1

    def test_prune_history(self, monitoring_service, reading_repo, clock):
        reading_repo.add_reading(1, 6.6, timestamp=clock.now - 31 * DAY_MS)
        reading_repo.add_reading(1, 6.7, timestamp=clock.now - 1_000)

        assert monitoring_service.prune_history().value == 1
        assert reading_repo.count(1) == 1

    def test_prune_history_trims_the_live_session(self, monitoring_service, session, clock):
        monitoring_service.ingest_value(1, 5.0)
        assert len(session.pump_events()) == 1
        clock.advance(31 * DAY_MS)
        monitoring_service.ingest_value(1, 6.9)

        monitoring_service.prune_history()

        assert [r.value for r in session.readings()] == [6.9]
        assert session.pump_events() == []
        assert session.state.current_value == 6.9


def test_persistence_errors_from_worker_threads(reading_repo, pump_log_repo, profile_repo, settings, clock, timers):
    bus = EventBus(worker_count=2)
    service = MonitoringService(reading_repo, pump_log_repo, profile_repo, bus, settings, clock=clock, timer_factory=timers)
    service.start_session(1)
    failure = OperationResult.fail("storage_error")
    try:
        writers = [
            threading.Thread(target=service._record_persistence_error, args=(1, "reading", failure))
            for _ in range(8)
        ]
        for writer in writers:
            writer.start()
        for _ in range(50):
            service.get_status(1)
        for writer in writers:
            writer.join(2.0)

        error = service.persistence_error(1)
        assert error["kind"] == "reading"
        error["kind"] = "changed"
        assert service.persistence_error(1)["kind"] == "reading"
    finally:
        service.shutdown()
        bus.shutdown()
