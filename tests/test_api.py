"""Flask API tests using the test client against a temporary database."""

from unittest.mock import patch

import pytest


def _data(response):
    body = response.get_json()
    assert body["ok"] is True, body
    return body["data"]


@pytest.fixture()
def started(client):
    response = client.post("/api/ph/session")
    assert response.status_code == 201
    return response


class TestSessionEndpoints:
    def test_start_session(self, started):
        data = _data(started)
        assert data["mode"] == "live"
        assert data["optimal_range"] == {"min": 6.5, "max": 7.5}

    def test_end_session(self, client, started):
        assert client.delete("/api/ph/session").status_code == 200
        response = client.delete("/api/ph/session")
        assert response.status_code == 409
        assert response.get_json()["error"]["code"] == "no_session"

    def test_user_id_comes_from_flask_session(self, client, container):
        with client.session_transaction() as flask_session:
            flask_session["user_id"] = 42
        client.post("/api/ph/session")
        assert container.monitoring_service.has_session(42)
        assert not container.monitoring_service.has_session(1)


class TestReadingEndpoints:
    def test_post_reading_requires_session(self, client):
        response = client.post("/api/ph/readings", json={"value": 7.0})
        assert response.status_code == 409
        body = response.get_json()
        assert body["ok"] is False
        assert body["data"] is None

    def test_post_and_list_readings(self, client, started, container):
        response = client.post("/api/ph/readings", json={"value": 6.8})
        assert response.status_code == 201
        assert _data(response)["value"] == 6.8

        listing = _data(client.get("/api/ph/readings?range=24h"))
        assert listing["count"] == 1
        assert container.reading_repo.count(1) == 1

    @pytest.mark.parametrize("body", [{}, {"value": "acid"}, {"value": 7, "source": "guess"}])
    def test_invalid_reading_body(self, client, started, body):
        response = client.post("/api/ph/readings", json=body)
        assert response.status_code == 400
        assert "errors" in response.get_json()["details"]

    def test_non_finite_value_is_rejected(self, client, started):
        response = client.post(
            "/api/ph/readings", data='{"value": NaN}', content_type="application/json"
        )
        assert response.status_code == 400

    def test_out_of_range_reading_triggers_pump(self, client, started):
        client.post("/api/ph/readings", json={"value": 5.2})

        pumps = _data(client.get("/api/ph/pumps?limit=5"))
        assert pumps[0]["pump_type"] == "basic"
        assert pumps[0]["reagent"] == "Ammonium Hydroxide (NH4OH)"

        status = _data(client.get("/api/ph/status"))
        assert status["pump_status"] == "basic"
        assert status["ph_status"] == "too_acidic"

    def test_bad_limit(self, client, started):
        assert client.get("/api/ph/pumps?limit=many").status_code == 400

    def test_stats(self, client, started):
        client.post("/api/ph/readings", json={"value": 7.0})
        stats = _data(client.get("/api/ph/stats?range=7d"))
        assert stats["count"] == 1
        assert stats["range"] == "7d"


class TestStatusEndpoint:
    def test_status_requires_session(self, client):
        assert client.get("/api/ph/status").status_code == 409

    def test_simulation_fallback_is_visible(self, client, started, clock, timers):
        clock.advance(10_001)
        timers.latest("ph-staleness").fire()
        timers.latest("ph-simulator").fire()

        status = _data(client.get("/api/ph/status"))
        assert status["mode"] == "simulated"
        assert status["simulator_running"] is True
        assert status["current_value"] == 7.0


class TestCropEndpoints:
    def test_list_crops(self, client):
        data = _data(client.get("/api/crops"))
        assert len(data["crops"]) == 15
        assert "cereals" in data["categories"]
        assert data["current_crop"] is None

    def test_filter_by_category(self, client):
        data = _data(client.get("/api/crops?category=pulses"))
        assert {crop["value"] for crop in data["crops"]} == {"chickpea", "pigeon_pea"}

    def test_unknown_category(self, client):
        assert client.get("/api/crops?category=flowers").status_code == 400

    def test_recommendations(self, client, container):
        container.profile_repo.update(1, farm_location="Punjab")
        data = _data(client.get("/api/crops/recommendations?limit=2&month=5"))
        assert [crop["value"] for crop in data] == ["maize", "cotton"]

    def test_recommendations_without_profile(self, client):
        assert _data(client.get("/api/crops/recommendations")) == []

    def test_invalid_month(self, client):
        assert client.get("/api/crops/recommendations?month=14").status_code == 400

    def test_select_crop(self, client, started, container):
        response = client.put("/api/crops/current", json={"crop": "Rice"})
        data = _data(response)
        assert data["optimal_range"] == {"min": 5.5, "max": 6.5}
        assert container.profile_repo.get(1).current_crop == "rice"

        status = _data(client.get("/api/ph/status"))
        assert status["optimal_range"] == {"min": 5.5, "max": 6.5}

    def test_select_unknown_crop(self, client, started):
        response = client.put("/api/crops/current", json={"crop": "dragonfruit"})
        assert response.status_code == 404

    def test_select_crop_without_session(self, client):
        assert client.put("/api/crops/current", json={"crop": "rice"}).status_code == 409

    def test_select_crop_missing_body(self, client, started):
        assert client.put("/api/crops/current", json={}).status_code == 400


class TestWeatherEndpoint:
    def test_explicit_location(self, client):
        data = _data(client.get("/api/weather?location=Goa"))
        assert data["location"] == "Goa"
        assert data["simulated"] is True

    def test_profile_location_is_default(self, client, container):
        container.profile_repo.update(1, farm_location="Punjab")
        with patch.object(container.weather_service, "get_weather", wraps=container.weather_service.get_weather) as spy:
            client.get("/api/weather")
        spy.assert_called_once_with("Punjab")

    def test_configured_location_as_last_resort(self, client, container):
        with patch.object(container.weather_service, "get_weather", wraps=container.weather_service.get_weather) as spy:
            client.get("/api/weather")
        spy.assert_called_once_with(container.config.default_location)


class TestProfileEndpoints:
    def test_defaults_before_any_update(self, client):
        data = _data(client.get("/api/profile"))
        assert data["user_id"] == 1
        assert data["farm_location"] is None
        assert data["current_crop"] is None

    def test_update_location(self, client, container):
        response = client.put("/api/profile", json={"farm_location": "  Ludhiana, Punjab "})
        assert response.get_json()["message"] == "Profile updated"
        assert _data(response)["farm_location"] == "Ludhiana, Punjab"

        data = _data(client.get("/api/profile"))
        assert data["farm_location"] == "Ludhiana, Punjab"
        assert container.profile_repo.get(1).farm_location == "Ludhiana, Punjab"

    def test_partial_update_keeps_other_fields(self, client):
        client.put("/api/profile", json={"farm_location": "Punjab"})
        data = _data(client.put("/api/profile", json={"farm_name": "North Field"}))
        assert data == {**data, "farm_name": "North Field", "farm_location": "Punjab"}

    def test_blank_location_clears_it(self, client):
        client.put("/api/profile", json={"farm_location": "Punjab"})
        assert _data(client.put("/api/profile", json={"farm_location": "   "}))["farm_location"] is None

    @pytest.mark.parametrize(
        "body",
        [{}, {"farm_location": "Punjab", "current_crop": "rice"}, {"farm_name": "x" * 101}],
    )
    def test_invalid_body(self, client, body):
        response = client.put("/api/profile", json=body)
        assert response.status_code == 400
        assert response.get_json()["ok"] is False

    def test_location_changes_recommendations(self, client):
        client.put("/api/profile", json={"farm_name": "North Field"})
        before = {crop["value"]: crop for crop in _data(client.get("/api/crops/recommendations?month=5&limit=15"))}
        assert before["maize"]["location_score"] == 50

        client.put("/api/profile", json={"farm_location": "Punjab"})
        after = _data(client.get("/api/crops/recommendations?month=5&limit=15"))
        assert {crop["value"]: crop for crop in after}["maize"]["location_score"] == 100
        assert [crop["value"] for crop in after[:2]] == ["maize", "cotton"]


class TestChatEndpoints:
    def test_log_and_list(self, client):
        response = client.post("/api/chat/logs", json={"question": "Why is my pH low?", "answer": "Add lime."})
        assert response.status_code == 201
        entry = _data(response)
        assert entry["question"] == "Why is my pH low?"
        assert entry["source"] == "assistant"

        client.post("/api/chat/logs", json={"question": "Best crop for May?"})
        history = _data(client.get("/api/chat/logs?limit=1"))
        assert len(history) == 1
        assert len(_data(client.get("/api/chat/logs"))) == 2

    @pytest.mark.parametrize("body", [{}, {"question": ""}, {"question": "   "}, {"question": "x" * 2001}])
    def test_invalid_question(self, client, body):
        assert client.post("/api/chat/logs", json=body).status_code == 400
        assert _data(client.get("/api/chat/logs")) == []

    def test_delete(self, client):
        log_id = _data(client.post("/api/chat/logs", json={"question": "Is 7.2 neutral?"}))["id"]

        assert _data(client.delete(f"/api/chat/logs/{log_id}")) == {"deleted": log_id}
        response = client.delete(f"/api/chat/logs/{log_id}")
        assert response.status_code == 404
        assert response.get_json()["error"]["code"] == "unknown_log"

    def test_stats(self, client):
        assert _data(client.get("/api/chat/stats"))["total_interactions"] == 0

        client.post("/api/chat/logs", json={"question": "abcd"})
        client.post("/api/chat/logs", json={"question": "abcdefgh"})
        stats = _data(client.get("/api/chat/stats"))
        assert stats["total_interactions"] == 2
        assert stats["average_question_length"] == 6.0
        assert stats["first_question_at"] is not None


def test_unknown_api_route_returns_json(client):
    response = client.get("/api/nothing-here")
    assert response.status_code == 404
    assert response.get_json()["ok"] is False
