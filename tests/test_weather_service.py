import random
from unittest.mock import MagicMock, patch

import pytest
import requests

from app.services.utilities.weather_service import (
    DEMO_LOCATION,
    WeatherService,
    weather_description,
    weather_icon,
)

GEOCODE_OK = {"results": [{"latitude": 24.87, "longitude": 92.35, "name": "Karimganj"}]}
FORECAST_OK = {
    "current": {
        "temperature_2m": 27.6,
        "relative_humidity_2m": 81,
        "weather_code": 61,
        "wind_speed_10m": 7.4,
    }
}


def _response(payload):
    response = MagicMock()
    response.json.return_value = payload
    response.raise_for_status.return_value = None
    return response


@pytest.fixture()
def service():
    return WeatherService(timeout=3, rng=random.Random(7))


@patch("app.services.utilities.weather_service.requests.get")
def test_live_weather(mock_get, service):
    mock_get.side_effect = [_response(GEOCODE_OK), _response(FORECAST_OK)]

    report = service.get_weather("Karimganj, Assam")

    assert report.simulated is False
    assert report.temp == 28
    assert report.humidity == 81
    assert report.wind_speed == 7
    assert report.description == "Slight rain"
    assert report.icon == "🌧️"
    assert report.location == "Karimganj"
    forecast_call = mock_get.call_args_list[1]
    assert forecast_call.kwargs["params"]["latitude"] == 24.87
    assert forecast_call.kwargs["timeout"] == 3


@patch("app.services.utilities.weather_service.requests.get")
def test_geocoding_is_cached(mock_get, service):
    mock_get.side_effect = [_response(GEOCODE_OK), _response(FORECAST_OK), _response(FORECAST_OK)]

    service.get_weather("Karimganj")
    service.get_weather("karimganj")

    assert mock_get.call_count == 3


@patch("app.services.utilities.weather_service.requests.get")
def test_unknown_place_falls_back(mock_get, service):
    mock_get.return_value = _response({"results": []})

    report = service.get_weather("Atlantis")

    assert report.simulated is True
    assert report.location == "Atlantis"
    assert mock_get.call_count == 1


@patch("app.services.utilities.weather_service.requests.get")
def test_network_error_falls_back(mock_get, service):
    mock_get.side_effect = requests.ConnectionError("offline")

    report = service.get_weather("Karimganj")

    assert report.simulated is True
    assert 15 <= report.temp <= 34
    assert 40 <= report.humidity <= 89
    assert 5 <= report.wind_speed <= 24


@patch("app.services.utilities.weather_service.requests.get")
def test_malformed_payload_falls_back(mock_get, service):
    mock_get.side_effect = [_response(GEOCODE_OK), _response({"unexpected": True})]
    assert service.get_weather("Karimganj").simulated is True


@pytest.mark.parametrize("location", [None, "", "Not provided"])
@patch("app.services.utilities.weather_service.requests.get")
def test_missing_location_uses_demo_report(mock_get, service, location):
    report = service.get_weather(location)

    assert report.location == DEMO_LOCATION
    assert report.simulated is True
    mock_get.assert_not_called()


@patch("app.services.utilities.weather_service.requests.get")
def test_disabled_service_never_calls_out(mock_get):
    report = WeatherService(enabled=False).get_weather("Karimganj")
    assert report.simulated is True
    mock_get.assert_not_called()


def test_report_to_dict():
    payload = WeatherService(rng=random.Random(1)).generate_random_weather("Farm").to_dict()
    assert payload["success"] is True
    assert payload["location"] == "Farm"
    assert set(payload) >= {"temp", "humidity", "wind_speed", "description", "icon", "simulated"}


@pytest.mark.parametrize(
    "code, description, icon",
    [(0, "Clear sky", "☀️"), (3, "Overcast", "☁️"), (45, "Foggy", "🌫️"), (95, "Thunderstorm", "⛈️")],
)
def test_weather_code_mapping(code, description, icon):
    assert weather_description(code) == description
    assert weather_icon(code) == icon


def test_unknown_weather_code():
    assert weather_description(None) == "Unknown"
    assert weather_description(42) == "Unknown"
    assert weather_icon(None) == "🌤️"
