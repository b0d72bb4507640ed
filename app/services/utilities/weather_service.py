"""
Weather Service
===============

Current conditions for the farm location from the free Open-Meteo API
(no key required):

- Geocoding: https://geocoding-api.open-meteo.com/v1/search
- Forecast:  https://api.open-meteo.com/v1/forecast

When the location is unknown, cannot be geocoded, or either request fails,
a generated report is returned instead and flagged ``simulated=True`` so the
dashboard always has something to show.
"""
from __future__ import annotations

import logging
import random
from dataclasses import dataclass
from datetime import datetime, timedelta
from typing import Any, Dict, Optional, Tuple

import requests

from app.domain.farm_profile import NOT_PROVIDED

logger = logging.getLogger(__name__)

DEMO_LOCATION = "Demo Location"

WEATHER_DESCRIPTIONS: Dict[int, str] = {
    0: "Clear sky",
    1: "Mainly clear",
    2: "Partly cloudy",
    3: "Overcast",
    45: "Foggy",
    48: "Depositing rime fog",
    51: "Light drizzle",
    53: "Moderate drizzle",
    55: "Dense drizzle",
    61: "Slight rain",
    63: "Moderate rain",
    65: "Heavy rain",
    71: "Slight snow",
    73: "Moderate snow",
    75: "Heavy snow",
    80: "Slight rain showers",
    81: "Moderate rain showers",
    82: "Violent rain showers",
    85: "Slight snow showers",
    86: "Heavy snow showers",
    95: "Thunderstorm",
    96: "Thunderstorm with hail",
    99: "Thunderstorm with heavy hail",
}

# (icon, description) pairs used for generated reports
FALLBACK_CONDITIONS: Tuple[Tuple[str, str], ...] = (
    ("☀️", "Clear"),
    ("🌤️", "Partly Cloudy"),
    ("☁️", "Cloudy"),
    ("🌧️", "Rainy"),
    ("⛈️", "Thunderstorm"),
)


def weather_description(code: Optional[int]) -> str:
    return WEATHER_DESCRIPTIONS.get(code, "Unknown") if code is not None else "Unknown"


def weather_icon(code: Optional[int]) -> str:
    """Emoji for a WMO weather code."""
    if code is None:
        return "🌤️"
    if code == 0:
        return "☀️"
    if code in (1, 2):
        return "🌤️"
    if code == 3:
        return "☁️"
    if code in (45, 48):
        return "🌫️"
    if 51 <= code <= 65:
        return "🌧️"
    if 71 <= code <= 75:
        return "❄️"
    if 80 <= code <= 82:
        return "⛈️"
    if 85 <= code <= 86:
        return "🌨️"
    if code >= 95:
        return "⛈️"
    return "🌤️"


@dataclass
class WeatherReport:
    """Current conditions for one location."""
    temp: int
    humidity: float
    wind_speed: int
    description: str
    icon: str
    location: str
    weather_code: Optional[int] = None
    simulated: bool = False
    success: bool = True

    def to_dict(self) -> Dict[str, Any]:
        """Convert to dictionary for JSON serialization."""
        return {
            "success": self.success,
            "temp": self.temp,
            "humidity": self.humidity,
            "wind_speed": self.wind_speed,
            "weather_code": self.weather_code,
            "description": self.description,
            "icon": self.icon,
            "location": self.location,
            "simulated": self.simulated,
        }


class WeatherService:
    """
    Looks up current weather for a free-text location.

    Geocoding results are cached in memory because farm locations rarely
    change between dashboard refreshes.
    """

    GEOCODING_URL = "https://geocoding-api.open-meteo.com/v1/search"
    FORECAST_URL = "https://api.open-meteo.com/v1/forecast"

    def __init__(
        self,
        timeout: int = 10,
        enabled: bool = True,
        cache_hours: int = 24,
        rng: Optional[random.Random] = None,
    ):
        self.timeout = timeout
        self.enabled = enabled
        self.cache_hours = cache_hours
        self._rng = rng or random.Random()
        # {normalized location: ((lat, lng, name), cached_at)}
        self._geocode_cache: Dict[str, Tuple[Tuple[float, float, str], datetime]] = {}

    def get_weather(self, location: Optional[str]) -> WeatherReport:
        """Current weather for ``location``, or a generated report on any failure."""
        location = (location or "").strip()
        if not location or location == NOT_PROVIDED:
            return self.generate_random_weather(DEMO_LOCATION)
        if not self.enabled:
            return self.generate_random_weather(location)

        try:
            place = self._geocode(location)
            if place is None:
                logger.info("Location %r not found, using generated weather", location)
                return self.generate_random_weather(location)

            latitude, longitude, name = place
            response = requests.get(
                self.FORECAST_URL,
                params={
                    "latitude": latitude,
                    "longitude": longitude,
                    "current": "temperature_2m,relative_humidity_2m,weather_code,wind_speed_10m",
                    "temperature_unit": "celsius",
                    "timezone": "auto",
                },
                timeout=self.timeout,
            )
            response.raise_for_status()
            current = response.json()["current"]
            code = current.get("weather_code")
            return WeatherReport(
                temp=round(current["temperature_2m"]),
                humidity=current["relative_humidity_2m"],
                wind_speed=round(current["wind_speed_10m"]),
                weather_code=code,
                description=weather_description(code),
                icon=weather_icon(code),
                location=name,
            )
        except (requests.RequestException, ValueError, KeyError, TypeError) as e:
            logger.warning("Weather API error for %r, using generated data: %s", location, e)
            return self.generate_random_weather(location)

    def _geocode(self, location: str) -> Optional[Tuple[float, float, str]]:
        key = location.lower()
        cached = self._geocode_cache.get(key)
        if cached and datetime.now() - cached[1] <= timedelta(hours=self.cache_hours):
            return cached[0]

        response = requests.get(
            self.GEOCODING_URL,
            params={"name": location, "count": 1, "language": "en", "format": "json"},
            timeout=self.timeout,
        )
        response.raise_for_status()
        results = response.json().get("results") or []
        if not results:
            return None

        first = results[0]
        place = (float(first["latitude"]), float(first["longitude"]), first.get("name") or location)
        self._geocode_cache[key] = (place, datetime.now())
        return place

    def generate_random_weather(self, location: str = DEMO_LOCATION) -> WeatherReport:
        icon, description = self._rng.choice(FALLBACK_CONDITIONS)
        return WeatherReport(
            temp=self._rng.randint(15, 34),
            humidity=self._rng.randint(40, 89),
            wind_speed=self._rng.randint(5, 24),
            description=description,
            icon=icon,
            location=location,
            simulated=True,
        )

    def clear_cache(self) -> None:
        self._geocode_cache.clear()
        logger.info("Geocoding cache cleared")
