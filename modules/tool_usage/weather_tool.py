"""
modules/tool_usage/weather_tool.py
-----------------------------------
Fetches current conditions from Open-Meteo (no API key required) and maps
them onto WeatherSnapshot.

  condition / severity  ← WMO weather code table below
  is_raining            ← precipitation > 0.1 mm
  is_stormy             ← weather code ≥ 95
  hourly_forecast       ← next 8 hours starting at the current hour

Transport failures and malformed payloads raise WeatherFetchError; callers
keep their last-known snapshot.
"""

from __future__ import annotations
import logging
from datetime import datetime
from typing import Any, Optional

import requests

from core.exceptions import WeatherFetchError
from schemas.context import HourlyForecast, WeatherSnapshot
import config

logger = logging.getLogger(__name__)

# WMO code → (label, severity 0–5)
WMO_CODES: dict[int, tuple[str, int]] = {
    0:  ("Clear Sky", 0),
    1:  ("Mainly Clear", 0),
    2:  ("Partly Cloudy", 0),
    3:  ("Overcast", 1),
    45: ("Foggy", 1),
    48: ("Icy Fog", 2),
    51: ("Light Drizzle", 1),
    53: ("Drizzle", 2),
    55: ("Heavy Drizzle", 3),
    61: ("Slight Rain", 2),
    63: ("Moderate Rain", 3),
    65: ("Heavy Rain", 4),
    71: ("Light Snow", 3),
    73: ("Moderate Snow", 4),
    75: ("Heavy Snow", 5),
    80: ("Showers", 2),
    81: ("Rain Showers", 3),
    82: ("Violent Showers", 5),
    95: ("Thunderstorm", 5),
    96: ("Thunderstorm+Hail", 5),
    99: ("Heavy Thunderstorm", 5),
}
UNKNOWN_CODE = ("Unknown", 0)

RAIN_THRESHOLD_MM = 0.1
STORM_CODE        = 95
FORECAST_HOURS    = 8

CURRENT_FIELDS = (
    "temperature_2m", "apparent_temperature", "relative_humidity_2m",
    "precipitation", "rain", "weather_code", "wind_speed_10m",
    "wind_direction_10m", "uv_index", "cloud_cover", "visibility",
)
HOURLY_FIELDS = (
    "temperature_2m", "precipitation_probability", "precipitation",
    "weather_code", "uv_index",
)


class WeatherTool:
    """
    Wraps the Open-Meteo forecast endpoint.

    With use_stub=True no request is made and a clear-sky reading is returned.
    """

    def __init__(
        self,
        api_url: str = config.WEATHER_API_URL,
        timeout: float = config.HTTP_TIMEOUT_SECONDS,
        use_stub: bool = config.USE_STUB_WEATHER,
    ) -> None:
        self.api_url = api_url
        self.timeout = timeout
        self.use_stub = use_stub

    def fetch(self, lat: float, lon: float, now: Optional[datetime] = None) -> WeatherSnapshot:
        """
        Current weather at (lat, lon).

        Raises:
            WeatherFetchError: request failed or the payload is unusable.
        """
        now = now or datetime.now()
        if self.use_stub:
            logger.debug("WeatherTool stub for (%.4f, %.4f)", lat, lon)
            return self._stub(now)

        params: dict[str, Any] = {
            "latitude": lat,
            "longitude": lon,
            "current": ",".join(CURRENT_FIELDS),
            "hourly": ",".join(HOURLY_FIELDS),
            "forecast_days": 1,
            "timezone": "auto",
        }
        try:
            response = requests.get(self.api_url, params=params, timeout=self.timeout)
            response.raise_for_status()
            data = response.json()
        except (requests.RequestException, ValueError) as exc:
            raise WeatherFetchError(f"Weather API error: {exc}") from exc

        try:
            return self._parse(data, now)
        except (KeyError, TypeError, IndexError, ValueError) as exc:
            raise WeatherFetchError(f"Malformed weather payload: {exc}") from exc

    # ── Parsing ───────────────────────────────────────────────────────────────

    @staticmethod
    def _parse(data: dict, now: datetime) -> WeatherSnapshot:
        current = data["current"]
        code = int(current["weather_code"])
        label, severity = WMO_CODES.get(code, UNKNOWN_CODE)
        precipitation = float(current.get("precipitation") or 0.0)

        hourly = data.get("hourly") or {}
        times = hourly.get("time", [])
        forecast: list[HourlyForecast] = []
        for i in range(FORECAST_HOURS):
            idx = now.hour + i
            if idx >= len(times):
                break
            forecast.append(HourlyForecast(
                time=times[idx],
                hour=(now.hour + i) % 24,
                temperature=round(float(hourly["temperature_2m"][idx])),
                precipitation_probability=float(hourly["precipitation_probability"][idx] or 0),
                precipitation=float(hourly["precipitation"][idx] or 0),
                weather_code=int(hourly["weather_code"][idx]),
            ))

        return WeatherSnapshot(
            temperature=round(float(current["temperature_2m"])),
            condition=label,
            precipitation=precipitation,
            wind_speed=round(float(current.get("wind_speed_10m") or 0.0)),
            uv_index=float(current.get("uv_index") or 0.0),
            is_raining=precipitation > RAIN_THRESHOLD_MM,
            severity=severity,
            hourly_forecast=forecast,
            weather_code=code,
            is_stormy=code >= STORM_CODE,
            fetched_at=now.isoformat(),
        )

    @staticmethod
    def _stub(now: datetime) -> WeatherSnapshot:
        return WeatherSnapshot(
            temperature=22,
            condition="Clear Sky",
            wind_speed=8,
            uv_index=4.0,
            hourly_forecast=[
                HourlyForecast(time=f"{now.date().isoformat()}T{(now.hour + i) % 24:02d}:00",
                               hour=(now.hour + i) % 24, temperature=22)
                for i in range(FORECAST_HOURS)
            ],
            fetched_at=now.isoformat(),
        )
