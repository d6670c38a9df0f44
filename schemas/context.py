"""
schemas/context.py
------------------
Normalized outputs of the external collaborators the engine consumes:
  WeatherSnapshot  — weather service reading for (lat, lon)
  PlaceCandidate   — one place returned by the place-search service

The engine never sees raw HTTP payloads; the tool adapters in
modules/tool_usage/ map them onto these types.
"""

from __future__ import annotations
from dataclasses import dataclass, field
from typing import Optional

from core.enums import ActivityCategory

# Condition-label fragments that count as rain for the outdoor check
_RAIN_WORDS = ("rain", "drizzle", "shower", "thunderstorm")


@dataclass
class HourlyForecast:
    time: str                 # ISO timestamp from the provider
    hour: int                 # 0–23
    temperature: float
    precipitation_probability: float = 0.0
    precipitation: float = 0.0
    weather_code: int = 0


@dataclass
class WeatherSnapshot:
    """
    Current conditions at the traveller's location.

    severity is the provider-independent 0 (fine) → 5 (severe) scale.
    """
    temperature: float
    condition: str                      # human label, e.g. "Moderate Rain"
    precipitation: float = 0.0          # mm
    wind_speed: float = 0.0             # km/h
    uv_index: float = 0.0
    is_raining: bool = False
    severity: int = 0
    hourly_forecast: list[HourlyForecast] = field(default_factory=list)
    weather_code: int = 0
    is_stormy: bool = False
    fetched_at: str = ""

    def __post_init__(self):
        if not 0 <= self.severity <= 5:
            raise ValueError("severity must be in [0, 5]")

    @property
    def is_rain(self) -> bool:
        """True when outdoor activities should be considered rained out."""
        label = self.condition.lower()
        return self.is_raining or any(word in label for word in _RAIN_WORDS)

    def to_dict(self) -> dict:
        return {
            "temperature": self.temperature,
            "condition": self.condition,
            "precipitation": self.precipitation,
            "windSpeed": self.wind_speed,
            "uvIndex": self.uv_index,
            "isRaining": self.is_raining,
            "severity": self.severity,
            "weatherCode": self.weather_code,
            "isStormy": self.is_stormy,
            "fetchedAt": self.fetched_at,
            "hourlyForecast": [
                {"time": h.time, "hour": h.hour, "temp": h.temperature,
                 "precipProb": h.precipitation_probability, "precip": h.precipitation,
                 "code": h.weather_code}
                for h in self.hourly_forecast
            ],
        }


@dataclass
class PlaceCandidate:
    """A place returned by the place-search service, not yet scheduled."""
    id: str
    name: str
    category: ActivityCategory = ActivityCategory.OTHER
    rating: Optional[float] = None      # 0–5; None when the provider has none
    duration_min: int = 60
    cost_usd: float = 0.0
    is_indoor: bool = True
    crowd_level: float = 0.3            # 0–1
    distance_from_prev_m: float = 0.0
    address: str = ""
    lat: float = 0.0
    lon: float = 0.0

    def __post_init__(self):
        if not isinstance(self.category, ActivityCategory):
            self.category = ActivityCategory.parse(self.category)
        if self.duration_min <= 0:
            raise ValueError(f"Candidate {self.id}: duration_min must be > 0")
        if self.cost_usd < 0:
            raise ValueError(f"Candidate {self.id}: cost_usd must be >= 0")

    @property
    def price_level(self) -> int:
        """0 (free) → 4 (expensive), derived from cost_usd."""
        if self.cost_usd <= 0:
            return 0
        if self.cost_usd < 15:
            return 1
        if self.cost_usd < 30:
            return 2
        if self.cost_usd < 60:
            return 3
        return 4

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "name": self.name,
            "category": self.category.value,
            "rating": self.rating,
            "durationMin": self.duration_min,
            "costUsd": self.cost_usd,
            "isIndoor": self.is_indoor,
            "crowdLevel": self.crowd_level,
            "distanceFromPrevM": self.distance_from_prev_m,
            "address": self.address,
        }
