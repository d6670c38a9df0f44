from datetime import datetime, time

import pytest

from core.enums import ActivityCategory, ActivityStatus
from core.exceptions import WeatherFetchError
from schemas.context import PlaceCandidate, WeatherSnapshot
from schemas.itinerary import Activity, Itinerary, clock_at, minutes_of
from schemas.profile import UserProfile


# Helpers
def make_candidate(id: str, category: str, rating=4.0, duration=60, cost=10.0,
                   indoor=True, crowd=0.3, distance=0.0) -> PlaceCandidate:
    return PlaceCandidate(
        id=id, name=f"{category.title()} {id}", category=ActivityCategory(category),
        rating=rating, duration_min=duration, cost_usd=cost, is_indoor=indoor,
        crowd_level=crowd, distance_from_prev_m=distance,
    )


def make_activity(id: str, start: str, duration=60, status=ActivityStatus.UPCOMING,
                  category="museum", indoor=True, cost=10.0, crowd=0.3,
                  distance=0.0) -> Activity:
    hh, mm = map(int, start.split(":"))
    begin = time(hh, mm)
    return Activity(
        id=id, name=f"Place {id}", category=ActivityCategory(category),
        start_time=begin, end_time=clock_at(minutes_of(begin) + duration),
        duration_min=duration, cost_usd=cost, is_indoor=indoor, crowd_level=crowd,
        distance_from_prev_m=distance, status=status,
    )


class FixedWeatherTool:
    def __init__(self, snapshot: WeatherSnapshot):
        self.snapshot = snapshot
        self.calls = 0

    def fetch(self, lat, lon, now=None):
        self.calls += 1
        return self.snapshot


class FailingWeatherTool:
    def fetch(self, lat, lon, now=None):
        raise WeatherFetchError("Weather API error: 503")


class FixedPlacesTool:
    def __init__(self, places):
        self.places = list(places)

    def search(self, lat, lon, radius_m=3000, categories=None, now=None):
        return list(self.places)


class FixedClock:
    def __init__(self, now: datetime):
        self.now = now

    def __call__(self) -> datetime:
        return self.now


@pytest.fixture
def profile():
    return UserProfile(name="Ana", budget_per_day=150.0)


@pytest.fixture
def clear_weather():
    return WeatherSnapshot(temperature=21, condition="Clear Sky")


@pytest.fixture
def rain_weather():
    return WeatherSnapshot(temperature=14, condition="Moderate Rain", precipitation=2.4,
                           is_raining=True, severity=3, weather_code=63)


@pytest.fixture
def scenario_candidates():
    return [
        make_candidate("museum-1", "museum", rating=4.5, duration=120, cost=15.0),
        make_candidate("cafe-1", "cafe", rating=4.0, duration=30, cost=8.0),
        make_candidate("park-1", "park", rating=3.8, duration=60, cost=0.0, indoor=False),
    ]


@pytest.fixture
def indoor_pool():
    return [
        make_candidate("art-1", "art", rating=4.4, duration=90, cost=12.0),
        make_candidate("theater-1", "theater", rating=4.2, duration=120, cost=30.0),
        make_candidate("cafe-2", "cafe", rating=4.1, duration=30, cost=6.0),
        make_candidate("shop-1", "shopping", rating=3.9, duration=60, cost=20.0),
    ]


@pytest.fixture
def outdoor_day():
    """Active outdoor park at 09:00, museum later, outdoor monument in the afternoon."""
    return Itinerary(activities=(
        make_activity("park-a", "09:00", 60, ActivityStatus.ACTIVE, "park", indoor=False, cost=0.0),
        make_activity("museum-a", "10:30", 120, ActivityStatus.UPCOMING, "museum", cost=15.0),
        make_activity("monument-a", "14:00", 45, ActivityStatus.UPCOMING, "monument",
                      indoor=False, cost=0.0),
    ), version=1, theme="City Discovery in Porto")
