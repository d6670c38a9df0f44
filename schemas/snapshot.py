"""
schemas/snapshot.py
-------------------
Read-only view of one trip handed to the presentation layer.
"""

from __future__ import annotations
from dataclasses import dataclass
from typing import Optional

from core.enums import TripPhase
from schemas.context import WeatherSnapshot
from schemas.events import DecisionLogEntry, Disruption
from schemas.itinerary import Itinerary
from schemas.metrics import RLMetrics
from schemas.profile import UserProfile, UserState


@dataclass(frozen=True)
class TripSnapshot:
    phase: TripPhase
    city: str
    profile: Optional[UserProfile]
    itinerary: Itinerary
    user_state: UserState
    disruption: Optional[Disruption]
    decision_log: tuple[DecisionLogEntry, ...]
    metrics: RLMetrics
    weather: Optional[WeatherSnapshot]
    weather_error: Optional[str]
    is_evaluating: bool
    is_replanning: bool

    def to_dict(self) -> dict:
        return {
            "phase": self.phase.value,
            "city": self.city,
            "profile": self.profile.to_dict() if self.profile else None,
            "itinerary": self.itinerary.to_dict(),
            "userState": self.user_state.to_dict(self.profile),
            "disruption": self.disruption.to_dict() if self.disruption else None,
            "decisionLog": [e.to_dict() for e in self.decision_log],
            "metrics": self.metrics.to_dict(),
            "weather": self.weather.to_dict() if self.weather else None,
            "weatherError": self.weather_error,
            "isEvaluating": self.is_evaluating,
            "isReplanning": self.is_replanning,
        }
