"""
schemas/profile.py
-------------------
Traveller-side data model.

UserProfile — static for the session (preferences, styles, budget, reach).
UserState   — dynamic, bounded [0, 100] scalars plus budget spent.
              Changed only through apply(); reset only on trip reset.
"""

from __future__ import annotations
from dataclasses import dataclass, field
from typing import Optional

from core.enums import AffinityDimension, TravelStyle


def _clamp(value: float, lo: float = 0.0, hi: float = 100.0) -> float:
    return max(lo, min(hi, value))


def _default_preferences() -> dict[AffinityDimension, float]:
    return {
        AffinityDimension.NATURE:    0.3,
        AffinityDimension.FOOD:      0.3,
        AffinityDimension.MUSEUMS:   0.7,
        AffinityDimension.NIGHTLIFE: 0.2,
        AffinityDimension.SHOPPING:  0.2,
    }


@dataclass
class UserProfile:
    """
    Preferences collected before planning.

    travel_styles keeps insertion order; the first entry is the primary
    style used by the scorer.
    """
    name: str = "Traveller"
    travel_styles: list[TravelStyle] = field(default_factory=lambda: [TravelStyle.EXPLORER])
    preferences: dict[AffinityDimension, float] = field(default_factory=_default_preferences)
    budget_per_day: float = 200.0
    transport_modes: list[str] = field(default_factory=lambda: ["walking"])
    max_walking_km: float = 8.0
    max_driving_km: float = 30.0

    def __post_init__(self):
        styles: list[TravelStyle] = []
        for s in self.travel_styles:
            s = TravelStyle(s)
            if s not in styles:
                styles.append(s)
        self.travel_styles = styles or [TravelStyle.EXPLORER]

        prefs = _default_preferences()
        for key, weight in self.preferences.items():
            dim = AffinityDimension(key)
            if not 0.0 <= weight <= 1.0:
                raise ValueError(f"preference weight for {dim.value} must be in [0, 1]")
            prefs[dim] = float(weight)
        self.preferences = prefs

        if self.budget_per_day <= 0:
            raise ValueError("budget_per_day must be > 0")
        if self.max_walking_km < 0 or self.max_driving_km < 0:
            raise ValueError("distance limits must be >= 0")

    @property
    def primary_style(self) -> TravelStyle:
        return self.travel_styles[0]

    def to_dict(self) -> dict:
        return {
            "name": self.name,
            "travelStyles": [s.value for s in self.travel_styles],
            "preferences": {k.value: v for k, v in self.preferences.items()},
            "budgetPerDay": self.budget_per_day,
            "transportModes": list(self.transport_modes),
            "maxWalkingKm": self.max_walking_km,
            "maxDrivingKm": self.max_driving_km,
        }


@dataclass(frozen=True)
class StateDelta:
    """Declared change to UserState. Negative budget deltas are ignored."""
    fatigue: float = 0.0
    stress: float = 0.0
    motivation: float = 0.0
    budget: float = 0.0


@dataclass(frozen=True)
class UserState:
    fatigue: float = 10.0
    stress: float = 5.0
    motivation: float = 90.0
    budget_spent: float = 0.0

    def __post_init__(self):
        for name in ("fatigue", "stress", "motivation"):
            if not 0.0 <= getattr(self, name) <= 100.0:
                raise ValueError(f"{name} must be in [0, 100]")
        if self.budget_spent < 0:
            raise ValueError("budget_spent must be >= 0")

    def apply(self, delta: StateDelta) -> "UserState":
        """Return a new state with the delta applied and scalars clamped."""
        return UserState(
            fatigue=_clamp(self.fatigue + delta.fatigue),
            stress=_clamp(self.stress + delta.stress),
            motivation=_clamp(self.motivation + delta.motivation),
            budget_spent=self.budget_spent + max(0.0, delta.budget),
        )

    def with_fatigue(self, fatigue: float) -> "UserState":
        return UserState(_clamp(fatigue), self.stress, self.motivation, self.budget_spent)

    def remaining_budget(self, profile: UserProfile) -> float:
        return profile.budget_per_day - self.budget_spent

    def to_dict(self, profile: Optional[UserProfile] = None) -> dict:
        data = {
            "fatigue": self.fatigue,
            "stress": self.stress,
            "motivation": self.motivation,
            "budgetSpent": self.budget_spent,
        }
        if profile is not None:
            data["budgetRemaining"] = self.remaining_budget(profile)
        return data
