"""
modules/planning/candidate_scoring.py
---------------------------------------
Ranks candidate places against a traveller profile.

Score composition (pure, deterministic):
  base       = rating × 0.5                     (rating defaults to 3.5)
  affinity   = preferences[dimension] × 3       (category → dimension table)
  style      = fixed bonus for the travel style:
                 relaxed  → +0.5 if duration < 60 min
                 explorer → +0.3 if category ≠ cafe
                 cultural → +0.8 if museum / art / monument
                 luxury   → +0.6 if price level > 2

Ordering for equal scores: higher rating first, then lower cost, then id.
"""

from __future__ import annotations
from dataclasses import dataclass
from typing import Optional

from core.enums import ActivityCategory, AffinityDimension, TravelStyle
from schemas.context import PlaceCandidate, WeatherSnapshot
from schemas.profile import UserProfile
import config


# Category → preference dimension. Categories without an entry get no bonus.
CATEGORY_AFFINITY: dict[ActivityCategory, Optional[AffinityDimension]] = {
    ActivityCategory.MUSEUM:     AffinityDimension.MUSEUMS,
    ActivityCategory.ART:        AffinityDimension.MUSEUMS,
    ActivityCategory.MONUMENT:   AffinityDimension.MUSEUMS,
    ActivityCategory.RESTAURANT: AffinityDimension.FOOD,
    ActivityCategory.CAFE:       AffinityDimension.FOOD,
    ActivityCategory.PARK:       AffinityDimension.NATURE,
    ActivityCategory.SHOPPING:   AffinityDimension.SHOPPING,
    ActivityCategory.NIGHTLIFE:  AffinityDimension.NIGHTLIFE,
    ActivityCategory.SPA:        None,
    ActivityCategory.THEATER:    None,
    ActivityCategory.HOTEL:      None,
    ActivityCategory.OTHER:      None,
}

CULTURAL_CATEGORIES = frozenset({
    ActivityCategory.MUSEUM, ActivityCategory.ART, ActivityCategory.MONUMENT,
})

RATING_WEIGHT   = 0.5
AFFINITY_WEIGHT = 3.0

RELAXED_SHORT_BONUS   = 0.5
RELAXED_SHORT_MIN     = 60
EXPLORER_BONUS        = 0.3
CULTURAL_BONUS        = 0.8
LUXURY_BONUS          = 0.6
LUXURY_MIN_PRICE_LEVEL = 2   # strictly above


@dataclass(frozen=True)
class ScoredCandidate:
    candidate: PlaceCandidate
    score: float

    @property
    def sort_key(self) -> tuple:
        c = self.candidate
        rating = c.rating if c.rating is not None else config.DEFAULT_RATING
        return (-self.score, -rating, c.cost_usd, c.id)


def style_bonus(candidate: PlaceCandidate, travel_style: TravelStyle) -> float:
    if travel_style == TravelStyle.RELAXED:
        return RELAXED_SHORT_BONUS if candidate.duration_min < RELAXED_SHORT_MIN else 0.0
    if travel_style == TravelStyle.EXPLORER:
        return EXPLORER_BONUS if candidate.category != ActivityCategory.CAFE else 0.0
    if travel_style == TravelStyle.CULTURAL:
        return CULTURAL_BONUS if candidate.category in CULTURAL_CATEGORIES else 0.0
    if travel_style == TravelStyle.LUXURY:
        return LUXURY_BONUS if candidate.price_level > LUXURY_MIN_PRICE_LEVEL else 0.0
    raise ValueError(f"Unknown travel style: {travel_style!r}")


def score(
    candidate: PlaceCandidate,
    profile: UserProfile,
    weather: Optional[WeatherSnapshot] = None,
    travel_style: Optional[TravelStyle] = None,
) -> float:
    """
    Score one candidate for a profile.

    Weather does not change the score; weather-driven exclusions are applied
    by the replanner when it builds the eligible pool.
    """
    rating = candidate.rating if candidate.rating is not None else config.DEFAULT_RATING
    total = rating * RATING_WEIGHT

    dimension = CATEGORY_AFFINITY[candidate.category]
    if dimension is not None:
        total += profile.preferences.get(dimension, 0.0) * AFFINITY_WEIGHT

    total += style_bonus(candidate, travel_style or profile.primary_style)
    return total


def rank(
    candidates: list[PlaceCandidate],
    profile: UserProfile,
    weather: Optional[WeatherSnapshot] = None,
    travel_style: Optional[TravelStyle] = None,
    top_k: Optional[int] = None,
) -> list[ScoredCandidate]:
    """Score every candidate; return them best-first, truncated to top_k."""
    scored = [
        ScoredCandidate(c, score(c, profile, weather, travel_style))
        for c in candidates
    ]
    scored.sort(key=lambda s: s.sort_key)
    return scored[:top_k] if top_k is not None else scored
