"""
schemas/itinerary.py
--------------------
Dataclass definitions for the one-day itinerary structures.

Invariants (enforced in __post_init__):
  Activity  : end_time = start_time + duration_min, same day
  Itinerary : activities sorted by start_time, no two [start, end) overlap

Both types are frozen. Status changes and structural edits return new
instances; only structural edits (add / remove / replace) bump `version`.
"""

from __future__ import annotations
from dataclasses import dataclass, field, replace
from datetime import time
from typing import Iterable, Mapping, Optional

from core.enums import ActivityCategory, ActivityStatus
from schemas.context import PlaceCandidate

MINUTES_PER_DAY = 24 * 60


def minutes_of(t: time) -> int:
    """Minutes since midnight for a wall-clock time."""
    return t.hour * 60 + t.minute


def clock_at(minutes: int) -> time:
    """Wall-clock time for minutes since midnight. Raises past midnight."""
    if not 0 <= minutes < MINUTES_PER_DAY:
        raise ValueError(f"{minutes} min is outside a single day")
    return time(minutes // 60, minutes % 60)


def parse_clock(value: str) -> time:
    """Parse "HH:MM" into a time."""
    hh, mm = map(int, value.split(":"))
    return time(hh, mm)


def format_clock(t: time) -> str:
    return f"{t.hour:02d}:{t.minute:02d}"


@dataclass(frozen=True)
class Activity:
    """One bookable unit of experience, placed on the day's clock."""
    id: str
    name: str
    category: ActivityCategory
    start_time: time
    end_time: time
    duration_min: int
    cost_usd: float = 0.0
    is_indoor: bool = True
    crowd_level: float = 0.3
    rating: Optional[float] = None
    distance_from_prev_m: float = 0.0
    status: ActivityStatus = ActivityStatus.UPCOMING
    reason_chosen: str = ""
    address: str = ""

    def __post_init__(self):
        if self.duration_min <= 0:
            raise ValueError(f"Activity {self.id}: duration_min must be > 0")
        if self.cost_usd < 0:
            raise ValueError(f"Activity {self.id}: cost_usd must be >= 0")
        if not 0.0 <= self.crowd_level <= 1.0:
            raise ValueError(f"Activity {self.id}: crowd_level must be in [0, 1]")
        if self.rating is not None and not 0.0 <= self.rating <= 5.0:
            raise ValueError(f"Activity {self.id}: rating must be in [0, 5]")
        if self.distance_from_prev_m < 0:
            raise ValueError(f"Activity {self.id}: distance_from_prev_m must be >= 0")
        if minutes_of(self.end_time) != minutes_of(self.start_time) + self.duration_min:
            raise ValueError(f"Activity {self.id}: end_time must equal start_time + duration_min")

    # ── Construction ──────────────────────────────────────────────────────────

    @classmethod
    def from_candidate(
        cls,
        candidate: PlaceCandidate,
        start: time,
        status: ActivityStatus = ActivityStatus.UPCOMING,
        reason: str = "",
    ) -> "Activity":
        """Place a candidate on the clock. Raises ValueError past midnight."""
        end = clock_at(minutes_of(start) + candidate.duration_min)
        return cls(
            id=candidate.id,
            name=candidate.name,
            category=candidate.category,
            start_time=start,
            end_time=end,
            duration_min=candidate.duration_min,
            cost_usd=candidate.cost_usd,
            is_indoor=candidate.is_indoor,
            crowd_level=candidate.crowd_level,
            rating=candidate.rating,
            distance_from_prev_m=candidate.distance_from_prev_m,
            status=status,
            reason_chosen=reason,
            address=candidate.address,
        )

    def with_status(self, status: ActivityStatus) -> "Activity":
        return replace(self, status=status)

    def shifted_to(self, start: time) -> "Activity":
        end = clock_at(minutes_of(start) + self.duration_min)
        return replace(self, start_time=start, end_time=end)

    # ── Helpers ───────────────────────────────────────────────────────────────

    @property
    def start_minutes(self) -> int:
        return minutes_of(self.start_time)

    @property
    def end_minutes(self) -> int:
        return minutes_of(self.end_time)

    @property
    def is_locked(self) -> bool:
        """Done or active activities are never touched by a replan."""
        return self.status in (ActivityStatus.DONE, ActivityStatus.ACTIVE)

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "name": self.name,
            "category": self.category.value,
            "startTime": format_clock(self.start_time),
            "endTime": format_clock(self.end_time),
            "durationMin": self.duration_min,
            "costUsd": self.cost_usd,
            "isIndoor": self.is_indoor,
            "crowdLevel": self.crowd_level,
            "rating": self.rating,
            "distanceFromPrevM": self.distance_from_prev_m,
            "status": self.status.value,
            "reasonChosen": self.reason_chosen,
            "address": self.address,
        }


@dataclass(frozen=True)
class Itinerary:
    """Ordered, versioned sequence of Activities for one day."""
    activities: tuple[Activity, ...] = field(default_factory=tuple)
    version: int = 0
    theme: str = ""
    planner_note: str = ""

    def __post_init__(self):
        object.__setattr__(self, "activities", tuple(self.activities))
        for prev, nxt in zip(self.activities, self.activities[1:]):
            if nxt.start_minutes < prev.start_minutes:
                raise ValueError("Itinerary activities must be ordered by start_time")
            if nxt.start_minutes < prev.end_minutes:
                raise ValueError(f"Overlapping activities: {prev.id} vs {nxt.id}")

    # ── Structural edits (bump version) ──────────────────────────────────────

    def with_activities(
        self,
        activities: Iterable[Activity],
        theme: str | None = None,
        planner_note: str | None = None,
    ) -> "Itinerary":
        ordered = sorted(activities, key=lambda a: a.start_minutes)
        return Itinerary(
            activities=tuple(ordered),
            version=self.version + 1,
            theme=self.theme if theme is None else theme,
            planner_note=self.planner_note if planner_note is None else planner_note,
        )

    def without(self, activity_id: str) -> "Itinerary":
        return self.with_activities(a for a in self.activities if a.id != activity_id)

    # ── Non-structural edits ──────────────────────────────────────────────────

    def with_statuses(self, statuses: Mapping[str, ActivityStatus]) -> "Itinerary":
        return replace(
            self,
            activities=tuple(
                a.with_status(statuses[a.id]) if a.id in statuses else a
                for a in self.activities
            ),
        )

    # ── Queries ───────────────────────────────────────────────────────────────

    def __len__(self) -> int:
        return len(self.activities)

    def get(self, activity_id: str) -> Optional[Activity]:
        return next((a for a in self.activities if a.id == activity_id), None)

    def active(self) -> Optional[Activity]:
        return next((a for a in self.activities if a.status == ActivityStatus.ACTIVE), None)

    def by_status(self, *statuses: ActivityStatus) -> list[Activity]:
        return [a for a in self.activities if a.status in statuses]

    @property
    def total_cost(self) -> float:
        return sum(a.cost_usd for a in self.activities)

    @property
    def walking_km(self) -> float:
        return sum(a.distance_from_prev_m for a in self.activities) / 1000.0

    def to_dict(self) -> dict:
        return {
            "version": self.version,
            "theme": self.theme,
            "plannerNote": self.planner_note,
            "activities": [a.to_dict() for a in self.activities],
        }
