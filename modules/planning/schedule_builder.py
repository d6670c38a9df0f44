"""
modules/planning/schedule_builder.py
--------------------------------------
Builds the initial one-day Itinerary from the ranked candidate pool.

Algorithm:
  1. Score every candidate (candidate_scoring.rank) and keep the top 15.
  2. Walk the eight fixed day slots in order. For each slot, try its allowed
     categories in preference order and take the best unused candidate of
     the first category that has one. Empty slots are skipped.
  3. If fewer than 5 slots were filled, pad with the remaining top-15
     candidates (best first) until 8 activities or the pool runs out. Padded
     activities take the unused slot clocks in chronological order.
  4. start = max(slot clock, previous end); end = start + duration.
     Activities that would end after the day end are dropped.
  5. Candidates that would push total cost past
     budget_per_day × (1 + COST_OVERRUN_TOLERANCE) are skipped.
  6. First activity → active, the rest → upcoming.
"""

from __future__ import annotations
import logging
from collections import Counter
from dataclasses import dataclass
from datetime import time
from typing import Optional, Sequence

from core.enums import ActivityCategory, ActivityStatus, LogType
from core.exceptions import InsufficientDataError
from schemas.context import PlaceCandidate, WeatherSnapshot
from schemas.events import DecisionLogEntry
from schemas.itinerary import Activity, Itinerary, clock_at, minutes_of, parse_clock
from schemas.profile import UserProfile
from modules.planning.candidate_scoring import ScoredCandidate, rank
import config

logger = logging.getLogger(__name__)

C = ActivityCategory


@dataclass(frozen=True)
class DaySlot:
    name: str
    clock: time
    categories: tuple[ActivityCategory, ...]   # preference order


DAY_SLOTS: tuple[DaySlot, ...] = (
    DaySlot("morning café",    time(9, 0),   (C.CAFE, C.RESTAURANT)),
    DaySlot("main attraction", time(10, 30), (C.MUSEUM, C.MONUMENT, C.ART)),
    DaySlot("lunch",           time(12, 30), (C.RESTAURANT,)),
    DaySlot("early afternoon", time(14, 0),  (C.PARK, C.MUSEUM, C.SHOPPING)),
    DaySlot("late afternoon",  time(15, 30), (C.SHOPPING, C.ART, C.CAFE)),
    DaySlot("early evening",   time(17, 0),  (C.MONUMENT, C.PARK, C.CAFE)),
    DaySlot("dinner",          time(19, 0),  (C.RESTAURANT,)),
    DaySlot("evening",         time(20, 30), (C.NIGHTLIFE, C.THEATER, C.RESTAURANT)),
)

DEFAULT_THEME = "City Discovery"


def derive_theme(activities: Sequence[Activity]) -> str:
    """Label the day by its dominant categories."""
    counts = Counter(a.category for a in activities)
    if counts[C.MUSEUM] > 2 or counts[C.ART] > 1:
        return "Cultural Exploration"
    if counts[C.RESTAURANT] > 2 or counts[C.CAFE] > 1:
        return "Culinary Journey"
    if counts[C.PARK] > 1:
        return "Nature & Relaxation"
    if counts[C.SHOPPING] > 1:
        return "Shopping Adventure"
    return DEFAULT_THEME


def budget_cap(profile: UserProfile) -> float:
    return profile.budget_per_day * (1.0 + config.COST_OVERRUN_TOLERANCE)


class ScheduleBuilder:
    """
    Slot-filling day planner.

    Usage:
        builder   = ScheduleBuilder()
        itinerary = builder.build(candidates, profile, weather, city="Lisbon")
        entry     = builder.summary(itinerary, len(candidates))
    """

    def __init__(
        self,
        slots: Sequence[DaySlot] = DAY_SLOTS,
        top_k: int = config.TOP_K_CANDIDATES,
        min_filled: int = config.MIN_FILLED_SLOTS,
        max_activities: int = config.MAX_ACTIVITIES,
        day_end: str = config.DAY_END,
    ) -> None:
        self.slots          = tuple(slots)
        self.top_k          = top_k
        self.min_filled     = min_filled
        self.max_activities = max_activities
        self.day_end_min    = minutes_of(parse_clock(day_end))

    # ── Public API ────────────────────────────────────────────────────────────

    def build(
        self,
        candidates: list[PlaceCandidate],
        profile: UserProfile,
        weather: Optional[WeatherSnapshot],
        city: str = "",
        previous: Optional[Itinerary] = None,
    ) -> Itinerary:
        """
        Assemble a time-ordered, non-overlapping itinerary.

        Args:
            previous: itinerary being replaced; its version is carried forward
                      so the new one is strictly newer.

        Raises:
            InsufficientDataError: weather missing, no candidates, or nothing
                                   fits the budget / day.
        """
        if weather is None or not candidates:
            raise InsufficientDataError()

        top = rank(candidates, profile, weather, top_k=self.top_k)
        picks = self._fill_slots(top, profile)

        activities = self._place_on_clock(picks)
        if not activities:
            raise InsufficientDataError("No candidate fits the day budget and clock")

        theme = derive_theme(activities)
        label = f"{theme} in {city}" if city else theme
        note = (f"Generated {len(activities)} activities based on your "
                f"{profile.primary_style.value} travel style and preferences.")

        base = previous or Itinerary()
        itinerary = base.with_activities(activities, theme=label, planner_note=note)
        logger.info("Built itinerary v%d: %d activities, theme=%r",
                    itinerary.version, len(itinerary), label)
        return itinerary

    def summary(self, itinerary: Itinerary, pool_size: int) -> DecisionLogEntry:
        """Decision Log line describing a freshly built itinerary."""
        theme = itinerary.theme.split(" in ")[0]
        return DecisionLogEntry(
            type=LogType.AI,
            title="ITINERARY GENERATED",
            message=(f"Generated {len(itinerary)} activities. Theme: \"{theme}\". "
                     f"Estimated cost: ${itinerary.total_cost:.0f}. "
                     f"Walking: ~{itinerary.walking_km:.1f}km."),
            detail=f"Selected {len(itinerary)} places from {pool_size} available",
        )

    # ── Internals ─────────────────────────────────────────────────────────────

    def _fill_slots(
        self,
        top: list[ScoredCandidate],
        profile: UserProfile,
    ) -> list[tuple[time, ScoredCandidate, str]]:
        cap = budget_cap(profile)
        used: set[str] = set()
        spent = 0.0
        picks: list[tuple[time, ScoredCandidate, str]] = []
        free_clocks: list[time] = []

        def affordable(s: ScoredCandidate) -> bool:
            return s.candidate.id not in used and spent + s.candidate.cost_usd <= cap

        for slot in self.slots:
            choice = None
            for category in slot.categories:
                choice = next(
                    (s for s in top if s.candidate.category == category and affordable(s)),
                    None,
                )
                if choice is not None:
                    break
            if choice is None:
                free_clocks.append(slot.clock)
                continue
            used.add(choice.candidate.id)
            spent += choice.candidate.cost_usd
            picks.append((slot.clock, choice, slot.name))

        if len(picks) < self.min_filled:
            for s in top:
                if len(picks) >= self.max_activities or not free_clocks:
                    break
                if not affordable(s):
                    continue
                used.add(s.candidate.id)
                spent += s.candidate.cost_usd
                picks.append((free_clocks.pop(0), s, "open slot"))

        picks.sort(key=lambda p: minutes_of(p[0]))
        return picks

    def _place_on_clock(
        self,
        picks: list[tuple[time, ScoredCandidate, str]],
    ) -> list[Activity]:
        activities: list[Activity] = []
        prev_end = 0
        for clock, scored, slot_name in picks:
            start = max(minutes_of(clock), prev_end)
            end = start + scored.candidate.duration_min
            if end > self.day_end_min:
                logger.debug("Dropping %s: ends after day end", scored.candidate.name)
                continue
            status = ActivityStatus.ACTIVE if not activities else ActivityStatus.UPCOMING
            activities.append(Activity.from_candidate(
                scored.candidate,
                clock_at(start),
                status=status,
                reason=f"Best {slot_name} match (score {scored.score:.2f})",
            ))
            prev_end = end
        return activities
