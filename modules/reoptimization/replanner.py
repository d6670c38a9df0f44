"""
modules/reoptimization/replanner.py
-------------------------------------
Deterministic partial replanning.

Splits the day at the "lock line":
  locked    — done / active activities; returned exactly as given
  disrupted — activities flagged by a Disruption; each is swapped for a
              replacement or dropped
  keep      — remaining pending / upcoming activities; survive, retimed

Algorithm:
  1. Re-score the candidate pool (candidate_scoring.score) with per-disruption
     adjustments, excluding outdoor places under WEATHER, and keep the top 15.
  2. Walk the tail (keep + disrupted, in time order) from the latest locked
     end (or the earliest tail start if nothing is locked), never before the
     current time. Disrupted activities are replaced by the best unused
     eligible candidate, preferring the same preference dimension;
     eligible = fits the remaining budget and ends before the day end.
  3. Replacements start at the cursor; kept activities start at the cursor
     or their planned start, whichever is later. Anything that would run past
     the day end is dropped.
  4. If nothing is active afterwards, the first non-done activity becomes
     active.

Zero replacements → ReplanUnavailable; callers keep the old itinerary.
"""

from __future__ import annotations
import logging
from typing import Optional, Sequence

from core.enums import ActivityCategory, ActivityStatus, DisruptionType
from core.exceptions import ReplanUnavailable
from schemas.context import PlaceCandidate, WeatherSnapshot
from schemas.events import Disruption, ReplanExplanation
from schemas.itinerary import Activity, clock_at, minutes_of, parse_clock
from schemas.profile import UserProfile, UserState
from modules.optimization.reward import compute_reward, reward_inputs
from modules.planning.candidate_scoring import CATEGORY_AFFINITY, ScoredCandidate, score
import config

logger = logging.getLogger(__name__)

# ── Re-scoring adjustments ────────────────────────────────────────────────────
FATIGUE_SHORT_BONUS    = 1.0     # duration < SHORT_ACTIVITY_MIN
FATIGUE_INDOOR_BONUS   = 0.5
FATIGUE_OUTDOOR_PENALTY = 1.0
BOREDOM_NOVELTY_BONUS  = 1.0     # category not yet in the day
TIME_SHORT_BONUS       = 0.8
SHORT_ACTIVITY_MIN     = 60

# Satisfaction points per unit of score gained by the swap
SATISFACTION_PER_SCORE = 5.0


def _group(category: ActivityCategory):
    """Preference dimension a category feeds, or the category itself."""
    return CATEGORY_AFFINITY.get(category) or category


def _as_candidate(activity: Activity) -> PlaceCandidate:
    return PlaceCandidate(
        id=activity.id,
        name=activity.name,
        category=activity.category,
        rating=activity.rating,
        duration_min=activity.duration_min,
        cost_usd=activity.cost_usd,
        is_indoor=activity.is_indoor,
        crowd_level=activity.crowd_level,
        distance_from_prev_m=activity.distance_from_prev_m,
        address=activity.address,
    )


class Replanner:
    """
    Usage:
        replanner = Replanner()
        activities, explanation = replanner.replan(
            locked, disrupted, disruptions, profile, state, weather, candidates,
            keep=upcoming_not_disrupted,
        )
    """

    def __init__(
        self,
        top_k: int = config.TOP_K_CANDIDATES,
        day_end: str = config.DAY_END,
    ) -> None:
        self.top_k = top_k
        self.day_end_min = minutes_of(parse_clock(day_end))

    # ── Public API ────────────────────────────────────────────────────────────

    def replan(
        self,
        locked: Sequence[Activity],
        disrupted: Sequence[Activity],
        disruptions: Sequence[Disruption],
        profile: UserProfile,
        state: UserState,
        weather: Optional[WeatherSnapshot],
        candidates: Sequence[PlaceCandidate],
        keep: Sequence[Activity] = (),
        now_min: Optional[int] = None,
    ) -> tuple[list[Activity], ReplanExplanation]:
        """
        `now_min` is the current clock in minutes since midnight; nothing in
        the tail is scheduled before it.

        Returns:
            (activities, explanation) — the full replacement activity list
            (locked included, unchanged) and why it changed.

        Raises:
            ReplanUnavailable: no disrupted activity could be replaced.
        """
        if not disrupted:
            raise ReplanUnavailable("No disrupted activities to replace")

        types = tuple(dict.fromkeys(d.type for d in disruptions))
        locked = sorted(locked, key=lambda a: a.start_minutes)
        tail = sorted([*keep, *disrupted], key=lambda a: a.start_minutes)
        disrupted_ids = {a.id for a in disrupted}

        present = [*locked, *tail]
        pool = self._rescore(candidates, profile, weather, types,
                             exclude={a.id for a in present},
                             day_categories={a.category for a in locked} | {a.category for a in keep})

        committed = sum(a.cost_usd for a in locked if a.status != ActivityStatus.DONE)
        committed += sum(a.cost_usd for a in keep)
        budget_left = (profile.budget_per_day * (1.0 + config.COST_OVERRUN_TOLERANCE)
                       - state.budget_spent - committed)

        cursor = (max(a.end_minutes for a in locked) if locked
                  else min(a.start_minutes for a in tail))
        if now_min is not None:
            cursor = max(cursor, now_min)

        new_tail: list[Activity] = []
        removed: list[str] = []
        added: list[str] = []
        swaps: list[tuple[float, float]] = []
        used: set[str] = set()

        for activity in tail:
            if activity.id not in disrupted_ids:
                start = max(cursor, activity.start_minutes)
                if start + activity.duration_min > self.day_end_min:
                    logger.debug("Dropping %s: no room before day end", activity.name)
                    removed.append(activity.name)
                    continue
                new_tail.append(activity.shifted_to(clock_at(start)))
                cursor = start + activity.duration_min
                continue

            choice = self._pick(activity, pool, used, budget_left, cursor)
            removed.append(activity.name)
            if choice is None:
                logger.debug("No replacement for %s", activity.name)
                continue
            used.add(choice.candidate.id)
            budget_left -= choice.candidate.cost_usd
            added.append(choice.candidate.name)
            swaps.append((score(_as_candidate(activity), profile), choice.score))
            new_tail.append(Activity.from_candidate(
                choice.candidate,
                clock_at(cursor),
                status=ActivityStatus.UPCOMING,
                reason=(f"Replaces {activity.name} "
                        f"({', '.join(t.value for t in types)})"),
            ))
            cursor += choice.candidate.duration_min

        if not added:
            raise ReplanUnavailable()

        activities = self._promote([*locked, *new_tail])
        planned_km = sum(a.distance_from_prev_m for a in activities) / 1000.0
        reward = compute_reward(reward_inputs(state, profile, planned_km))
        delta = sum(new - old for old, new in swaps) / len(swaps) * SATISFACTION_PER_SCORE

        explanation = ReplanExplanation(
            summary=(f"Replaced {len(added)} of {len(disrupted)} disrupted "
                     f"activit{'y' if len(disrupted) == 1 else 'ies'} "
                     f"due to {', '.join(t.value for t in types) or 'manual request'}."),
            rules_applied=types,
            removed=tuple(removed),
            added=tuple(added),
            satisfaction_delta=round(delta, 1),
            reward_score=reward,
            detail=" | ".join(d.description for d in disruptions),
        )
        logger.info("Replan: -%s +%s reward=%.3f", removed, added, reward)
        return activities, explanation

    # ── Internals ─────────────────────────────────────────────────────────────

    def _rescore(
        self,
        candidates: Sequence[PlaceCandidate],
        profile: UserProfile,
        weather: Optional[WeatherSnapshot],
        types: tuple[DisruptionType, ...],
        exclude: set[str],
        day_categories: set[ActivityCategory],
    ) -> list[ScoredCandidate]:
        pool: list[ScoredCandidate] = []
        for c in candidates:
            if c.id in exclude:
                continue
            if DisruptionType.WEATHER in types and not c.is_indoor:
                continue
            total = score(c, profile, weather)
            if DisruptionType.FATIGUE in types:
                if c.duration_min < SHORT_ACTIVITY_MIN:
                    total += FATIGUE_SHORT_BONUS
                total += FATIGUE_INDOOR_BONUS if c.is_indoor else -FATIGUE_OUTDOOR_PENALTY
            if DisruptionType.BOREDOM in types and c.category not in day_categories:
                total += BOREDOM_NOVELTY_BONUS
            if DisruptionType.TIME in types and c.duration_min <= SHORT_ACTIVITY_MIN:
                total += TIME_SHORT_BONUS
            pool.append(ScoredCandidate(c, total))
        pool.sort(key=lambda s: s.sort_key)
        return pool[:self.top_k]

    def _pick(
        self,
        target: Activity,
        pool: list[ScoredCandidate],
        used: set[str],
        budget_left: float,
        cursor: int,
    ) -> Optional[ScoredCandidate]:
        eligible = [
            s for s in pool
            if s.candidate.id not in used
            and s.candidate.cost_usd <= budget_left
            and cursor + s.candidate.duration_min <= self.day_end_min
        ]
        group = _group(target.category)
        same = [s for s in eligible if _group(s.candidate.category) == group]
        return (same or eligible or [None])[0]

    @staticmethod
    def _promote(activities: list[Activity]) -> list[Activity]:
        if any(a.status == ActivityStatus.ACTIVE for a in activities):
            return activities
        for i, a in enumerate(activities):
            if a.status != ActivityStatus.DONE:
                activities[i] = a.with_status(ActivityStatus.ACTIVE)
                break
        return activities
