"""
modules/llm/planner_delegate.py
---------------------------------
Optional language-model delegation for building and replanning the day.

Flow:
    prompt  → client.complete() → raw text
            → strip code fences → json.loads → pydantic model
            → Activity list checked against the itinerary invariants
            → Ok(value) | Err(ParseFailure)

Malformed output is never repaired: any failure is an Err and the caller
runs the deterministic planner instead. Transport failures surface as
ExternalServiceError from the client.
"""

from __future__ import annotations
import json
import logging
import re
from datetime import date
from typing import Optional, Sequence

from pydantic import ValidationError

from core.enums import ActivityCategory, ActivityStatus, DisruptionType
from schemas.context import PlaceCandidate, WeatherSnapshot
from schemas.events import Disruption, ReplanExplanation
from schemas.itinerary import Activity, Itinerary, clock_at, minutes_of, parse_clock
from schemas.plan import Err, Ok, ParsedPlan, ParsedReplan, ParseFailure, ParseResult, PlannedActivity
from schemas.profile import UserProfile, UserState
from modules.llm.client import LLMClient
from modules.optimization.reward import compute_reward, reward_inputs
from modules.planning.schedule_builder import budget_cap
import config

logger = logging.getLogger(__name__)

ITINERARY_SYSTEM = "You are an expert travel planner. Respond ONLY with valid JSON."
REPLAN_SYSTEM    = "You are an itinerary replanning engine. Respond ONLY with JSON."

PLAN_PLACES_LIMIT   = 15
REPLAN_PLACES_LIMIT = 12

_FENCE = re.compile(r"```(?:json)?")


# ── Prompts ───────────────────────────────────────────────────────────────────

def _dump(obj) -> str:
    return json.dumps(obj, indent=2, default=str)


def build_plan_prompt(
    profile: UserProfile,
    weather: WeatherSnapshot,
    candidates: Sequence[PlaceCandidate],
    city: str,
    day: Optional[date] = None,
) -> str:
    return f"""
Generate a one-day itinerary.

USER:
{_dump(profile.to_dict())}

CITY: {city}
DATE: {(day or date.today()).isoformat()}

WEATHER:
{_dump(weather.to_dict())}

PLACES (pick 6-8, use their ids):
{_dump([c.to_dict() for c in candidates[:PLAN_PLACES_LIMIT]])}

Return JSON:
{{
 "itinerary":[{{"id":"place-id","time":"09:00","endTime":"10:30","name":"Place","category":"museum","durationMin":90,"costUsd":15,"distanceFromPrevM":400,"isIndoor":true,"crowdLevel":0.4,"reasonChosen":"..."}}],
 "dayTheme":"string",
 "plannerNote":"string"
}}"""


def build_replan_prompt(
    locked: Sequence[Activity],
    disrupted: Sequence[Activity],
    disruptions: Sequence[Disruption],
    profile: UserProfile,
    state: UserState,
    weather: Optional[WeatherSnapshot],
    candidates: Sequence[PlaceCandidate],
    now_min: Optional[int] = None,
) -> str:
    earliest = max((a.end_minutes for a in locked), default=None)
    if now_min is not None:
        earliest = now_min if earliest is None else max(earliest, now_min)
    constraints = {
        "remainingBudgetUsd": round(state.remaining_budget(profile), 2),
        "earliestStart": clock_at(earliest).strftime("%H:%M") if earliest is not None else None,
        "dayEnd": config.DAY_END,
        "maxWalkingKm": profile.max_walking_km,
    }
    return f"""
LOCKED (do not change):
{_dump([a.to_dict() for a in locked])}

DISRUPTED:
{_dump([a.to_dict() for a in disrupted])}

DISRUPTIONS:
{_dump([d.to_dict() for d in disruptions])}

USER:
{_dump(profile.to_dict())}

STATE:
{_dump(state.to_dict(profile))}

WEATHER:
{_dump(weather.to_dict() if weather else None)}

CONSTRAINTS:
{_dump(constraints)}

AVAILABLE PLACES:
{_dump([c.to_dict() for c in candidates[:REPLAN_PLACES_LIMIT]])}

Return JSON:
{{
 "newActivities":[{{"id":"place-id","time":"14:00","endTime":"15:00","name":"Place","category":"cafe","durationMin":60,"costUsd":10,"distanceFromPrevM":200,"isIndoor":true,"crowdLevel":0.3,"reasonChosen":"..."}}],
 "xaiExplanation":{{"summary":"string","rulesApplied":["WEATHER"],"removed":["Old"],"added":["New"],"satisfactionDelta":0.1,"detail":"string"}}
}}"""


# ── Parsing ───────────────────────────────────────────────────────────────────

def strip_fences(text: str) -> str:
    return _FENCE.sub("", text).strip()


def parse_plan(text: str) -> ParseResult[ParsedPlan]:
    try:
        return Ok(ParsedPlan.model_validate(json.loads(strip_fences(text))))
    except json.JSONDecodeError as exc:
        return Err(ParseFailure(f"invalid JSON: {exc.msg}", text))
    except ValidationError as exc:
        return Err(ParseFailure(f"schema mismatch: {exc.error_count()} error(s)", text))


def parse_replan(text: str) -> ParseResult[ParsedReplan]:
    try:
        return Ok(ParsedReplan.model_validate(json.loads(strip_fences(text))))
    except json.JSONDecodeError as exc:
        return Err(ParseFailure(f"invalid JSON: {exc.msg}", text))
    except ValidationError as exc:
        return Err(ParseFailure(f"schema mismatch: {exc.error_count()} error(s)", text))


def to_activities(
    planned: Sequence[PlannedActivity],
    candidates: Sequence[PlaceCandidate],
    first_status: ActivityStatus = ActivityStatus.ACTIVE,
) -> ParseResult[list[Activity]]:
    """
    Convert model activities into Activities, sorted by start.

    A stated endTime that disagrees with time + durationMin, an overlap, or a
    duplicate id is a failure.
    """
    ratings = {c.id: c.rating for c in candidates}
    addresses = {c.id: c.address for c in candidates}
    activities: list[Activity] = []
    try:
        for p in planned:
            start = parse_clock(p.time)
            end = clock_at(minutes_of(start) + p.duration_min)
            if p.end_time is not None and parse_clock(p.end_time) != end:
                return Err(ParseFailure(f"{p.id}: endTime does not match durationMin"))
            activities.append(Activity(
                id=p.id,
                name=p.name,
                category=ActivityCategory.parse(p.category),
                start_time=start,
                end_time=end,
                duration_min=p.duration_min,
                cost_usd=p.cost_usd,
                is_indoor=p.is_indoor,
                crowd_level=p.crowd_level,
                rating=ratings.get(p.id),
                distance_from_prev_m=p.distance_from_prev_m,
                status=ActivityStatus.UPCOMING,
                reason_chosen=p.reason_chosen,
                address=addresses.get(p.id, ""),
            ))
        activities.sort(key=lambda a: a.start_minutes)
        Itinerary(activities=tuple(activities))
    except ValueError as exc:
        return Err(ParseFailure(str(exc)))

    if len({a.id for a in activities}) != len(activities):
        return Err(ParseFailure("duplicate activity ids"))
    if activities and first_status != ActivityStatus.UPCOMING:
        activities[0] = activities[0].with_status(first_status)
    return Ok(activities)


# ── Delegate ──────────────────────────────────────────────────────────────────

class PlannerDelegate:
    """
    Usage:
        delegate = PlannerDelegate(client)
        result   = delegate.plan(profile, weather, candidates, city)
        if isinstance(result, Ok): ...

    Raises ExternalServiceError (from the client) on transport failure.
    """

    def __init__(self, client: LLMClient) -> None:
        self.client = client

    def plan(
        self,
        profile: UserProfile,
        weather: WeatherSnapshot,
        candidates: Sequence[PlaceCandidate],
        city: str,
    ) -> ParseResult[tuple[list[Activity], ParsedPlan]]:
        text = self.client.complete(
            build_plan_prompt(profile, weather, candidates, city), system=ITINERARY_SYSTEM,
        )
        parsed = parse_plan(text)
        if isinstance(parsed, Err):
            return parsed
        converted = to_activities(parsed.value.itinerary, candidates)
        if isinstance(converted, Err):
            return converted
        if sum(a.cost_usd for a in converted.value) > budget_cap(profile):
            return Err(ParseFailure("plan exceeds the daily budget"))
        return Ok((converted.value, parsed.value))

    def replan(
        self,
        locked: Sequence[Activity],
        disrupted: Sequence[Activity],
        disruptions: Sequence[Disruption],
        profile: UserProfile,
        state: UserState,
        weather: Optional[WeatherSnapshot],
        candidates: Sequence[PlaceCandidate],
        now_min: Optional[int] = None,
    ) -> ParseResult[tuple[list[Activity], ReplanExplanation]]:
        text = self.client.complete(
            build_replan_prompt(locked, disrupted, disruptions, profile, state, weather,
                                candidates, now_min),
            system=REPLAN_SYSTEM,
        )
        parsed = parse_replan(text)
        if isinstance(parsed, Err):
            return parsed

        has_active = any(a.status == ActivityStatus.ACTIVE for a in locked)
        converted = to_activities(
            parsed.value.new_activities, candidates,
            first_status=ActivityStatus.UPCOMING if has_active else ActivityStatus.ACTIVE,
        )
        if isinstance(converted, Err):
            return converted
        new = converted.value

        locked_ids = {a.id for a in locked}
        if locked_ids & {a.id for a in new}:
            return Err(ParseFailure("new activities reuse a locked id"))
        if locked and new and new[0].start_minutes < max(a.end_minutes for a in locked):
            return Err(ParseFailure("new activities start before the locked ones end"))
        if now_min is not None and new and new[0].start_minutes < now_min:
            return Err(ParseFailure("new activities start in the past"))
        if state.budget_spent + sum(a.cost_usd for a in new) > budget_cap(profile):
            return Err(ParseFailure("replan exceeds the daily budget"))

        activities = sorted([*locked, *new], key=lambda a: a.start_minutes)
        planned_km = sum(a.distance_from_prev_m for a in activities) / 1000.0
        payload = parsed.value.xai_explanation
        known = {t.value for t in DisruptionType}
        rules = tuple(
            DisruptionType(r) for r in payload.rules_applied if r in known
        ) or tuple(dict.fromkeys(d.type for d in disruptions))
        explanation = ReplanExplanation(
            summary=payload.summary or f"Replanned {len(new)} activities.",
            rules_applied=rules,
            removed=tuple(payload.removed) or tuple(a.name for a in disrupted),
            added=tuple(payload.added) or tuple(a.name for a in new),
            satisfaction_delta=payload.satisfaction_delta,
            reward_score=compute_reward(reward_inputs(state, profile, planned_km)),
            detail=payload.detail,
        )
        return Ok((activities, explanation))
