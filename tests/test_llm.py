import json
from datetime import datetime

import pytest

from core.enums import ActivityStatus, DisruptionType, LogType, TripPhase
from core.exceptions import ExternalServiceError
from schemas.events import Disruption
from schemas.plan import Err, Ok
from schemas.profile import UserState
from modules.llm.planner_delegate import PlannerDelegate, parse_plan, parse_replan, to_activities
from modules.reoptimization.session import TripSession

from conftest import FixedClock, FixedPlacesTool, FixedWeatherTool, make_activity

PLAN = {
    "itinerary": [
        {"id": "cafe-1", "time": "09:00", "endTime": "09:30", "name": "Cafe", "category": "cafe",
         "durationMin": 30, "costUsd": 8, "isIndoor": True, "crowdLevel": 0.2},
        {"id": "museum-1", "time": "10:00", "endTime": "12:00", "name": "Museum",
         "category": "museum", "durationMin": 120, "costUsd": 15},
    ],
    "dayTheme": "Slow Morning",
    "plannerNote": "Easy start",
}


class FakeLLM:
    def __init__(self, reply=None, error=None):
        self.reply = reply
        self.error = error
        self.prompts = []

    def complete(self, prompt, system=""):
        self.prompts.append(prompt)
        if self.error is not None:
            raise self.error
        return self.reply


# ── Parsing ───────────────────────────────────────────────────────────────────

def test_parse_plan_strips_fences():
    result = parse_plan("```json\n" + json.dumps(PLAN) + "\n```")
    assert isinstance(result, Ok)
    assert result.value.day_theme == "Slow Morning"
    assert result.value.itinerary[1].duration_min == 120


@pytest.mark.parametrize("text", ["not json", "{}", json.dumps({"itinerary": []}),
                                  json.dumps({"itinerary": [{"id": "x", "time": "25:00",
                                                             "name": "X", "durationMin": 30}]})])
def test_parse_plan_rejects_bad_output(text):
    assert isinstance(parse_plan(text), Err)


def test_parse_replan():
    payload = {"newActivities": PLAN["itinerary"],
               "xaiExplanation": {"summary": "Moved indoors", "rulesApplied": ["WEATHER"]}}
    result = parse_replan(json.dumps(payload))
    assert isinstance(result, Ok)
    assert result.value.xai_explanation.rules_applied == ["WEATHER"]


def test_to_activities_rejects_end_time_mismatch():
    plan = dict(PLAN)
    plan["itinerary"] = [dict(PLAN["itinerary"][0], endTime="10:00")]
    parsed = parse_plan(json.dumps(plan))
    assert isinstance(to_activities(parsed.value.itinerary, []), Err)


def test_to_activities_rejects_overlap():
    plan = dict(PLAN)
    plan["itinerary"] = [PLAN["itinerary"][1], dict(PLAN["itinerary"][0], id="c", time="11:00",
                                                     endTime="11:30")]
    parsed = parse_plan(json.dumps(plan))
    assert isinstance(to_activities(parsed.value.itinerary, []), Err)


def test_to_activities_marks_first_active():
    parsed = parse_plan(json.dumps(PLAN))
    result = to_activities(parsed.value.itinerary, [])
    assert isinstance(result, Ok)
    assert [a.status for a in result.value] == [ActivityStatus.ACTIVE, ActivityStatus.UPCOMING]


def test_delegate_replan_keeps_locked_and_computes_reward(profile, clear_weather):
    locked = [make_activity("done-1", "08:00", 30, ActivityStatus.DONE)]
    payload = {"newActivities": [PLAN["itinerary"][1]],
               "xaiExplanation": {"summary": "Swapped", "rulesApplied": ["FATIGUE", "NOPE"]}}
    delegate = PlannerDelegate(FakeLLM(json.dumps(payload)))
    disruption = Disruption(DisruptionType.FATIGUE, 3, "tired", frozenset({"x"}))
    result = delegate.replan(locked, [], [disruption], profile, UserState(), clear_weather, [])

    assert isinstance(result, Ok)
    activities, explanation = result.value
    assert activities[0] == locked[0]
    assert activities[1].status == ActivityStatus.ACTIVE
    assert explanation.rules_applied == (DisruptionType.FATIGUE,)
    assert 0.0 <= explanation.reward_score <= 1.0


def test_delegate_replan_rejects_overlap_with_locked(profile, clear_weather):
    locked = [make_activity("active-1", "09:30", 60, ActivityStatus.ACTIVE)]
    payload = {"newActivities": [PLAN["itinerary"][1]]}
    delegate = PlannerDelegate(FakeLLM(json.dumps(payload)))
    result = delegate.replan(locked, [], [], profile, UserState(), clear_weather, [])
    assert isinstance(result, Err)


# ── Session fallback ──────────────────────────────────────────────────────────

def llm_session(profile, weather, candidates, client):
    return TripSession(profile, city="Porto", weather_tool=FixedWeatherTool(weather),
                       places_tool=FixedPlacesTool(candidates), llm_client=client,
                       clock=FixedClock(datetime(2026, 5, 1, 9, 0)))


@pytest.mark.asyncio
async def test_session_uses_llm_plan(profile, clear_weather, scenario_candidates):
    s = llm_session(profile, clear_weather, scenario_candidates, FakeLLM(json.dumps(PLAN)))
    itinerary = await s.build_itinerary()
    assert itinerary.theme == "Slow Morning"
    assert [a.id for a in itinerary.activities] == ["cafe-1", "museum-1"]


@pytest.mark.asyncio
@pytest.mark.parametrize("client", [FakeLLM("I cannot help with that"),
                                    FakeLLM(error=ExternalServiceError("LLM call failed: 500"))])
async def test_session_falls_back_to_deterministic_plan(profile, clear_weather,
                                                        scenario_candidates, client):
    s = llm_session(profile, clear_weather, scenario_candidates, client)
    itinerary = await s.build_itinerary()
    assert len(itinerary) == 3
    assert itinerary.theme.endswith("in Porto")
    assert any(e.title == "AI PLANNER UNAVAILABLE" for e in s.log.entries(LogType.WARNING))


@pytest.mark.asyncio
@pytest.mark.parametrize("client", [FakeLLM("```json\n{\"newActivities\": \"soon\"}\n```"),
                                    FakeLLM(error=ExternalServiceError("LLM call failed: 429"))])
async def test_session_falls_back_to_deterministic_replan(profile, clear_weather, rain_weather,
                                                          outdoor_day, indoor_pool, client):
    s = llm_session(profile, clear_weather, indoor_pool, client)
    s.set_weather(rain_weather)
    s.itinerary = outdoor_day
    s.candidates = list(indoor_pool)
    s.phase = TripPhase.ACTIVE

    found = await s.evaluate_context()

    assert [d.type for d in found] == [DisruptionType.WEATHER]
    assert len(client.prompts) == 1
    assert s.itinerary.version == 2
    assert all(a.is_indoor for a in s.itinerary.activities)
    assert any(e.title == "AI REPLANNER UNAVAILABLE" for e in s.log.entries(LogType.WARNING))
    assert s.log.latest().type == LogType.REPLAN
    assert s.disruption is None


def test_delegate_replan_rejects_activities_before_now(profile, clear_weather):
    payload = {"newActivities": [PLAN["itinerary"][1]]}
    delegate = PlannerDelegate(FakeLLM(json.dumps(payload)))
    result = delegate.replan([], [], [], profile, UserState(), clear_weather, [],
                             now_min=11 * 60)
    assert isinstance(result, Err)
    assert "past" in result.failure.reason
