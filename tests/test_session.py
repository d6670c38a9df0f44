import asyncio
import json
import threading
from datetime import datetime

import pytest

from core.enums import ActivityStatus, DisruptionType, LogType, TripPhase
from core.exceptions import InsufficientDataError, UnknownActivityError
from schemas.events import Disruption
from schemas.itinerary import minutes_of
from schemas.profile import UserState
from modules.llm.planner_delegate import PlannerDelegate
from modules.reoptimization.session import TripSession
import config

from conftest import (
    FailingWeatherTool, FixedClock, FixedPlacesTool, FixedWeatherTool, make_candidate,
)

MORNING = datetime(2026, 5, 1, 9, 30)


@pytest.fixture
def session(profile, clear_weather, scenario_candidates, indoor_pool):
    return TripSession(
        profile, city="Porto", lat=41.15, lon=-8.61,
        weather_tool=FixedWeatherTool(clear_weather),
        places_tool=FixedPlacesTool(scenario_candidates + indoor_pool),
        clock=FixedClock(MORNING),
    )


@pytest.fixture
def active_session(session, outdoor_day, indoor_pool, clear_weather):
    """Session mid-trip on the outdoor day."""
    session.set_weather(clear_weather)
    session.itinerary = outdoor_day
    session.candidates = list(indoor_pool)
    session.phase = TripPhase.ACTIVE
    return session


# ── Build ─────────────────────────────────────────────────────────────────────

@pytest.mark.asyncio
async def test_build_itinerary_activates_trip(session):
    itinerary = await session.build_itinerary()
    snap = session.snapshot()
    assert snap.phase == TripPhase.ACTIVE
    assert itinerary.version == 1
    assert itinerary.activities[0].status == ActivityStatus.ACTIVE
    assert snap.metrics.satisfaction_history == (75.0,)
    assert snap.decision_log[-1].type == LogType.AI
    assert snap.decision_log[-1].title == "ITINERARY GENERATED"


@pytest.mark.asyncio
async def test_rebuild_bumps_version(session):
    await session.build_itinerary()
    again = await session.build_itinerary()
    assert again.version == 2


@pytest.mark.asyncio
async def test_build_without_weather_is_insufficient(profile, scenario_candidates):
    s = TripSession(profile, weather_tool=FailingWeatherTool(),
                    places_tool=FixedPlacesTool(scenario_candidates), clock=FixedClock(MORNING))
    with pytest.raises(InsufficientDataError):
        await s.build_itinerary()
    assert s.weather_error == "Weather API error: 503"


@pytest.mark.asyncio
async def test_build_without_places_is_insufficient(profile, clear_weather):
    s = TripSession(profile, weather_tool=FixedWeatherTool(clear_weather),
                    places_tool=FixedPlacesTool([]), clock=FixedClock(MORNING))
    with pytest.raises(InsufficientDataError):
        await s.build_itinerary()


# ── Weather ───────────────────────────────────────────────────────────────────

@pytest.mark.asyncio
async def test_weather_failure_keeps_last_reading(session, clear_weather):
    session.set_weather(clear_weather)
    session.weather_tool = FailingWeatherTool()
    weather = await session.refresh_weather()
    assert weather is clear_weather
    assert session.weather_error is not None
    assert session.log.latest().type == LogType.ERROR


@pytest.mark.asyncio
async def test_weather_success_clears_error(session):
    session.weather_error = "old failure"
    await session.refresh_weather()
    assert session.weather_error is None


# ── Evaluation and replanning ─────────────────────────────────────────────────

@pytest.mark.asyncio
async def test_rain_triggers_replan(active_session, rain_weather):
    active_session.set_weather(rain_weather)
    found = await active_session.evaluate_context()

    assert [d.type for d in found] == [DisruptionType.WEATHER]
    itinerary = active_session.itinerary
    assert itinerary.version == 2
    assert all(a.is_indoor for a in itinerary.activities)
    assert itinerary.active() is not None
    assert active_session.disruption is None
    assert active_session.tracker.metrics.replan_count == 1
    assert active_session.log.latest().type == LogType.REPLAN


@pytest.mark.asyncio
async def test_replan_unavailable_keeps_itinerary_and_disruption(active_session, rain_weather):
    active_session.set_weather(rain_weather)
    active_session.candidates = [make_candidate("park-z", "park", indoor=False)]
    await active_session.evaluate_context()

    assert active_session.itinerary.version == 1
    assert active_session.disruption is not None
    assert active_session.itinerary.get("park-a").status == ActivityStatus.DISRUPTED
    assert any(e.title == "REPLAN UNAVAILABLE" for e in active_session.log.entries(LogType.WARNING))

    active_session.dismiss_disruption()
    assert active_session.disruption is None
    assert active_session.itinerary.get("park-a").status == ActivityStatus.ACTIVE
    assert active_session.itinerary.get("monument-a").status == ActivityStatus.UPCOMING


@pytest.mark.asyncio
async def test_replan_is_single_flight(active_session):
    active_session.is_replanning = True
    d = Disruption(DisruptionType.WEATHER, 3, "rain", frozenset({"park-a"}))
    assert await active_session.replan([d]) is None
    assert active_session.itinerary.version == 1


@pytest.mark.asyncio
async def test_analysis_is_single_flight(active_session, rain_weather):
    active_session.set_weather(rain_weather)
    active_session.is_evaluating = True
    assert await active_session.run_analysis() == []
    assert active_session.disruption is None


@pytest.mark.asyncio
async def test_manual_analysis_with_nothing_wrong(active_session):
    assert await active_session.run_analysis() == []
    titles = [e.title for e in active_session.log.entries()]
    assert titles[-2:] == ["RUN ANALYSIS", "ANALYSIS COMPLETE"]


# ── Feedback ──────────────────────────────────────────────────────────────────

@pytest.mark.asyncio
async def test_tired_feedback_updates_state_and_replans(active_session):
    active_session.state = UserState(fatigue=65)
    outcome = await active_session.send_feedback("tired", 0.8)

    assert outcome.replan_type == DisruptionType.FATIGUE
    assert active_session.state.fatigue == 85
    assert active_session.tracker.metrics.replan_count == 1
    types = [e.type for e in active_session.log.entries()]
    assert LogType.USER in types and LogType.AI in types


@pytest.mark.asyncio
async def test_happy_feedback_does_not_replan(active_session):
    await active_session.send_feedback("happy", 0.5)
    assert active_session.itinerary.version == 1
    assert active_session.state.motivation == 100


# ── Commands ──────────────────────────────────────────────────────────────────

def test_add_confirm_delete(active_session):
    place = make_candidate("spa-n", "spa", duration=90, cost=40.0)
    active_session.add_activity(place)
    added = active_session.itinerary.get("spa-n")
    assert added.status == ActivityStatus.PENDING
    assert added.start_time == active_session.itinerary.get("monument-a").end_time
    assert active_session.itinerary.version == 2

    active_session.confirm_activity("spa-n")
    assert active_session.itinerary.get("spa-n").status == ActivityStatus.UPCOMING
    assert active_session.itinerary.version == 2

    active_session.delete_activity("spa-n")
    assert active_session.itinerary.get("spa-n") is None
    assert active_session.itinerary.version == 3
    assert [e.type for e in active_session.log.entries()][-3:] == [LogType.USER] * 3


def test_unknown_activity_is_rejected(active_session):
    with pytest.raises(UnknownActivityError):
        active_session.confirm_activity("nope")
    with pytest.raises(UnknownActivityError):
        active_session.delete_activity("nope")


def test_deleting_active_promotes_next(active_session):
    active_session.delete_activity("park-a")
    assert active_session.itinerary.active().id == "museum-a"


def test_advance_clock_completes_active_activity(active_session):
    done = active_session.advance_clock(datetime(2026, 5, 1, 10, 5))
    assert [a.id for a in done] == ["park-a"]
    itinerary = active_session.itinerary
    assert itinerary.get("park-a").status == ActivityStatus.DONE
    assert itinerary.active().id == "museum-a"
    # 60*0.08 + 0.3*6 + 3 outdoor
    assert active_session.state.fatigue == pytest.approx(10 + 9.6)


def test_advance_clock_to_day_end_finishes_trip(active_session):
    active_session.advance_clock(datetime(2026, 5, 1, 23, 0))
    assert active_session.phase == TripPhase.DONE


def test_reset_trip(active_session):
    active_session.state = UserState(fatigue=90)
    active_session.log.add(LogType.USER, "hello")
    active_session.reset_trip()
    snap = active_session.snapshot()
    assert snap.phase == TripPhase.PLANNING
    assert snap.itinerary.activities == ()
    assert snap.user_state == UserState()
    assert snap.decision_log == ()
    assert snap.metrics.replan_count == 0


def test_events_are_published(active_session):
    seen = []
    active_session.bus.subscribe("*", lambda event: seen.append(event.topic))
    active_session.confirm_activity("museum-a")
    assert "decision_log" in seen


def test_snapshot_serializes(active_session):
    data = active_session.snapshot().to_dict()
    assert data["phase"] == "active"
    assert data["itinerary"]["activities"][0]["startTime"] == "09:00"


# ── Replanning against a live day ─────────────────────────────────────────────

REPLAN_REPLY = {
    "newActivities": [
        {"id": "museum-a", "time": "10:30", "endTime": "12:30", "name": "Place museum-a",
         "category": "museum", "durationMin": 120, "costUsd": 15, "isIndoor": True},
        {"id": "art-1", "time": "14:00", "endTime": "15:30", "name": "Art art-1",
         "category": "art", "durationMin": 90, "costUsd": 12, "isIndoor": True},
    ],
    "xaiExplanation": {"summary": "Swapped the monument for a gallery", "rulesApplied": ["BOREDOM"]},
}


class BlockingLLM:
    """Holds the replan call open until the test releases it."""

    def __init__(self, reply):
        self.reply = reply
        self.entered = threading.Event()
        self.release = threading.Event()

    def complete(self, prompt, system=""):
        self.entered.set()
        self.release.wait(timeout=5)
        return self.reply


def bored_with(*ids):
    return Disruption(DisruptionType.BOREDOM, 2, "Traveller reports feeling bored", frozenset(ids))


async def start_blocked_replan(session):
    llm = BlockingLLM(json.dumps(REPLAN_REPLY))
    session.delegate = PlannerDelegate(llm)
    session._raise_disruption([bored_with("monument-a")])
    task = asyncio.create_task(session.replan())
    assert await asyncio.to_thread(llm.entered.wait, 5)
    return llm, task


@pytest.mark.asyncio
async def test_evaluation_is_dropped_while_replanning(active_session):
    llm, task = await start_blocked_replan(active_session)

    active_session.clock.now = datetime(2026, 5, 1, 10, 5)
    assert await active_session.evaluate_context() == []
    assert active_session.itinerary.get("park-a").status == ActivityStatus.ACTIVE
    assert active_session.state.fatigue == UserState().fatigue

    llm.release.set()
    explanation = await task
    assert explanation is not None
    assert active_session.itinerary.get("art-1") is not None
    assert active_session.itinerary.get("park-a").status == ActivityStatus.ACTIVE

    # park-a is charged exactly once
    assert [a.id for a in active_session.advance_clock()] == ["park-a"]
    assert active_session.advance_clock() == []
    assert active_session.state.fatigue == pytest.approx(10 + 9.6)


@pytest.mark.asyncio
async def test_replan_result_is_discarded_when_day_moved_on(active_session):
    llm, task = await start_blocked_replan(active_session)

    active_session.clock.now = datetime(2026, 5, 1, 10, 5)
    active_session.advance_clock()
    fatigue = active_session.state.fatigue

    llm.release.set()
    explanation = await task
    assert explanation is not None
    itinerary = active_session.itinerary
    assert itinerary.get("park-a").status == ActivityStatus.DONE
    assert itinerary.active().id == "museum-a"
    assert itinerary.get("monument-a") is None
    assert any(e.title == "AI REPLAN DISCARDED" for e in active_session.log.entries(LogType.WARNING))

    assert active_session.advance_clock() == []
    assert active_session.state.fatigue == fatigue
    assert active_session.state.budget_spent == 0.0


@pytest.mark.asyncio
async def test_feedback_during_replan_raises_no_disruption(active_session):
    llm, task = await start_blocked_replan(active_session)
    active_session.state = UserState(fatigue=65)

    outcome = await active_session.send_feedback("tired", 0.8)
    assert outcome.replan_type == DisruptionType.FATIGUE
    assert active_session.disruption.type == DisruptionType.BOREDOM

    llm.release.set()
    await task
    assert active_session.tracker.metrics.replan_count == 1


@pytest.mark.asyncio
async def test_rain_replan_never_reaches_into_the_past(active_session, rain_weather):
    active_session.set_weather(rain_weather)
    await active_session.evaluate_context()

    itinerary = active_session.itinerary
    now = minutes_of(MORNING.time())
    assert all(a.start_minutes >= now for a in itinerary.activities)
    assert itinerary.get("museum-a").start_minutes >= 10 * 60 + 30

    active_session.clock.now = datetime(2026, 5, 1, 9, 33)
    assert active_session.advance_clock() == []
    assert active_session.state.budget_spent == 0.0


# ── Monitoring timers ─────────────────────────────────────────────────────────

@pytest.fixture
def fast_timers(monkeypatch):
    monkeypatch.setattr(config, "CONTEXT_EVAL_FIRST_DELAY_SECONDS", 0.2)
    monkeypatch.setattr(config, "CONTEXT_EVAL_INTERVAL_SECONDS", 10.0)
    monkeypatch.setattr(config, "WEATHER_REFRESH_SECONDS", 10.0)


@pytest.mark.asyncio
async def test_monitoring_timer_defaults(session):
    session.start_monitoring()
    assert not session.monitoring   # planning phase

    await session.build_itinerary()
    session.start_monitoring()
    try:
        assert session.monitoring
        assert session._evaluation_task.first_delay == 60
        assert session._evaluation_task.interval == 180
        assert session._weather_task.interval == 300
    finally:
        session.stop_monitoring()


@pytest.mark.asyncio
async def test_monitoring_stops_when_trip_leaves_active(session):
    await session.build_itinerary()
    session.start_monitoring()
    session.advance_clock(datetime(2026, 5, 1, 23, 0))
    assert session.phase == TripPhase.DONE
    assert not session.monitoring


@pytest.mark.asyncio
async def test_first_evaluation_fires_after_first_delay(session, fast_timers):
    await session.build_itinerary()
    session.start_monitoring()
    try:
        await asyncio.sleep(0.1)
        assert session._evaluation_task.ticks == 0
        await asyncio.sleep(0.25)
        assert session._evaluation_task.ticks == 1
    finally:
        session.stop_monitoring()


async def _add_spa(session):
    session.add_activity(make_candidate("spa-n", "spa"))


async def _rebuild(session):
    await session.build_itinerary()


@pytest.mark.asyncio
@pytest.mark.parametrize("change", [_add_spa, _rebuild])
async def test_structural_change_restarts_evaluation_countdown(session, fast_timers, change):
    await session.build_itinerary()
    session.start_monitoring()
    try:
        await asyncio.sleep(0.15)
        await change(session)
        await asyncio.sleep(0.15)
        assert session._evaluation_task.ticks == 0
        await asyncio.sleep(0.2)
        assert session._evaluation_task.ticks == 1
    finally:
        session.stop_monitoring()
