import asyncio
from datetime import datetime

import pytest

from core.enums import ActivityStatus, DisruptionType
from core.exceptions import ReplanUnavailable
from schemas.events import Disruption, merge_disruptions
from schemas.itinerary import Itinerary
from schemas.profile import UserState
from modules.reoptimization.context_monitor import ContextMonitor, affected_activities
from modules.reoptimization.monitor_loop import PeriodicTask
from modules.reoptimization.replanner import Replanner

from conftest import make_activity, make_candidate

MORNING = datetime(2026, 5, 1, 9, 30)


# ── Context monitor ───────────────────────────────────────────────────────────

def test_rain_on_outdoor_activity_emits_weather_disruption(outdoor_day, rain_weather):
    found = ContextMonitor().evaluate(outdoor_day, rain_weather, UserState(), MORNING)
    assert len(found) == 1
    d = found[0]
    assert d.type == DisruptionType.WEATHER
    assert d.severity == 3
    assert "Place park-a" in d.description
    assert d.affected_activity_ids == {"park-a", "monument-a"}


def test_rain_on_indoor_activity_is_not_a_disruption(rain_weather):
    day = Itinerary(activities=(make_activity("m", "09:00", status=ActivityStatus.ACTIVE),))
    assert ContextMonitor().evaluate(day, rain_weather, UserState(), MORNING) == []


def test_running_late_emits_time_disruption(outdoor_day, clear_weather):
    late = datetime(2026, 5, 1, 12, 5)
    found = ContextMonitor().evaluate(outdoor_day, clear_weather, UserState(), late)
    assert [d.type for d in found] == [DisruptionType.TIME]
    assert found[0].severity == 4
    assert found[0].affected_activity_ids == {"park-a"}


def test_two_hours_late_is_not_yet_late(outdoor_day, clear_weather):
    edge = datetime(2026, 5, 1, 11, 59)
    assert ContextMonitor().evaluate(outdoor_day, clear_weather, UserState(), edge) == []


def test_high_fatigue_emits_fatigue_disruption(outdoor_day, clear_weather):
    found = ContextMonitor().evaluate(outdoor_day, clear_weather, UserState(fatigue=75), MORNING)
    assert [d.type for d in found] == [DisruptionType.FATIGUE]
    assert found[0].severity == 3
    # museum is long (120 min), monument is outdoor
    assert found[0].affected_activity_ids == {"museum-a", "monument-a"}


def test_no_disruption_without_active_activity(rain_weather):
    day = Itinerary(activities=(make_activity("p", "09:00", category="park", indoor=False),))
    assert ContextMonitor().evaluate(day, rain_weather, UserState(fatigue=90), MORNING) == []
    assert ContextMonitor().evaluate(Itinerary(), rain_weather, UserState(fatigue=90), MORNING) == []


def test_merge_keeps_highest_severity(outdoor_day, rain_weather):
    late = datetime(2026, 5, 1, 12, 5)
    found = ContextMonitor().evaluate(outdoor_day, rain_weather, UserState(), late)
    merged = merge_disruptions(found)
    assert merged.type == DisruptionType.TIME
    assert merged.severity == 4
    assert merged.description.count(" | ") == 1
    assert merged.affected_activity_ids == {"park-a", "monument-a"}


def test_affected_activities_for_boredom_and_crowd():
    day = Itinerary(activities=(
        make_activity("a", "09:00", status=ActivityStatus.ACTIVE),
        make_activity("b", "10:30", crowd=0.9),
        make_activity("c", "12:00", crowd=0.2),
    ))
    assert affected_activities(DisruptionType.BOREDOM, day) == {"b"}
    assert affected_activities(DisruptionType.CROWD, day) == {"b"}


# ── Replanner ─────────────────────────────────────────────────────────────────

@pytest.fixture
def half_done_day():
    return [
        make_activity("cafe-x", "09:00", 30, ActivityStatus.DONE, "cafe", cost=8.0),
        make_activity("museum-x", "10:30", 120, ActivityStatus.ACTIVE, "museum", cost=15.0),
        make_activity("park-x", "14:00", 60, ActivityStatus.DISRUPTED, "park", indoor=False, cost=0.0),
        make_activity("dinner-x", "19:00", 75, ActivityStatus.UPCOMING, "restaurant", cost=35.0),
    ]


def weather_disruption(*ids):
    return Disruption(DisruptionType.WEATHER, 3, "Moderate Rain", frozenset(ids))


def test_replan_preserves_locked_activities(half_done_day, profile, rain_weather, indoor_pool):
    done, active, park, dinner = half_done_day
    activities, explanation = Replanner().replan(
        [done, active], [park], [weather_disruption("park-x")],
        profile, UserState(budget_spent=8.0), rain_weather, indoor_pool, keep=[dinner],
    )
    assert activities[0] == done
    assert activities[1] == active
    assert "park-x" not in {a.id for a in activities}
    assert explanation.rules_applied == (DisruptionType.WEATHER,)
    assert explanation.removed == ("Place park-x",)
    assert len(explanation.added) == 1
    assert 0.0 <= explanation.reward_score <= 1.0


def test_replan_retimes_tail_from_latest_locked_end(half_done_day, profile, rain_weather, indoor_pool):
    done, active, park, dinner = half_done_day
    activities, _ = Replanner().replan(
        [done, active], [park], [weather_disruption("park-x")],
        profile, UserState(budget_spent=8.0), rain_weather, indoor_pool, keep=[dinner],
    )
    replacement = activities[2]
    assert replacement.start_minutes == active.end_minutes
    assert replacement.is_indoor
    assert replacement.status == ActivityStatus.UPCOMING
    assert activities[3].id == "dinner-x"
    assert activities[3].start_minutes == dinner.start_minutes
    Itinerary(activities=tuple(activities))


def test_replan_never_schedules_before_now(profile, rain_weather):
    # Active outdoor activity disrupted late in the afternoon: only done ones stay locked.
    cafe = make_activity("cafe-x", "09:00", 30, ActivityStatus.DONE, "cafe", cost=8.0)
    park = make_activity("park-x", "14:00", 240, ActivityStatus.DISRUPTED, "park", indoor=False)
    dinner = make_activity("dinner-x", "19:00", 60, ActivityStatus.UPCOMING, "restaurant", cost=30.0)
    now = 17 * 60 + 30

    activities, _ = Replanner().replan(
        [cafe], [park], [weather_disruption("park-x")],
        profile, UserState(budget_spent=8.0), rain_weather,
        [make_candidate("spa-1", "spa", duration=60, cost=30.0)],
        keep=[dinner], now_min=now,
    )
    replacement = next(a for a in activities if a.id not in {"cafe-x", "dinner-x"})
    assert replacement.start_minutes == now
    assert replacement.status == ActivityStatus.ACTIVE
    assert activities[-1].id == "dinner-x"
    assert activities[-1].start_minutes == dinner.start_minutes
    Itinerary(activities=tuple(activities))


def test_replan_pushes_kept_activity_later_when_replacement_runs_long(profile, clear_weather):
    disrupted = make_activity("cafe-z", "09:00", 30, ActivityStatus.DISRUPTED, "cafe")
    museum = make_activity("museum-z", "09:30", 60, ActivityStatus.UPCOMING)
    pool = [make_candidate("art-z", "art", duration=90)]
    disruption = Disruption(DisruptionType.BOREDOM, 2, "Bored", frozenset({"cafe-z"}))

    activities, _ = Replanner().replan([], [disrupted], [disruption], profile, UserState(),
                                       clear_weather, pool, keep=[museum], now_min=9 * 60)
    assert [a.id for a in activities] == ["art-z", "museum-z"]
    assert activities[1].start_minutes == 10 * 60 + 30


def test_replan_excludes_outdoor_candidates_in_rain(half_done_day, profile, rain_weather):
    done, active, park, _ = half_done_day
    outdoor_only = [make_candidate("park-y", "park", indoor=False, cost=0.0)]
    with pytest.raises(ReplanUnavailable):
        Replanner().replan([done, active], [park], [weather_disruption("park-x")],
                           profile, UserState(), rain_weather, outdoor_only)


def test_replan_respects_remaining_budget(half_done_day, profile, rain_weather):
    done, active, park, _ = half_done_day
    pricey = [make_candidate("spa-y", "spa", cost=200.0)]
    with pytest.raises(ReplanUnavailable):
        Replanner().replan([done, active], [park], [weather_disruption("park-x")],
                           profile, UserState(budget_spent=8.0), rain_weather, pricey)


def test_replan_promotes_first_activity_when_nothing_active(profile, clear_weather, indoor_pool):
    stale = make_activity("museum-z", "10:00", 60, ActivityStatus.DISRUPTED)
    disruption = Disruption(DisruptionType.TIME, 4, "Running late", frozenset({"museum-z"}))
    activities, _ = Replanner().replan([], [stale], [disruption], profile, UserState(),
                                       clear_weather, indoor_pool)
    assert activities[0].status == ActivityStatus.ACTIVE
    assert activities[0].start_minutes == stale.start_minutes


def test_replan_prefers_same_preference_group(profile, clear_weather):
    dinner = make_activity("r-old", "19:00", 75, ActivityStatus.DISRUPTED, "restaurant")
    pool = [
        make_candidate("museum-y", "museum", rating=5.0),
        make_candidate("cafe-y", "cafe", rating=3.0),
    ]
    disruption = Disruption(DisruptionType.BOREDOM, 2, "Bored", frozenset({"r-old"}))
    activities, _ = Replanner().replan([], [dinner], [disruption], profile, UserState(),
                                       clear_weather, pool)
    assert activities[0].id == "cafe-y"


def test_replan_without_disrupted_activities_is_unavailable(profile, clear_weather, indoor_pool):
    with pytest.raises(ReplanUnavailable):
        Replanner().replan([], [], [weather_disruption()], profile, UserState(),
                           clear_weather, indoor_pool)


# ── Periodic tasks ────────────────────────────────────────────────────────────

@pytest.mark.asyncio
async def test_periodic_task_ticks_until_cancelled():
    calls = []

    async def tick():
        calls.append(1)

    task = PeriodicTask("t", 0.01, tick, first_delay=0)
    task.start()
    await asyncio.sleep(0.05)
    task.cancel()
    seen = len(calls)
    await asyncio.sleep(0.03)
    assert seen >= 2
    assert len(calls) == seen
    assert not task.running


@pytest.mark.asyncio
async def test_periodic_task_survives_failing_tick():
    errors = []

    async def tick():
        raise RuntimeError("boom")

    task = PeriodicTask("t", 0.01, tick, first_delay=0,
                        on_error=lambda name, exc: errors.append(str(exc)))
    task.start()
    await asyncio.sleep(0.05)
    task.cancel()
    assert len(errors) >= 2
    assert errors[0] == "boom"


def test_periodic_task_rejects_bad_interval():
    async def tick():
        pass

    with pytest.raises(ValueError):
        PeriodicTask("t", 0, tick)
