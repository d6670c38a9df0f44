"""
modules/reoptimization/session.py
-----------------------------------
TripSession — single owner of one trip's mutable state.

Wraps ScheduleBuilder, ContextMonitor, Replanner, the user-state tracker,
RewardTracker and DecisionLog behind one interface the HTTP surface (or a
test) drives.

Lifecycle:
    session = TripSession(profile, city="Lisbon", lat=38.72, lon=-9.14)
    await session.refresh_weather()
    await session.build_itinerary()          # phase → active
    session.start_monitoring()               # weather 5 min, evaluation 1 min / 3 min

    session.confirm_activity("stub-cafe-2")  # pending → upcoming
    await session.send_feedback("tired", 0.8)
    await session.run_analysis()             # manual monitor tick

    snap = session.snapshot()                # frozen TripSnapshot

State rules:
  - Itinerary edits build the full new Itinerary, then swap it in.
  - Structural edits bump the version; status changes do not.
  - is_evaluating / is_replanning are single-flight: a second request while
    the flag is set is dropped, not queued. Evaluation is also dropped while
    a replan runs.
  - A replan only swaps in its result if the itinerary it started from is
    still current; otherwise the current day is replanned deterministically.
  - Every non-fatal failure becomes a Decision Log entry; nothing escapes a
    monitor tick.
"""

from __future__ import annotations
import asyncio
import logging
import time as _time
from datetime import datetime
from typing import Callable, Optional, Sequence

from core.enums import ActivityStatus, DisruptionType, LogType, TripPhase, Urgency
from core.event_bus import EventBus
from core.exceptions import (
    ExternalServiceError, InsufficientDataError, PlacesFetchError,
    ReplanUnavailable, UnknownActivityError, WeatherFetchError,
)
from schemas.context import PlaceCandidate, WeatherSnapshot
from schemas.events import DecisionLogEntry, Disruption, ReplanExplanation, merge_disruptions
from schemas.itinerary import Activity, Itinerary, minutes_of, parse_clock
from schemas.plan import Err
from schemas.profile import UserProfile, UserState
from schemas.snapshot import TripSnapshot
from modules.llm.client import LLMClient
from modules.llm.planner_delegate import PlannerDelegate
from modules.memory.decision_log import DecisionLog
from modules.optimization.reward import RewardTracker, compute_reward, reward_inputs
from modules.planning.schedule_builder import ScheduleBuilder, derive_theme
from modules.reoptimization.context_monitor import ContextMonitor, affected_activities
from modules.reoptimization.monitor_loop import PeriodicTask
from modules.reoptimization.replanner import Replanner
from modules.reoptimization.user_state_tracker import FeedbackOutcome, interpret_feedback, update_fatigue
from modules.tool_usage.places_tool import PlacesTool
from modules.tool_usage.weather_tool import WeatherTool
import config

logger = logging.getLogger(__name__)

FIRST_SLOT = "09:00"

# Severity of disruptions raised from user feedback
FEEDBACK_SEVERITY = {
    DisruptionType.FATIGUE: 3,
    DisruptionType.BOREDOM: 2,
}
FEEDBACK_DESCRIPTION = {
    DisruptionType.FATIGUE: "Traveller reports feeling tired",
    DisruptionType.BOREDOM: "Traveller reports feeling bored",
}


class TripSession:
    """
    Manages one trip day.

    Single source of truth for:
      - phase, profile, city and location
      - live UserState and the current Itinerary
      - the active Disruption (merged) and the statuses it overrode
      - Decision Log, RL metrics, last weather reading
    """

    def __init__(
        self,
        profile: Optional[UserProfile] = None,
        city: str = "",
        lat: float = 0.0,
        lon: float = 0.0,
        weather_tool: Optional[WeatherTool] = None,
        places_tool: Optional[PlacesTool] = None,
        llm_client: Optional[LLMClient] = None,
        clock: Callable[[], datetime] = datetime.now,
        bus: Optional[EventBus] = None,
    ) -> None:
        self.profile = profile
        self.city = city
        self.lat = lat
        self.lon = lon
        self.phase = TripPhase.PLANNING if profile is not None else TripPhase.LANDING

        self.weather_tool = weather_tool or WeatherTool()
        self.places_tool = places_tool or PlacesTool()
        self.delegate = PlannerDelegate(llm_client) if llm_client is not None else None
        self.clock = clock
        self.bus = bus or EventBus()

        self.builder = ScheduleBuilder()
        self.monitor = ContextMonitor()
        self.replanner = Replanner()

        self.state = UserState()
        self.itinerary = Itinerary()
        self.candidates: list[PlaceCandidate] = []
        self.weather: Optional[WeatherSnapshot] = None
        self.weather_error: Optional[str] = None
        self.disruption: Optional[Disruption] = None
        self._prior_status: dict[str, ActivityStatus] = {}

        self.log = DecisionLog()
        self.tracker = RewardTracker()

        self.is_evaluating = False
        self.is_replanning = False

        self._weather_task: Optional[PeriodicTask] = None
        self._evaluation_task: Optional[PeriodicTask] = None

    # ─────────────────────────────────────────────────────────────────────────
    # Setup
    # ─────────────────────────────────────────────────────────────────────────

    def set_location(self, city: str, lat: float, lon: float) -> None:
        self.city, self.lat, self.lon = city, lat, lon
        if self.phase == TripPhase.LANDING:
            self._set_phase(TripPhase.SETUP)

    def set_profile(self, profile: UserProfile) -> None:
        self.profile = profile
        if self.phase in (TripPhase.LANDING, TripPhase.SETUP):
            self._set_phase(TripPhase.PLANNING)

    # ─────────────────────────────────────────────────────────────────────────
    # Weather
    # ─────────────────────────────────────────────────────────────────────────

    def set_weather(self, weather: WeatherSnapshot) -> None:
        self.weather = weather
        self.weather_error = None
        self.bus.publish("weather", weather)

    async def refresh_weather(self) -> Optional[WeatherSnapshot]:
        """Fetch weather; on failure keep the last reading and set weather_error."""
        try:
            weather = await asyncio.to_thread(
                self.weather_tool.fetch, self.lat, self.lon, self.clock(),
            )
        except WeatherFetchError as exc:
            self.weather_error = str(exc)
            self._log(LogType.ERROR, str(exc), title="WEATHER UNAVAILABLE")
            return self.weather
        self.set_weather(weather)
        return weather

    # ─────────────────────────────────────────────────────────────────────────
    # Planning
    # ─────────────────────────────────────────────────────────────────────────

    async def build_itinerary(
        self,
        candidates: Optional[Sequence[PlaceCandidate]] = None,
    ) -> Itinerary:
        """
        Build the day and move to the active phase.

        Raises:
            InsufficientDataError: no profile, no weather, or no places.
        """
        if self.profile is None:
            raise InsufficientDataError("Missing required data: traveller profile")
        if self.weather is None:
            await self.refresh_weather()
        if self.weather is None:
            raise InsufficientDataError()

        if candidates is None:
            try:
                candidates = await asyncio.to_thread(
                    self.places_tool.search, self.lat, self.lon,
                    config.PLACES_SEARCH_RADIUS_M, None, self.clock(),
                )
            except PlacesFetchError as exc:
                self._log(LogType.ERROR, str(exc), title="PLACES UNAVAILABLE")
                raise InsufficientDataError(str(exc)) from exc
        self.candidates = list(candidates)
        if not self.candidates:
            raise InsufficientDataError()

        itinerary = await self._delegate_plan()
        if itinerary is None:
            itinerary = self.builder.build(
                self.candidates, self.profile, self.weather,
                city=self.city, previous=self.itinerary,
            )

        self.itinerary = itinerary
        self.disruption = None
        self._prior_status.clear()
        self.log.append(self.builder.summary(itinerary, len(self.candidates)))
        self._publish_log()

        reward = self._current_reward()
        self.tracker.record_reward(reward, satisfaction_point=config.INITIAL_SATISFACTION)

        self._set_phase(TripPhase.ACTIVE)
        self._publish_itinerary()
        self.bus.publish("metrics", self.tracker.metrics)
        self._reschedule_evaluation()
        return itinerary

    async def _delegate_plan(self) -> Optional[Itinerary]:
        if self.delegate is None:
            return None
        try:
            result = await asyncio.to_thread(
                self.delegate.plan, self.profile, self.weather, self.candidates, self.city,
            )
        except ExternalServiceError as exc:
            self._log(LogType.WARNING, f"{exc}. Using deterministic planner.",
                      title="AI PLANNER UNAVAILABLE")
            return None
        if isinstance(result, Err):
            self._log(LogType.WARNING,
                      f"Unusable AI plan ({result.failure.reason}). Using deterministic planner.",
                      title="AI PLANNER UNAVAILABLE")
            return None
        activities, parsed = result.value
        theme = parsed.day_theme or derive_theme(activities)
        return self.itinerary.with_activities(
            activities,
            theme=theme,
            planner_note=parsed.planner_note,
        )

    # ─────────────────────────────────────────────────────────────────────────
    # Context evaluation
    # ─────────────────────────────────────────────────────────────────────────

    async def evaluate_context(self) -> list[Disruption]:
        """
        One monitor pass: progress the clock, check the active activity and
        trigger a replan for whatever fires. Dropped while evaluating or
        replanning.
        """
        if self.is_evaluating or self.is_replanning:
            logger.debug("Evaluation or replan already in flight; dropped")
            return []
        self.is_evaluating = True
        try:
            now = self.clock()
            self.advance_clock(now)
            disruptions = self.monitor.evaluate(self.itinerary, self.weather, self.state, now)
            if disruptions:
                self._raise_disruption(disruptions)
        finally:
            self.is_evaluating = False

        if disruptions:
            await self.replan(disruptions)
        return disruptions

    async def run_analysis(self) -> list[Disruption]:
        """Manual evaluation trigger."""
        if self.is_evaluating or self.is_replanning:
            self._log(LogType.SYSTEM, "Analysis or replan already running", title="ANALYSIS SKIPPED")
            return []
        self._log(LogType.USER, "Manual context analysis requested", title="RUN ANALYSIS")
        disruptions = await self.evaluate_context()
        if not disruptions:
            self._log(LogType.AI, "No disruptions detected. Plan looks good.",
                      title="ANALYSIS COMPLETE")
        return disruptions

    def _raise_disruption(self, disruptions: list[Disruption]) -> Disruption:
        """Merge a batch, mark affected activities disrupted and surface it."""
        merged = merge_disruptions(disruptions)
        self.disruption = merged

        statuses: dict[str, ActivityStatus] = {}
        for activity_id in merged.affected_activity_ids:
            activity = self.itinerary.get(activity_id)
            if activity is None or activity.status == ActivityStatus.DONE:
                continue
            if activity.status != ActivityStatus.DISRUPTED:
                self._prior_status.setdefault(activity_id, activity.status)
                statuses[activity_id] = ActivityStatus.DISRUPTED
        if statuses:
            self.itinerary = self.itinerary.with_statuses(statuses)

        self._log(
            LogType.WARNING,
            " | ".join(d.description for d in disruptions),
            title=f"{merged.type.value} DISRUPTION",
            rules=tuple(d.type.value for d in disruptions),
            severity=merged.severity,
        )
        self.bus.publish("disruption", merged)
        self._publish_itinerary()
        return merged

    def dismiss_disruption(self) -> None:
        """Drop the active disruption and restore the statuses it overrode."""
        if self.disruption is None:
            return
        restore = {
            activity_id: status
            for activity_id, status in self._prior_status.items()
            if (a := self.itinerary.get(activity_id)) is not None
            and a.status == ActivityStatus.DISRUPTED
        }
        if restore:
            self.itinerary = self.itinerary.with_statuses(restore)
        self._log(LogType.USER, f"Dismissed {self.disruption.type.value} disruption",
                  title="DISRUPTION DISMISSED")
        self.disruption = None
        self._prior_status.clear()
        self.bus.publish("disruption", None)
        self._publish_itinerary()

    # ─────────────────────────────────────────────────────────────────────────
    # Replanning
    # ─────────────────────────────────────────────────────────────────────────

    async def replan(
        self,
        disruptions: Optional[list[Disruption]] = None,
    ) -> Optional[ReplanExplanation]:
        """
        Replace disrupted activities. Returns None when dropped (already
        replanning), when there is nothing to do, or when no replacement
        exists (ReplanUnavailable is logged and the disruption stays).
        """
        if self.is_replanning:
            logger.debug("Replan already in flight; dropped")
            return None
        if disruptions is None:
            disruptions = [self.disruption] if self.disruption else []
        if not disruptions or not self.itinerary.activities or self.profile is None:
            return None

        self.is_replanning = True
        self.bus.publish("replanning", True)
        started = _time.perf_counter()
        try:
            base = self.itinerary
            locked, disrupted, keep = self._split(base)
            now_min = minutes_of(self.clock().time())

            outcome = await self._delegate_replan(locked, disrupted, keep, disruptions, now_min)
            if self.itinerary is not base:
                # Edited or progressed during the await; replan the current day.
                if outcome is not None:
                    self._log(LogType.WARNING,
                              "Itinerary changed while the AI replanner was running. "
                              "Result discarded.", title="AI REPLAN DISCARDED")
                    outcome = None
                locked, disrupted, keep = self._split(self.itinerary)
                now_min = minutes_of(self.clock().time())
                if not disrupted:
                    return None
            if outcome is None:
                try:
                    outcome = self.replanner.replan(
                        locked, disrupted, disruptions, self.profile, self.state,
                        self.weather, self.candidates, keep=keep, now_min=now_min,
                    )
                except ReplanUnavailable as exc:
                    self._log(LogType.WARNING, str(exc), title="REPLAN UNAVAILABLE",
                              rules=tuple(d.type.value for d in disruptions))
                    return None

            activities, explanation = outcome
            self.itinerary = self.itinerary.with_activities(activities)
            latency_ms = (_time.perf_counter() - started) * 1000.0
            self.tracker.record_replan(latency_ms)
            self.tracker.record_reward(
                explanation.reward_score,
                satisfaction_point=self.state.motivation + explanation.satisfaction_delta,
            )
            self._log(
                LogType.REPLAN,
                explanation.summary,
                title="ITINERARY REPLANNED",
                detail=(f"Removed: {', '.join(explanation.removed) or 'none'}. "
                        f"Added: {', '.join(explanation.added) or 'none'}. "
                        f"Reward: {explanation.reward_score:.3f}"),
                rules=tuple(r.value for r in explanation.rules_applied),
            )
            self.disruption = None
            self._prior_status.clear()
            self.bus.publish("disruption", None)
            self._publish_itinerary()
            self.bus.publish("metrics", self.tracker.metrics)
            self._reschedule_evaluation()
            return explanation
        finally:
            self.is_replanning = False
            self.bus.publish("replanning", False)

    @staticmethod
    def _split(itinerary: Itinerary) -> tuple[list[Activity], list[Activity], list[Activity]]:
        """(locked, disrupted, keep) around the lock line."""
        return (
            itinerary.by_status(ActivityStatus.DONE, ActivityStatus.ACTIVE),
            itinerary.by_status(ActivityStatus.DISRUPTED),
            itinerary.by_status(ActivityStatus.PENDING, ActivityStatus.UPCOMING),
        )

    async def _delegate_replan(
        self,
        locked: list[Activity],
        disrupted: list[Activity],
        keep: list[Activity],
        disruptions: list[Disruption],
        now_min: Optional[int] = None,
    ) -> Optional[tuple[list[Activity], ReplanExplanation]]:
        if self.delegate is None:
            return None
        tail = sorted([*keep, *disrupted], key=lambda a: a.start_minutes)
        try:
            result = await asyncio.to_thread(
                self.delegate.replan, locked, tail, disruptions, self.profile,
                self.state, self.weather, self.candidates, now_min,
            )
        except ExternalServiceError as exc:
            self._log(LogType.WARNING, f"{exc}. Using deterministic replanner.",
                      title="AI REPLANNER UNAVAILABLE")
            return None
        if isinstance(result, Err):
            self._log(LogType.WARNING,
                      f"Unusable AI replan ({result.failure.reason}). Using deterministic replanner.",
                      title="AI REPLANNER UNAVAILABLE")
            return None
        return result.value

    # ─────────────────────────────────────────────────────────────────────────
    # Feedback
    # ─────────────────────────────────────────────────────────────────────────

    async def send_feedback(self, signal: str, intensity: float = 0.5) -> FeedbackOutcome:
        outcome = interpret_feedback(signal, intensity, self.state, self.itinerary.active())
        self.state = outcome.state
        self._log(LogType.USER, f"Feedback: {signal} (intensity {intensity:.1f})",
                  title="USER FEEDBACK")
        self._log(LogType.AI, outcome.response, title="FEEDBACK RECEIVED")
        self.tracker.record_reward(self._current_reward(), satisfaction_point=self.state.motivation)
        self.bus.publish("user_state", self.state)
        self.bus.publish("metrics", self.tracker.metrics)

        if outcome.replan_type is not None and self.is_replanning:
            logger.info("Feedback %s arrived during a replan; no new disruption raised", signal)
        elif outcome.replan_type is not None and self.itinerary.activities:
            affected = affected_activities(outcome.replan_type, self.itinerary)
            if affected:
                disruption = Disruption(
                    type=outcome.replan_type,
                    severity=FEEDBACK_SEVERITY[outcome.replan_type],
                    description=FEEDBACK_DESCRIPTION[outcome.replan_type],
                    affected_activity_ids=affected,
                    urgency=Urgency.SOON,
                )
                self._raise_disruption([disruption])
                await self.replan([disruption])
            else:
                logger.info("Feedback %s requested a replan but nothing is affected", signal)
        return outcome

    # ─────────────────────────────────────────────────────────────────────────
    # Presentation commands
    # ─────────────────────────────────────────────────────────────────────────

    def _require(self, activity_id: str) -> Activity:
        activity = self.itinerary.get(activity_id)
        if activity is None:
            raise UnknownActivityError(activity_id)
        return activity

    def confirm_activity(self, activity_id: str) -> Itinerary:
        """A pending activity becomes upcoming. Other statuses are left alone."""
        activity = self._require(activity_id)
        if activity.status == ActivityStatus.PENDING:
            self.itinerary = self.itinerary.with_statuses({activity_id: ActivityStatus.UPCOMING})
            self._publish_itinerary()
        self._log(LogType.USER, f"Confirmed {activity.name}", title="ACTIVITY CONFIRMED")
        return self.itinerary

    def delete_activity(self, activity_id: str) -> Itinerary:
        activity = self._require(activity_id)
        itinerary = self.itinerary.without(activity_id)
        if activity.status == ActivityStatus.ACTIVE:
            itinerary = self._promote_next(itinerary)
        self.itinerary = itinerary
        self._prior_status.pop(activity_id, None)
        self._log(LogType.USER, f"Removed {activity.name}", title="ACTIVITY REMOVED")
        self._publish_itinerary()
        self._reschedule_evaluation()
        return self.itinerary

    def add_activity(self, candidate: PlaceCandidate) -> Itinerary:
        """Append a suggested place as `pending` after the last activity."""
        if self.itinerary.get(candidate.id) is not None:
            raise ValueError(f"Activity {candidate.id} is already in the itinerary")
        acts = self.itinerary.activities
        start = acts[-1].end_time if acts else parse_clock(FIRST_SLOT)
        activity = Activity.from_candidate(
            candidate, start, status=ActivityStatus.PENDING, reason="Added by traveller",
        )
        self.itinerary = self.itinerary.with_activities([*acts, activity])
        if candidate.id not in {c.id for c in self.candidates}:
            self.candidates.append(candidate)
        self._log(LogType.USER, f"Added {candidate.name} at {start.strftime('%H:%M')}",
                  title="ACTIVITY ADDED")
        self._publish_itinerary()
        self._reschedule_evaluation()
        return self.itinerary

    # ─────────────────────────────────────────────────────────────────────────
    # Activity progression
    # ─────────────────────────────────────────────────────────────────────────

    def advance_clock(self, now: Optional[datetime] = None) -> list[Activity]:
        """Complete every active activity whose end time has passed."""
        now = now or self.clock()
        now_min = minutes_of(now.time())
        completed: list[Activity] = []

        while (active := self.itinerary.active()) is not None and active.end_minutes <= now_min:
            fatigue = update_fatigue(self.state.fatigue, active)
            self.state = UserState(
                fatigue=fatigue,
                stress=self.state.stress,
                motivation=self.state.motivation,
                budget_spent=self.state.budget_spent + active.cost_usd,
            )
            statuses = {active.id: ActivityStatus.DONE}
            nxt = next((a for a in self.itinerary.activities
                        if a.status == ActivityStatus.UPCOMING), None)
            if nxt is not None:
                statuses[nxt.id] = ActivityStatus.ACTIVE
            self.itinerary = self.itinerary.with_statuses(statuses)
            completed.append(active)
            self.tracker.record_reward(self._current_reward(),
                                       satisfaction_point=self.state.motivation)
            self._log(LogType.SYSTEM,
                      f"Completed {active.name}. Fatigue now {fatigue:.0f}%.",
                      title="ACTIVITY COMPLETE")

        if completed:
            self.bus.publish("user_state", self.state)
            self.bus.publish("metrics", self.tracker.metrics)
            self._publish_itinerary()
            if all(a.status == ActivityStatus.DONE for a in self.itinerary.activities):
                self._set_phase(TripPhase.DONE)
        return completed

    @staticmethod
    def _promote_next(itinerary: Itinerary) -> Itinerary:
        nxt = next((a for a in itinerary.activities if a.status == ActivityStatus.UPCOMING), None)
        if nxt is None:
            return itinerary
        return itinerary.with_statuses({nxt.id: ActivityStatus.ACTIVE})

    # ─────────────────────────────────────────────────────────────────────────
    # Scheduling
    # ─────────────────────────────────────────────────────────────────────────

    def start_monitoring(self) -> None:
        """Start the periodic tasks on the running loop (active phase only)."""
        if self.phase != TripPhase.ACTIVE:
            return
        if self._weather_task is None:
            self._weather_task = PeriodicTask(
                "weather-refresh", config.WEATHER_REFRESH_SECONDS,
                self._weather_tick, on_error=self._on_tick_error,
            )
        if self._evaluation_task is None:
            self._evaluation_task = PeriodicTask(
                "context-evaluation", config.CONTEXT_EVAL_INTERVAL_SECONDS,
                self._evaluation_tick,
                first_delay=config.CONTEXT_EVAL_FIRST_DELAY_SECONDS,
                on_error=self._on_tick_error,
            )
        self._weather_task.start()
        self._evaluation_task.start()

    def stop_monitoring(self) -> None:
        for task in (self._weather_task, self._evaluation_task):
            if task is not None:
                task.cancel()

    @property
    def monitoring(self) -> bool:
        return any(t is not None and t.running
                   for t in (self._weather_task, self._evaluation_task))

    def _reschedule_evaluation(self) -> None:
        if self._evaluation_task is not None and self._evaluation_task.running:
            self._evaluation_task.reschedule(config.CONTEXT_EVAL_FIRST_DELAY_SECONDS)

    async def _weather_tick(self) -> None:
        await self.refresh_weather()

    async def _evaluation_tick(self) -> None:
        if self.phase == TripPhase.ACTIVE:
            await self.evaluate_context()

    def _on_tick_error(self, name: str, exc: Exception) -> None:
        self._log(LogType.ERROR, f"{name} failed: {exc}", title="MONITOR ERROR")

    # ─────────────────────────────────────────────────────────────────────────
    # Reset / snapshot
    # ─────────────────────────────────────────────────────────────────────────

    def reset_trip(self) -> None:
        self.stop_monitoring()
        self.state = UserState()
        self.itinerary = Itinerary()
        self.disruption = None
        self._prior_status.clear()
        self.log.clear()
        self.tracker.reset()
        self.is_evaluating = False
        self.is_replanning = False
        self._set_phase(TripPhase.PLANNING)
        self._publish_itinerary()
        self.bus.publish("disruption", None)
        self.bus.publish("metrics", self.tracker.metrics)
        self.bus.publish("user_state", self.state)
        logger.info("Trip reset")

    def snapshot(self) -> TripSnapshot:
        return TripSnapshot(
            phase=self.phase,
            city=self.city,
            profile=self.profile,
            itinerary=self.itinerary,
            user_state=self.state,
            disruption=self.disruption,
            decision_log=self.log.entries(),
            metrics=self.tracker.metrics,
            weather=self.weather,
            weather_error=self.weather_error,
            is_evaluating=self.is_evaluating,
            is_replanning=self.is_replanning,
        )

    # ── Internals ─────────────────────────────────────────────────────────────

    def _current_reward(self) -> float:
        if self.profile is None:
            return 0.0
        return compute_reward(reward_inputs(self.state, self.profile, self.itinerary.walking_km))

    def _set_phase(self, phase: TripPhase) -> None:
        if phase == self.phase:
            return
        logger.info("Phase %s → %s", self.phase.value, phase.value)
        self.phase = phase
        if phase != TripPhase.ACTIVE:
            self.stop_monitoring()
        self.bus.publish("phase", phase)

    def _log(self, type: LogType, message: str, **kwargs) -> DecisionLogEntry:
        entry = self.log.add(type, message, **kwargs)
        self._publish_log()
        return entry

    def _publish_log(self) -> None:
        self.bus.publish("decision_log", self.log.entries())

    def _publish_itinerary(self) -> None:
        self.bus.publish("itinerary", self.itinerary)
