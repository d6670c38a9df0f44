"""
modules/reoptimization/context_monitor.py
-------------------------------------------
Evaluates the activity currently marked `active` against live context and
returns the Disruptions it detects.

Rules (evaluated independently, all that fire are returned):
  WEATHER  severity 3  weather reads as rain AND the active activity is outdoor
  TIME     severity 4  now.hour > active.start_time.hour + LATE_THRESHOLD_HOURS
  FATIGUE  severity 3  state.fatigue > FATIGUE_DISRUPTION_THRESHOLD

No itinerary, or no active activity → no disruptions.

Affected activities per disruption type:
  WEATHER  active + upcoming outdoor activities
  TIME     the active activity
  FATIGUE  upcoming activities that are outdoor or long (≥ LONG_ACTIVITY_MIN);
           falls back to the next upcoming activity
  BOREDOM  the next upcoming activity
  CROWD    upcoming activities with crowd_level ≥ CROWD_AFFECTED_LEVEL

The monitor is stateless; scheduling and single-flight live in the session.
"""

from __future__ import annotations
import logging
from datetime import datetime
from typing import Optional

from core.enums import ActivityStatus, DisruptionType, Urgency
from schemas.context import WeatherSnapshot
from schemas.events import Disruption
from schemas.itinerary import Itinerary
from schemas.profile import UserState
import config

logger = logging.getLogger(__name__)

WEATHER_SEVERITY = 3
TIME_SEVERITY    = 4
FATIGUE_SEVERITY = 3


def affected_activities(disruption_type: DisruptionType, itinerary: Itinerary) -> frozenset[str]:
    """Ids of the activities a disruption of this type invalidates."""
    active = itinerary.active()
    upcoming = itinerary.by_status(ActivityStatus.UPCOMING)

    if disruption_type == DisruptionType.WEATHER:
        ids = {a.id for a in upcoming if not a.is_indoor}
        if active is not None and not active.is_indoor:
            ids.add(active.id)
        return frozenset(ids)

    if disruption_type == DisruptionType.TIME:
        return frozenset({active.id}) if active is not None else frozenset()

    if disruption_type == DisruptionType.FATIGUE:
        heavy = {
            a.id for a in upcoming
            if not a.is_indoor or a.duration_min >= config.LONG_ACTIVITY_MIN
        }
        if heavy:
            return frozenset(heavy)
        return frozenset({upcoming[0].id}) if upcoming else frozenset()

    if disruption_type == DisruptionType.BOREDOM:
        return frozenset({upcoming[0].id}) if upcoming else frozenset()

    if disruption_type == DisruptionType.CROWD:
        return frozenset(a.id for a in upcoming if a.crowd_level >= config.CROWD_AFFECTED_LEVEL)

    raise ValueError(f"Unknown disruption type: {disruption_type!r}")


class ContextMonitor:
    """
    Usage:
        monitor     = ContextMonitor()
        disruptions = monitor.evaluate(itinerary, weather, state, datetime.now())
    """

    def __init__(
        self,
        fatigue_threshold: float = config.FATIGUE_DISRUPTION_THRESHOLD,
        late_hours: int = config.LATE_THRESHOLD_HOURS,
    ) -> None:
        self.fatigue_threshold = fatigue_threshold
        self.late_hours = late_hours

    def evaluate(
        self,
        itinerary: Optional[Itinerary],
        weather: Optional[WeatherSnapshot],
        state: UserState,
        now: datetime,
    ) -> list[Disruption]:
        if itinerary is None or not itinerary.activities:
            return []
        active = itinerary.active()
        if active is None:
            return []

        found: list[Disruption] = []

        if weather is not None and weather.is_rain and not active.is_indoor:
            found.append(Disruption(
                type=DisruptionType.WEATHER,
                severity=WEATHER_SEVERITY,
                description=(f"{weather.condition} detected during outdoor activity "
                             f"\"{active.name}\""),
                affected_activity_ids=affected_activities(DisruptionType.WEATHER, itinerary),
                urgency=Urgency.IMMEDIATE,
            ))

        if now.hour > active.start_time.hour + self.late_hours:
            found.append(Disruption(
                type=DisruptionType.TIME,
                severity=TIME_SEVERITY,
                description=(f"Running late: \"{active.name}\" was scheduled for "
                             f"{active.start_time.strftime('%H:%M')}"),
                affected_activity_ids=affected_activities(DisruptionType.TIME, itinerary),
                urgency=Urgency.SOON,
            ))

        if state.fatigue > self.fatigue_threshold:
            found.append(Disruption(
                type=DisruptionType.FATIGUE,
                severity=FATIGUE_SEVERITY,
                description=f"High fatigue level ({state.fatigue:.0f}%) detected",
                affected_activity_ids=affected_activities(DisruptionType.FATIGUE, itinerary),
                urgency=Urgency.SOON,
            ))

        if found:
            logger.info("Context evaluation: %s",
                        ", ".join(f"{d.type.value}(sev {d.severity})" for d in found))
        return found
