"""
modules/reoptimization/user_state_tracker.py
---------------------------------------------
Deterministic user-state updates.

Two mechanisms change UserState:
  1. Feedback signal  — fixed deltas per signal (intensity is recorded, not scaled)

        signal   fatigueΔ  stressΔ  motivationΔ
        happy       −5       −8        +10
        tired      +20       +8        −15
        rushed      +5      +22         −8
        bored       +8       +5        −12

     Unknown signals apply a zero delta.
     tired → replan (FATIGUE) when the resulting fatigue > TIRED_REPLAN_FATIGUE
     bored → replan (BOREDOM) always

  2. Activity completion — fatigue model
        Δ = duration_min × 0.08 + walking_km × 4 + crowd_level × 6 + (outdoor ? 3 : 0)
        fatigue ← clamp(fatigue + Δ, 0, 100)

Stateless — the session owns UserState and swaps in what these return.
"""

from __future__ import annotations
import logging
from dataclasses import dataclass
from typing import Optional

from core.enums import DisruptionType, FeedbackSignal
from schemas.itinerary import Activity
from schemas.profile import StateDelta, UserState
import config

logger = logging.getLogger(__name__)

# ─────────────────────────────────────────────────────────────────────────────
# Constants
# ─────────────────────────────────────────────────────────────────────────────

FEEDBACK_DELTAS: dict[FeedbackSignal, StateDelta] = {
    FeedbackSignal.HAPPY:  StateDelta(fatigue=-5,  stress=-8,  motivation=10),
    FeedbackSignal.TIRED:  StateDelta(fatigue=20,  stress=8,   motivation=-15),
    FeedbackSignal.RUSHED: StateDelta(fatigue=5,   stress=22,  motivation=-8),
    FeedbackSignal.BORED:  StateDelta(fatigue=8,   stress=5,   motivation=-12),
}

FEEDBACK_RESPONSES: dict[FeedbackSignal, str] = {
    FeedbackSignal.HAPPY:  "Glad you're enjoying {activity}! I'll keep recommending similar experiences.",
    FeedbackSignal.TIRED:  "Take a break if you need to! I can suggest some relaxing spots nearby.",
    FeedbackSignal.RUSHED: "Let's adjust the pace. I'll recommend fewer activities or extend your current ones.",
    FeedbackSignal.BORED:  "Let's find something more exciting! I'll look for unique experiences in the area.",
}
GENERIC_RESPONSE = "Thanks for your feedback! I'll adjust your recommendations."

# Fatigue model coefficients
FATIGUE_PER_MINUTE   = 0.08
FATIGUE_PER_KM       = 4.0
FATIGUE_PER_CROWD    = 6.0
FATIGUE_OUTDOOR      = 3.0


# ─────────────────────────────────────────────────────────────────────────────
# Result types
# ─────────────────────────────────────────────────────────────────────────────

@dataclass(frozen=True)
class FeedbackOutcome:
    """Output of interpret_feedback()."""
    signal: str
    intensity: float
    delta: StateDelta
    state: UserState                          # state after the delta
    replan_type: Optional[DisruptionType]     # set when a replan must be requested
    response: str


# ─────────────────────────────────────────────────────────────────────────────
# Feedback
# ─────────────────────────────────────────────────────────────────────────────

def parse_signal(signal: str) -> Optional[FeedbackSignal]:
    try:
        return FeedbackSignal(str(signal).lower())
    except ValueError:
        return None


def interpret_feedback(
    signal: str,
    intensity: float,
    state: UserState,
    current_activity: Optional[Activity] = None,
) -> FeedbackOutcome:
    """Map a discrete feedback signal onto its fixed delta and replan trigger."""
    if not 0.0 <= intensity <= 1.0:
        raise ValueError("intensity must be in [0, 1]")

    parsed = parse_signal(signal)
    delta = FEEDBACK_DELTAS.get(parsed, StateDelta()) if parsed else StateDelta()
    new_state = state.apply(delta)

    replan_type = None
    if parsed == FeedbackSignal.TIRED and new_state.fatigue > config.TIRED_REPLAN_FATIGUE:
        replan_type = DisruptionType.FATIGUE
    elif parsed == FeedbackSignal.BORED:
        replan_type = DisruptionType.BOREDOM

    if parsed is None:
        logger.info("Unrecognized feedback signal %r; applying zero delta", signal)
        response = GENERIC_RESPONSE
    else:
        name = current_activity.name if current_activity else "your current activity"
        response = FEEDBACK_RESPONSES[parsed].format(activity=name)

    return FeedbackOutcome(
        signal=str(signal),
        intensity=intensity,
        delta=delta,
        state=new_state,
        replan_type=replan_type,
        response=response,
    )


# ─────────────────────────────────────────────────────────────────────────────
# Fatigue model
# ─────────────────────────────────────────────────────────────────────────────

def fatigue_delta(
    duration_min: float,
    walking_km: float = 0.0,
    crowd_level: float = 0.3,
    is_indoor: bool = True,
) -> float:
    delta = duration_min * FATIGUE_PER_MINUTE
    delta += walking_km * FATIGUE_PER_KM
    delta += crowd_level * FATIGUE_PER_CROWD
    if not is_indoor:
        delta += FATIGUE_OUTDOOR
    return delta


def update_fatigue(current: float, activity: Activity) -> float:
    """Fatigue after completing `activity`, clamped to [0, 100]."""
    delta = fatigue_delta(
        activity.duration_min,
        walking_km=activity.distance_from_prev_m / 1000.0,
        crowd_level=activity.crowd_level,
        is_indoor=activity.is_indoor,
    )
    return max(0.0, min(100.0, current + delta))
