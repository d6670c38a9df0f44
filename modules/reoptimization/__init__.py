"""modules/reoptimization — Real-time itinerary monitoring and re-planning."""

from modules.reoptimization.context_monitor import ContextMonitor, affected_activities
from modules.reoptimization.monitor_loop import PeriodicTask
from modules.reoptimization.replanner import Replanner
from modules.reoptimization.user_state_tracker import (
    FeedbackOutcome, interpret_feedback, update_fatigue,
)
from modules.reoptimization.session import TripSession

__all__ = [
    "ContextMonitor",
    "affected_activities",
    "PeriodicTask",
    "Replanner",
    "FeedbackOutcome",
    "interpret_feedback",
    "update_fatigue",
    "TripSession",
]
