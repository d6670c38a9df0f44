"""
modules/optimization/reward.py
--------------------------------
Normalized [0, 1] reward signal and the tracker that accumulates it.

Reward (pure):
  reward = satisfaction × 0.5
         + (1 − fatigue)  × 0.2
         + (1 − stress)   × 0.2
         − costOverrun    × 0.05
         − walkingOverrunKm × 0.05

  satisfaction / fatigue / stress are normalized to [0, 1] beforehand.
  Result is rounded to 3 decimals and clamped to [0, 1].

Inputs derived from live state (reward_inputs):
  satisfaction     = motivation / 100
  costOverrun      = max(0, budget_spent − budget_per_day) / budget_per_day
  walkingOverrunKm = max(0, planned walking km − max_walking_km)
"""

from __future__ import annotations
import logging
from collections import deque
from dataclasses import dataclass, replace

from schemas.metrics import RLMetrics
from schemas.profile import UserProfile, UserState
import config

logger = logging.getLogger(__name__)

W_SATISFACTION = 0.5
W_FATIGUE      = 0.2
W_STRESS       = 0.2
W_COST_OVERRUN = 0.05
W_WALK_OVERRUN = 0.05


@dataclass(frozen=True)
class RewardInputs:
    satisfaction: float = 0.7
    fatigue: float = 0.3
    stress: float = 0.2
    cost_overrun: float = 0.0
    walking_overrun_km: float = 0.0


def _unit(x: float) -> float:
    return max(0.0, min(1.0, x))


def compute_reward(inputs: RewardInputs) -> float:
    """Pure reward function; identical inputs always give identical output."""
    reward = (
        _unit(inputs.satisfaction) * W_SATISFACTION
        + (1.0 - _unit(inputs.fatigue)) * W_FATIGUE
        + (1.0 - _unit(inputs.stress)) * W_STRESS
        - max(0.0, inputs.cost_overrun) * W_COST_OVERRUN
        - max(0.0, inputs.walking_overrun_km) * W_WALK_OVERRUN
    )
    return max(0.0, min(1.0, round(reward, 3)))


def reward_inputs(
    state: UserState,
    profile: UserProfile,
    planned_walking_km: float = 0.0,
) -> RewardInputs:
    return RewardInputs(
        satisfaction=state.motivation / 100.0,
        fatigue=state.fatigue / 100.0,
        stress=state.stress / 100.0,
        cost_overrun=max(0.0, state.budget_spent - profile.budget_per_day) / profile.budget_per_day,
        walking_overrun_km=max(0.0, planned_walking_km - profile.max_walking_km),
    )


class RewardTracker:
    """
    Owns RLMetrics for one trip.

    satisfaction_history keeps the newest SATISFACTION_HISTORY_MAX points
    (0–100 scale); older points are evicted FIFO.
    """

    def __init__(self, history_size: int = config.SATISFACTION_HISTORY_MAX) -> None:
        self._history: deque[float] = deque(maxlen=history_size)
        self._metrics = RLMetrics()

    @property
    def metrics(self) -> RLMetrics:
        return replace(self._metrics, satisfaction_history=tuple(self._history))

    def push_satisfaction(self, point: float) -> None:
        self._history.append(round(max(0.0, min(100.0, point)), 1))

    def record_reward(self, reward: float, satisfaction_point: float | None = None) -> float:
        """Fold one transition's reward into the running sum."""
        self._metrics = replace(
            self._metrics,
            cumulative_reward=self._metrics.cumulative_reward + reward,
            last_reward=reward,
        )
        if satisfaction_point is not None:
            self.push_satisfaction(satisfaction_point)
        return reward

    def record_replan(self, latency_ms: float) -> None:
        self._metrics = replace(
            self._metrics,
            replan_count=self._metrics.replan_count + 1,
            last_replan_latency_ms=latency_ms,
        )
        logger.debug("Replan #%d took %.1f ms", self._metrics.replan_count, latency_ms)

    def reset(self) -> None:
        self._history.clear()
        self._metrics = RLMetrics()
