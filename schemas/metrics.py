"""
schemas/metrics.py
------------------
Reward-tracker state exposed to the presentation layer.
"""

from __future__ import annotations
from dataclasses import dataclass, field


@dataclass(frozen=True)
class RLMetrics:
    cumulative_reward: float = 0.0
    replan_count: int = 0
    satisfaction_history: tuple[float, ...] = field(default_factory=tuple)   # newest last, 0–100
    last_replan_latency_ms: float = 0.0
    last_reward: float = 0.0

    def to_dict(self) -> dict:
        return {
            "cumulativeReward": round(self.cumulative_reward, 3),
            "replanCount": self.replan_count,
            "satisfactionHistory": list(self.satisfaction_history),
            "lastReplanLatency": round(self.last_replan_latency_ms, 1),
            "lastReward": self.last_reward,
        }
