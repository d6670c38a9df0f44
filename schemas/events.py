"""
schemas/events.py
-----------------
Event-like records produced while a trip is active.

Disruption        — ephemeral; created by the monitor (or by feedback),
                    consumed by the replanner or dismissed by the user.
ReplanExplanation — why a replan changed what it changed.
DecisionLogEntry  — immutable, append-only audit line shown to the user.
"""

from __future__ import annotations
from dataclasses import dataclass, field
from datetime import datetime
from typing import Optional

from core.enums import DisruptionType, LogType, Urgency


@dataclass(frozen=True)
class Disruption:
    type: DisruptionType
    severity: int                       # 1–5
    description: str
    affected_activity_ids: frozenset[str] = field(default_factory=frozenset)
    urgency: Urgency = Urgency.SOON

    def __post_init__(self):
        if not 1 <= self.severity <= 5:
            raise ValueError("severity must be in [1, 5]")
        object.__setattr__(self, "affected_activity_ids", frozenset(self.affected_activity_ids))

    def to_dict(self) -> dict:
        return {
            "type": self.type.value,
            "severity": self.severity,
            "description": self.description,
            "affectedActivityIds": sorted(self.affected_activity_ids),
            "urgency": self.urgency.value,
        }


def merge_disruptions(disruptions: list[Disruption]) -> Disruption:
    """
    Collapse one evaluation batch into the single disruption surfaced to the
    user: highest severity wins, descriptions are pipe-joined, affected ids
    are unioned.
    """
    if not disruptions:
        raise ValueError("cannot merge an empty disruption batch")
    primary = max(disruptions, key=lambda d: d.severity)
    affected: set[str] = set()
    for d in disruptions:
        affected |= d.affected_activity_ids
    return Disruption(
        type=primary.type,
        severity=primary.severity,
        description=" | ".join(d.description for d in disruptions),
        affected_activity_ids=frozenset(affected),
        urgency=primary.urgency,
    )


@dataclass(frozen=True)
class ReplanExplanation:
    summary: str
    rules_applied: tuple[DisruptionType, ...]
    removed: tuple[str, ...]
    added: tuple[str, ...]
    satisfaction_delta: float
    reward_score: float
    detail: str = ""

    def to_dict(self) -> dict:
        return {
            "summary": self.summary,
            "rulesApplied": [r.value for r in self.rules_applied],
            "removed": list(self.removed),
            "added": list(self.added),
            "satisfactionDelta": self.satisfaction_delta,
            "rewardScore": self.reward_score,
            "detail": self.detail,
        }


@dataclass(frozen=True)
class DecisionLogEntry:
    type: LogType
    message: str
    title: str = ""
    detail: Optional[str] = None
    rules: tuple[str, ...] = ()
    severity: Optional[int] = None
    timestamp: str = field(default_factory=lambda: datetime.now().isoformat())

    def to_dict(self) -> dict:
        return {
            "type": self.type.value,
            "title": self.title,
            "message": self.message,
            "detail": self.detail,
            "rules": list(self.rules),
            "severity": self.severity,
            "timestamp": self.timestamp,
        }
