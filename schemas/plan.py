from __future__ import annotations
from dataclasses import dataclass
from typing import Generic, List, Optional, TypeVar, Union

from pydantic import BaseModel, ConfigDict, Field, field_validator

T = TypeVar("T")


class PlannedActivity(BaseModel):
    """One activity as returned by the language model."""
    model_config = ConfigDict(populate_by_name=True, extra="ignore")

    id: str
    time: str
    end_time: Optional[str] = Field(default=None, alias="endTime")
    name: str
    category: str = "other"
    duration_min: int = Field(alias="durationMin", gt=0)
    cost_usd: float = Field(default=0.0, alias="costUsd", ge=0)
    distance_from_prev_m: float = Field(default=0.0, alias="distanceFromPrevM", ge=0)
    is_indoor: bool = Field(default=True, alias="isIndoor")
    crowd_level: float = Field(default=0.3, alias="crowdLevel", ge=0, le=1)
    reason_chosen: str = Field(default="", alias="reasonChosen")

    @field_validator("time", "end_time")
    def clock_format(cls, v):
        if v is None:
            return v
        hh, _, mm = v.partition(":")
        if not (hh.isdigit() and mm.isdigit() and 0 <= int(hh) < 24 and 0 <= int(mm) < 60):
            raise ValueError(f"expected HH:MM, got {v!r}")
        return v


class ParsedPlan(BaseModel):
    model_config = ConfigDict(populate_by_name=True, extra="ignore")

    itinerary: List[PlannedActivity] = Field(min_length=1)
    day_theme: str = Field(default="", alias="dayTheme")
    planner_note: str = Field(default="", alias="plannerNote")


class ExplanationPayload(BaseModel):
    model_config = ConfigDict(populate_by_name=True, extra="ignore")

    summary: str = ""
    rules_applied: List[str] = Field(default_factory=list, alias="rulesApplied")
    removed: List[str] = Field(default_factory=list)
    added: List[str] = Field(default_factory=list)
    satisfaction_delta: float = Field(default=0.0, alias="satisfactionDelta")
    detail: str = ""


class ParsedReplan(BaseModel):
    model_config = ConfigDict(populate_by_name=True, extra="ignore")

    new_activities: List[PlannedActivity] = Field(alias="newActivities", min_length=1)
    xai_explanation: ExplanationPayload = Field(
        default_factory=ExplanationPayload, alias="xaiExplanation"
    )


# ── Tagged result ─────────────────────────────────────────────────────────────

@dataclass(frozen=True)
class ParseFailure:
    reason: str
    raw: str = ""


@dataclass(frozen=True)
class Ok(Generic[T]):
    value: T


@dataclass(frozen=True)
class Err:
    failure: ParseFailure


ParseResult = Union[Ok[T], Err]
