"""Result types produced by the analysis engine."""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import date
from enum import Enum
from typing import Any, Optional


class TrendRange(str, Enum):
    """Trailing windows accepted by the trend endpoint."""

    DAYS_7 = "7d"
    DAYS_30 = "30d"
    DAYS_90 = "90d"
    ALL = "all"

    @property
    def days(self) -> Optional[int]:
        """Window length in days, or None for the whole history."""
        return {"7d": 7, "30d": 30, "90d": 90}.get(self.value)


DEFAULT_TREND_RANGE = TrendRange.DAYS_7


class HealthStatus(str, Enum):
    ON_TRACK = "on_track"
    AT_RISK = "at_risk"
    OFF_TRACK = "off_track"
    CRITICAL_DEVIATION = "critical_deviation"


class AnalysisCondition(str, Enum):
    OK = "ok"
    INSUFFICIENT_DATA = "insufficient_data"


class RecalibrationType(str, Enum):
    INCREASE_DEFICIT = "increase_deficit"
    EXTEND_TIMELINE = "extend_timeline"
    REVISE_GOAL = "revise_goal"
    KEEP_CURRENT = "keep_current"


class Feasibility(str, Enum):
    ACHIEVABLE = "Achievable"
    MODERATE = "Moderate"
    AMBITIOUS = "Ambitious"


@dataclass
class TrendSummary:
    """Linear trend fitted over a range of weight observations."""

    weekly_change_kg: float  # negative = losing
    r_squared: float
    start_weight_kg: float  # fitted value at the first observation
    end_weight_kg: float  # fitted value at the last observation
    start_date: Optional[date] = None
    end_date: Optional[date] = None
    point_count: int = 0

    def to_dict(self) -> dict[str, Any]:
        return {
            "weekly_change_kg": round(self.weekly_change_kg, 3),
            "r_squared": round(self.r_squared, 3),
            "start_weight_kg": round(self.start_weight_kg, 2),
            "end_weight_kg": round(self.end_weight_kg, 2),
            "start_date": self.start_date.isoformat() if self.start_date else None,
            "end_date": self.end_date.isoformat() if self.end_date else None,
            "point_count": self.point_count,
        }


@dataclass
class ProjectionPoint:
    """One point on a planned or trend weight line."""

    week_number: int
    date: date
    weight_kg: float

    def to_dict(self) -> dict[str, Any]:
        return {
            "week_number": self.week_number,
            "date": self.date.isoformat(),
            "weight_kg": round(self.weight_kg, 1),
        }


@dataclass
class LandingPoint:
    """Weight the current trend reaches by the plan's final week."""

    weight_kg: float
    variance_from_goal_kg: float  # positive = above goal
    on_track_for_goal: bool
    week_number: int

    def to_dict(self) -> dict[str, Any]:
        return {
            "weight_kg": round(self.weight_kg, 1),
            "variance_from_goal_kg": round(self.variance_from_goal_kg, 1),
            "on_track_for_goal": self.on_track_for_goal,
            "week_number": self.week_number,
        }


@dataclass
class DualTrackAnalysis:
    """Plan-versus-actual comparison for a single point in time."""

    current_week: int
    actual_weight_kg: float
    planned_weight_kg: float
    variance_kg: float  # actual - planned (positive = heavier than planned)
    variance_percent: float
    tolerance_percent: float
    tolerance_kg: float
    landing_point: Optional[LandingPoint]
    trend_diverging: bool
    recalibration_needed: bool
    condition: AnalysisCondition = AnalysisCondition.OK
    plan_projection: list[ProjectionPoint] = field(default_factory=list)
    trend_projection: list[ProjectionPoint] = field(default_factory=list)

    def to_dict(self) -> dict[str, Any]:
        return {
            "current_week": self.current_week,
            "actual_weight_kg": round(self.actual_weight_kg, 2),
            "planned_weight_kg": round(self.planned_weight_kg, 2),
            "variance_kg": round(self.variance_kg, 2),
            "variance_percent": round(self.variance_percent, 2),
            "tolerance_percent": self.tolerance_percent,
            "tolerance_kg": round(self.tolerance_kg, 2),
            "landing_point": self.landing_point.to_dict() if self.landing_point else None,
            "trend_diverging": self.trend_diverging,
            "recalibration_needed": self.recalibration_needed,
            "condition": self.condition.value,
            "plan_projection": [p.to_dict() for p in self.plan_projection],
            "trend_projection": [p.to_dict() for p in self.trend_projection],
        }


@dataclass
class RecalibrationOption:
    """A candidate corrective action for an off-track plan."""

    type: RecalibrationType
    new_parameter: str  # display value, e.g. "-650 kcal/day", "24 weeks", "81.5 kg"
    impact: str
    feasibility_tag: Feasibility
    label: str = ""
    value: Optional[float] = None

    def to_dict(self) -> dict[str, Any]:
        return {
            "type": self.type.value,
            "label": self.label,
            "new_parameter": self.new_parameter,
            "impact": self.impact,
            "feasibility_tag": self.feasibility_tag.value,
            "value": self.value,
        }
