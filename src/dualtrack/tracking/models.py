"""Data models for weight logging and weight-change plans."""

from __future__ import annotations

import logging
import math
from dataclasses import dataclass, replace
from datetime import date, datetime, timedelta
from typing import Optional

from dualtrack.errors import ValidationError

logger = logging.getLogger(__name__)

# Energy content of body-weight change (kcal per kg)
KCAL_PER_KG = 7700.0

# Plan bounds
MIN_PLAN_DURATION_WEEKS = 1
MAX_PLAN_DURATION_WEEKS = 104  # 2 years
MIN_WEIGHT_KG = 30.0
MAX_WEIGHT_KG = 300.0
MIN_TOLERANCE_PERCENT = 1.0
MAX_TOLERANCE_PERCENT = 10.0
DEFAULT_TOLERANCE_PERCENT = 3.0

# Safe daily energy balance limits
MAX_SAFE_DEFICIT_KCAL = 750.0  # ~0.7 kg/week loss
MAX_SAFE_SURPLUS_KCAL = 500.0  # ~0.45 kg/week gain

VALID_PLAN_STATUSES = ("draft", "active", "paused", "completed", "abandoned")


@dataclass(frozen=True)
class WeightObservation:
    """A single logged body weight for one calendar date."""

    date: date
    weight_kg: float

    @property
    def is_usable(self) -> bool:
        """True when the weight is a finite positive number."""
        try:
            value = float(self.weight_kg)
        except (TypeError, ValueError):
            return False
        return math.isfinite(value) and value > 0


@dataclass
class WeightEntry:
    """A persisted weight log row."""

    log_id: Optional[int]
    weight_kg: float
    measured_at: date
    notes: Optional[str] = None

    def to_observation(self) -> WeightObservation:
        return WeightObservation(date=self.measured_at, weight_kg=self.weight_kg)


@dataclass
class Plan:
    """A time-boxed weight-change plan.

    The planned line runs from ``start_weight_kg`` at week 0 to
    ``goal_weight_kg`` at ``duration_weeks``. After a recalibration the line
    restarts from ``(anchor_week, anchor_weight_kg)``; start values never
    change once the plan is active.
    """

    plan_id: Optional[int]
    start_date: date
    duration_weeks: int
    start_weight_kg: float
    goal_weight_kg: float
    status: str = "active"
    tolerance_percent: float = DEFAULT_TOLERANCE_PERCENT
    current_week: int = 0
    name: Optional[str] = None
    anchor_week: int = 0
    anchor_weight_kg: Optional[float] = None
    version: int = 1
    last_recalibrated_at: Optional[date] = None
    created_at: Optional[datetime] = None

    def __post_init__(self) -> None:
        if self.status not in VALID_PLAN_STATUSES:
            raise ValidationError(
                f"status must be one of {VALID_PLAN_STATUSES}, got '{self.status}'"
            )
        if not (
            MIN_PLAN_DURATION_WEEKS <= self.duration_weeks <= MAX_PLAN_DURATION_WEEKS
        ):
            raise ValidationError(
                f"duration_weeks must be between {MIN_PLAN_DURATION_WEEKS} and "
                f"{MAX_PLAN_DURATION_WEEKS}, got {self.duration_weeks}"
            )
        _check_weight("start_weight_kg", self.start_weight_kg)
        _check_weight("goal_weight_kg", self.goal_weight_kg)
        if self.anchor_weight_kg is not None:
            _check_weight("anchor_weight_kg", self.anchor_weight_kg)
            if not (1 <= self.anchor_week < self.duration_weeks):
                raise ValidationError(
                    f"anchor_week must be in [1, {self.duration_weeks}), "
                    f"got {self.anchor_week}"
                )
        if not (
            MIN_TOLERANCE_PERCENT <= self.tolerance_percent <= MAX_TOLERANCE_PERCENT
        ):
            raise ValidationError(
                f"tolerance_percent must be between {MIN_TOLERANCE_PERCENT:g} and "
                f"{MAX_TOLERANCE_PERCENT:g}, got {self.tolerance_percent}"
            )

    @property
    def end_date(self) -> date:
        """Date the final plan week ends."""
        return self.start_date + timedelta(weeks=self.duration_weeks)

    @property
    def is_recalibrated(self) -> bool:
        return self.anchor_weight_kg is not None

    def week_at(self, as_of: date) -> int:
        """Whole weeks elapsed since the start date (negative before start)."""
        return (as_of - self.start_date).days // 7

    def week_start_date(self, week_number: int) -> date:
        return self.start_date + timedelta(weeks=week_number)

    def at(self, as_of: date) -> "Plan":
        """Return a copy with ``current_week`` set for ``as_of``."""
        return replace(self, current_week=self.week_at(as_of))

    def to_dict(self) -> dict:
        return {
            "plan_id": self.plan_id,
            "name": self.name,
            "status": self.status,
            "start_date": self.start_date.isoformat(),
            "end_date": self.end_date.isoformat(),
            "duration_weeks": self.duration_weeks,
            "start_weight_kg": self.start_weight_kg,
            "goal_weight_kg": self.goal_weight_kg,
            "tolerance_percent": self.tolerance_percent,
            "current_week": self.current_week,
            "anchor_week": self.anchor_week,
            "anchor_weight_kg": self.anchor_weight_kg,
            "version": self.version,
            "last_recalibrated_at": (
                self.last_recalibrated_at.isoformat() if self.last_recalibrated_at else None
            ),
        }


def _check_weight(field_name: str, value: float) -> None:
    if not (
        isinstance(value, (int, float))
        and math.isfinite(value)
        and MIN_WEIGHT_KG <= value <= MAX_WEIGHT_KG
    ):
        raise ValidationError(
            f"{field_name} must be between {MIN_WEIGHT_KG:g} and "
            f"{MAX_WEIGHT_KG:g} kg, got {value}"
        )


def validate_new_plan(plan: Plan) -> None:
    """Check the creation-time pace limits on a new plan.

    Raises:
        ValidationError: if the plan's implied daily deficit or surplus
            exceeds the safe limits.
    """
    weekly_change = (plan.goal_weight_kg - plan.start_weight_kg) / plan.duration_weeks
    daily_balance = weekly_change * KCAL_PER_KG / 7

    if weekly_change < 0 and abs(daily_balance) > MAX_SAFE_DEFICIT_KCAL:
        raise ValidationError(
            f"Plan requires a {abs(daily_balance):.0f} kcal/day deficit; "
            f"the maximum is {MAX_SAFE_DEFICIT_KCAL:.0f}"
        )
    if weekly_change > 0 and daily_balance > MAX_SAFE_SURPLUS_KCAL:
        raise ValidationError(
            f"Plan requires a {daily_balance:.0f} kcal/day surplus; "
            f"the maximum is {MAX_SAFE_SURPLUS_KCAL:.0f}"
        )


def normalize_observations(
    observations: list[WeightObservation],
) -> list[WeightObservation]:
    """
    Prepare an observation series for analysis.

    Unusable weights (non-numeric, NaN, infinite, zero or negative) are
    dropped. When a date appears more than once the latest write, meaning
    the last occurrence in input order, wins. The result is sorted by date.

    Args:
        observations: Observations in any order, possibly with duplicates

    Returns:
        Deduplicated, sanitized observations in ascending date order
    """
    by_date: dict[date, WeightObservation] = {}
    dropped = 0
    for obs in observations:
        if not obs.is_usable:
            dropped += 1
            continue
        by_date[obs.date] = WeightObservation(date=obs.date, weight_kg=float(obs.weight_kg))
    if dropped:
        logger.warning("Dropped %d unusable weight observation(s)", dropped)
    return [by_date[d] for d in sorted(by_date)]
