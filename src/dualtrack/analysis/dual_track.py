"""Dual-track analysis: the planned line against the observed trend.

Two questions are answered from one snapshot of inputs:

- Is today's weight inside the plan's tolerance band? (variance)
- Where will the current trend land by the plan's final week? (landing point)

Variance is signed as actual - planned, so a positive value always means
heavier than planned. Whether that is good or bad depends on the plan's
goal direction and is never assumed here.
"""

from __future__ import annotations

import logging
import math
from typing import Optional

from dualtrack.analysis.models import (
    AnalysisCondition,
    DualTrackAnalysis,
    LandingPoint,
    ProjectionPoint,
    TrendSummary,
)
from dualtrack.analysis.projection import (
    plan_projection,
    projected_weight,
    required_weekly_change,
)
from dualtrack.errors import PlanEndedError, PlanNotStartedError, ValidationError
from dualtrack.tracking.models import Plan

logger = logging.getLogger(__name__)

# Trends slower than this (kg/week) are treated as flat for divergence checks
DEFAULT_NOISE_FLOOR_KG_PER_WEEK = 0.05


def is_trend_diverging(
    plan: Plan,
    trend: Optional[TrendSummary],
    noise_floor: float = DEFAULT_NOISE_FLOOR_KG_PER_WEEK,
) -> bool:
    """
    Check whether the trend is moving away from the goal.

    The trend diverges when its weekly rate has the opposite sign from the
    plan's required weekly rate and its magnitude exceeds the noise floor.
    A maintenance plan (required rate of zero) never diverges.

    Args:
        plan: The plan
        trend: Current trend, or None
        noise_floor: Minimum |kg/week| counted as real movement

    Returns:
        True if the trend opposes the goal direction
    """
    if trend is None:
        return False

    required = required_weekly_change(plan)
    rate = trend.weekly_change_kg
    if required == 0 or abs(rate) <= noise_floor:
        return False
    return (rate > 0) != (required > 0)


def landing_point(
    plan: Plan,
    actual_weight_kg: float,
    trend: Optional[TrendSummary],
    tolerance_kg: float,
    trend_diverging: bool = False,
) -> Optional[LandingPoint]:
    """
    Project the trend from today's weight to the plan's final week.

    Args:
        plan: The plan, with current_week set
        actual_weight_kg: Today's weight
        trend: Current trend, or None
        tolerance_kg: Allowed distance from goal
        trend_diverging: A diverging trend is never on track for the goal

    Returns:
        LandingPoint, or None without a trend
    """
    if trend is None:
        return None

    weeks_left = plan.duration_weeks - plan.current_week
    weight = actual_weight_kg + trend.weekly_change_kg * weeks_left
    variance_from_goal = weight - plan.goal_weight_kg

    return LandingPoint(
        weight_kg=weight,
        variance_from_goal_kg=variance_from_goal,
        on_track_for_goal=abs(variance_from_goal) < tolerance_kg and not trend_diverging,
        week_number=plan.duration_weeks,
    )


def trend_projection(
    plan: Plan,
    actual_weight_kg: float,
    trend: Optional[TrendSummary],
) -> list[ProjectionPoint]:
    """Today's weight extended week by week at the trend rate to plan end."""
    if trend is None:
        return []

    return [
        ProjectionPoint(
            week_number=week,
            date=plan.week_start_date(week),
            weight_kg=actual_weight_kg
            + trend.weekly_change_kg * (week - plan.current_week),
        )
        for week in range(plan.current_week, plan.duration_weeks + 1)
    ]


def analyze(
    plan: Plan,
    actual_weight_kg: float,
    trend: Optional[TrendSummary],
    noise_floor: float = DEFAULT_NOISE_FLOOR_KG_PER_WEEK,
    tolerance_percent: Optional[float] = None,
) -> DualTrackAnalysis:
    """
    Compare actual progress against the plan.

    Args:
        plan: The plan, with current_week set for the analysis date
        actual_weight_kg: Current weight (typically a short rolling average)
        trend: Trend over recent observations, or None if there are too few
        noise_floor: Divergence noise floor in kg/week (default 0.05)
        tolerance_percent: Override for the plan's tolerance setting

    Returns:
        DualTrackAnalysis. Without a trend the landing point is None and the
        condition is INSUFFICIENT_DATA.

    Raises:
        ValidationError: if actual_weight_kg is not a finite positive number
        PlanNotStartedError: if current_week is negative
        PlanEndedError: if current_week is past the final week
    """
    if not (isinstance(actual_weight_kg, (int, float)) and math.isfinite(actual_weight_kg)):
        raise ValidationError(f"actual_weight_kg must be a number, got {actual_weight_kg!r}")
    if actual_weight_kg <= 0:
        raise ValidationError(f"actual_weight_kg must be positive, got {actual_weight_kg}")

    week = plan.current_week
    if week < 0:
        raise PlanNotStartedError(f"Plan starts on {plan.start_date.isoformat()}")
    if week > plan.duration_weeks:
        raise PlanEndedError(
            f"Week {week} is past the plan's {plan.duration_weeks}-week duration"
        )

    tolerance = plan.tolerance_percent if tolerance_percent is None else tolerance_percent

    planned = projected_weight(plan, week)
    variance_kg = actual_weight_kg - planned
    variance_percent = variance_kg / planned * 100
    tolerance_kg = tolerance / 100 * planned

    diverging = is_trend_diverging(plan, trend, noise_floor)
    landing = landing_point(plan, actual_weight_kg, trend, tolerance_kg, diverging)

    analysis = DualTrackAnalysis(
        current_week=week,
        actual_weight_kg=actual_weight_kg,
        planned_weight_kg=planned,
        variance_kg=variance_kg,
        variance_percent=variance_percent,
        tolerance_percent=tolerance,
        tolerance_kg=tolerance_kg,
        landing_point=landing,
        trend_diverging=diverging,
        recalibration_needed=abs(variance_kg) > tolerance_kg,
        condition=(
            AnalysisCondition.OK if trend is not None else AnalysisCondition.INSUFFICIENT_DATA
        ),
        plan_projection=plan_projection(plan),
        trend_projection=trend_projection(plan, actual_weight_kg, trend),
    )

    logger.debug(
        "Plan %s week %d: planned %.2f, actual %.2f, variance %+.2f kg (tol %.2f)",
        plan.plan_id,
        week,
        planned,
        actual_weight_kg,
        variance_kg,
        tolerance_kg,
    )
    return analysis
