"""Planned weight trajectory for a plan.

A plan's planned line interpolates linearly from the start weight at week 0
to the goal weight at the final week. Weeks outside [0, duration] are
extrapolated along the same line.

Interpolation uses the form

    W(t) = start × (1 - t) + goal × t,    t = week / duration

which returns the start and goal weights exactly at t = 0 and t = 1.

A recalibrated plan carries an anchor (week, weight). Its planned line is
two segments: start → anchor, then anchor → goal.
"""

from __future__ import annotations

from dualtrack.analysis.models import ProjectionPoint
from dualtrack.tracking.models import KCAL_PER_KG, Plan


def _interpolate(
    week_from: float,
    weight_from: float,
    week_to: float,
    weight_to: float,
    week: float,
) -> float:
    t = (week - week_from) / (week_to - week_from)
    return weight_from * (1 - t) + weight_to * t


def projected_weight(plan: Plan, week_number: float) -> float:
    """
    Planned weight at a week offset from the plan start.

    Args:
        plan: The plan
        week_number: Weeks since start; may be negative, fractional, or past
                     the final week (extrapolated linearly)

    Returns:
        Planned weight in kg
    """
    if plan.anchor_weight_kg is None:
        return _interpolate(
            0, plan.start_weight_kg, plan.duration_weeks, plan.goal_weight_kg, week_number
        )

    if week_number <= plan.anchor_week:
        return _interpolate(
            0, plan.start_weight_kg, plan.anchor_week, plan.anchor_weight_kg, week_number
        )
    return _interpolate(
        plan.anchor_week,
        plan.anchor_weight_kg,
        plan.duration_weeks,
        plan.goal_weight_kg,
        week_number,
    )


def required_weekly_change(plan: Plan) -> float:
    """Weekly change the plan currently asks for (kg/week, negative = loss)."""
    if plan.anchor_weight_kg is None:
        return (plan.goal_weight_kg - plan.start_weight_kg) / plan.duration_weeks
    return (plan.goal_weight_kg - plan.anchor_weight_kg) / (
        plan.duration_weeks - plan.anchor_week
    )


def required_daily_balance_kcal(plan: Plan) -> float:
    """
    Daily energy balance implied by the plan's current weekly rate.

    Returns:
        kcal/day (negative = deficit, positive = surplus)
    """
    return required_weekly_change(plan) * KCAL_PER_KG / 7


def weekly_target_trajectory(plan: Plan) -> list[tuple[int, float]]:
    """Planned (week, weight) pairs for weeks 0..duration_weeks."""
    return [
        (week, projected_weight(plan, week)) for week in range(plan.duration_weeks + 1)
    ]


def plan_projection(plan: Plan) -> list[ProjectionPoint]:
    """Planned trajectory as dated chart points."""
    return [
        ProjectionPoint(
            week_number=week,
            date=plan.week_start_date(week),
            weight_kg=weight,
        )
        for week, weight in weekly_target_trajectory(plan)
    ]
