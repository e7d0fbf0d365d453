"""Corrective options for a plan that is drifting, and applying them.

Options are ordered by how much they disrupt the user's plan:

    keep_current < increase_deficit < extend_timeline < revise_goal

with ties broken by feasibility (Achievable, Moderate, Ambitious).

Energy arithmetic uses 7700 kcal per kg of body-weight change. The daily
correction that closes a variance by the plan's end date is:

    correction = variance_kg × 7700 / remaining_days

Applying an option re-anchors the plan at (current week, actual weight) so
the planned line restarts from where the user actually is, while the plan's
start values stay untouched.
"""

from __future__ import annotations

import logging
import math
from dataclasses import replace
from datetime import date
from typing import Optional, Union

from dualtrack.analysis.models import (
    DualTrackAnalysis,
    Feasibility,
    RecalibrationOption,
    RecalibrationType,
)
from dualtrack.analysis.projection import (
    required_daily_balance_kcal,
    required_weekly_change,
)
from dualtrack.errors import (
    InsufficientDataError,
    InvalidTransitionError,
    ValidationError,
)
from dualtrack.tracking.models import (
    KCAL_PER_KG,
    MAX_PLAN_DURATION_WEEKS,
    MAX_SAFE_DEFICIT_KCAL,
    MAX_SAFE_SURPLUS_KCAL,
    MAX_WEIGHT_KG,
    MIN_WEIGHT_KG,
    Plan,
)

logger = logging.getLogger(__name__)

DISRUPTION_ORDER = {
    RecalibrationType.KEEP_CURRENT: 0,
    RecalibrationType.INCREASE_DEFICIT: 1,
    RecalibrationType.EXTEND_TIMELINE: 2,
    RecalibrationType.REVISE_GOAL: 3,
}

FEASIBILITY_ORDER = {
    Feasibility.ACHIEVABLE: 0,
    Feasibility.MODERATE: 1,
    Feasibility.AMBITIOUS: 2,
}

# Beyond this multiple of the safe limit a calorie target is Ambitious
MODERATE_LIMIT_FACTOR = 1.5

# Extra weeks as a fraction of the remaining weeks
ACHIEVABLE_EXTENSION_RATIO = 0.25
MODERATE_EXTENSION_RATIO = 0.5

RECALIBRATABLE_STATUSES = ("active", "paused")


def format_kcal(kcal: float) -> str:
    """Format a daily energy balance, e.g. "-650 kcal/day"."""
    return f"{kcal:+,.0f} kcal/day"


def format_weeks(weeks: int) -> str:
    return f"{weeks} week" if weeks == 1 else f"{weeks} weeks"


def format_weight(kg: float) -> str:
    return f"{kg:.1f} kg"


def balance_feasibility(daily_balance_kcal: float) -> Feasibility:
    """
    Rate a daily energy balance against the safe limits.

    Deficits are measured against 750 kcal/day and surpluses against
    500 kcal/day. Up to the limit is Achievable, up to 1.5× the limit is
    Moderate, anything beyond is Ambitious.
    """
    limit = MAX_SAFE_DEFICIT_KCAL if daily_balance_kcal < 0 else MAX_SAFE_SURPLUS_KCAL
    magnitude = abs(daily_balance_kcal)
    if magnitude <= limit:
        return Feasibility.ACHIEVABLE
    if magnitude <= limit * MODERATE_LIMIT_FACTOR:
        return Feasibility.MODERATE
    return Feasibility.AMBITIOUS


def can_reanchor(plan: Plan, week: int) -> bool:
    """True when the planned line can restart at this week."""
    return 1 <= week < plan.duration_weeks


def _remaining_weeks(plan: Plan, current_week: int) -> int:
    return max(plan.duration_weeks - current_week, 1)


def _balance_label(old_balance: float, new_balance: float) -> str:
    """Direction-aware wording: deficit for cuts, surplus for gains."""
    if new_balance < 0:
        verb = "Increase" if new_balance < old_balance else "Decrease"
        return f"{verb} deficit"
    verb = "Increase" if new_balance > old_balance else "Decrease"
    return f"{verb} surplus"


def _extended_duration(
    plan: Plan, actual_weight_kg: float, current_week: int
) -> Optional[int]:
    """
    Total duration that reaches the goal at the plan's current weekly rate.

    Returns:
        New duration in weeks, or None when the plan is a maintenance plan
        or no extension is needed
    """
    rate = required_weekly_change(plan)
    if rate == 0:
        return None

    weeks_to_goal = max((plan.goal_weight_kg - actual_weight_kg) / rate, 0.0)
    # Round before ceil so 4.0000000001 weeks stays 4
    weeks_needed = math.ceil(round(weeks_to_goal, 6))
    new_duration = current_week + weeks_needed
    if new_duration <= plan.duration_weeks:
        return None
    return new_duration


def keep_current_option(plan: Plan) -> RecalibrationOption:
    balance = required_daily_balance_kcal(plan)
    return RecalibrationOption(
        type=RecalibrationType.KEEP_CURRENT,
        label="Keep current plan",
        new_parameter=format_kcal(balance),
        impact="No change",
        feasibility_tag=Feasibility.ACHIEVABLE,
        value=balance,
    )


def deficit_option(plan: Plan, analysis: DualTrackAnalysis) -> RecalibrationOption:
    """Adjust the daily deficit/surplus to close the variance by the end date."""
    remaining_days = _remaining_weeks(plan, analysis.current_week) * 7
    balance = required_daily_balance_kcal(plan)
    correction = analysis.variance_kg * KCAL_PER_KG / remaining_days
    new_balance = balance - correction

    if abs(analysis.variance_kg) < 0.05:
        impact = "Holds the current pace to reach the goal on schedule"
    else:
        impact = (
            f"Closes the {abs(analysis.variance_kg):.1f} kg gap by week "
            f"{plan.duration_weeks} ({abs(correction):,.0f} kcal/day "
            f"{'less' if correction > 0 else 'more'} intake)"
        )

    return RecalibrationOption(
        type=RecalibrationType.INCREASE_DEFICIT,
        label=_balance_label(balance, new_balance),
        new_parameter=format_kcal(new_balance),
        impact=impact,
        feasibility_tag=balance_feasibility(new_balance),
        value=new_balance,
    )


def extend_timeline_option(
    plan: Plan, analysis: DualTrackAnalysis
) -> Optional[RecalibrationOption]:
    """Keep the current daily deficit/surplus and add weeks instead."""
    new_duration = _extended_duration(
        plan, analysis.actual_weight_kg, analysis.current_week
    )
    if new_duration is None:
        return None

    remaining = _remaining_weeks(plan, analysis.current_week)
    balance = required_daily_balance_kcal(plan)
    noun = "deficit" if balance < 0 else "surplus"

    if new_duration > MAX_PLAN_DURATION_WEEKS:
        return RecalibrationOption(
            type=RecalibrationType.EXTEND_TIMELINE,
            label="Extend timeline",
            new_parameter=format_weeks(MAX_PLAN_DURATION_WEEKS),
            impact="Maximum duration reached, the goal may need revision",
            feasibility_tag=Feasibility.AMBITIOUS,
            value=float(MAX_PLAN_DURATION_WEEKS),
        )

    extra = new_duration - plan.duration_weeks
    ratio = extra / remaining
    if ratio <= ACHIEVABLE_EXTENSION_RATIO:
        feasibility = Feasibility.ACHIEVABLE
    elif ratio <= MODERATE_EXTENSION_RATIO:
        feasibility = Feasibility.MODERATE
    else:
        feasibility = Feasibility.AMBITIOUS

    return RecalibrationOption(
        type=RecalibrationType.EXTEND_TIMELINE,
        label="Extend timeline",
        new_parameter=format_weeks(new_duration),
        impact=(
            f"Adds {format_weeks(extra)} at the current "
            f"{abs(balance):,.0f} kcal/day {noun}"
        ),
        feasibility_tag=feasibility,
        value=float(new_duration),
    )


def _revised_goal(analysis: DualTrackAnalysis) -> Optional[float]:
    if analysis.landing_point is None:
        return None
    goal = round(analysis.landing_point.weight_kg, 1)
    return min(max(goal, MIN_WEIGHT_KG), MAX_WEIGHT_KG)


def revise_goal_option(
    plan: Plan, analysis: DualTrackAnalysis
) -> Optional[RecalibrationOption]:
    """Move the goal to where the current trend lands by the end date."""
    new_goal = _revised_goal(analysis)
    if new_goal is None:
        return None

    return RecalibrationOption(
        type=RecalibrationType.REVISE_GOAL,
        label="Revise goal",
        new_parameter=format_weight(new_goal),
        impact=(
            f"Goal moves {new_goal - plan.goal_weight_kg:+.1f} kg to match "
            "your current trend"
        ),
        # Consistent with current behavior by construction
        feasibility_tag=Feasibility.ACHIEVABLE,
        value=new_goal,
    )


def sort_options(options: list[RecalibrationOption]) -> list[RecalibrationOption]:
    """Order options by disruption, then feasibility."""
    return sorted(
        options,
        key=lambda o: (DISRUPTION_ORDER[o.type], FEASIBILITY_ORDER[o.feasibility_tag]),
    )


def generate_options(
    plan: Plan, analysis: DualTrackAnalysis
) -> list[RecalibrationOption]:
    """
    Build the ranked set of corrective options for a plan.

    keep_current is always present and the deficit/surplus adjustment is
    offered whenever the plan can be re-anchored. extend_timeline is omitted when no extension would help (maintenance
    plan, or already ahead of schedule); revise_goal is omitted when there
    is no trend to project. Outside the weeks where the plan can be
    re-anchored (week 0 and the final week onward) only keep_current is
    offered.

    Args:
        plan: The plan being analyzed
        analysis: Its dual-track analysis

    Returns:
        Non-empty list of options, least disruptive first
    """
    if not can_reanchor(plan, analysis.current_week):
        return [keep_current_option(plan)]

    options = [keep_current_option(plan), deficit_option(plan, analysis)]

    extend = extend_timeline_option(plan, analysis)
    if extend is not None:
        options.append(extend)

    revise = revise_goal_option(plan, analysis)
    if revise is not None:
        options.append(revise)

    return sort_options(options)


def apply_recalibration(
    plan: Plan,
    option_type: Union[str, RecalibrationType],
    analysis: DualTrackAnalysis,
    as_of: date,
) -> Plan:
    """
    Apply a chosen recalibration option to a plan.

    The input plan is not modified. Every option except keep_current
    re-anchors the planned line at (current week, actual weight):

    - increase_deficit: goal and end date unchanged, steeper line from today
    - extend_timeline: new duration at the current weekly rate
    - revise_goal: goal moved to the trend's landing point

    Args:
        plan: Plan to recalibrate (active or paused)
        option_type: One of the RecalibrationType values
        analysis: Analysis the options were generated from
        as_of: Date the recalibration takes effect

    Returns:
        The updated plan (same version; the store bumps it on write)

    Raises:
        ValidationError: for an unknown option type, or when the plan cannot
            be re-anchored at the analysis week
        InvalidTransitionError: if the plan is not active or paused
        InsufficientDataError: revise_goal without a trend
    """
    try:
        option = RecalibrationType(option_type)
    except ValueError:
        valid = ", ".join(t.value for t in RecalibrationType)
        raise ValidationError(
            f"option must be one of {valid}, got '{option_type}'"
        ) from None

    if plan.status not in RECALIBRATABLE_STATUSES:
        raise InvalidTransitionError(f"Cannot recalibrate a {plan.status} plan")

    if option == RecalibrationType.KEEP_CURRENT:
        return replace(plan, current_week=analysis.current_week)

    week = analysis.current_week
    if not can_reanchor(plan, week):
        raise ValidationError(
            f"Plans can be recalibrated from week 1 to week {plan.duration_weeks - 1}, "
            f"current week is {week}"
        )

    changes: dict = {
        "anchor_week": week,
        "anchor_weight_kg": analysis.actual_weight_kg,
        "current_week": week,
        "last_recalibrated_at": as_of,
    }

    if option == RecalibrationType.EXTEND_TIMELINE:
        new_duration = _extended_duration(plan, analysis.actual_weight_kg, week)
        if new_duration is None:
            raise ValidationError("No timeline extension is needed for this plan")
        changes["duration_weeks"] = min(new_duration, MAX_PLAN_DURATION_WEEKS)
    elif option == RecalibrationType.REVISE_GOAL:
        new_goal = _revised_goal(analysis)
        if new_goal is None:
            raise InsufficientDataError("Revising the goal needs a weight trend")
        changes["goal_weight_kg"] = new_goal

    updated = replace(plan, **changes)
    logger.info(
        "Recalibrated plan %s with %s at week %d", plan.plan_id, option.value, week
    )
    return updated
