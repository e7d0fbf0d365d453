"""Plain-text reports for weight trends and plan analyses."""

from __future__ import annotations

from typing import Optional

from dualtrack.analysis.models import AnalysisCondition, HealthStatus, TrendSummary
from dualtrack.analysis.service import PlanAnalysisResult, WeightTrendResult

STATUS_LABELS = {
    HealthStatus.ON_TRACK: "On track",
    HealthStatus.AT_RISK: "At risk",
    HealthStatus.OFF_TRACK: "Off track",
    HealthStatus.CRITICAL_DEVIATION: "Critical deviation",
}


def format_trend_line(trend: Optional[TrendSummary]) -> str:
    """One-line description of a trend, or a note that there is none."""
    if trend is None:
        return "Trend: not enough data (need at least 2 weigh-ins)"

    if abs(trend.weekly_change_kg) < 0.005:
        direction = "holding steady"
    elif trend.weekly_change_kg < 0:
        direction = "losing"
    else:
        direction = "gaining"
    return (
        f"Trend: {abs(trend.weekly_change_kg):.2f} kg/week ({direction}), "
        f"R² {trend.r_squared:.2f}"
    )


def format_trend_report(result: WeightTrendResult) -> str:
    """Format a weight trend result as text."""
    lines = [
        f"Weight Trend ({result.range.value})",
        "=" * 45,
        f"Weigh-ins:   {len(result.points)}",
    ]
    if result.points:
        first, last = result.points[0], result.points[-1]
        lines.append(f"First:       {first.weight_kg:.1f} kg on {first.date.isoformat()}")
        lines.append(f"Latest:      {last.weight_kg:.1f} kg on {last.date.isoformat()}")

    trend = result.trend
    if trend is not None:
        lines.append(
            f"Fitted line: {trend.start_weight_kg:.1f} -> {trend.end_weight_kg:.1f} kg"
        )
    lines.append(format_trend_line(trend))
    return "\n".join(lines)


def format_analysis_report(result: PlanAnalysisResult) -> str:
    """Format a plan analysis (and any options) as text."""
    plan = result.plan
    analysis = result.analysis
    title = plan.name or f"Plan {plan.plan_id}"

    lines = [
        f"{title}: week {analysis.current_week} of {plan.duration_weeks} "
        f"(as of {result.as_of.isoformat()})",
        "=" * 50,
        f"Status:   {STATUS_LABELS[result.status]}",
        f"Actual:   {analysis.actual_weight_kg:.1f} kg (rolling average)",
        f"Planned:  {analysis.planned_weight_kg:.1f} kg",
        f"Variance: {analysis.variance_kg:+.1f} kg ({analysis.variance_percent:+.1f}%), "
        f"tolerance ±{analysis.tolerance_kg:.1f} kg",
        format_trend_line(result.trend),
    ]

    landing = analysis.landing_point
    if landing is not None:
        lines.append("")
        lines.append(f"Projected landing ({plan.end_date.isoformat()})")
        lines.append("-" * 45)
        lines.append(f"  Weight:    {landing.weight_kg:.1f} kg")
        lines.append(
            f"  vs goal:   {landing.variance_from_goal_kg:+.1f} kg "
            f"(goal {plan.goal_weight_kg:.1f} kg)"
        )
        lines.append(f"  On track:  {'yes' if landing.on_track_for_goal else 'no'}")

    notes = []
    if analysis.condition == AnalysisCondition.INSUFFICIENT_DATA:
        notes.append("Log at least two weigh-ins to project a landing point")
    if analysis.trend_diverging:
        notes.append("Your trend is moving away from the goal")
    if analysis.recalibration_needed:
        notes.append("Landing point is outside tolerance; consider recalibrating")

    if notes:
        lines.append("")
        lines.append("Notes:")
        for note in notes:
            lines.append(f"  - {note}")

    if result.options:
        lines.append("")
        lines.append("Options:")
        for option in result.options:
            lines.append(
                f"  {option.label}: {option.new_parameter} "
                f"({option.feasibility_tag.value}, {option.type.value})"
            )
            lines.append(f"      {option.impact}")

    return "\n".join(lines)
