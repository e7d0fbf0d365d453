"""Tests for dual-track analysis: variance, landing point, divergence."""

from __future__ import annotations

from datetime import date

import pytest

from conftest import make_plan
from dualtrack.analysis.dual_track import analyze, is_trend_diverging, landing_point
from dualtrack.analysis.health import classify
from dualtrack.analysis.models import AnalysisCondition, HealthStatus, TrendSummary
from dualtrack.errors import PlanEndedError, PlanNotStartedError, ValidationError


def trend(weekly_change_kg: float) -> TrendSummary:
    return TrendSummary(
        weekly_change_kg=weekly_change_kg,
        r_squared=0.9,
        start_weight_kg=90.0,
        end_weight_kg=88.5,
    )


class TestTrendDivergence:
    """Tests for is_trend_diverging."""

    def test_loss_plan_gaining_diverges(self) -> None:
        """Gaining 0.2 kg/week on a loss plan diverges."""
        assert is_trend_diverging(make_plan(), trend(0.2)) is True

    def test_loss_plan_losing_does_not_diverge(self) -> None:
        """Moving toward the goal is never divergence."""
        assert is_trend_diverging(make_plan(), trend(-0.8)) is False

    def test_gain_plan_losing_diverges(self) -> None:
        """Losing on a gain plan diverges."""
        plan = make_plan(start_weight_kg=60.0, goal_weight_kg=64.0)

        assert is_trend_diverging(plan, trend(-0.3)) is True

    @pytest.mark.parametrize("rate", [0.0, 0.03, 0.05, -0.05])
    def test_rates_within_noise_floor_do_not_diverge(self, rate: float) -> None:
        """Movement of at most 0.05 kg/week is treated as flat."""
        assert is_trend_diverging(make_plan(), trend(rate)) is False

    def test_custom_noise_floor(self) -> None:
        """The noise floor is a parameter."""
        assert is_trend_diverging(make_plan(), trend(0.2), noise_floor=0.25) is False

    def test_maintenance_plan_never_diverges(self) -> None:
        """With no required direction, any trend is not divergence."""
        plan = make_plan(goal_weight_kg=90.0)

        assert is_trend_diverging(plan, trend(1.0)) is False
        assert is_trend_diverging(plan, trend(-1.0)) is False

    def test_no_trend_does_not_diverge(self) -> None:
        """Missing trend is never divergence."""
        assert is_trend_diverging(make_plan(), None) is False


class TestAnalyze:
    """Tests for analyze."""

    def test_on_plan(self) -> None:
        """Half a kilo over plan with a matching trend is within tolerance."""
        analysis = analyze(make_plan(), 88.5, trend(-0.5))

        assert analysis.current_week == 4
        assert analysis.planned_weight_kg == pytest.approx(88.0)
        assert analysis.variance_kg == pytest.approx(0.5)
        assert analysis.variance_percent == pytest.approx(0.5 / 88.0 * 100)
        assert analysis.tolerance_kg == pytest.approx(2.64)
        assert analysis.recalibration_needed is False
        assert analysis.trend_diverging is False
        assert analysis.condition == AnalysisCondition.OK

    def test_landing_point(self) -> None:
        """Landing projects today's weight at the trend rate to plan end."""
        analysis = analyze(make_plan(), 88.5, trend(-0.5))

        landing = analysis.landing_point
        assert landing is not None
        assert landing.weight_kg == pytest.approx(84.5)
        assert landing.variance_from_goal_kg == pytest.approx(0.5)
        assert landing.on_track_for_goal is True
        assert landing.week_number == 12

    def test_diverging_trend_is_critical(self) -> None:
        """A loss plan with a gaining trend is a critical deviation."""
        analysis = analyze(make_plan(), 88.5, trend(0.15))

        assert analysis.trend_diverging is True
        assert analysis.landing_point is not None
        assert analysis.landing_point.on_track_for_goal is False
        assert classify(analysis) == HealthStatus.CRITICAL_DEVIATION

    def test_variance_sign_heavier_is_positive(self) -> None:
        """actual above planned is positive for loss and gain plans alike."""
        loss = analyze(make_plan(), 89.0, None)
        gain = analyze(
            make_plan(start_weight_kg=60.0, goal_weight_kg=66.0), 63.0, None
        )

        assert loss.variance_kg > 0
        assert gain.variance_kg > 0

    def test_variance_sign_lighter_is_negative(self) -> None:
        """actual below planned is negative."""
        analysis = analyze(make_plan(), 87.0, None)

        assert analysis.variance_kg == pytest.approx(-1.0)

    def test_tolerance_boundary_is_not_recalibration(self) -> None:
        """Variance exactly at the tolerance does not need recalibration."""
        plan = make_plan(
            start_weight_kg=100.0,
            goal_weight_kg=100.0,
            tolerance_percent=5.0,
            current_week=0,
        )

        at_boundary = analyze(plan, 105.0, None)
        past_boundary = analyze(plan, 105.01, None)

        assert at_boundary.variance_kg == at_boundary.tolerance_kg
        assert at_boundary.recalibration_needed is False
        assert past_boundary.recalibration_needed is True

    def test_tolerance_override(self) -> None:
        """An explicit tolerance replaces the plan's setting."""
        analysis = analyze(make_plan(), 89.0, None, tolerance_percent=1.0)

        assert analysis.tolerance_percent == 1.0
        assert analysis.recalibration_needed is True

    def test_without_trend(self) -> None:
        """No trend gives no landing point and insufficient_data."""
        analysis = analyze(make_plan(), 88.0, None)

        assert analysis.landing_point is None
        assert analysis.trend_diverging is False
        assert analysis.condition == AnalysisCondition.INSUFFICIENT_DATA
        assert analysis.trend_projection == []

    def test_projections(self) -> None:
        """Plan line spans every week; trend line runs from today to plan end."""
        analysis = analyze(make_plan(), 88.5, trend(-0.5))

        assert len(analysis.plan_projection) == 13
        assert analysis.trend_projection[0].week_number == 4
        assert analysis.trend_projection[0].weight_kg == pytest.approx(88.5)
        assert analysis.trend_projection[-1].weight_kg == pytest.approx(84.5)

    def test_final_week_is_analyzable(self) -> None:
        """The last week is inside the plan."""
        analysis = analyze(make_plan(current_week=12), 84.0, trend(-0.5))

        assert analysis.planned_weight_kg == 84.0
        assert analysis.landing_point is not None
        assert analysis.landing_point.weight_kg == pytest.approx(84.0)

    def test_before_start_raises(self) -> None:
        """Negative week means the plan has not started."""
        with pytest.raises(PlanNotStartedError) as exc_info:
            analyze(make_plan(current_week=-1), 90.0, None)

        assert exc_info.value.code.value == "plan_not_started"

    def test_after_end_raises(self) -> None:
        """Past the final week the plan has ended."""
        with pytest.raises(PlanEndedError):
            analyze(make_plan(current_week=13), 84.0, None)

    @pytest.mark.parametrize("weight", [float("nan"), float("inf"), 0.0, -70.0])
    def test_invalid_actual_weight_raises(self, weight: float) -> None:
        """Non-finite or non-positive actual weight is rejected."""
        with pytest.raises(ValidationError):
            analyze(make_plan(), weight, None)

    def test_to_dict(self) -> None:
        """Serialized analysis uses plain values."""
        data = analyze(make_plan(), 88.5, trend(-0.5)).to_dict()

        assert data["condition"] == "ok"
        assert data["landing_point"]["on_track_for_goal"] is True
        assert data["plan_projection"][0]["date"] == date(2025, 1, 6).isoformat()


class TestLandingPoint:
    """Tests for landing_point directly."""

    def test_diverging_never_on_track(self) -> None:
        """Even a landing inside tolerance is off track when diverging."""
        landing = landing_point(make_plan(), 84.0, trend(0.0), 2.5, trend_diverging=True)

        assert landing is not None
        assert landing.on_track_for_goal is False

    def test_none_without_trend(self) -> None:
        assert landing_point(make_plan(), 88.0, None, 2.5) is None
