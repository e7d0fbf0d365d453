"""Tests for plan and weight models and their persistence."""

from __future__ import annotations

from datetime import date, timedelta

import pytest

from conftest import PLAN_START, make_plan
from dualtrack.errors import PlanNotFoundError, ValidationError, VersionConflictError
from dualtrack.tracking.models import Plan, WeightObservation, validate_new_plan
from dualtrack.tracking.queries import PlanQueries, WeightQueries


class TestPlanModel:
    """Tests for Plan validation and helpers."""

    @pytest.mark.parametrize(
        "overrides",
        [
            {"duration_weeks": 0},
            {"duration_weeks": 105},
            {"start_weight_kg": 29.9},
            {"goal_weight_kg": 300.5},
            {"goal_weight_kg": float("nan")},
            {"tolerance_percent": 0.5},
            {"tolerance_percent": 12.0},
            {"status": "archived"},
            {"anchor_week": 0, "anchor_weight_kg": 88.0},
            {"anchor_week": 12, "anchor_weight_kg": 88.0},
        ],
    )
    def test_invalid_parameters_rejected(self, overrides: dict) -> None:
        """Out-of-range parameters raise ValidationError."""
        with pytest.raises(ValidationError):
            make_plan(**overrides)

    def test_bounds_inclusive(self) -> None:
        """Limits themselves are valid."""
        make_plan(duration_weeks=1, tolerance_percent=1.0)
        make_plan(duration_weeks=104, tolerance_percent=10.0)
        make_plan(start_weight_kg=30.0, goal_weight_kg=300.0)

    def test_week_at(self) -> None:
        """Weeks are whole weeks since the start date."""
        plan = make_plan()

        assert plan.week_at(PLAN_START) == 0
        assert plan.week_at(PLAN_START + timedelta(days=6)) == 0
        assert plan.week_at(PLAN_START + timedelta(days=7)) == 1
        assert plan.week_at(PLAN_START - timedelta(days=1)) == -1

    def test_at_sets_current_week(self) -> None:
        """at() returns a copy for the given date."""
        plan = make_plan(current_week=0)

        moved = plan.at(PLAN_START + timedelta(days=30))

        assert moved.current_week == 4
        assert plan.current_week == 0

    def test_end_date(self) -> None:
        assert make_plan().end_date == PLAN_START + timedelta(weeks=12)

    def test_to_dict(self) -> None:
        data = make_plan().to_dict()

        assert data["start_date"] == "2025-01-06"
        assert data["end_date"] == "2025-03-31"
        assert data["version"] == 1


class TestValidateNewPlan:
    """Tests for creation-time pace limits."""

    def test_safe_loss_accepted(self) -> None:
        """-0.5 kg/week is a 550 kcal/day deficit."""
        validate_new_plan(make_plan())

    def test_aggressive_loss_rejected(self) -> None:
        """-1 kg/week needs 1100 kcal/day, over the 750 limit."""
        with pytest.raises(ValidationError, match="deficit"):
            validate_new_plan(make_plan(goal_weight_kg=78.0))

    def test_aggressive_gain_rejected(self) -> None:
        """+0.5 kg/week needs 550 kcal/day, over the 500 limit."""
        with pytest.raises(ValidationError, match="surplus"):
            validate_new_plan(make_plan(start_weight_kg=60.0, goal_weight_kg=66.0))

    def test_maintenance_accepted(self) -> None:
        validate_new_plan(make_plan(goal_weight_kg=90.0))


class TestWeightQueries:
    """Tests for weight log persistence."""

    def test_add_and_history(self, conn) -> None:
        """Entries come back in date order."""
        WeightQueries.add_weight(conn, 80.0, date(2025, 1, 3))
        WeightQueries.add_weight(conn, 80.4, date(2025, 1, 1), notes="after holiday")
        WeightQueries.add_weight(conn, 80.2, date(2025, 1, 2))

        history = WeightQueries.get_weight_history(conn)

        assert [e.weight_kg for e in history] == [80.4, 80.2, 80.0]
        assert history[0].notes == "after holiday"

    def test_same_date_replaces(self, conn) -> None:
        """Re-logging a date keeps one entry with the newer weight."""
        WeightQueries.add_weight(conn, 80.0, date(2025, 1, 1))
        WeightQueries.add_weight(conn, 79.6, date(2025, 1, 1))

        history = WeightQueries.get_weight_history(conn)

        assert len(history) == 1
        assert history[0].weight_kg == 79.6

    def test_date_filters(self, conn) -> None:
        for day in range(1, 11):
            WeightQueries.add_weight(conn, 80.0, date(2025, 1, day))

        history = WeightQueries.get_weight_history(
            conn, start_date=date(2025, 1, 3), end_date=date(2025, 1, 5)
        )

        assert [e.measured_at.day for e in history] == [3, 4, 5]

    def test_get_observations(self, conn) -> None:
        WeightQueries.add_weight(conn, 80.0, date(2025, 1, 1))

        assert WeightQueries.get_observations(conn) == [
            WeightObservation(date(2025, 1, 1), 80.0)
        ]

    def test_delete(self, conn) -> None:
        WeightQueries.add_weight(conn, 80.0, date(2025, 1, 1))

        assert WeightQueries.delete_weight(conn, date(2025, 1, 1)) is True
        assert WeightQueries.delete_weight(conn, date(2025, 1, 1)) is False


class TestPlanQueries:
    """Tests for plan persistence and optimistic versioning."""

    def _create(self, conn, **overrides) -> Plan:
        return PlanQueries.create_plan(conn, make_plan(plan_id=None, **overrides))

    def test_create_and_get(self, conn) -> None:
        plan = self._create(conn, name="Spring cut")

        loaded = PlanQueries.get_plan(conn, plan.plan_id)

        assert loaded.name == "Spring cut"
        assert loaded.start_date == PLAN_START
        assert loaded.version == 1
        assert loaded.created_at is not None

    def test_get_missing_plan_raises(self, conn) -> None:
        with pytest.raises(PlanNotFoundError) as exc_info:
            PlanQueries.get_plan(conn, 999)

        assert exc_info.value.http_status == 404
        assert PlanQueries.find_plan(conn, 999) is None

    def test_no_active_plan_raises(self, conn) -> None:
        self._create(conn, status="draft")

        with pytest.raises(PlanNotFoundError):
            PlanQueries.get_active_plan(conn)

    def test_list_by_status(self, conn) -> None:
        self._create(conn, status="draft")
        self._create(conn)

        assert len(PlanQueries.list_plans(conn)) == 2
        assert [p.status for p in PlanQueries.list_plans(conn, status="draft")] == ["draft"]

    def test_update_bumps_version(self, conn) -> None:
        plan = self._create(conn)
        plan.goal_weight_kg = 85.0

        updated = PlanQueries.update_plan(conn, plan, expected_version=1)

        assert updated.version == 2
        assert updated.goal_weight_kg == 85.0

    def test_stale_version_conflicts(self, conn) -> None:
        """A second write with the same expected version is rejected."""
        plan = self._create(conn)
        PlanQueries.update_plan(conn, plan, expected_version=1)

        with pytest.raises(VersionConflictError) as exc_info:
            PlanQueries.update_plan(conn, plan, expected_version=1)

        assert exc_info.value.code.value == "version_conflict"
        assert PlanQueries.get_plan(conn, plan.plan_id).version == 2

    def test_update_left_to_caller_transaction(self, conn) -> None:
        """update_plan does not commit on its own."""
        plan = self._create(conn)
        plan.goal_weight_kg = 85.0

        PlanQueries.update_plan(conn, plan, expected_version=1)
        conn.rollback()

        stored = PlanQueries.get_plan(conn, plan.plan_id)
        assert stored.version == 1
        assert stored.goal_weight_kg == 84.0

    def test_update_missing_plan_raises(self, conn) -> None:
        with pytest.raises(PlanNotFoundError):
            PlanQueries.update_plan(conn, make_plan(plan_id=42), expected_version=1)

    def test_anchor_round_trips(self, conn) -> None:
        plan = self._create(conn)
        plan.anchor_week = 4
        plan.anchor_weight_kg = 89.5
        plan.last_recalibrated_at = date(2025, 2, 3)

        loaded = PlanQueries.update_plan(conn, plan, expected_version=1)

        assert loaded.anchor_week == 4
        assert loaded.anchor_weight_kg == 89.5
        assert loaded.last_recalibrated_at == date(2025, 2, 3)

    def test_recalibration_history(self, conn) -> None:
        plan = self._create(conn)

        PlanQueries.record_recalibration(conn, plan, "extend_timeline", date(2025, 2, 3))
        history = PlanQueries.get_recalibration_history(conn, plan.plan_id)

        assert len(history) == 1
        assert history[0]["option_type"] == "extend_timeline"
        assert history[0]["from_version"] == 1
        assert history[0]["previous"]["duration_weeks"] == 12
