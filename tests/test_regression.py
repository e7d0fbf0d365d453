"""Tests for the linear weight trend."""

from __future__ import annotations

import math
from datetime import date, timedelta

import pytest

from conftest import daily_series
from dualtrack.analysis.models import TrendRange
from dualtrack.analysis.regression import fit, fit_series, parse_range, select_range
from dualtrack.errors import InvalidRangeError, ValidationError
from dualtrack.tracking.models import WeightObservation, normalize_observations

DAY0 = date(2025, 3, 1)


class TestParseRange:
    """Tests for parse_range."""

    def test_default_is_seven_days(self) -> None:
        """No range means the 7-day window."""
        assert parse_range(None) == TrendRange.DAYS_7

    @pytest.mark.parametrize("value", ["7d", "30d", "90d", "all", " 30D "])
    def test_accepts_supported_ranges(self, value: str) -> None:
        """Supported values parse regardless of case and whitespace."""
        assert parse_range(value).value == value.strip().lower()

    def test_invalid_range_raises(self) -> None:
        """Unsupported range is a 400-class invalid_range error."""
        with pytest.raises(InvalidRangeError) as exc_info:
            parse_range("invalid")

        assert exc_info.value.code.value == "invalid_range"
        assert exc_info.value.http_status == 400
        assert isinstance(exc_info.value, ValidationError)

    def test_range_days(self) -> None:
        """Each range maps to a window length; all has none."""
        assert TrendRange.DAYS_30.days == 30
        assert TrendRange.ALL.days is None


class TestNormalizeObservations:
    """Tests for observation cleanup before fitting."""

    def test_drops_unusable_weights(self) -> None:
        """NaN, infinite, zero and negative weights are excluded."""
        obs = daily_series(DAY0, [80.0, float("nan"), 0.0, -5.0, float("inf"), 79.5])

        result = normalize_observations(obs)

        assert [o.weight_kg for o in result] == [80.0, 79.5]

    def test_duplicate_date_last_write_wins(self) -> None:
        """Two weights on one date keep the later one."""
        obs = [
            WeightObservation(DAY0, 80.0),
            WeightObservation(DAY0 + timedelta(days=1), 79.0),
            WeightObservation(DAY0 + timedelta(days=1), 85.0),
        ]

        result = normalize_observations(obs)

        assert len(result) == 2
        assert result[1].weight_kg == 85.0

    def test_sorts_by_date(self) -> None:
        """Out-of-order input comes back ascending."""
        obs = list(reversed(daily_series(DAY0, [80.0, 79.8, 79.6])))

        result = normalize_observations(obs)

        assert [o.date for o in result] == sorted(o.date for o in obs)


class TestSelectRange:
    """Tests for trailing window selection."""

    def test_seven_day_window_includes_as_of(self) -> None:
        """A 7d window ending day 10 covers days 4 through 10."""
        obs = daily_series(DAY0, [80.0 - 0.1 * i for i in range(15)])

        result = select_range(obs, "7d", as_of=DAY0 + timedelta(days=10))

        assert [o.date for o in result] == [DAY0 + timedelta(days=d) for d in range(4, 11)]

    def test_window_defaults_to_last_observation(self) -> None:
        """Without as_of the window ends at the latest observation."""
        obs = daily_series(DAY0, [80.0] * 20)

        result = select_range(obs, "7d")

        assert result[-1].date == DAY0 + timedelta(days=19)
        assert len(result) == 7

    def test_all_keeps_everything(self) -> None:
        """The all range keeps the full history."""
        obs = daily_series(DAY0, [80.0] * 120)

        assert len(select_range(obs, "all")) == 120


class TestFit:
    """Tests for the least-squares trend fit."""

    def test_decreasing_series_has_negative_rate(self) -> None:
        """A week of falling weights gives a negative weekly change."""
        obs = daily_series(DAY0, [82.0, 81.95, 81.7, 81.5, 81.4, 81.2, 81.1])

        trend = fit(obs, "7d")

        assert trend is not None
        assert trend.weekly_change_kg < 0
        assert 0.0 <= trend.r_squared <= 1.0
        assert trend.point_count == 7

    def test_exact_line(self) -> None:
        """A perfectly linear series is recovered exactly."""
        obs = daily_series(DAY0, [80.0 - 0.1 * i for i in range(7)])

        trend = fit(obs, "7d")

        assert trend is not None
        assert trend.weekly_change_kg == pytest.approx(-0.7)
        assert trend.r_squared == pytest.approx(1.0)
        assert trend.start_weight_kg == pytest.approx(80.0)
        assert trend.end_weight_kg == pytest.approx(79.4)
        assert trend.start_date == DAY0
        assert trend.end_date == DAY0 + timedelta(days=6)

    def test_flat_series_is_perfect_fit(self) -> None:
        """Identical weights have zero slope and r² of exactly 1.0."""
        obs = daily_series(DAY0, [75.0] * 5)

        trend = fit(obs, "7d")

        assert trend is not None
        assert trend.weekly_change_kg == pytest.approx(0.0)
        assert trend.r_squared == 1.0

    def test_noisy_series_r_squared_in_bounds(self) -> None:
        """Noisy data gives a finite r² between 0 and 1."""
        obs = daily_series(DAY0, [80.0, 81.5, 79.2, 80.8, 79.9, 81.1, 80.3, 79.7])

        trend = fit(obs, "30d")

        assert trend is not None
        assert math.isfinite(trend.r_squared)
        assert 0.0 <= trend.r_squared <= 1.0

    def test_gaps_use_calendar_days(self) -> None:
        """Missing days do not distort the rate."""
        obs = [
            WeightObservation(DAY0, 80.0),
            WeightObservation(DAY0 + timedelta(days=7), 79.5),
            WeightObservation(DAY0 + timedelta(days=14), 79.0),
        ]

        trend = fit(obs, "30d")

        assert trend is not None
        assert trend.weekly_change_kg == pytest.approx(-0.5)

    def test_no_observations_returns_none(self) -> None:
        """An empty range has no trend."""
        assert fit([], "7d") is None

    def test_single_observation_returns_none(self) -> None:
        """One point is not a line."""
        assert fit([WeightObservation(DAY0, 80.0)], "7d") is None

    def test_single_usable_observation_returns_none(self) -> None:
        """Unusable points do not count toward the minimum."""
        obs = daily_series(DAY0, [80.0, float("nan")])

        assert fit(obs, "7d") is None

    def test_out_of_range_points_ignored(self) -> None:
        """Only observations inside the window are fitted."""
        old = daily_series(DAY0, [100.0, 100.0])
        recent = daily_series(DAY0 + timedelta(days=30), [80.0, 80.0, 80.0])

        trend = fit(old + recent, "7d")

        assert trend is not None
        assert trend.point_count == 3
        assert trend.weekly_change_kg == pytest.approx(0.0)

    def test_fit_series_requires_two_points(self) -> None:
        """fit_series mirrors the two-point minimum."""
        assert fit_series([WeightObservation(DAY0, 80.0)]) is None

    def test_to_dict_rounds(self) -> None:
        """Serialized trend carries dates and rounded values."""
        obs = daily_series(DAY0, [80.0 - 0.1 * i for i in range(7)])

        data = fit(obs, "7d").to_dict()  # type: ignore[union-attr]

        assert data["weekly_change_kg"] == pytest.approx(-0.7)
        assert data["start_date"] == DAY0.isoformat()
        assert data["point_count"] == 7
