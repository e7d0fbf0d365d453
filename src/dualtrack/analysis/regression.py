"""Linear weight trend over a trailing window of observations.

The trend is an ordinary least-squares fit of weight against elapsed days
since the first observation in the window:

    W(d) = intercept + slope × d

The daily slope is reported as a weekly rate (slope × 7), and the start and
end weights are read off the fitted line rather than taken from the raw
first and last samples, so a single noisy weigh-in at either end does not
distort the summary.

Fit quality is the coefficient of determination:

    r² = 1 - SS_residual / SS_total

clamped to [0, 1]. A window where every weight is identical has no variance
to explain; it is reported as a perfect flat fit (r² = 1.0).
"""

from __future__ import annotations

from datetime import date, timedelta
from typing import Optional, Union

import numpy as np
from scipy import stats

from dualtrack.analysis.models import DEFAULT_TREND_RANGE, TrendRange, TrendSummary
from dualtrack.errors import InvalidRangeError
from dualtrack.tracking.models import WeightObservation, normalize_observations

# Fewer points than this cannot support a trend line
MIN_TREND_POINTS = 2


def parse_range(value: Union[str, TrendRange, None]) -> TrendRange:
    """
    Resolve a range argument to a TrendRange.

    Args:
        value: "7d", "30d", "90d", "all", a TrendRange, or None for the default

    Returns:
        The matching TrendRange (7d when value is None)

    Raises:
        InvalidRangeError: for any other value
    """
    if value is None:
        return DEFAULT_TREND_RANGE
    if isinstance(value, TrendRange):
        return value
    try:
        return TrendRange(str(value).strip().lower())
    except ValueError:
        valid = ", ".join(r.value for r in TrendRange)
        raise InvalidRangeError(f"range must be one of {valid}, got '{value}'") from None


def select_range(
    observations: list[WeightObservation],
    range_filter: Union[str, TrendRange, None] = None,
    as_of: Optional[date] = None,
) -> list[WeightObservation]:
    """
    Normalize observations and keep those inside the trailing window.

    The window for an N-day range is [as_of - (N - 1), as_of], so "7d"
    covers seven calendar days including as_of.

    Args:
        observations: Raw observations (any order, duplicates allowed)
        range_filter: Range value, see parse_range
        as_of: Window end date. Defaults to the latest observation date.

    Returns:
        In-range observations in ascending date order
    """
    window = parse_range(range_filter)
    return select_days(observations, window.days, as_of)


def select_days(
    observations: list[WeightObservation],
    days: Optional[int],
    as_of: Optional[date] = None,
) -> list[WeightObservation]:
    """
    Normalize observations and keep the trailing ``days`` calendar days.

    Args:
        observations: Raw observations (any order, duplicates allowed)
        days: Window length, or None for everything up to as_of
        as_of: Window end date. Defaults to the latest observation date.

    Returns:
        In-window observations in ascending date order
    """
    series = normalize_observations(observations)
    if not series:
        return []

    end = as_of or series[-1].date
    if days is None:
        return [obs for obs in series if obs.date <= end]

    start = end - timedelta(days=days - 1)
    return [obs for obs in series if start <= obs.date <= end]


def fit_series(series: list[WeightObservation]) -> Optional[TrendSummary]:
    """
    Fit a linear trend to an already normalized, ascending series.

    Args:
        series: Observations with unique dates in ascending order

    Returns:
        TrendSummary, or None when there are fewer than two observations
    """
    if len(series) < MIN_TREND_POINTS:
        return None

    first_date = series[0].date
    x = np.array([(obs.date - first_date).days for obs in series], dtype=float)
    y = np.array([obs.weight_kg for obs in series], dtype=float)

    result = stats.linregress(x, y)
    slope = float(result.slope)
    intercept = float(result.intercept)

    fitted = intercept + slope * x
    ss_res = float(np.sum((y - fitted) ** 2))
    ss_tot = float(np.sum((y - y.mean()) ** 2))

    if ss_tot == 0.0:
        # Flat series: zero slope explains everything
        r_squared = 1.0
    else:
        r_squared = float(np.clip(1.0 - ss_res / ss_tot, 0.0, 1.0))

    return TrendSummary(
        weekly_change_kg=slope * 7,
        r_squared=r_squared,
        start_weight_kg=intercept,
        end_weight_kg=intercept + slope * x[-1],
        start_date=first_date,
        end_date=series[-1].date,
        point_count=len(series),
    )


def fit(
    observations: list[WeightObservation],
    range_filter: Union[str, TrendRange, None] = None,
    as_of: Optional[date] = None,
) -> Optional[TrendSummary]:
    """
    Fit the weight trend over a trailing range of observations.

    Args:
        observations: Raw observations (any order, duplicates allowed)
        range_filter: "7d" (default), "30d", "90d" or "all"
        as_of: Window end date. Defaults to the latest observation date.

    Returns:
        TrendSummary, or None when fewer than two usable observations fall
        inside the range

    Raises:
        InvalidRangeError: if range_filter is not a supported range

    Example:
        >>> obs = [WeightObservation(date(2025, 1, d), w)
        ...        for d, w in [(1, 82.0), (4, 81.7), (7, 81.4)]]
        >>> round(fit(obs).weekly_change_kg, 2)
        -0.7
    """
    return fit_series(select_range(observations, range_filter, as_of))
