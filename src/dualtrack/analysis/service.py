"""Caller-facing operations: weight trend, plan analysis, recalibration.

These functions fetch a fresh snapshot of inputs from the store and hand it
to the pure engine functions. They are the only place that reads settings;
the engine receives every parameter explicitly.
"""

from __future__ import annotations

import logging
import sqlite3
import threading
from dataclasses import dataclass, field
from datetime import date, timedelta
from typing import Any, Callable, Optional, TypeVar, Union

from dualtrack.analysis.dual_track import analyze
from dualtrack.analysis.health import classify, needs_options
from dualtrack.analysis.models import (
    DualTrackAnalysis,
    HealthStatus,
    RecalibrationOption,
    RecalibrationType,
    TrendRange,
    TrendSummary,
)
from dualtrack.analysis.recalibration import apply_recalibration, generate_options
from dualtrack.analysis.regression import fit_series, parse_range, select_days
from dualtrack.config.settings import AnalysisConfig
from dualtrack.errors import (
    InsufficientDataError,
    InvalidTransitionError,
    PlanNotStartedError,
    ValidationError,
    VersionConflictError,
)
from dualtrack.tracking.models import (
    Plan,
    WeightObservation,
    normalize_observations,
    validate_new_plan,
)
from dualtrack.tracking.queries import PlanQueries, WeightQueries

logger = logging.getLogger(__name__)

T = TypeVar("T")

# action -> (allowed source statuses, target status)
PLAN_TRANSITIONS: dict[str, tuple[tuple[str, ...], str]] = {
    "activate": (("draft",), "active"),
    "pause": (("active",), "paused"),
    "resume": (("paused",), "active"),
    "complete": (("active", "paused"), "completed"),
    "abandon": (("draft", "active", "paused"), "abandoned"),
}


@dataclass
class WeightTrendResult:
    """Observations in the requested range and their trend."""

    range: TrendRange
    points: list[WeightObservation]
    trend: Optional[TrendSummary]

    def to_dict(self) -> dict[str, Any]:
        return {
            "range": self.range.value,
            "points": [
                {"date": p.date.isoformat(), "weight_kg": p.weight_kg} for p in self.points
            ],
            "trend": self.trend.to_dict() if self.trend else None,
        }


@dataclass
class PlanAnalysisResult:
    """Analysis, health status and (when needed) options for one plan."""

    plan: Plan
    as_of: date
    analysis: DualTrackAnalysis
    status: HealthStatus
    trend: Optional[TrendSummary] = None
    options: list[RecalibrationOption] = field(default_factory=list)

    def to_dict(self) -> dict[str, Any]:
        return {
            "plan_id": self.plan.plan_id,
            "plan_version": self.plan.version,
            "as_of": self.as_of.isoformat(),
            "status": self.status.value,
            "analysis": self.analysis.to_dict(),
            "trend": self.trend.to_dict() if self.trend else None,
            "options": [o.to_dict() for o in self.options],
        }


class RequestGeneration:
    """
    Last-request-wins gate for fetches that may overlap.

    Each call to begin() supersedes every earlier token. A result produced
    under a superseded token is discarded rather than allowed to overwrite
    a fresher one.

    Example:
        >>> gate = RequestGeneration()
        >>> old = gate.begin()
        >>> new = gate.begin()
        >>> gate.is_current(old), gate.is_current(new)
        (False, True)
    """

    def __init__(self) -> None:
        self._lock = threading.Lock()
        self._generation = 0

    def begin(self) -> int:
        """Start a new request and return its token."""
        with self._lock:
            self._generation += 1
            return self._generation

    def is_current(self, token: int) -> bool:
        with self._lock:
            return token == self._generation

    def run(self, fetch: Callable[[], T]) -> Optional[T]:
        """
        Run a fetch under a fresh token.

        Returns:
            The fetch result, or None if a newer request started meanwhile
        """
        token = self.begin()
        result = fetch()
        if not self.is_current(token):
            logger.debug("Discarding superseded request %d", token)
            return None
        return result


def rolling_average_weight(
    observations: list[WeightObservation],
    as_of: date,
    days: int = 7,
) -> Optional[float]:
    """
    Mean weight over the trailing ``days`` calendar days ending as_of.

    Returns:
        Average weight in kg, or None without usable observations
    """
    window = select_days(observations, days, as_of)
    if not window:
        return None
    return sum(obs.weight_kg for obs in window) / len(window)


def get_weight_trend(
    conn: sqlite3.Connection,
    range_value: Union[str, TrendRange, None] = None,
    as_of: Optional[date] = None,
) -> WeightTrendResult:
    """
    Observations and trend over a trailing range.

    Args:
        conn: Database connection
        range_value: "7d" (default), "30d", "90d" or "all"
        as_of: Window end date (default: today)

    Returns:
        WeightTrendResult; points is empty and trend None when nothing is
        logged in range

    Raises:
        InvalidRangeError: for an unsupported range
    """
    window = parse_range(range_value)
    as_of = as_of or date.today()

    observations = WeightQueries.get_observations(conn, end_date=as_of)
    points = select_days(observations, window.days, as_of)
    return WeightTrendResult(range=window, points=points, trend=fit_series(points))


def _load_plan(conn: sqlite3.Connection, plan_id: Optional[int]) -> Plan:
    if plan_id is None:
        return PlanQueries.get_active_plan(conn)
    return PlanQueries.get_plan(conn, plan_id)


def analyze_plan(
    plan: Plan,
    observations: list[WeightObservation],
    as_of: date,
    config: Optional[AnalysisConfig] = None,
) -> PlanAnalysisResult:
    """
    Run the full engine pipeline on an in-memory snapshot.

    trend -> dual-track analysis -> health status -> options (if needed)

    Raises:
        PlanNotStartedError: before the plan's start date, or for a draft
        PlanEndedError: after the plan's final week
        InsufficientDataError: no usable weight in the rolling window
    """
    config = config or AnalysisConfig()
    plan = plan.at(as_of)

    if plan.status == "draft":
        raise PlanNotStartedError("Plan is still a draft")
    if plan.current_week < 0:
        raise PlanNotStartedError(f"Plan starts on {plan.start_date.isoformat()}")

    series = [obs for obs in normalize_observations(observations) if obs.date <= as_of]
    actual = rolling_average_weight(series, as_of, config.actual_weight_days)
    if actual is None:
        raise InsufficientDataError(
            f"No weight logged in the {config.actual_weight_days} days "
            f"up to {as_of.isoformat()}"
        )

    trend = fit_series(select_days(series, config.trend_days, as_of))
    analysis = analyze(plan, actual, trend, noise_floor=config.noise_floor_kg_per_week)
    status = classify(analysis)
    options = generate_options(plan, analysis) if needs_options(analysis, status) else []

    logger.debug(
        "Plan %s as of %s: %s, %d option(s)",
        plan.plan_id,
        as_of.isoformat(),
        status.value,
        len(options),
    )
    return PlanAnalysisResult(
        plan=plan,
        as_of=as_of,
        analysis=analysis,
        status=status,
        trend=trend,
        options=options,
    )


def get_plan_analysis(
    conn: sqlite3.Connection,
    plan_id: Optional[int] = None,
    as_of: Optional[date] = None,
    config: Optional[AnalysisConfig] = None,
) -> PlanAnalysisResult:
    """
    Analyze a stored plan against logged weights.

    Args:
        conn: Database connection
        plan_id: Plan to analyze, or None for the active plan
        as_of: Analysis date (default: today)
        config: Analysis parameters (default: AnalysisConfig())

    Raises:
        PlanNotFoundError: if the plan (or an active plan) does not exist
        PlanNotStartedError, PlanEndedError, InsufficientDataError:
            see analyze_plan
    """
    config = config or AnalysisConfig()
    as_of = as_of or date.today()
    plan = _load_plan(conn, plan_id)

    lookback = max(config.trend_days, config.actual_weight_days)
    observations = WeightQueries.get_observations(
        conn,
        start_date=as_of - timedelta(days=lookback - 1),
        end_date=as_of,
    )
    return analyze_plan(plan, observations, as_of, config)


def apply_plan_recalibration(
    conn: sqlite3.Connection,
    plan_id: Optional[int],
    option_type: Union[str, RecalibrationType],
    expected_version: int,
    as_of: Optional[date] = None,
    config: Optional[AnalysisConfig] = None,
) -> Plan:
    """
    Apply a recalibration option to a stored plan.

    The analysis is recomputed from fresh data so the applied parameters
    match the options the caller would see now. The write is guarded by
    expected_version: a duplicate or stale submission raises
    VersionConflictError instead of applying twice.

    Returns:
        The stored plan after the update (keep_current returns it unchanged)
    """
    as_of = as_of or date.today()
    result = get_plan_analysis(conn, plan_id, as_of, config)
    plan = result.plan

    if plan.version != expected_version:
        raise VersionConflictError(
            f"Plan {plan.plan_id} is at version {plan.version}, not {expected_version}"
        )

    updated = apply_recalibration(plan, option_type, result.analysis, as_of)
    if RecalibrationType(option_type) == RecalibrationType.KEEP_CURRENT:
        return plan

    # Plan update and history row commit or roll back together
    with conn:
        stored = PlanQueries.update_plan(conn, updated, expected_version)
        PlanQueries.record_recalibration(
            conn, plan, RecalibrationType(option_type).value, as_of
        )
    return stored.at(as_of)


def create_plan(
    conn: sqlite3.Connection,
    start_date: date,
    duration_weeks: int,
    start_weight_kg: float,
    goal_weight_kg: float,
    tolerance_percent: Optional[float] = None,
    name: Optional[str] = None,
    status: str = "active",
    config: Optional[AnalysisConfig] = None,
) -> Plan:
    """
    Validate and store a new plan.

    Raises:
        ValidationError: for out-of-range parameters or an unsafe pace
        InvalidTransitionError: if an active plan already exists
    """
    config = config or AnalysisConfig()
    if status not in ("draft", "active"):
        raise ValidationError(f"New plans start as draft or active, not '{status}'")

    plan = Plan(
        plan_id=None,
        name=name,
        start_date=start_date,
        duration_weeks=duration_weeks,
        start_weight_kg=start_weight_kg,
        goal_weight_kg=goal_weight_kg,
        status=status,
        tolerance_percent=(
            config.tolerance_percent if tolerance_percent is None else tolerance_percent
        ),
    )
    validate_new_plan(plan)

    if status == "active" and PlanQueries.list_plans(conn, status="active"):
        raise InvalidTransitionError("An active plan already exists")

    stored = PlanQueries.create_plan(conn, plan)
    logger.info("Created plan %s (%s)", stored.plan_id, stored.status)
    return stored


def transition_plan(
    conn: sqlite3.Connection,
    plan_id: int,
    action: str,
    expected_version: Optional[int] = None,
) -> Plan:
    """
    Move a plan through its lifecycle.

    Args:
        conn: Database connection
        plan_id: Plan to change
        action: activate, pause, resume, complete or abandon
        expected_version: Version the caller last saw. Defaults to the
                          version read here, which still guards against a
                          concurrent writer between read and write.

    Raises:
        ValidationError: for an unknown action
        InvalidTransitionError: if the action is not allowed from the
            plan's status, or would create a second active plan
        VersionConflictError: if the plan changed since expected_version
    """
    if action not in PLAN_TRANSITIONS:
        valid = ", ".join(PLAN_TRANSITIONS)
        raise ValidationError(f"action must be one of {valid}, got '{action}'")

    plan = PlanQueries.get_plan(conn, plan_id)
    sources, target = PLAN_TRANSITIONS[action]
    if plan.status not in sources:
        raise InvalidTransitionError(f"Cannot {action} a {plan.status} plan")

    if target == "active":
        others = [p for p in PlanQueries.list_plans(conn, status="active") if p.plan_id != plan_id]
        if others:
            raise InvalidTransitionError(
                f"Plan {others[0].plan_id} is already active"
            )

    version = plan.version if expected_version is None else expected_version
    plan.status = target
    with conn:
        stored = PlanQueries.update_plan(conn, plan, version)
    logger.info("Plan %s: %s -> %s", plan_id, action, target)
    return stored
