"""Plan analysis and recalibration engine.

Pure functions over explicit inputs, leaves first:

- regression: least-squares weight trend over a trailing range
- projection: planned weight at any week of a plan
- dual_track: variance, landing point and divergence flag
- health: four-state plan health classification
- recalibration: ranked corrective options and applying one to a plan

The service module wires these to the SQLite store for callers.
"""

from __future__ import annotations

from dualtrack.analysis.dual_track import analyze, is_trend_diverging
from dualtrack.analysis.health import classify
from dualtrack.analysis.models import (
    AnalysisCondition,
    DualTrackAnalysis,
    Feasibility,
    HealthStatus,
    LandingPoint,
    ProjectionPoint,
    RecalibrationOption,
    RecalibrationType,
    TrendRange,
    TrendSummary,
)
from dualtrack.analysis.projection import projected_weight, weekly_target_trajectory
from dualtrack.analysis.recalibration import apply_recalibration, generate_options
from dualtrack.analysis.regression import fit, parse_range

__all__ = [
    "AnalysisCondition",
    "DualTrackAnalysis",
    "Feasibility",
    "HealthStatus",
    "LandingPoint",
    "ProjectionPoint",
    "RecalibrationOption",
    "RecalibrationType",
    "TrendRange",
    "TrendSummary",
    "analyze",
    "apply_recalibration",
    "classify",
    "fit",
    "generate_options",
    "is_trend_diverging",
    "parse_range",
    "projected_weight",
    "weekly_target_trajectory",
]
