"""Plan health classification from a dual-track analysis.

A stateless decision table, recomputed from each analysis:

1. Trend diverging from the goal       -> critical_deviation
2. No landing point (too little data)  -> on_track
3. |landing point - goal| < 1.0 kg     -> on_track
   1.0 kg to 3.0 kg inclusive          -> at_risk
   > 3.0 kg                            -> off_track

The kg thresholds are fixed and independent of the tolerance percentage
used for recalibration_needed: that flag looks at today's reading, these
look at where the trend will land.
"""

from __future__ import annotations

from dualtrack.analysis.models import DualTrackAnalysis, HealthStatus

ON_TRACK_MAX_ERROR_KG = 1.0
AT_RISK_MAX_ERROR_KG = 3.0


def classify(analysis: DualTrackAnalysis) -> HealthStatus:
    """Map an analysis to one of the four health states."""
    if analysis.trend_diverging:
        return HealthStatus.CRITICAL_DEVIATION

    if analysis.landing_point is None:
        return HealthStatus.ON_TRACK

    projected_error = abs(analysis.landing_point.variance_from_goal_kg)
    if projected_error < ON_TRACK_MAX_ERROR_KG:
        return HealthStatus.ON_TRACK
    if projected_error <= AT_RISK_MAX_ERROR_KG:
        return HealthStatus.AT_RISK
    return HealthStatus.OFF_TRACK


def needs_options(analysis: DualTrackAnalysis, status: HealthStatus) -> bool:
    """True when recalibration options should be offered."""
    return analysis.recalibration_needed or status != HealthStatus.ON_TRACK
