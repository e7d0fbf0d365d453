"""Typed error conditions raised by the analysis engine and its callers.

Every error carries an :class:`ErrorCode` and an HTTP-equivalent status so
callers can map failures to a response or UI state without matching on
message strings.
"""

from __future__ import annotations

from enum import Enum


class ErrorCode(str, Enum):
    """Enumerable error codes surfaced to callers."""

    INVALID_RANGE = "invalid_range"
    VALIDATION_ERROR = "validation_error"
    INSUFFICIENT_DATA = "insufficient_data"
    PLAN_NOT_STARTED = "plan_not_started"
    PLAN_ENDED = "plan_ended"
    NOT_FOUND = "not_found"
    VERSION_CONFLICT = "version_conflict"
    INVALID_TRANSITION = "invalid_transition"


class AnalysisError(Exception):
    """Base class for all engine errors."""

    code: ErrorCode = ErrorCode.VALIDATION_ERROR
    http_status: int = 400

    def __init__(self, message: str = ""):
        super().__init__(message or self.code.value)
        self.message = message or self.code.value

    def to_dict(self) -> dict:
        """Return a serializable error payload."""
        return {"code": self.code.value, "message": self.message}


class ValidationError(AnalysisError, ValueError):
    """Bad input rejected before any computation."""

    code = ErrorCode.VALIDATION_ERROR
    http_status = 400


class InvalidRangeError(ValidationError):
    """Trend range outside the supported set."""

    code = ErrorCode.INVALID_RANGE
    http_status = 400


class InsufficientDataError(AnalysisError):
    """Not enough usable weight observations to analyze a plan."""

    code = ErrorCode.INSUFFICIENT_DATA
    http_status = 422


class PlanNotStartedError(AnalysisError):
    """The analysis date falls before the plan start date."""

    code = ErrorCode.PLAN_NOT_STARTED
    http_status = 409


class PlanEndedError(AnalysisError):
    """The analysis date falls after the plan's final week."""

    code = ErrorCode.PLAN_ENDED
    http_status = 409


class PlanNotFoundError(AnalysisError):
    """The referenced plan does not exist."""

    code = ErrorCode.NOT_FOUND
    http_status = 404


class VersionConflictError(AnalysisError):
    """A plan was modified concurrently; the caller's version is stale."""

    code = ErrorCode.VERSION_CONFLICT
    http_status = 409


class InvalidTransitionError(AnalysisError):
    """A lifecycle transition not permitted from the plan's current status."""

    code = ErrorCode.INVALID_TRANSITION
    http_status = 409
