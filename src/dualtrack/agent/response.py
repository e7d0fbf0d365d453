"""Response envelope for machine-readable command output."""

from __future__ import annotations

import json
from dataclasses import dataclass, field
from datetime import datetime
from typing import Any, Optional

from dualtrack.errors import AnalysisError, ErrorCode

# Next steps offered alongside each error code
_ERROR_SUGGESTIONS: dict[ErrorCode, list[str]] = {
    ErrorCode.INVALID_RANGE: ["Use one of: 7d, 30d, 90d, all"],
    ErrorCode.INSUFFICIENT_DATA: ["Log a weight first: dualtrack weight add <kg>"],
    ErrorCode.PLAN_NOT_STARTED: ["Analyze on or after the plan start date"],
    ErrorCode.PLAN_ENDED: ["Complete the plan: dualtrack plan complete <id>"],
    ErrorCode.NOT_FOUND: ["List plans: dualtrack plan list"],
    ErrorCode.VERSION_CONFLICT: ["Reload the plan and retry with its current version"],
}


@dataclass
class AgentResponse:
    """Standardized response envelope for all CLI commands.

    Every --json command prints exactly one of these, so a caller can
    branch on ``success`` and ``error_code`` without parsing text.
    """

    success: bool
    command: str
    data: dict[str, Any] = field(default_factory=dict)
    errors: list[str] = field(default_factory=list)
    warnings: list[str] = field(default_factory=list)
    suggestions: list[str] = field(default_factory=list)
    human_summary: str = ""
    error_code: Optional[str] = None
    schema_version: str = "1.0"

    def to_dict(self) -> dict[str, Any]:
        return {
            "success": self.success,
            "command": self.command,
            "data": self.data,
            "errors": self.errors,
            "error_code": self.error_code,
            "warnings": self.warnings,
            "suggestions": self.suggestions,
            "human_summary": self.human_summary,
            "timestamp": datetime.now().isoformat(),
            "schema_version": self.schema_version,
        }

    def to_json(self, indent: int = 2) -> str:
        return json.dumps(self.to_dict(), indent=indent)


def create_response(
    command: str,
    success: bool = True,
    data: Optional[dict[str, Any]] = None,
    warnings: Optional[list[str]] = None,
    suggestions: Optional[list[str]] = None,
    human_summary: str = "",
) -> AgentResponse:
    """Create a successful (by default) AgentResponse.

    Args:
        command: The command that was executed, e.g. "plan analyze"
        success: Whether the command succeeded
        data: Command-specific result data
        warnings: Non-fatal warning messages
        suggestions: Actionable suggestions for next steps
        human_summary: One-line description for humans

    Returns:
        AgentResponse instance
    """
    return AgentResponse(
        success=success,
        command=command,
        data=data or {},
        warnings=warnings or [],
        suggestions=suggestions or [],
        human_summary=human_summary,
    )


def error_response(
    command: str,
    error: str,
    suggestions: Optional[list[str]] = None,
    error_code: Optional[str] = None,
) -> AgentResponse:
    """Create an error response with success=False."""
    return AgentResponse(
        success=False,
        command=command,
        errors=[error],
        suggestions=suggestions or [],
        human_summary=f"Error: {error}",
        error_code=error_code,
    )


def from_error(command: str, exc: AnalysisError) -> AgentResponse:
    """Wrap a typed engine error, carrying its code and a suggested next step."""
    return error_response(
        command,
        exc.message,
        suggestions=_ERROR_SUGGESTIONS.get(exc.code),
        error_code=exc.code.value,
    )
