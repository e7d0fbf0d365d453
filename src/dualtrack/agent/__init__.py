"""Structured JSON output for agents and scripts."""

from __future__ import annotations

from dualtrack.agent.response import (
    AgentResponse,
    create_response,
    error_response,
    from_error,
)

__all__ = ["AgentResponse", "create_response", "error_response", "from_error"]
