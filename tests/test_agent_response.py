"""Tests for the JSON response envelope."""

from __future__ import annotations

import json

from dualtrack.agent.response import create_response, error_response, from_error
from dualtrack.errors import InsufficientDataError, VersionConflictError


class TestAgentResponse:
    """Tests for building and serializing responses."""

    def test_success_envelope(self) -> None:
        response = create_response("weight add", data={"weight_kg": 80.0}, human_summary="ok")

        data = json.loads(response.to_json())

        assert data["success"] is True
        assert data["command"] == "weight add"
        assert data["data"] == {"weight_kg": 80.0}
        assert data["errors"] == []
        assert data["error_code"] is None
        assert "timestamp" in data

    def test_error_envelope(self) -> None:
        response = error_response("plan show", "boom")

        assert response.success is False
        assert response.errors == ["boom"]
        assert response.human_summary == "Error: boom"

    def test_from_error_carries_code(self) -> None:
        """Typed errors keep their code and get a next step."""
        response = from_error("plan recalibrate", VersionConflictError("stale"))

        assert response.error_code == "version_conflict"
        assert response.errors == ["stale"]
        assert response.suggestions

    def test_from_error_default_message(self) -> None:
        response = from_error("plan analyze", InsufficientDataError())

        assert response.errors == ["insufficient_data"]
