"""
Unit tests for support resources and safety responses.
"""
from __future__ import annotations

from safety_automation.detection.resources import (
    generate_crisis_response, generate_grief_response, get_crisis_resources, get_grief_resources,
)


class TestCrisisResources:
    """Tests for crisis resources."""

    def test_resources_have_fields(self) -> None:
        """Test each resource carries name, contact and description."""
        resources = get_crisis_resources()
        assert resources
        assert all(r.name and r.contact and r.description for r in resources)

    def test_includes_988(self) -> None:
        """Test the suicide and crisis lifeline is listed."""
        assert any(r.contact == "988" for r in get_crisis_resources())

    def test_response_content(self) -> None:
        """Test the crisis response points to safety, professionals and 911."""
        response = generate_crisis_response()
        assert "safety" in response
        assert "professional" in response
        assert "911" in response
        for resource in get_crisis_resources():
            assert resource.name in response
            assert resource.contact in response


class TestGriefResources:
    """Tests for grief resources."""

    def test_resources_have_fields(self) -> None:
        """Test each resource carries name, contact and description."""
        resources = get_grief_resources()
        assert resources
        assert all(r.name and r.contact and r.description for r in resources)

    def test_response_content(self) -> None:
        """Test the grief response acknowledges loss and cites scripture."""
        response = generate_grief_response()
        assert "loss" in response
        assert "grief" in response
        assert "Psalm 34:18" in response
        for resource in get_grief_resources():
            assert resource.name in response

    def test_returns_copies(self) -> None:
        """Test callers cannot mutate the shared resource list."""
        resources = get_grief_resources()
        resources.clear()
        assert get_grief_resources()
