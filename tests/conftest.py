"""Shared fixtures for httpspec tests."""

from __future__ import annotations

from collections.abc import Callable
from typing import Any

import httpx
import pytest

from httpspec.core.failure import RecordingReporter
from httpspec.testing import make_spec, spec_reporter  # noqa: F401

API = "https://api.test"

MOCK_USER: dict[str, Any] = {
    "id": 42,
    "name": "Ada Lovelace",
    "email": "ada@example.com",
    "active": True,
    "roles": ["admin", "author"],
    "posts": [
        {"id": 1, "title": "Notes on the Analytical Engine", "tags": ["math"]},
        {"id": 2, "title": "Sketch of the Engine", "tags": ["math", "history"]},
    ],
}


def mock_http(handler: Callable[[httpx.Request], Any]) -> httpx.AsyncClient:
    """AsyncClient whose requests are answered by ``handler``."""
    return httpx.AsyncClient(transport=httpx.MockTransport(handler))


@pytest.fixture
def reporter() -> RecordingReporter:
    return RecordingReporter()


@pytest.fixture
def mock_user() -> dict[str, Any]:
    return MOCK_USER


@pytest.fixture
def user_client(mock_user: dict[str, Any]) -> httpx.AsyncClient:
    """Answers every request with the mock user as JSON."""
    return mock_http(lambda request: httpx.Response(200, json=mock_user))
