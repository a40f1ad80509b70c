"""Tests for module-level shortcuts, global setup and the pytest fixtures."""

from __future__ import annotations

from collections.abc import Callable, Iterator
from typing import Any

import httpx
import pytest

import httpspec
from httpspec import Spec
from httpspec.core.failure import RecordingReporter
from httpspec.errors import ExpectationError

from conftest import API, mock_http


@pytest.fixture(autouse=True)
def reset_global_setup() -> Iterator[None]:
    yield
    httpspec.global_setup({}, replace=True)


class TestGlobalSetup:
    def test_create_applies_global_defaults(self) -> None:
        httpspec.global_setup({"request": {"timeout": 25}})
        assert httpspec.create().timeout() == 25

    def test_global_setup_merges(self) -> None:
        httpspec.global_setup({"request": {"headers": {"X-A": "1"}}})
        httpspec.global_setup({"request": {"headers": {"X-B": "2"}}})
        assert httpspec.global_defaults() == {"request": {"headers": {"X-A": "1", "X-B": "2"}}}

    def test_global_setup_replace(self) -> None:
        httpspec.global_setup({"request": {"headers": {"X-A": "1"}}})
        httpspec.global_setup({"request": {"timeout": 7}}, replace=True)
        assert httpspec.global_defaults() == {"request": {"timeout": 7}}

    def test_existing_spec_unaffected_by_later_global_edits(self) -> None:
        httpspec.global_setup({"request": {"timeout": 25}})
        spec = httpspec.create()
        httpspec.global_setup({"request": {"timeout": 99}})
        assert spec.timeout() == 25

    def test_global_defaults_returns_copy(self) -> None:
        httpspec.global_setup({"request": {"timeout": 25}})
        httpspec.global_defaults()["request"]["timeout"] = 1
        assert httpspec.create().timeout() == 25

    def test_create_passes_kwargs(self) -> None:
        reporter = RecordingReporter()
        spec = httpspec.create(reporter=reporter)
        assert isinstance(spec, Spec)


class TestShortcuts:
    @pytest.mark.asyncio
    async def test_from_json(self) -> None:
        assert await httpspec.from_json({"a": 1}) == {"a": 1}

    @pytest.mark.asyncio
    async def test_verbs(self) -> None:
        methods: list[str] = []

        def handler(request: httpx.Request) -> httpx.Response:
            methods.append(request.method)
            return httpx.Response(204)

        client = mock_http(handler)
        await httpspec.fetch(f"{API}/a", http_client=client)
        await httpspec.get(f"{API}/a", http_client=client)
        await httpspec.post(f"{API}/a", {"x": 1}, http_client=client)
        await httpspec.put(f"{API}/a", {"x": 1}, http_client=client)
        await httpspec.patch(f"{API}/a", {"x": 1}, http_client=client)
        await httpspec.delete(f"{API}/a", http_client=client)
        assert methods == ["GET", "GET", "POST", "PUT", "PATCH", "DELETE"]

    @pytest.mark.asyncio
    async def test_global_headers_sent(self) -> None:
        seen: list[httpx.Request] = []

        def handler(request: httpx.Request) -> httpx.Response:
            seen.append(request)
            return httpx.Response(200, json={})

        httpspec.global_setup({"request": {"headers": {"Authorization": "Bearer t"}}})
        await httpspec.get(f"{API}/me", http_client=mock_http(handler))
        assert seen[0].headers["authorization"] == "Bearer t"

    @pytest.mark.asyncio
    async def test_module_level_handler_registration(self) -> None:
        def even_id(response: Any) -> None:
            if response.body["id"] % 2:
                raise ExpectationError("odd id")

        httpspec.add_expect_handler("even_id", even_id)
        try:
            reporter = RecordingReporter()
            await httpspec.from_json({"id": 3}, reporter=reporter).expect("even_id")
            assert len(reporter.errors) == 1
        finally:
            httpspec.remove_expect_handler("even_id")
        assert "even_id" not in httpspec.default_registry


class TestFixtures:
    @pytest.mark.asyncio
    async def test_make_spec_binds_reporter(
        self, make_spec: Callable[..., Spec], spec_reporter: RecordingReporter
    ) -> None:
        await make_spec().from_json({}).expect("status", 500)
        assert len(spec_reporter.errors) == 1
        # Recorded failures would fail this test at teardown
        spec_reporter.clear()

    @pytest.mark.asyncio
    async def test_make_spec_applies_global_setup(self, make_spec: Callable[..., Spec]) -> None:
        httpspec.global_setup({"request": {"timeout": 33}})
        assert make_spec().timeout() == 33

    @pytest.mark.asyncio
    async def test_make_spec_passing_run(self, make_spec: Callable[..., Spec], mock_user: dict[str, Any]) -> None:
        client = mock_http(lambda request: httpx.Response(200, json=mock_user))
        await make_spec(http_client=client).get(f"{API}/users/42").expect("json", {"id": 42})
