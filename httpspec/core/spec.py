"""Fluent HTTP contract spec and its execution engine.

A spec is built per test:

    await (
        Spec(reporter=reporter)
        .get("https://api.example.com/users/1")
        .expect("status", 200)
        .expect("json_types", {"id": int, "name": str})
        .then(lambda body: body["id"])
    )

The first acquisition call (``fetch()``, a verb shorthand or ``from_json()``)
creates the root task on the running event loop. Expectations are queued and
run inside the root task right after the body is decoded. Every ``then()``
step becomes its own task that waits for the previous step, so the chain runs
strictly in registration order. A step that returns an awaitable (a
coroutine, a future or another ``Spec``) is awaited once before the chain
advances. All failures go through the spec's ``FailureChannel``.
"""

from __future__ import annotations

import asyncio
import copy
import inspect
import json
from collections.abc import Awaitable, Callable, Generator, Mapping
from typing import Any

import httpx
import structlog

from httpspec.config import Config
from httpspec.core.failure import FailureChannel
from httpspec.core.response import (
    JSON_CONTENT_TYPE,
    ResponseSnapshot,
    build_request,
    decode_body,
    json_response,
)
from httpspec.errors import ExpectationError, SpecAlreadyStartedError, SpecNotStartedError
from httpspec.expects.registry import ExpectHandler, ExpectHandlerRegistry, default_registry
from httpspec.utils.merge import deep_merge

log = structlog.get_logger()

Continuation = Callable[[Any], Any]


class Spec:
    """One test's request, expectations and continuation chain."""

    def __init__(
        self,
        *,
        http_client: httpx.AsyncClient | None = None,
        registry: ExpectHandlerRegistry | None = None,
        reporter: object | None = None,
        config: Config | None = None,
    ) -> None:
        self._config = config or Config()
        self._client = http_client
        self._owns_client = http_client is None
        self._registry = registry if registry is not None else default_registry
        self._fail = FailureChannel(reporter)

        self._task: asyncio.Task[Any] | None = None
        self._tail: asyncio.Task[Any] | None = None
        self._done_fn: Callable[[], Any] | None = None
        self._done_task: asyncio.Task[None] | None = None

        self._request: httpx.Request | None = None
        self._response: ResponseSnapshot | None = None
        self._expects: list[Callable[[ResponseSnapshot], None]] = []
        self._expects_ran = False

        self._timeout = self._config.request_timeout_ms
        self._setup_defaults: dict[str, Any] = {}

    @property
    def request(self) -> httpx.Request | None:
        return self._request

    @property
    def response(self) -> ResponseSnapshot | None:
        return self._response

    @property
    def registry(self) -> ExpectHandlerRegistry:
        return self._registry

    # ------------------------------------------------------------------
    # Configuration
    # ------------------------------------------------------------------

    def use(self, fn: Callable[[Spec], Any]) -> Spec:
        """Run ad hoc setup against this spec."""
        fn(self)
        return self

    def setup(self, options: Mapping[str, Any], replace: bool = False) -> Spec:
        """Merge (or replace) the defaults used by later request calls.

        The spec keeps its own deep copy, so editing ``options`` afterwards
        has no effect on it.
        """
        if replace:
            self._setup_defaults = copy.deepcopy(dict(options))
        else:
            self._setup_defaults = deep_merge(self._setup_defaults, options)
        self._timeout = self._default_request().get("timeout") or self._config.request_timeout_ms
        return self

    def timeout(self, value: int | None = None) -> int | Spec:
        """Without an argument return the effective timeout (ms), otherwise set it.

        Raises ValueError for values below 1ms.
        """
        if value is None:
            return self._default_request().get("timeout") or self._timeout
        if value < 1:
            raise ValueError(f"Timeout must be at least 1ms, got {value}")
        self._timeout = value
        return self

    def _default_request(self) -> dict[str, Any]:
        return self._setup_defaults.get("request") or {}

    # ------------------------------------------------------------------
    # Response acquisition
    # ------------------------------------------------------------------

    def from_json(self, value: Any) -> Spec:
        """Use ``value`` as a 200 JSON response without any network I/O."""
        self._ensure_not_started()
        loop = asyncio.get_running_loop()
        response = json_response(value)

        async def acquire() -> httpx.Response:
            return response

        self._task = loop.create_task(self._resolve(acquire))
        return self

    def fetch(self, url: str, params: Mapping[str, Any] | None = None) -> Spec:
        """Issue a request built from setup defaults and ``params``."""
        self._ensure_not_started()
        loop = asyncio.get_running_loop()

        options = deep_merge(self._default_request(), params or {})
        if not options.get("base_url"):
            options["base_url"] = self._config.base_url
        timeout_ms = options.get("timeout") or self.timeout()

        request = build_request(self._client, url, options, timeout_ms)
        if self._client is None:
            # Created only once the request is valid; the root task closes it
            self._client = httpx.AsyncClient()
        self._request = request
        log.debug("spec_request", method=request.method, url=str(request.url), timeout_ms=timeout_ms)

        self._task = loop.create_task(self._resolve(lambda: self._send(request, timeout_ms)))
        return self

    def get(self, url: str, params: Mapping[str, Any] | None = None) -> Spec:
        return self.fetch(url, params)

    def post(self, url: str, params: Mapping[str, Any] | None = None) -> Spec:
        return self._request_with_body("POST", url, params)

    def put(self, url: str, params: Mapping[str, Any] | None = None) -> Spec:
        return self._request_with_body("PUT", url, params)

    def patch(self, url: str, params: Mapping[str, Any] | None = None) -> Spec:
        return self._request_with_body("PATCH", url, params)

    def delete(self, url: str, params: Mapping[str, Any] | None = None) -> Spec:
        options = dict(params or {})
        options["method"] = "DELETE"
        return self.fetch(url, options)

    def _request_with_body(self, method: str, url: str, params: Mapping[str, Any] | None) -> Spec:
        options: dict[str, Any]
        if params and "body" not in params and "headers" not in params:
            # Bare payload shorthand: post(url, {"name": "x"})
            options = {
                "body": json.dumps(dict(params)),
                "headers": {"Content-Type": JSON_CONTENT_TYPE},
            }
        else:
            options = dict(params or {})
            if isinstance(options.get("body"), (Mapping, list)):
                options["body"] = json.dumps(options["body"])
                headers = dict(options.get("headers") or {})
                if not any(k.lower() == "content-type" for k in headers):
                    headers["Content-Type"] = JSON_CONTENT_TYPE
                options["headers"] = headers
        options["method"] = method
        return self.fetch(url, options)

    async def _send(self, request: httpx.Request, timeout_ms: int) -> httpx.Response:
        assert self._client is not None
        try:
            return await asyncio.wait_for(self._client.send(request), timeout=timeout_ms / 1000)
        except asyncio.TimeoutError:
            raise httpx.TimeoutException(
                f"Request to {request.url} timed out after {timeout_ms}ms",
                request=request,
            ) from None

    async def _resolve(self, acquire: Callable[[], Awaitable[httpx.Response]]) -> Any:
        """Root task: acquire, decode, attach the body, run expectations."""
        try:
            raw = await acquire()
            self._response = ResponseSnapshot.from_httpx(raw)
            body = decode_body(raw)
        except Exception as exc:
            return self._fail(exc)
        finally:
            if self._owns_client and self._client is not None:
                await self._client.aclose()

        self._response.attach_body(body)
        log.debug("spec_response", status=self._response.status, url=self._response.url)
        self._run_expects()
        return body

    # ------------------------------------------------------------------
    # Chaining
    # ------------------------------------------------------------------

    def then(self, fn: Continuation | Spec) -> Spec:
        """Chain ``fn(value)`` after everything registered so far.

        Passing another spec returns that spec unchanged; nothing is scheduled.
        """
        if isinstance(fn, Spec):
            return fn
        task = self._ensure_started()
        previous = self._tail or task
        self._tail = task.get_loop().create_task(self._continue(previous, fn))
        return self

    async def _continue(self, previous: asyncio.Task[Any], fn: Continuation) -> Any:
        # Errors already routed upstream propagate without being reported again
        value = await previous
        try:
            result = fn(value)
            if result is self:
                result = None
            elif inspect.isawaitable(result):
                # One level only: a nested awaitable's own result is not unwrapped
                result = await result
        except Exception as exc:
            handled = self._fail(exc)
            return value if handled is None else handled
        return value if result is None else result

    async def _settled(self) -> Any:
        """Wait for the chain, including steps added while waiting."""
        while True:
            current = self._tail or self._task
            assert current is not None
            result = await current
            if current is (self._tail or self._task):
                return result

    def __await__(self) -> Generator[Any, None, Any]:
        self._ensure_started()
        return self._settled().__await__()

    def done(self, fn: Callable[[], Any]) -> Spec:
        """Call ``fn()`` once, after the whole chain has settled.

        A pending callback is replaced by the latest one. Once a callback has
        run, a new ``done()`` waits for the chain again.
        """
        task = self._ensure_started()
        self._done_fn = fn
        if self._done_task is None or self._done_task.done():
            self._done_task = task.get_loop().create_task(self._finish())
        return self

    async def _finish(self) -> None:
        await self._settled()
        done_fn, self._done_fn = self._done_fn, None
        if done_fn is None:
            return
        try:
            done_fn()
        except Exception as exc:
            self._fail(exc)

    def catch(self, fn: Callable[[BaseException], Any]) -> Spec:
        """Handle failures with ``fn`` instead of the reporter."""
        self._fail.set_handler(fn)
        return self

    def promise(self) -> asyncio.Task[Any]:
        """Return the root task. Awaiting it skips the continuation chain."""
        return self._ensure_started()

    # ------------------------------------------------------------------
    # Expectations
    # ------------------------------------------------------------------

    def expect(self, name: str | ExpectHandler, *args: Any) -> Spec:
        return self._add_expect_runner(name, args, expect_pass=True)

    def expect_not(self, name: str | ExpectHandler, *args: Any) -> Spec:
        return self._add_expect_runner(name, args, expect_pass=False)

    def _add_expect_runner(self, name: str | ExpectHandler, args: tuple[Any, ...], expect_pass: bool) -> Spec:
        self._ensure_started()
        if callable(name):
            handler = name
            label = getattr(name, "__name__", repr(name))
        else:
            handler = self._registry.get(name)
            label = name

        def run(response: ResponseSnapshot) -> None:
            try:
                handler(response, *args)
            except Exception as exc:
                if expect_pass:
                    self._fail(exc)
                else:
                    # Any exception counts as the expected failure, including bugs in the handler
                    log.debug("expect_not_failed_as_expected", expectation=label, error=str(exc))
                return
            if not expect_pass:
                self._fail(ExpectationError(f"Expectation {label!r} passed but was expected to fail"))

        return self._add_expect(run)

    def _add_expect(self, fn: Callable[[ResponseSnapshot], None]) -> Spec:
        self._expects.append(fn)
        if self._expects_ran:
            # Root task already ran the queue; run this one on the chain
            task = self._ensure_started()
            previous = self._tail or task
            self._tail = task.get_loop().create_task(self._run_late_expect(previous, fn))
        return self

    async def _run_late_expect(
        self, previous: asyncio.Task[Any], fn: Callable[[ResponseSnapshot], None]
    ) -> Any:
        value = await previous
        # fn routes its own failure; whatever the channel raises travels down the chain
        self._run_expect(fn)
        return value

    def _run_expect(self, fn: Callable[[ResponseSnapshot], None]) -> None:
        assert self._response is not None
        fn(self._response)

    def _run_expects(self) -> None:
        assert self._response is not None
        self._expects_ran = True
        for fn in list(self._expects):
            fn(self._response)

    # ------------------------------------------------------------------
    # Inspectors
    # ------------------------------------------------------------------

    def inspect_request(self) -> Spec:
        return self.then(lambda _: self._inspect("\nRequest:", self._request))

    def inspect_response(self) -> Spec:
        return self.then(lambda _: self._inspect("\nResponse:", self._response))

    def inspect_body(self) -> Spec:
        return self.then(lambda _: self._inspect("\nBody:", self._body()))

    def inspect_json(self) -> Spec:
        return self.then(lambda _: self._inspect("\nJSON:", json.dumps(self._body(), indent=4, default=str)))

    def inspect_status(self) -> Spec:
        def show(_: Any) -> None:
            self._inspect("\nStatus:", self._response.status if self._response else None)

        return self.then(show)

    def inspect_headers(self) -> Spec:
        def show(_: Any) -> None:
            self._inspect("\nHeaders:")
            if self._response is None:
                return
            for key, value in self._response.headers.multi_items():
                self._inspect(f"\t{key}: {value}")

        return self.then(show)

    def inspect_log(self, *args: Any) -> Spec:
        log.info(" ".join(str(a) for a in args))
        return self

    def _inspect(self, *args: Any) -> None:
        self.inspect_log(*args)

    def _body(self) -> Any:
        return self._response.body if self._response is not None else None

    # ------------------------------------------------------------------
    # Guards
    # ------------------------------------------------------------------

    def _ensure_started(self) -> asyncio.Task[Any]:
        if self._task is None:
            raise SpecNotStartedError(
                "Spec not started. Call fetch(), a verb shorthand or from_json() first."
            )
        return self._task

    def _ensure_not_started(self) -> None:
        if self._task is not None:
            raise SpecAlreadyStartedError(
                "Spec already started. Create a new spec for each request."
            )

    # ------------------------------------------------------------------
    # Shared registry
    # ------------------------------------------------------------------

    @staticmethod
    def add_expect_handler(name: str, fn: ExpectHandler) -> None:
        default_registry.add(name, fn)

    @staticmethod
    def remove_expect_handler(name: str) -> None:
        default_registry.remove(name)
