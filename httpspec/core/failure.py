"""Failure channel: the one place a spec reports errors.

A spec never raises asynchronous failures on its own. Transport errors,
decode errors, failed expectations and continuation errors all go through
``FailureChannel``, which picks one route:

- a custom handler registered with ``Spec.catch()``
- the reporter's ``report_failure(error)``
- the reporter's ``assert_never(error)``
- re-raise, when no reporter was supplied
"""

from __future__ import annotations

import traceback
from collections.abc import Callable
from typing import Any, Protocol, runtime_checkable

import structlog

log = structlog.get_logger()


@runtime_checkable
class FailureReporter(Protocol):
    def report_failure(self, error: BaseException) -> None: ...


@runtime_checkable
class AssertionReporter(Protocol):
    def assert_never(self, error: BaseException) -> None: ...


class RecordingReporter:
    """Collects reported errors so a host runner can fail the test later."""

    def __init__(self) -> None:
        self.errors: list[BaseException] = []

    def report_failure(self, error: BaseException) -> None:
        self.errors.append(error)

    def clear(self) -> None:
        self.errors.clear()


class AssertingReporter:
    """Forces an assertion failure that carries the original traceback."""

    def assert_never(self, error: BaseException) -> None:
        detail = "".join(traceback.format_exception(error))
        assert error is None, detail


class FailureChannel:
    """Routes a spec's errors to its handler, its reporter, or back up the stack."""

    def __init__(self, reporter: object | None = None) -> None:
        self._handler: Callable[[BaseException], Any] | None = None
        self._route: Callable[[BaseException], None] | None = None
        self.mode = "raise"

        # Capability is resolved once; reporters are not re-inspected per error
        if isinstance(reporter, FailureReporter):
            self._route = reporter.report_failure
            self.mode = "report_failure"
        elif isinstance(reporter, AssertionReporter):
            self._route = reporter.assert_never
            self.mode = "assert_never"

    @property
    def handler(self) -> Callable[[BaseException], Any] | None:
        return self._handler

    def set_handler(self, fn: Callable[[BaseException], Any]) -> None:
        """Install a custom handler. The last one installed wins."""
        self._handler = fn

    def __call__(self, error: BaseException) -> Any:
        if self._handler is not None:
            log.debug("spec_failure_handled", error=str(error), error_type=type(error).__name__)
            return self._handler(error)

        log.warning(
            "spec_failure",
            error=str(error),
            error_type=type(error).__name__,
            route=self.mode,
        )
        if self._route is None:
            raise error
        self._route(error)
        return None
