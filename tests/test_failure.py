"""Tests for the failure channel and the bundled reporters."""

from __future__ import annotations

import pytest
from structlog.testing import capture_logs

from httpspec.core.failure import AssertingReporter, FailureChannel, RecordingReporter


class BothReporter:
    def __init__(self) -> None:
        self.reported: list[BaseException] = []
        self.asserted: list[BaseException] = []

    def report_failure(self, error: BaseException) -> None:
        self.reported.append(error)

    def assert_never(self, error: BaseException) -> None:
        self.asserted.append(error)


class AssertOnly:
    def __init__(self) -> None:
        self.asserted: list[BaseException] = []

    def assert_never(self, error: BaseException) -> None:
        self.asserted.append(error)


class TestRouting:
    def test_report_failure_route(self) -> None:
        reporter = RecordingReporter()
        channel = FailureChannel(reporter)
        err = ValueError("boom")
        assert channel(err) is None
        assert reporter.errors == [err]
        assert channel.mode == "report_failure"

    def test_report_failure_preferred_over_assert(self) -> None:
        reporter = BothReporter()
        FailureChannel(reporter)(ValueError("boom"))
        assert len(reporter.reported) == 1
        assert reporter.asserted == []

    def test_assert_never_route(self) -> None:
        reporter = AssertOnly()
        channel = FailureChannel(reporter)
        channel(ValueError("boom"))
        assert channel.mode == "assert_never"
        assert len(reporter.asserted) == 1

    def test_no_reporter_reraises(self) -> None:
        channel = FailureChannel()
        assert channel.mode == "raise"
        with pytest.raises(ValueError, match="boom"):
            channel(ValueError("boom"))

    def test_object_without_capabilities_reraises(self) -> None:
        channel = FailureChannel(object())
        with pytest.raises(KeyError):
            channel(KeyError("missing"))


class TestCustomHandler:
    def test_handler_replaces_reporter(self) -> None:
        reporter = RecordingReporter()
        channel = FailureChannel(reporter)
        handled: list[BaseException] = []
        channel.set_handler(handled.append)
        channel(ValueError("boom"))
        assert len(handled) == 1
        assert reporter.errors == []

    def test_handler_return_value_passed_back(self) -> None:
        channel = FailureChannel()
        channel.set_handler(lambda e: "recovered")
        assert channel(ValueError("boom")) == "recovered"

    def test_last_handler_wins(self) -> None:
        channel = FailureChannel()
        first: list[BaseException] = []
        second: list[BaseException] = []
        channel.set_handler(first.append)
        channel.set_handler(second.append)
        channel(ValueError("boom"))
        assert first == []
        assert len(second) == 1
        assert channel.handler is not None


class TestReporters:
    def test_recording_reporter_clear(self) -> None:
        reporter = RecordingReporter()
        reporter.report_failure(ValueError("a"))
        reporter.clear()
        assert reporter.errors == []

    def test_asserting_reporter_carries_traceback(self) -> None:
        try:
            raise ValueError("deep failure")
        except ValueError as e:
            error = e
        with pytest.raises(AssertionError, match="deep failure"):
            AssertingReporter().assert_never(error)


def test_failure_is_logged() -> None:
    with capture_logs() as logs:
        FailureChannel(RecordingReporter())(ValueError("boom"))
    entry = next(e for e in logs if e["event"] == "spec_failure")
    assert entry["error_type"] == "ValueError"
    assert entry["route"] == "report_failure"
