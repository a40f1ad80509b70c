"""pytest fixtures that wire specs into the running test.

Import them in a ``conftest.py``:

    from httpspec.testing import make_spec, spec_reporter  # noqa: F401

Specs made by ``make_spec`` report failures to ``spec_reporter``; any error
still recorded when the test finishes fails it.
"""

from __future__ import annotations

from collections.abc import Callable, Iterator
from typing import Any

import pytest
import structlog

from httpspec import create
from httpspec.core.failure import RecordingReporter
from httpspec.core.spec import Spec

log = structlog.get_logger()


@pytest.fixture
def spec_reporter() -> RecordingReporter:
    return RecordingReporter()


@pytest.fixture
def make_spec(spec_reporter: RecordingReporter) -> Iterator[Callable[..., Spec]]:
    """Factory for specs bound to this test's reporter, seeded with global setup."""

    def factory(**kwargs: Any) -> Spec:
        kwargs.setdefault("reporter", spec_reporter)
        return create(**kwargs)

    yield factory

    if spec_reporter.errors:
        log.warning("spec_failures_at_teardown", count=len(spec_reporter.errors))
        detail = "\n".join(f"{type(e).__name__}: {e}" for e in spec_reporter.errors)
        pytest.fail(f"{len(spec_reporter.errors)} spec failure(s):\n{detail}", pytrace=False)
