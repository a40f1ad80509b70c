"""Exception taxonomy for spec configuration and expectation failures.

Transport and timeout failures are httpx's own exceptions and decode
failures are ``json.JSONDecodeError``; they are not wrapped.
"""

from __future__ import annotations


class SpecError(Exception):
    """Base class for spec misconfiguration."""


class SpecNotStartedError(SpecError):
    """Raised when a chained call needs the root task before fetch()/from_json()."""


class SpecAlreadyStartedError(SpecError):
    """Raised when a second fetch()/from_json() is issued on the same spec."""


class UnknownExpectationError(SpecError):
    """Raised at registration time when an expectation name is not registered."""

    def __init__(self, name: str) -> None:
        super().__init__(f"Expectation {name!r} is not defined.")
        self.name = name


class ExpectationError(AssertionError):
    """Raised by expectation handlers when the response does not match."""
