"""Named expectation handlers.

A handler is called as ``handler(response, *args)`` and raises to signal a
failed check. Specs consult a registry by reference; they never own one.
"""

from __future__ import annotations

from collections.abc import Callable, Iterator
from typing import Any

import structlog

from httpspec.errors import UnknownExpectationError
from httpspec.expects.handlers import BUILTIN_HANDLERS

log = structlog.get_logger()

ExpectHandler = Callable[..., Any]


class ExpectHandlerRegistry:
    """Mutable mapping from expectation name to handler."""

    def __init__(self, handlers: dict[str, ExpectHandler] | None = None) -> None:
        self._handlers: dict[str, ExpectHandler] = dict(handlers or {})

    def add(self, name: str, fn: ExpectHandler) -> None:
        if not callable(fn):
            raise TypeError(f"Expectation handler for {name!r} must be callable")
        if name in self._handlers:
            log.debug("expect_handler_replaced", name=name)
        self._handlers[name] = fn

    def remove(self, name: str) -> None:
        """Remove a handler. Removing an unknown name is a no-op."""
        self._handlers.pop(name, None)

    def get(self, name: str) -> ExpectHandler:
        try:
            return self._handlers[name]
        except KeyError:
            raise UnknownExpectationError(name) from None

    def names(self) -> list[str]:
        return sorted(self._handlers)

    def copy(self) -> ExpectHandlerRegistry:
        return ExpectHandlerRegistry(self._handlers)

    def __contains__(self, name: object) -> bool:
        return name in self._handlers

    def __iter__(self) -> Iterator[str]:
        return iter(self._handlers)

    def __len__(self) -> int:
        return len(self._handlers)


# Shared by every spec that is not given its own registry
default_registry = ExpectHandlerRegistry(BUILTIN_HANDLERS)
