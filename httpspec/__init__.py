"""Fluent HTTP contract specs for async test suites.

Module-level shortcuts create a fresh ``Spec`` seeded with the global setup
defaults:

    import httpspec

    httpspec.global_setup({"request": {"headers": {"Authorization": "Bearer t"}}})

    async def test_user() -> None:
        await httpspec.get("https://api.example.com/users/1").expect("status", 200)
"""

from __future__ import annotations

import copy
from collections.abc import Mapping
from typing import Any

from httpspec.config import DEFAULT_TIMEOUT_MS, Config
from httpspec.core.failure import AssertingReporter, FailureChannel, RecordingReporter
from httpspec.core.response import ResponseSnapshot
from httpspec.core.spec import Spec
from httpspec.errors import (
    ExpectationError,
    SpecAlreadyStartedError,
    SpecError,
    SpecNotStartedError,
    UnknownExpectationError,
)
from httpspec.expects.registry import ExpectHandler, ExpectHandlerRegistry, default_registry
from httpspec.utils.merge import deep_merge

__version__ = "0.1.0"

_global_defaults: dict[str, Any] = {}


def global_setup(options: Mapping[str, Any], replace: bool = False) -> None:
    """Set defaults copied into every spec made by ``create()`` from now on."""
    global _global_defaults
    if replace:
        _global_defaults = copy.deepcopy(dict(options))
    else:
        _global_defaults = deep_merge(_global_defaults, options)


def global_defaults() -> dict[str, Any]:
    return copy.deepcopy(_global_defaults)


def create(**kwargs: Any) -> Spec:
    """New spec with the global setup defaults applied. kwargs go to ``Spec()``."""
    return Spec(**kwargs).setup(_global_defaults)


def from_json(value: Any, **kwargs: Any) -> Spec:
    return create(**kwargs).from_json(value)


def fetch(url: str, params: Mapping[str, Any] | None = None, **kwargs: Any) -> Spec:
    return create(**kwargs).fetch(url, params)


def get(url: str, params: Mapping[str, Any] | None = None, **kwargs: Any) -> Spec:
    return create(**kwargs).get(url, params)


def post(url: str, params: Mapping[str, Any] | None = None, **kwargs: Any) -> Spec:
    return create(**kwargs).post(url, params)


def put(url: str, params: Mapping[str, Any] | None = None, **kwargs: Any) -> Spec:
    return create(**kwargs).put(url, params)


def patch(url: str, params: Mapping[str, Any] | None = None, **kwargs: Any) -> Spec:
    return create(**kwargs).patch(url, params)


def delete(url: str, params: Mapping[str, Any] | None = None, **kwargs: Any) -> Spec:
    return create(**kwargs).delete(url, params)


def add_expect_handler(name: str, fn: ExpectHandler) -> None:
    default_registry.add(name, fn)


def remove_expect_handler(name: str) -> None:
    default_registry.remove(name)


__all__ = [
    "DEFAULT_TIMEOUT_MS",
    "AssertingReporter",
    "Config",
    "ExpectHandler",
    "ExpectHandlerRegistry",
    "ExpectationError",
    "FailureChannel",
    "RecordingReporter",
    "ResponseSnapshot",
    "Spec",
    "SpecAlreadyStartedError",
    "SpecError",
    "SpecNotStartedError",
    "UnknownExpectationError",
    "add_expect_handler",
    "create",
    "default_registry",
    "delete",
    "fetch",
    "from_json",
    "get",
    "global_defaults",
    "global_setup",
    "patch",
    "post",
    "put",
    "remove_expect_handler",
]
