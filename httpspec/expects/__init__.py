"""Expectation handlers and the registry specs look them up in."""

from httpspec.expects.registry import ExpectHandler, ExpectHandlerRegistry, default_registry

__all__ = ["ExpectHandler", "ExpectHandlerRegistry", "default_registry"]
