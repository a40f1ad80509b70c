"""Built-in expectation handlers.

Every handler takes the ``ResponseSnapshot`` first and raises
``ExpectationError`` when the response does not match. The ``json*``
handlers take an optional dotted path before the expected value:

    expect("json", {"id": 1})
    expect("json", "items.0.name", "widget")
    expect("json_types", "items.*", {"id": int, "name": str})

A ``*`` segment requires every list element to match, ``?`` requires at
least one.
"""

from __future__ import annotations

import numbers
import re
import types
from collections.abc import Mapping
from typing import TYPE_CHECKING, Any

import pydantic

from httpspec.core.response import UNSET
from httpspec.errors import ExpectationError

if TYPE_CHECKING:
    from httpspec.core.response import ResponseSnapshot

_MISSING = object()

ALL = "*"
ANY = "?"


# ---------------------------------------------------------------------------
# Path selection
# ---------------------------------------------------------------------------


def _select(body: Any, path: str) -> tuple[list[Any], str]:
    """Resolve ``path`` against ``body``.

    Returns the matched values and the match mode (``"one"``, ``"all"`` or
    ``"any"``). Raises ExpectationError when a segment does not exist.
    """
    values = [body]
    mode = "one"
    for segment in path.split("."):
        if segment in (ALL, ANY):
            mode = "all" if segment == ALL else "any"
            expanded: list[Any] = []
            for value in values:
                if not isinstance(value, list):
                    raise ExpectationError(
                        f"Path {path!r}: {segment!r} needs a list, got {type(value).__name__}"
                    )
                expanded.extend(value)
            values = expanded
            continue
        values = [_step(value, segment, path) for value in values]
    return values, mode


def _step(value: Any, segment: str, path: str) -> Any:
    if isinstance(value, Mapping):
        if segment not in value:
            raise ExpectationError(f"Path {path!r}: key {segment!r} not found")
        return value[segment]
    if isinstance(value, list):
        try:
            return value[int(segment)]
        except (ValueError, IndexError):
            raise ExpectationError(f"Path {path!r}: no list element {segment!r}") from None
    raise ExpectationError(f"Path {path!r}: cannot descend into {type(value).__name__}")


def _split_args(
    response: ResponseSnapshot, path_or_expected: Any, expected: Any
) -> tuple[list[Any], str, Any]:
    body = response.body
    if body is UNSET:
        raise ExpectationError("Response body has not been decoded")
    if expected is _MISSING:
        return [body], "one", path_or_expected
    if not isinstance(path_or_expected, str):
        raise TypeError(f"JSON path must be a string, got {type(path_or_expected).__name__}")
    values, mode = _select(body, path_or_expected)
    return values, mode, expected


def _check_each(values: list[Any], mode: str, check: Any) -> None:
    if mode == "any":
        errors: list[str] = []
        for value in values:
            try:
                check(value)
                return
            except ExpectationError as e:
                errors.append(str(e))
        raise ExpectationError(
            "No element matched: " + ("; ".join(errors) if errors else "list is empty")
        )
    for value in values:
        check(value)


# ---------------------------------------------------------------------------
# Value matching
# ---------------------------------------------------------------------------


def _contains(actual: Any, expected: Any, where: str) -> None:
    if isinstance(expected, Mapping):
        if not isinstance(actual, Mapping):
            raise ExpectationError(f"{where}: expected an object, got {actual!r}")
        for key, sub in expected.items():
            if key not in actual:
                raise ExpectationError(f"{where}: key {key!r} not found in {actual!r}")
            _contains(actual[key], sub, f"{where}.{key}")
        return
    if actual != expected:
        raise ExpectationError(f"{where}: expected {expected!r}, got {actual!r}")


def _is_plain_type(schema: Any) -> bool:
    return isinstance(schema, type) and not isinstance(schema, types.GenericAlias)


def _isinstance(value: Any, schema: type) -> bool:
    # JSON booleans are not numbers
    if isinstance(value, bool) and schema is not bool and issubclass(schema, (int, float, numbers.Number)):
        return False
    return isinstance(value, schema)


def _check_type(value: Any, schema: Any, where: str, strict: bool) -> None:
    if isinstance(schema, Mapping):
        if not isinstance(value, Mapping):
            raise ExpectationError(f"{where}: expected an object, got {type(value).__name__}")
        for key, sub in schema.items():
            if key not in value:
                raise ExpectationError(f"{where}: key {key!r} is missing")
            _check_type(value[key], sub, f"{where}.{key}", strict)
        if strict:
            extra = sorted(set(value) - set(schema))
            if extra:
                raise ExpectationError(f"{where}: unexpected keys {extra}")
        return

    if isinstance(schema, tuple):
        if not any(_isinstance(value, t) for t in schema):
            names = ", ".join(t.__name__ for t in schema)
            raise ExpectationError(f"{where}: expected one of ({names}), got {type(value).__name__}")
        return

    if _is_plain_type(schema) and issubclass(schema, pydantic.BaseModel):
        try:
            schema.model_validate(value, strict=strict)
        except pydantic.ValidationError as e:
            raise ExpectationError(f"{where}: {e}") from e
        return

    if _is_plain_type(schema):
        if not _isinstance(value, schema):
            raise ExpectationError(
                f"{where}: expected {schema.__name__}, got {type(value).__name__}"
            )
        return

    # typing constructs: list[int], str | None, Literal[...]
    try:
        pydantic.TypeAdapter(schema).validate_python(value, strict=True)
    except pydantic.ValidationError as e:
        raise ExpectationError(f"{where}: {e}") from e


# ---------------------------------------------------------------------------
# Handlers
# ---------------------------------------------------------------------------


def status(response: ResponseSnapshot, code: int) -> None:
    if response.status != code:
        raise ExpectationError(f"HTTP status {code} expected, but received {response.status}")


def header(response: ResponseSnapshot, name: str, value: str | re.Pattern[str] | None = None) -> None:
    actual = response.headers.get(name)
    if actual is None:
        raise ExpectationError(f"Header {name!r} not present in HTTP response")
    if value is None:
        return
    if isinstance(value, re.Pattern):
        if not value.search(actual):
            raise ExpectationError(f"Header {name!r}: {actual!r} does not match {value.pattern!r}")
    elif actual != value:
        raise ExpectationError(f"Header {name!r}: expected {value!r}, got {actual!r}")


def body_contains(response: ResponseSnapshot, value: str | re.Pattern[str]) -> None:
    text = response.text
    if isinstance(value, re.Pattern):
        if not value.search(text):
            raise ExpectationError(f"Body does not match {value.pattern!r}")
    elif value not in text:
        raise ExpectationError(f"Body does not contain {value!r}")


def json(response: ResponseSnapshot, path_or_expected: Any, expected: Any = _MISSING) -> None:
    values, mode, expected = _split_args(response, path_or_expected, expected)
    _check_each(values, mode, lambda v: _contains(v, expected, "json"))


def json_strict(response: ResponseSnapshot, path_or_expected: Any, expected: Any = _MISSING) -> None:
    values, mode, expected = _split_args(response, path_or_expected, expected)

    def check(value: Any) -> None:
        if value != expected:
            raise ExpectationError(f"json: expected exactly {expected!r}, got {value!r}")

    _check_each(values, mode, check)


def json_types(response: ResponseSnapshot, path_or_schema: Any, schema: Any = _MISSING) -> None:
    values, mode, schema = _split_args(response, path_or_schema, schema)
    _check_each(values, mode, lambda v: _check_type(v, schema, "json", strict=False))


def json_types_strict(response: ResponseSnapshot, path_or_schema: Any, schema: Any = _MISSING) -> None:
    values, mode, schema = _split_args(response, path_or_schema, schema)
    _check_each(values, mode, lambda v: _check_type(v, schema, "json", strict=True))


def response_time(response: ResponseSnapshot, max_ms: float) -> None:
    if response.elapsed_ms > max_ms:
        raise ExpectationError(
            f"Response took {response.elapsed_ms:.0f}ms, expected at most {max_ms}ms"
        )


BUILTIN_HANDLERS: dict[str, Any] = {
    "status": status,
    "header": header,
    "body_contains": body_contains,
    "bodyContains": body_contains,
    "json": json,
    "json_strict": json_strict,
    "jsonStrict": json_strict,
    "json_types": json_types,
    "jsonTypes": json_types,
    "json_types_strict": json_types_strict,
    "jsonTypesStrict": json_types_strict,
    "response_time": response_time,
    "responseTime": response_time,
}
