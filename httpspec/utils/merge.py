"""Deep merge for nested configuration fragments."""

from __future__ import annotations

import copy
from collections.abc import Mapping
from typing import Any


def deep_merge(base: Mapping[str, Any], incoming: Mapping[str, Any]) -> dict[str, Any]:
    """Return a new dict with ``incoming`` merged key-by-key over ``base``.

    Nested mappings combine recursively; any other value in ``incoming``
    replaces the one in ``base``. Neither argument is modified and the result
    shares no mutable state with them.
    """
    result: dict[str, Any] = copy.deepcopy(dict(base))
    for key, value in incoming.items():
        existing = result.get(key)
        if isinstance(existing, Mapping) and isinstance(value, Mapping):
            result[key] = deep_merge(existing, value)
        else:
            result[key] = copy.deepcopy(value)
    return result
