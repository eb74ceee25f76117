"""JSON serialisation helpers."""

from __future__ import annotations

from collections.abc import Callable, Mapping
from dataclasses import asdict, is_dataclass
from enum import Enum
from typing import Any


def make_json_safe(
    value: Any,
    *,
    sort_sets: bool = True,
    default: Callable[[Any], str] | None = None,
) -> Any:
    """Return a structure compatible with :func:`json.dumps`.

    Mappings keep their keys, tuples and sets become lists, dataclasses are
    expanded via :func:`dataclasses.asdict` and enums collapse to their value.
    Anything else is rendered through *default* (``repr`` when omitted).
    """

    if default is None:
        default = repr

    def _convert(item: Any) -> Any:
        if isinstance(item, Enum):
            return _convert(item.value)
        if isinstance(item, (str, int, float, bool)) or item is None:
            return item
        if isinstance(item, Mapping):
            return {
                key if isinstance(key, str) else str(key): _convert(val)
                for key, val in item.items()
            }
        if is_dataclass(item) and not isinstance(item, type):
            return _convert(asdict(item))
        if isinstance(item, (list, tuple)):
            return [_convert(entry) for entry in item]
        if isinstance(item, (set, frozenset)):
            converted = [_convert(entry) for entry in item]
            if sort_sets:
                converted.sort(key=lambda entry: (str(type(entry)), str(entry)))
            return converted
        return default(item)

    return _convert(value)


__all__ = ["make_json_safe"]
