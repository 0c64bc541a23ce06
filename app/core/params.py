"""Ordered store of request parameters with scalar and array entries."""

from collections.abc import Iterator, Mapping
from typing import Any

from app.models.core import ARRAY_MARKER, ArrayValue, Marker, ParamValue, Scalar


class ParameterStore:
    """Insertion-ordered mapping from parameter name to a tagged value.

    Scalars and arrays share one keyspace: storing one kind under a key
    replaces the other. Scalar lookups of an array entry return
    ``ARRAY_MARKER``; use ``get_array`` for the list itself.
    """

    __slots__ = ("_values",)

    def __init__(self, data: Mapping[str, Any] | None = None) -> None:
        self._values: dict[str, ParamValue] = {}
        for key, value in (data or {}).items():
            self.set_req(key, value)

    def __contains__(self, key: object) -> bool:
        return key in self._values

    def __len__(self) -> int:
        return len(self._values)

    def __iter__(self) -> Iterator[str]:
        return iter(self._values)

    def __repr__(self) -> str:
        return f"ParameterStore({self._values!r})"

    def has(self, key: str) -> bool:
        return key in self._values

    contains = has

    def get(self, key: str) -> str | Marker | None:
        match self._values.get(key):
            case Scalar(value):
                return value
            case ArrayValue():
                return ARRAY_MARKER
            case _:
                return None

    def get_value(self, key: str) -> ParamValue | None:
        return self._values.get(key)

    def set(self, key: str, value: Any) -> None:
        self._values[key] = Scalar(value)

    def unset(self, key: str) -> None:
        self._values.pop(key, None)

    def has_array(self, key: str) -> bool:
        return isinstance(self._values.get(key), ArrayValue)

    def get_array(self, key: str) -> list | None:
        value = self._values.get(key)
        return list(value.items) if isinstance(value, ArrayValue) else None

    def set_array(self, key: str, items: list | tuple) -> None:
        self._values[key] = ArrayValue(list(items))

    def set_req(self, key: str, value: Any) -> None:
        """Store a platform-delivered value, choosing scalar or array by shape."""
        if isinstance(value, (list, tuple)):
            self.set_array(key, value)
        elif isinstance(value, Mapping):
            self.set_array(key, list(value.values()))
        else:
            self.set(key, value)

    def keys(self) -> list[str]:
        return list(self._values)

    def as_dict(self) -> dict[str, str | Marker]:
        return {key: self.get(key) for key in self._values}

    def subset_as_dict(self, *keys: str) -> dict[str, str | Marker]:
        return {key: self.get(key) for key in keys if key in self._values}

    def as_json(self) -> dict[str, str | list]:
        """Plain view with array entries rendered as their lists."""
        return {
            key: value.items if isinstance(value, ArrayValue) else value.value
            for key, value in self._values.items()
        }
