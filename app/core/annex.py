"""Request-scoped side channel for computed state."""

from collections.abc import Iterator
from typing import Any

from app.core.exceptions import AnnexError


class AnnexRegistry:
    """Named objects attached to a request that clients never see."""

    __slots__ = ("_annexes",)

    def __init__(self) -> None:
        self._annexes: dict[str, Any] = {}

    def __contains__(self, name: object) -> bool:
        return self.has(name)  # type: ignore[arg-type]

    def __iter__(self) -> Iterator[str]:
        return iter(self._annexes)

    def __bool__(self) -> bool:
        return bool(self._annexes)

    def has(self, name: str) -> bool:
        return self._annexes.get(name) is not None

    def get(self, name: str) -> Any:
        return self._annexes.get(name)

    def checked[T](self, name: str, kind: type[T]) -> T:
        """Annex `name`, which must be a non-empty instance of `kind`."""
        value = self._annexes.get(name)
        if not value or not isinstance(value, kind):
            raise AnnexError(name, kind)
        return value

    def set(self, name: str, value: Any) -> None:
        self._annexes[name] = value

    def as_dict(self) -> dict[str, Any]:
        return dict(self._annexes)
