"""Page and path of a request relative to the application base path."""

from dataclasses import dataclass
from urllib.parse import unquote


@dataclass(frozen=True, slots=True)
class NavigationState:
    """Where a request landed: ``{base_path}{page}{path}``."""

    base_path: str = "/"
    page: str | None = None
    path: str | None = None

    @classmethod
    def from_url_path(cls, url_path: str, base_path: str = "/") -> "NavigationState":
        base = base_path if base_path.endswith("/") else f"{base_path}/"
        rest = url_path or "/"
        if rest.startswith(base):
            rest = rest[len(base):]
        elif rest == base.rstrip("/"):
            rest = ""
        else:
            rest = rest.lstrip("/")
        page, slash, tail = rest.partition("/")
        return cls(base_path=base, page=page or "index", path=f"/{tail}" if slash else "")

    def path_component(self, n: int, decoded: bool = False) -> str | None:
        """Component `n` of the path after the page, or None."""
        if not self.path:
            return None
        parts = self.path[1:].split("/")
        if n + 1 < len(parts) or (n + 1 == len(parts) and parts[n] != ""):
            return unquote(parts[n]) if decoded else parts[n]
        return None
