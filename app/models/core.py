"""Core models for request handling."""

from dataclasses import dataclass, field
from enum import Enum, IntEnum, StrEnum
from pathlib import Path


class HttpVerb(StrEnum):
    """Request methods a Qrequest can carry."""

    GET = "GET"
    POST = "POST"
    PUT = "PUT"
    DELETE = "DELETE"
    PATCH = "PATCH"
    HEAD = "HEAD"
    OPTIONS = "OPTIONS"


class BodyState(StrEnum):
    """Materialization state of a request body."""

    NONE = "none"
    UNREAD = "unread"
    CACHED = "cached"
    EXPLICIT = "explicit"


class UploadError(IntEnum):
    """Upload status codes delivered with platform file descriptors."""

    OK = 0
    INI_SIZE = 1
    FORM_SIZE = 2
    PARTIAL = 3
    NO_FILE = 4
    NO_TMP_DIR = 6
    CANT_WRITE = 7
    EXTENSION = 8


class Marker(Enum):
    """Value returned by scalar lookups of array-valued parameters."""

    ARRAY = "__array__"

    def __repr__(self) -> str:
        return "ARRAY_MARKER"


ARRAY_MARKER = Marker.ARRAY


@dataclass(frozen=True, slots=True)
class Scalar:
    """A single-valued request parameter."""

    value: str


@dataclass(frozen=True, slots=True)
class ArrayValue:
    """A list-valued request parameter, e.g. a multi-select input."""

    items: list = field(default_factory=list)


type ParamValue = Scalar | ArrayValue


class UploadedFile:
    """A file delivered with the request, backed by disk or by memory."""

    __slots__ = ("name", "type", "size", "tmp_name", "content", "error")

    def __init__(
        self,
        name: str = "",
        type: str | None = None,
        size: int = 0,
        tmp_name: str | Path | None = None,
        content: bytes | None = None,
        error: int = UploadError.OK,
    ) -> None:
        self.name = name
        self.type = type or "application/octet-stream"
        self.size = size
        self.tmp_name = str(tmp_name) if tmp_name is not None else None
        self.content = content
        self.error = error

    @classmethod
    def from_descriptor(cls, descriptor: dict) -> "UploadedFile":
        """Build from a platform descriptor (name/type/size/tmp_name/content/error)."""
        return cls(
            name=descriptor.get("name") or "",
            type=descriptor.get("type"),
            size=int(descriptor.get("size") or 0),
            tmp_name=descriptor.get("tmp_name"),
            content=descriptor.get("content"),
            error=int(descriptor.get("error") or 0),
        )

    def __repr__(self) -> str:
        backing = "memory" if self.content is not None else self.tmp_name
        return f"UploadedFile(name={self.name!r}, type={self.type!r}, size={self.size}, backing={backing!r})"

    def as_dict(self) -> dict:
        data: dict = {"name": self.name, "type": self.type, "size": self.size}
        if self.tmp_name is not None:
            data["tmp_name"] = self.tmp_name
        if self.content is not None:
            data["content"] = self.content
        data["error"] = self.error
        return data
