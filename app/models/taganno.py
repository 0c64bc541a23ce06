"""Models for tag annotation rows and client change requests."""

from typing import Any, NamedTuple

from pydantic import BaseModel, ConfigDict, StrictInt, StrictStr, field_validator

INFO_FIELDS: tuple[str, ...] = ("session_title", "time", "location")


class Statement(NamedTuple):
    """One parameterized SQL statement of a write batch."""

    sql: str
    params: tuple


class TagAnnoRecord(BaseModel):
    """A stored annotation of one tag, as returned to clients."""

    annoid: int | None
    tagval: float = 0.0
    legend: str | None = None
    format: int | None = None
    session_title: Any = None
    time: Any = None
    location: Any = None

    @classmethod
    def from_row(cls, row: dict, info: dict | None) -> "TagAnnoRecord":
        info = info or {}
        return cls(
            annoid=row["annoId"],
            tagval=row["tagIndex"] or 0.0,
            legend=row["heading"],
            format=row["annoFormat"],
            **{k: info[k] for k in INFO_FIELDS if k in info},
        )

    def as_json(self) -> dict:
        return self.model_dump(mode="json", exclude_none=True)


class TagAnnoChange(BaseModel):
    """A client-requested change to one annotation.

    `annoid` is either the integer id of an existing annotation or a
    temporary key starting with ``n`` for a row the client wants created.
    """

    model_config = ConfigDict(extra="ignore")

    annoid: StrictInt | StrictStr
    key: Any = None
    deleted: Any = None
    legend: Any = None
    tagval: Any = None
    session_title: Any = None
    time: Any = None
    location: Any = None

    @field_validator("annoid")
    @classmethod
    def _check_annoid(cls, value: int | str) -> int | str:
        if isinstance(value, str) and not value.startswith("n"):
            raise ValueError("temporary annotation ids start with 'n'")
        return value

    @property
    def is_new(self) -> bool:
        return isinstance(self.annoid, str)

    def info(self) -> dict:
        return {k: getattr(self, k) for k in INFO_FIELDS if getattr(self, k) is not None}
