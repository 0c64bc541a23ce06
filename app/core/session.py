"""Two-tier session storage: a global tier plus per-namespace tiers."""

import copy
import secrets
from typing import Any
from urllib.parse import quote_plus

from beartype import beartype

from app.core.logger import LogIcon, logger

NO_SESSION_TOKEN = ".empty"


class SessionBackend:
    """Process-local session records keyed by session id.

    Records are shared by every request that presents the same id; the
    last commit wins.
    """

    def __init__(self) -> None:
        self._records: dict[str, dict[str, Any]] = {}

    def __contains__(self, sid: object) -> bool:
        return sid in self._records

    def __len__(self) -> int:
        return len(self._records)

    def create(self) -> str:
        sid = secrets.token_urlsafe(24)
        while sid in self._records:
            sid = secrets.token_urlsafe(24)
        self._records[sid] = {}
        return sid

    def load(self, sid: str) -> dict[str, Any] | None:
        record = self._records.get(sid)
        return copy.deepcopy(record) if record is not None else None

    def save(self, sid: str, data: dict[str, Any]) -> None:
        self._records[sid] = copy.deepcopy(data)

    def clear(self) -> None:
        self._records.clear()


@beartype
def post_token(sid: str | None) -> str:
    """Anti-forgery token derived from a session id."""
    if not sid:
        return NO_SESSION_TOKEN
    start = 8 if len(sid) > 16 else 0
    return quote_plus(sid[start:start + 12])


class Qsession:
    """One request's view of a session record.

    Top-level keys form the global tier. ``*2`` accessors address a
    namespace (for example a conference's session key) nested one level
    down; a namespace exists only once something has been written to it.
    """

    def __init__(self, backend: SessionBackend | None = None, sid: str | None = None) -> None:
        self._backend = backend if backend is not None else SessionBackend()
        self._sid: str | None = None
        self._data: dict[str, Any] = {}
        self._modified = False
        self._opened_now = False
        if sid and (data := self._backend.load(sid)) is not None:
            self._sid = sid
            self._data = data

    @property
    def sid(self) -> str | None:
        return self._sid

    @property
    def is_open(self) -> bool:
        return self._sid is not None

    @property
    def modified(self) -> bool:
        return self._modified

    @property
    def opened_now(self) -> bool:
        return self._opened_now

    def open(self) -> None:
        if self._sid is not None:
            return
        self._sid = self._backend.create()
        self._data = {}
        self._opened_now = True
        logger.info("Session opened", icon=LogIcon.SESSION)

    def commit(self) -> bool:
        """Write a modified record back to the backend."""
        if self._sid is None or not self._modified:
            return False
        self._backend.save(self._sid, self._data)
        self._modified = False
        return True

    def clear(self) -> None:
        self._data = {}
        self._modified = True

    def as_dict(self) -> dict[str, Any]:
        return copy.deepcopy(self._data)

    def has(self, key: str) -> bool:
        return key in self._data

    def get(self, key: str, default: Any = None) -> Any:
        return self._data.get(key, default)

    def set(self, key: str, value: Any) -> None:
        self.open()
        self._data[key] = value
        self._modified = True

    def unset(self, key: str) -> None:
        if key in self._data:
            del self._data[key]
            self._modified = True

    def has2(self, namespace: str, key: str) -> bool:
        return key in self._data.get(namespace, {})

    def get2(self, namespace: str, key: str, default: Any = None) -> Any:
        return self._data.get(namespace, {}).get(key, default)

    def set2(self, namespace: str, key: str, value: Any) -> None:
        self.open()
        self._data.setdefault(namespace, {})[key] = value
        self._modified = True

    def unset2(self, namespace: str, key: str) -> None:
        tier = self._data.get(namespace)
        if tier is None or key not in tier:
            return
        del tier[key]
        if not tier:
            del self._data[namespace]
        self._modified = True
