"""Lazy access to the raw request body."""

import base64
import mimetypes
import re
import secrets
import shutil
import tempfile
from collections.abc import Callable
from pathlib import Path
from typing import BinaryIO

from app.core.exceptions import RequestError
from app.core.logger import LogIcon, logger
from app.models.core import BodyState

BodyOpener = Callable[[], BinaryIO]

SNIFF_LENGTH = 4096
ZIP_MAGIC = b"PK\x03\x04"
JSON_START = re.compile(rb"\A\s*[\[{]")

KNOWN_EXTENSIONS: dict[str, str] = {
    "application/json": ".json",
    "application/zip": ".zip",
    "application/pdf": ".pdf",
    "text/plain": ".txt",
    "text/csv": ".csv",
}

TRANSITIONS: dict[BodyState, frozenset[BodyState]] = {
    BodyState.NONE: frozenset({BodyState.UNREAD, BodyState.EXPLICIT}),
    BodyState.UNREAD: frozenset({BodyState.CACHED, BodyState.EXPLICIT}),
    BodyState.CACHED: frozenset({BodyState.EXPLICIT}),
    BodyState.EXPLICIT: frozenset({BodyState.EXPLICIT}),
}


def media_type(content_type: str | None) -> str | None:
    """Type portion of a Content-Type header, lowercased."""
    if not content_type:
        return None
    return content_type.split(";", 1)[0].strip().lower() or None


def extension_for(content_type: str | None) -> str:
    mt = media_type(content_type)
    if mt is None:
        return ""
    return KNOWN_EXTENSIONS.get(mt) or mimetypes.guess_extension(mt) or ""


def sniff_content_type(prefix: bytes) -> str | None:
    if prefix.startswith(ZIP_MAGIC):
        return "application/zip"
    if JSON_START.match(prefix):
        return "application/json"
    return None


def random_token() -> str:
    return base64.b32encode(secrets.token_bytes(6)).decode().rstrip("=").lower()


class BodyAccessor:
    """Request body that is read from its input at most once.

    A body starts ``NONE`` (no body) or ``UNREAD`` (an input stream exists).
    Reading caches it (``CACHED``); ``set`` replaces it (``EXPLICIT``).
    """

    def __init__(self, opener: BodyOpener | None = None, temp_root: Path | None = None) -> None:
        self._state = BodyState.NONE
        self._opener: BodyOpener | None = None
        self._content: bytes | None = None
        self._filename: Path | None = None
        self._temp_root = temp_root
        self._tmpdir: Path | None = None
        if opener is not None:
            self._transition(BodyState.UNREAD, opener=opener)

    @property
    def state(self) -> BodyState:
        return self._state

    def _transition(
        self,
        target: BodyState,
        *,
        content: bytes | None = None,
        opener: BodyOpener | None = None,
    ) -> None:
        if target not in TRANSITIONS[self._state]:
            raise RequestError(f"Invalid body transition {self._state} -> {target}")
        match target:
            case BodyState.UNREAD:
                self._opener = opener
            case BodyState.CACHED:
                self._content = content
            case BodyState.EXPLICIT:
                self._opener = None
                self._content = content
                self._filename = None
        self._state = target

    def content(self) -> bytes | None:
        if self._state is BodyState.UNREAD:
            with self._opener() as stream:
                self._transition(BodyState.CACHED, content=stream.read())
        return self._content

    def set(self, content: bytes | str) -> None:
        if isinstance(content, str):
            content = content.encode()
        self._transition(BodyState.EXPLICIT, content=content)

    def content_type(self, declared: str | None = None) -> str | None:
        if self._state is BodyState.NONE:
            return None
        if declared:
            return media_type(declared)
        prefix = self._content
        if prefix is None and self._state is BodyState.UNREAD:
            try:
                with self._opener() as stream:
                    prefix = stream.read(SNIFF_LENGTH)
            except OSError as ex:
                logger.warning("Cannot sniff request body", icon=LogIcon.WARNING, error=str(ex))
                return None
        return sniff_content_type((prefix or b"")[:SNIFF_LENGTH])

    def _tempdir(self) -> Path | None:
        if self._tmpdir is None:
            try:
                self._tmpdir = Path(tempfile.mkdtemp(prefix="qreq-", dir=self._temp_root))
            except OSError as ex:
                logger.warning("Cannot create temporary directory", icon=LogIcon.WARNING, error=str(ex))
                return None
        return self._tmpdir

    def filename(self, extension: str | None = None, declared: str | None = None) -> Path | None:
        """Path of a temporary file holding the body, created on first use."""
        if self._filename is not None or self._state is BodyState.NONE:
            return self._filename
        if not (tmpdir := self._tempdir()):
            return None
        if extension is None:
            extension = extension_for(declared)
        path = tmpdir / f"{random_token()}{extension}"
        try:
            with path.open("wb") as out:
                if self._state is BodyState.UNREAD:
                    with self._opener() as stream:
                        shutil.copyfileobj(stream, out)
                else:
                    out.write(self._content or b"")
        except OSError as ex:
            logger.warning("Cannot copy request body", icon=LogIcon.FILE, path=str(path), error=str(ex))
            path.unlink(missing_ok=True)
            return None
        self._filename = path
        logger.debug("Request body saved", icon=LogIcon.FILE, path=str(path))
        return path

    def cleanup(self) -> None:
        if self._tmpdir is not None:
            shutil.rmtree(self._tmpdir, ignore_errors=True)
            self._tmpdir = None
            self._filename = None
