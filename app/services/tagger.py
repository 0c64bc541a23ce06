"""Tag name validation."""

import re
from enum import IntFlag

from app.core.context import Contact

TAG_RE = re.compile(r"\A(?:~~|~)?[a-zA-Z@*_:.][-+a-zA-Z0-9?!@*_:./]*\Z")
MAX_TAG_LENGTH = 80


class TagFlags(IntFlag):
    NONE = 0
    NOVALUE = 1
    NOPRIVATE = 2


class Tagger:
    """Checks tag names on behalf of a user.

    Private tags (``~name``) are rewritten to their owner-qualified form
    ``<contact_id>~name``.
    """

    def __init__(self, user: Contact) -> None:
        self.user = user
        self._error: str | None = None

    def error_ftext(self) -> str:
        return self._error or "Invalid tag"

    def _fail(self, message: str) -> None:
        self._error = message
        return None

    def check(self, tag: str | None, flags: TagFlags = TagFlags.NONE) -> str | None:
        self._error = None
        tag = (tag or "").strip()
        if tag == "":
            return self._fail("Tag required")
        name, hash_, value = tag.partition("#")
        if hash_:
            if flags & TagFlags.NOVALUE:
                return self._fail("Tag value not allowed here")
            tag = name
        if len(tag) > MAX_TAG_LENGTH:
            return self._fail("Tag too long")
        if not TAG_RE.match(tag):
            return self._fail(f"Invalid tag ‘{tag}’")
        if tag.startswith("~") and not tag.startswith("~~"):
            if flags & TagFlags.NOPRIVATE:
                return self._fail("Private tags not allowed here")
            if self.user.contact_id <= 0:
                return self._fail("Sign in to use private tags")
            tag = f"{self.user.contact_id}{tag}"
        return tag
