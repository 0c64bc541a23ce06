"""Exceptions raised for programmer-contract violations in the request layer."""


class RequestError(Exception):
    """Base class for request layer errors."""


class AnnexError(RequestError):
    """A typed annex was missing or of an unexpected kind."""

    def __init__(self, name: str, expected: type) -> None:
        super().__init__(f"Bad annex {name!r}: expected {expected.__name__}")
        self.name = name
        self.expected = expected


class ActiveListError(RequestError):
    """The active result list was set more than once."""
