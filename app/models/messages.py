"""User-facing message items collected while handling a request."""

from enum import IntEnum

from pydantic import BaseModel


class MessageStatus(IntEnum):
    """Severity of a message item."""

    INFORM = -5
    PLAIN = 0
    WARNING = 1
    ERROR = 2


class MessageItem(BaseModel):
    """A message with an optional field path and landmark."""

    field: str | None = None
    landmark: str | None = None
    message: str = ""
    status: MessageStatus = MessageStatus.PLAIN

    @classmethod
    def error(cls, message: str, **kwargs) -> "MessageItem":
        return cls(message=message, status=MessageStatus.ERROR, **kwargs)

    @classmethod
    def inform(cls, message: str, **kwargs) -> "MessageItem":
        return cls(message=message, status=MessageStatus.INFORM, **kwargs)

    def as_json(self) -> dict:
        return self.model_dump(mode="json", exclude_none=True)


def message_list_json(items: list[MessageItem]) -> list[dict]:
    return [item.as_json() for item in items]


def make_error_json(message: str) -> dict:
    """Failure response carrying a single error message."""
    return {"ok": False, "message_list": [MessageItem.error(message).as_json()]}
