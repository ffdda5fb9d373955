"""
Chat events from the LINE webhook.

Raw webhook events are classified once into a closed set of variants so
that routing is a lookup on `kind` instead of string checks scattered
through the handlers.
"""

from enum import Enum
from typing import Literal, Optional, Union
from pydantic import BaseModel, ConfigDict, Field


class EventKind(str, Enum):
    TEXT_COMMAND = "text_command"
    IMAGE = "image"
    POSTBACK = "postback"
    UNSUPPORTED = "unsupported"


class EventSource(BaseModel):
    type: str = "user"
    group_id: Optional[str] = Field(default=None, alias="groupId")
    user_id: Optional[str] = Field(default=None, alias="userId")

    model_config = ConfigDict(populate_by_name=True)

    @property
    def is_group(self) -> bool:
        return self.type == "group" and self.group_id is not None


class _BaseEvent(BaseModel):
    reply_token: Optional[str] = None
    source: EventSource = Field(default_factory=EventSource)


class TextCommandEvent(_BaseEvent):
    kind: Literal[EventKind.TEXT_COMMAND] = EventKind.TEXT_COMMAND
    text: str


class ImageEvent(_BaseEvent):
    kind: Literal[EventKind.IMAGE] = EventKind.IMAGE
    message_id: str


class PostbackEvent(_BaseEvent):
    kind: Literal[EventKind.POSTBACK] = EventKind.POSTBACK
    data: str


class UnsupportedEvent(_BaseEvent):
    kind: Literal[EventKind.UNSUPPORTED] = EventKind.UNSUPPORTED
    event_type: Optional[str] = None


ChatEvent = Union[TextCommandEvent, ImageEvent, PostbackEvent, UnsupportedEvent]


def parse_event(raw: dict) -> ChatEvent:
    """Classify a raw webhook event into one of the ChatEvent variants."""
    common = {
        "reply_token": raw.get("replyToken"),
        "source": EventSource.model_validate(raw.get("source") or {}),
    }
    event_type = raw.get("type")
    message = raw.get("message") or {}

    if event_type == "message" and message.get("type") == "text":
        return TextCommandEvent(text=(message.get("text") or "").strip(), **common)

    if event_type == "message" and message.get("type") == "image" and message.get("id"):
        return ImageEvent(message_id=str(message["id"]), **common)

    if event_type == "postback":
        return PostbackEvent(data=(raw.get("postback") or {}).get("data", ""), **common)

    return UnsupportedEvent(event_type=event_type, **common)
