from app.schemas.events import (
    EventKind,
    ImageEvent,
    PostbackEvent,
    TextCommandEvent,
    UnsupportedEvent,
    parse_event,
)
from app.services.webhook_service import EventDispatcher

GROUP_SOURCE = {"type": "group", "groupId": "G1", "userId": "U1"}


def test_text_message():
    event = parse_event({
        "type": "message",
        "replyToken": "r1",
        "source": GROUP_SOURCE,
        "message": {"type": "text", "id": "1", "text": "  /status "},
    })
    assert isinstance(event, TextCommandEvent)
    assert event.kind == EventKind.TEXT_COMMAND
    assert event.text == "/status"
    assert event.reply_token == "r1"
    assert event.source.group_id == "G1"
    assert event.source.user_id == "U1"
    assert event.source.is_group


def test_image_message():
    event = parse_event({
        "type": "message",
        "replyToken": "r1",
        "source": GROUP_SOURCE,
        "message": {"type": "image", "id": "4687"},
    })
    assert isinstance(event, ImageEvent)
    assert event.message_id == "4687"


def test_postback():
    event = parse_event({
        "type": "postback",
        "replyToken": "r1",
        "source": GROUP_SOURCE,
        "postback": {"data": "create_bill"},
    })
    assert isinstance(event, PostbackEvent)
    assert event.data == "create_bill"


def test_other_events_are_unsupported():
    for raw in (
        {"type": "follow", "source": {"type": "user", "userId": "U1"}},
        {"type": "message", "message": {"type": "sticker", "id": "1"}},
        {"type": "message", "message": {"type": "image"}},
        {},
    ):
        assert isinstance(parse_event(raw), UnsupportedEvent)


def test_user_source_is_not_group():
    event = parse_event({
        "type": "message",
        "source": {"type": "user", "userId": "U1"},
        "message": {"type": "text", "text": "hi"},
    })
    assert not event.source.is_group


def test_every_event_kind_has_a_handler():
    for kind in EventKind:
        assert hasattr(EventDispatcher, EventDispatcher.HANDLERS[kind])
