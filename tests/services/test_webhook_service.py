from datetime import datetime, timezone
from unittest.mock import AsyncMock, MagicMock

import pytest
from pymongo.errors import ServerSelectionTimeoutError

from app.models.member import BillDraft, ChatUser
from app.schemas.events import EventKind
from app.services.webhook_service import GROUP_ONLY, EventDispatcher, liff_url


def _text(text, group_id="G1", user_id="U1"):
    source = {"type": "group", "groupId": group_id, "userId": user_id} if group_id else {"type": "user", "userId": user_id}
    return {"type": "message", "replyToken": "tok", "source": source, "message": {"type": "text", "text": text}}


@pytest.fixture
def dispatcher(fake_line):
    draft = BillDraft(group_id="G1", user_id="U1", expires_at=datetime.now(timezone.utc))
    drafts = MagicMock()
    drafts.open_draft = AsyncMock(return_value=draft)
    bill_service = MagicMock()
    bill_service.get_latest_status = AsyncMock(return_value=None)
    member_service = MagicMock()
    member_service.auto_register = AsyncMock(return_value=False)
    member_service.list_members = AsyncMock(return_value=[])
    pipeline = MagicMock()
    pipeline.handle = AsyncMock()
    return EventDispatcher(fake_line, pipeline, bill_service, member_service, drafts)


def _replied_text(fake_line):
    fake_line.reply_message.assert_awaited_once()
    token, messages = fake_line.reply_message.call_args[0]
    assert token == "tok"
    return messages[0]


def test_liff_url():
    assert liff_url("G1", "d1", liff_id="123-abc") == "line://app/123-abc?groupId=G1&draftId=d1"
    assert liff_url("G1", liff_id="123-abc") == "line://app/123-abc?groupId=G1"


@pytest.mark.asyncio
async def test_test_command(dispatcher, fake_line):
    event = await dispatcher.dispatch(_text("test"))
    assert event.kind == EventKind.TEXT_COMMAND
    assert _replied_text(fake_line)["text"] == "Server is working!"


@pytest.mark.asyncio
async def test_unknown_text_is_ignored(dispatcher, fake_line):
    await dispatcher.dispatch(_text("hello everyone"))
    fake_line.reply_message.assert_not_awaited()


@pytest.mark.asyncio
@pytest.mark.parametrize("command", ["/create-bill", "/status", "/member-list"])
async def test_group_commands_outside_group(dispatcher, fake_line, command):
    await dispatcher.dispatch(_text(command, group_id=None))
    assert _replied_text(fake_line)["text"] == GROUP_ONLY


@pytest.mark.asyncio
async def test_create_bill_command_opens_form(dispatcher, fake_line):
    await dispatcher.dispatch(_text("/create-bill"))
    reply = _replied_text(fake_line)
    assert reply["type"] == "template"
    assert "groupId=G1" in reply["template"]["actions"][0]["uri"]


@pytest.mark.asyncio
async def test_status_without_bills(dispatcher, fake_line):
    await dispatcher.dispatch(_text("/status"))
    assert _replied_text(fake_line)["text"] == "No bills found for this group"


@pytest.mark.asyncio
async def test_status_database_error(dispatcher, fake_line):
    dispatcher.bill_service.get_latest_status = AsyncMock(side_effect=ServerSelectionTimeoutError("down"))
    await dispatcher.dispatch(_text("/status"))
    assert _replied_text(fake_line)["text"] == "Failed to retrieve bill status"


@pytest.mark.asyncio
async def test_member_list(dispatcher, fake_line):
    dispatcher.member_service.list_members = AsyncMock(
        return_value=[ChatUser(user_id="U2", display_name="Bob"), ChatUser(user_id="U1", display_name=None)]
    )
    await dispatcher.dispatch(_text("/member-list"))
    text = _replied_text(fake_line)["text"]
    assert "1. Bob" in text
    assert "2. (unknown)" in text


@pytest.mark.asyncio
async def test_create_bill_postback_opens_draft(dispatcher, fake_line):
    raw = {
        "type": "postback",
        "replyToken": "tok",
        "source": {"type": "group", "groupId": "G1", "userId": "U1"},
        "postback": {"data": "create_bill"},
    }
    await dispatcher.dispatch(raw)

    dispatcher.drafts.open_draft.assert_awaited_once_with("G1", "U1")
    draft_id = str(dispatcher.drafts.open_draft.return_value.id)
    assert f"draftId={draft_id}" in _replied_text(fake_line)["template"]["actions"][0]["uri"]


@pytest.mark.asyncio
async def test_other_postback_is_ignored(dispatcher, fake_line):
    raw = {"type": "postback", "replyToken": "tok", "source": {"type": "group", "groupId": "G1"}, "postback": {"data": "x"}}
    await dispatcher.dispatch(raw)
    dispatcher.drafts.open_draft.assert_not_awaited()
    fake_line.reply_message.assert_not_awaited()


@pytest.mark.asyncio
async def test_image_goes_to_pipeline(dispatcher):
    raw = {
        "type": "message",
        "replyToken": "tok",
        "source": {"type": "group", "groupId": "G1", "userId": "U1"},
        "message": {"type": "image", "id": "m-9"},
    }
    await dispatcher.dispatch(raw)

    dispatcher.pipeline.handle.assert_awaited_once()
    assert dispatcher.pipeline.handle.call_args[0][0].message_id == "m-9"


@pytest.mark.asyncio
async def test_every_event_auto_registers_sender(dispatcher):
    await dispatcher.dispatch_all([_text("hello"), {"type": "join", "source": {"type": "group", "groupId": "G1"}}])
    assert dispatcher.member_service.auto_register.await_count == 2


@pytest.mark.asyncio
async def test_registration_failure_does_not_block_handler(dispatcher, fake_line):
    dispatcher.member_service.auto_register = AsyncMock(side_effect=ServerSelectionTimeoutError("down"))
    await dispatcher.dispatch(_text("test"))
    assert _replied_text(fake_line)["text"] == "Server is working!"
