"""
Webhook event dispatch.

Each raw event is classified into an EventKind and handed to exactly one
handler. Every kind has a handler (the unsupported one does nothing), and
this is checked when the module is imported.
"""

import asyncio
import logging
from typing import Awaitable, Callable, Dict, List, Optional
from urllib.parse import urlencode

from pymongo.errors import PyMongoError

from app.core.config import settings
from app.line import messages
from app.line.client import LineClient
from app.repositories.draft_repo import DraftRepository
from app.schemas.events import (
    ChatEvent,
    EventKind,
    ImageEvent,
    PostbackEvent,
    TextCommandEvent,
    UnsupportedEvent,
    parse_event,
)
from app.services.bill_service import BillService
from app.services.member_service import MemberService
from app.services.payment_pipeline import SlipPipeline

logger = logging.getLogger(__name__)

GROUP_ONLY = "This command only works in groups"
CREATE_BILL_POSTBACK = "create_bill"


def liff_url(group_id: str, draft_id: Optional[str] = None, liff_id: Optional[str] = None) -> str:
    params = {"groupId": group_id}
    if draft_id:
        params["draftId"] = draft_id
    return f"line://app/{liff_id or settings.LIFF_ID}?{urlencode(params)}"


class EventDispatcher:
    HANDLERS: Dict[EventKind, str] = {
        EventKind.TEXT_COMMAND: "handle_text_command",
        EventKind.IMAGE: "handle_image",
        EventKind.POSTBACK: "handle_postback",
        EventKind.UNSUPPORTED: "handle_unsupported",
    }

    def __init__(
        self,
        line: LineClient,
        pipeline: SlipPipeline,
        bill_service: BillService,
        member_service: MemberService,
        drafts: DraftRepository,
    ):
        self.line = line
        self.pipeline = pipeline
        self.bill_service = bill_service
        self.member_service = member_service
        self.drafts = drafts
        self.commands: Dict[str, Callable[[TextCommandEvent], Awaitable[None]]] = {
            "test": self._cmd_test,
            "/create-bill": self._cmd_create_bill,
            "/status": self._cmd_status,
            "/member-list": self._cmd_member_list,
        }

    async def dispatch_all(self, raw_events: List[dict]) -> None:
        await asyncio.gather(*(self.dispatch(raw) for raw in raw_events))

    async def dispatch(self, raw: dict) -> ChatEvent:
        event = parse_event(raw)
        try:
            await self.member_service.auto_register(event.source)
        except PyMongoError:
            logger.exception("Auto-registration failed for %s", event.source.user_id)

        handler = getattr(self, self.HANDLERS[event.kind])
        await handler(event)
        return event

    async def _reply(self, event: ChatEvent, message: Dict) -> None:
        if event.reply_token:
            await self.line.reply_message(event.reply_token, [message])

    async def handle_image(self, event: ImageEvent) -> None:
        await self.pipeline.handle(event)

    async def handle_text_command(self, event: TextCommandEvent) -> None:
        command = self.commands.get(event.text)
        if command is not None:
            await command(event)

    async def handle_postback(self, event: PostbackEvent) -> None:
        if event.data != CREATE_BILL_POSTBACK:
            logger.debug("Ignoring postback %r", event.data)
            return
        if not event.source.is_group:
            await self._reply(event, messages.text_message(GROUP_ONLY))
            return

        draft = await self.drafts.open_draft(event.source.group_id, event.source.user_id)
        url = liff_url(event.source.group_id, str(draft.id))
        await self._reply(event, messages.open_bill_form(url))

    async def handle_unsupported(self, event: UnsupportedEvent) -> None:
        logger.debug("Ignoring %s event", event.event_type)

    async def _cmd_test(self, event: TextCommandEvent) -> None:
        await self._reply(event, messages.text_message("Server is working!"))

    async def _cmd_create_bill(self, event: TextCommandEvent) -> None:
        if not event.source.is_group:
            await self._reply(event, messages.text_message(GROUP_ONLY))
            return
        await self._reply(event, messages.open_bill_form(liff_url(event.source.group_id)))

    async def _cmd_status(self, event: TextCommandEvent) -> None:
        if not event.source.is_group:
            await self._reply(event, messages.text_message(GROUP_ONLY))
            return
        try:
            status = await self.bill_service.get_latest_status(event.source.group_id)
        except PyMongoError:
            logger.exception("Error fetching status for %s", event.source.group_id)
            await self._reply(event, messages.text_message("Failed to retrieve bill status"))
            return

        if status is None:
            await self._reply(event, messages.text_message("No bills found for this group"))
            return
        await self._reply(event, messages.bill_status(status))

    async def _cmd_member_list(self, event: TextCommandEvent) -> None:
        if not event.source.is_group:
            await self._reply(event, messages.text_message(GROUP_ONLY))
            return
        try:
            members = await self.member_service.list_members(event.source.group_id)
        except PyMongoError:
            logger.exception("Error fetching member list for %s", event.source.group_id)
            await self._reply(event, messages.text_message("Failed to retrieve member list"))
            return
        await self._reply(event, messages.member_list([m.display_name for m in members]))


_unhandled = {
    kind for kind in EventKind
    if not hasattr(EventDispatcher, EventDispatcher.HANDLERS.get(kind, ""))
}
if _unhandled:
    raise RuntimeError(f"No handler for event kinds: {sorted(k.value for k in _unhandled)}")
