import logging
from typing import List

from motor.motor_asyncio import AsyncIOMotorDatabase

from app.line.client import LineClient, LineApiError
from app.models.member import ChatUser
from app.repositories.member_repo import MemberRepository
from app.schemas.events import EventSource

logger = logging.getLogger(__name__)


class MemberService:
    def __init__(self, db: AsyncIOMotorDatabase, line: LineClient):
        self.repo = MemberRepository(db)
        self.line = line

    async def auto_register(self, source: EventSource) -> bool:
        """
        Register the sender of a group event as a member of that group.

        Returns True when a new membership was created. Profile lookups
        are best effort; a member is registered even without a name.
        """
        if not source.is_group or not source.user_id:
            return False

        if await self.repo.is_member(source.group_id, source.user_id):
            return False

        display_name = None
        group_name = None
        try:
            profile = await self.line.get_group_member_profile(source.group_id, source.user_id)
            display_name = profile.get("displayName")
        except LineApiError as e:
            logger.warning("Could not fetch profile for %s: %s", source.user_id, e)

        try:
            summary = await self.line.get_group_summary(source.group_id)
            group_name = summary.get("groupName")
        except LineApiError as e:
            logger.warning("Could not fetch group summary for %s: %s", source.group_id, e)

        await self.repo.upsert_group(source.group_id, group_name)
        await self.repo.upsert_user(source.user_id, display_name)
        await self.repo.add_member(source.group_id, source.user_id)

        logger.info("Registered new member %s in group %s", display_name or source.user_id, source.group_id)
        return True

    async def list_members(self, group_id: str) -> List[ChatUser]:
        return await self.repo.list_members(group_id)
