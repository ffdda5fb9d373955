from typing import Dict, Iterable, List, Optional
from motor.motor_asyncio import AsyncIOMotorDatabase

from app.models.member import ChatUser, GroupMember


class MemberRepository:
    """Chat groups, users and who belongs to which group."""

    def __init__(self, db: AsyncIOMotorDatabase):
        self.db = db
        self.users = db["users"]
        self.groups = db["groups"]
        self.group_members = db["group_members"]

    async def is_member(self, group_id: str, user_id: str) -> bool:
        doc = await self.group_members.find_one({"group_id": group_id, "user_id": user_id})
        return doc is not None

    async def upsert_group(self, group_id: str, group_name: Optional[str]) -> None:
        await self.groups.update_one(
            {"group_id": group_id},
            {"$set": {"group_name": group_name}},
            upsert=True,
        )

    async def upsert_user(self, user_id: str, display_name: Optional[str]) -> None:
        await self.users.update_one(
            {"user_id": user_id},
            {"$set": {"display_name": display_name}},
            upsert=True,
        )

    async def add_member(self, group_id: str, user_id: str) -> None:
        member = GroupMember(group_id=group_id, user_id=user_id)
        await self.group_members.update_one(
            {"group_id": group_id, "user_id": user_id},
            {"$setOnInsert": member.model_dump()},
            upsert=True,
        )

    async def count_members(self, group_id: str, user_ids: Iterable[str]) -> int:
        return await self.group_members.count_documents(
            {"group_id": group_id, "user_id": {"$in": list(user_ids)}}
        )

    async def get_display_names(self, user_ids: Iterable[str]) -> Dict[str, Optional[str]]:
        docs = await self.users.find({"user_id": {"$in": list(user_ids)}}).to_list(None)
        return {doc["user_id"]: doc.get("display_name") for doc in docs}

    async def list_members(self, group_id: str) -> List[ChatUser]:
        """Registered members of a group, sorted by display name."""
        memberships = await self.group_members.find({"group_id": group_id}).to_list(None)
        names = await self.get_display_names(m["user_id"] for m in memberships)
        members = [
            ChatUser(user_id=m["user_id"], display_name=names.get(m["user_id"]))
            for m in memberships
        ]
        members.sort(key=lambda m: (m.display_name is None, (m.display_name or "").lower()))
        return members
