from typing import Optional
from datetime import datetime, timedelta, timezone
from motor.motor_asyncio import AsyncIOMotorDatabase
from bson import ObjectId

from app.core.config import settings
from app.models.member import BillDraft


class DraftRepository:
    """Bill drafts started from the chat. Expired drafts are removed by a TTL index."""

    def __init__(self, db: AsyncIOMotorDatabase, ttl_minutes: Optional[int] = None):
        self.db = db
        self.collection = db["bill_drafts"]
        self.ttl = timedelta(minutes=ttl_minutes or settings.BILL_DRAFT_TTL_MINUTES)

    async def open_draft(self, group_id: str, user_id: str) -> BillDraft:
        """Start a draft for the user, replacing any draft they had open in the group."""
        now = datetime.now(timezone.utc)
        draft = BillDraft(group_id=group_id, user_id=user_id, created_at=now, expires_at=now + self.ttl)
        await self.collection.delete_many({"group_id": group_id, "user_id": user_id})
        await self.collection.insert_one(draft.to_document())
        return draft

    async def consume_draft(self, draft_id: str, group_id: str, session=None) -> Optional[BillDraft]:
        """Remove and return a live draft of the group, or None.

        With `session` the removal is rolled back if the caller's transaction aborts.
        """
        if not ObjectId.is_valid(draft_id):
            return None
        # The TTL monitor runs about once a minute, so expiry is checked here too.
        doc = await self.collection.find_one_and_delete({
            "_id": ObjectId(draft_id),
            "group_id": group_id,
            "expires_at": {"$gt": datetime.now(timezone.utc)},
        }, session=session)
        return BillDraft.from_document(doc)
