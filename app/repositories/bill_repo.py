"""
BillRepository - bills and the per-payer obligations they create.

Persistence contract used by the slip pipeline:
1. create bill + participants in one transaction
2. find the latest bill of a group
3. find a payer's obligation within a bill
4. conditionally mark an obligation paid (exactly once)
"""

from typing import List, Optional
from datetime import datetime, timezone
from motor.motor_asyncio import AsyncIOMotorDatabase
from bson import ObjectId

from app.models.bill import Bill, BillParticipant


class BillRepository:
    """Repository for bills and bill participants."""

    def __init__(self, db: AsyncIOMotorDatabase):
        self.db = db
        self.bills = db["bills"]
        self.participants = db["bill_participants"]

    async def create_bill_with_participants(
        self, bill: Bill, participants: List[BillParticipant], session=None
    ) -> Bill:
        """
        Insert a bill and all of its participant rows atomically.

        Any failure aborts the transaction, so a bill never exists with only
        part of its members. Pass `session` to join a transaction the caller
        already started.
        """
        if session is not None:
            await self._insert(bill, participants, session)
            return bill

        async with await self.db.client.start_session() as session:
            async with session.start_transaction():
                await self._insert(bill, participants, session)
        return bill

    async def _insert(self, bill: Bill, participants: List[BillParticipant], session) -> None:
        await self.bills.insert_one(bill.to_document(), session=session)
        if participants:
            await self.participants.insert_many(
                [p.to_document() for p in participants], session=session
            )

    async def get_bill(self, bill_id) -> Optional[Bill]:
        if isinstance(bill_id, str):
            if not ObjectId.is_valid(bill_id):
                return None
            bill_id = ObjectId(bill_id)
        doc = await self.bills.find_one({"_id": bill_id})
        return Bill.from_document(doc)

    async def find_latest_bill_by_group(self, group_id: str) -> Optional[Bill]:
        doc = await self.bills.find_one(
            {"group_id": group_id},
            sort=[("created_at", -1), ("_id", -1)],
        )
        return Bill.from_document(doc)

    async def find_obligation(self, bill_id: ObjectId, user_id: str) -> Optional[BillParticipant]:
        doc = await self.participants.find_one({"bill_id": bill_id, "user_id": user_id})
        return BillParticipant.from_document(doc)

    async def find_latest_unpaid_obligation(self, group_id: str, user_id: str) -> Optional[BillParticipant]:
        doc = await self.participants.find_one(
            {"group_id": group_id, "user_id": user_id, "paid_at": None},
            sort=[("created_at", -1), ("_id", -1)],
        )
        return BillParticipant.from_document(doc)

    async def list_participants(self, bill_id: ObjectId) -> List[BillParticipant]:
        docs = await self.participants.find({"bill_id": bill_id}).to_list(None)
        return [BillParticipant(**doc) for doc in docs]

    async def mark_paid(
        self,
        participant_id: ObjectId,
        paid_amount: Optional[float] = None,
        slip_reference: Optional[str] = None,
        slip_bank: Optional[str] = None,
    ) -> bool:
        """
        Flip one obligation from unpaid to paid.

        The filter includes `paid_at: None`, so of two racing calls only one
        modifies the row. Returns True for the call that did.
        """
        result = await self.participants.update_one(
            {"_id": participant_id, "paid_at": None},
            {"$set": {
                "paid_at": datetime.now(timezone.utc),
                "paid_amount": paid_amount,
                "slip_reference": slip_reference,
                "slip_bank": slip_bank,
            }},
        )
        return result.modified_count == 1
