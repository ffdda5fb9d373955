import logging
from typing import List, Optional, Tuple

from motor.motor_asyncio import AsyncIOMotorDatabase
from pymongo.errors import PyMongoError

from app.line import messages
from app.line.client import LineClient, LineApiError
from app.models.bill import Bill, BillParticipant
from app.repositories.bill_repo import BillRepository
from app.repositories.draft_repo import DraftRepository
from app.repositories.member_repo import MemberRepository
from app.schemas.bill import BillCreate, BillStatusResponse, ParticipantStatus
from app.utils.bill_validation import (
    BillValidationError,
    calculate_amount_per_person,
    validate_amount,
    validate_members,
)

logger = logging.getLogger(__name__)


class BillService:
    def __init__(self, db: AsyncIOMotorDatabase):
        self.db = db
        self.bills = BillRepository(db)
        self.members = MemberRepository(db)
        self.drafts = DraftRepository(db)

    async def create(self, bill_in: BillCreate, created_by: Optional[str] = None) -> Tuple[Bill, List[BillParticipant]]:
        """
        Validate a bill submission and persist it with one obligation per member.

        Raises BillValidationError for bad input. Persistence errors propagate;
        the draft is consumed and the bill and its participants are written in
        one transaction, so a failed write leaves the draft usable.
        """
        validate_amount(bill_in.amount)
        validate_members(bill_in.member_ids)

        known = await self.members.count_members(bill_in.group_id, bill_in.member_ids)
        if known != len(bill_in.member_ids):
            raise BillValidationError("One or more selected members do not exist in this group")

        per_person = calculate_amount_per_person(
            bill_in.amount, bill_in.split_type, len(bill_in.member_ids)
        )

        bill = Bill(
            group_id=bill_in.group_id,
            title=bill_in.title.strip(),
            total_amount=bill_in.amount,
            split_type=bill_in.split_type,
            created_by=created_by,
        )
        participants = [
            BillParticipant(
                bill_id=bill.id,
                group_id=bill.group_id,
                user_id=user_id,
                amount_due=per_person,
                created_at=bill.created_at,
            )
            for user_id in bill_in.member_ids
        ]

        async with await self.db.client.start_session() as session:
            async with session.start_transaction():
                if bill_in.draft_id:
                    draft = await self.drafts.consume_draft(
                        bill_in.draft_id, bill_in.group_id, session=session
                    )
                    if draft is None:
                        raise BillValidationError("Bill draft not found or expired")
                    bill.created_by = bill.created_by or draft.user_id
                await self.bills.create_bill_with_participants(bill, participants, session=session)

        logger.info(
            "Created bill %s for group %s: %s members x %.2f",
            bill.id, bill.group_id, len(participants), per_person,
        )
        return bill, participants

    async def get_latest_status(self, group_id: str) -> Optional[BillStatusResponse]:
        bill = await self.bills.find_latest_bill_by_group(group_id)
        if bill is None:
            return None

        participants = await self.bills.list_participants(bill.id)
        names = await self.members.get_display_names(p.user_id for p in participants)
        rows = [
            ParticipantStatus(
                user_id=p.user_id,
                display_name=names.get(p.user_id),
                amount_due=p.amount_due,
                paid_at=p.paid_at,
            )
            for p in participants
        ]
        rows.sort(key=lambda r: (r.display_name or "").lower())

        return BillStatusResponse(
            bill_id=str(bill.id),
            title=bill.title,
            total_amount=bill.total_amount,
            split_type=bill.split_type,
            created_at=bill.created_at,
            participants=rows,
        )

    async def push_status(self, line: LineClient, group_id: str, alt_text: str = "Bill Status") -> None:
        """Push the latest bill card to the group. Failures are logged, not raised."""
        try:
            status = await self.get_latest_status(group_id)
            if status is None:
                return
            await line.push_message(group_id, [messages.bill_status(status, alt_text=alt_text)])
        except (LineApiError, PyMongoError):
            logger.exception("Failed to push bill status to group %s", group_id)
