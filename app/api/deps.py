from fastapi import Depends
from motor.motor_asyncio import AsyncIOMotorDatabase

from app.db.mongo import get_db
from app.line.client import LineClient, get_line_client
from app.repositories.bill_repo import BillRepository
from app.repositories.draft_repo import DraftRepository
from app.services.bill_service import BillService
from app.services.member_service import MemberService
from app.services.obligation_service import ObligationService
from app.services.payment_pipeline import SlipPipeline
from app.services.settlement_service import SettlementService
from app.services.slip_service import GeminiSlipExtractor
from app.services.webhook_service import EventDispatcher


def get_bill_service(db: AsyncIOMotorDatabase = Depends(get_db)) -> BillService:
    return BillService(db)


def get_member_service(
    db: AsyncIOMotorDatabase = Depends(get_db),
    line: LineClient = Depends(get_line_client),
) -> MemberService:
    return MemberService(db, line)


def get_dispatcher(
    db: AsyncIOMotorDatabase = Depends(get_db),
    line: LineClient = Depends(get_line_client),
) -> EventDispatcher:
    bills = BillRepository(db)
    bill_service = BillService(db)
    pipeline = SlipPipeline(
        extractor=GeminiSlipExtractor(),
        resolver=ObligationService(bills),
        settlement=SettlementService(bills),
        line=line,
        bill_service=bill_service,
    )
    return EventDispatcher(
        line=line,
        pipeline=pipeline,
        bill_service=bill_service,
        member_service=MemberService(db, line),
        drafts=DraftRepository(db),
    )
