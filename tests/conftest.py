import asyncio
from datetime import datetime, timedelta, timezone
from typing import Dict, List, Optional
from unittest.mock import AsyncMock, MagicMock

import pytest
from bson import ObjectId
from fastapi.testclient import TestClient

from app.main import app
from app.models.bill import Bill, BillParticipant, SplitType
from app.schemas.slip import SlipRecord


def _mock_collection() -> MagicMock:
    collection = MagicMock()
    for name in (
        "find_one", "insert_one", "insert_many", "update_one", "delete_many",
        "count_documents", "find_one_and_delete", "create_index",
    ):
        setattr(collection, name, AsyncMock())
    cursor = MagicMock()
    cursor.sort.return_value = cursor
    cursor.to_list = AsyncMock(return_value=[])
    collection.find.return_value = cursor
    return collection


class MockDatabase:
    """Motor database stand-in: one MagicMock collection per name, plus sessions."""

    def __init__(self):
        self._collections: Dict[str, MagicMock] = {}
        self.session = MagicMock()
        self.session.__aenter__.return_value = self.session
        self.session.__aexit__.return_value = False
        transaction = MagicMock()
        transaction.__aexit__.return_value = False
        self.session.start_transaction.return_value = transaction
        self.client = MagicMock()
        self.client.start_session = AsyncMock(return_value=self.session)

    def __getitem__(self, name: str) -> MagicMock:
        if name not in self._collections:
            self._collections[name] = _mock_collection()
        return self._collections[name]

    def __getattr__(self, name: str) -> MagicMock:
        if name.startswith("_"):
            raise AttributeError(name)
        return self[name]


@pytest.fixture
def mock_db():
    return MockDatabase()


class FakeBillRepository:
    """In-memory BillRepository with the same conditional mark_paid semantics."""

    def __init__(self):
        self.bills: Dict[ObjectId, Bill] = {}
        self.participants: Dict[ObjectId, BillParticipant] = {}
        self.mark_paid_calls = 0

    def add_bill(
        self,
        group_id: str,
        title: str,
        dues: Dict[str, float],
        created_at: Optional[datetime] = None,
        split_type: SplitType = SplitType.EACH,
    ) -> Bill:
        created_at = created_at or datetime.now(timezone.utc)
        bill = Bill(
            group_id=group_id,
            title=title,
            total_amount=sum(dues.values()),
            split_type=split_type,
            created_at=created_at,
        )
        self.bills[bill.id] = bill
        for user_id, due in dues.items():
            participant = BillParticipant(
                bill_id=bill.id, group_id=group_id, user_id=user_id,
                amount_due=due, created_at=created_at,
            )
            self.participants[participant.id] = participant
        return bill

    def participant_for(self, bill: Bill, user_id: str) -> BillParticipant:
        return next(
            p for p in self.participants.values()
            if p.bill_id == bill.id and p.user_id == user_id
        )

    async def create_bill_with_participants(self, bill, participants, session=None):
        self.bills[bill.id] = bill
        for p in participants:
            self.participants[p.id] = p
        return bill

    async def get_bill(self, bill_id):
        return self.bills.get(ObjectId(bill_id) if isinstance(bill_id, str) else bill_id)

    async def find_latest_bill_by_group(self, group_id):
        bills = [b for b in self.bills.values() if b.group_id == group_id]
        return max(bills, key=lambda b: b.created_at, default=None)

    async def find_obligation(self, bill_id, user_id):
        return next(
            (p for p in self.participants.values() if p.bill_id == bill_id and p.user_id == user_id),
            None,
        )

    async def find_latest_unpaid_obligation(self, group_id, user_id):
        rows = [
            p for p in self.participants.values()
            if p.group_id == group_id and p.user_id == user_id and p.paid_at is None
        ]
        return max(rows, key=lambda p: p.created_at, default=None)

    async def list_participants(self, bill_id):
        return [p for p in self.participants.values() if p.bill_id == bill_id]

    async def mark_paid(self, participant_id, paid_amount=None, slip_reference=None, slip_bank=None):
        self.mark_paid_calls += 1
        await asyncio.sleep(0)
        participant = self.participants.get(participant_id)
        if participant is None or participant.paid_at is not None:
            return False
        participant.paid_at = datetime.now(timezone.utc)
        participant.paid_amount = paid_amount
        participant.slip_reference = slip_reference
        participant.slip_bank = slip_bank
        return True


@pytest.fixture
def fake_repo():
    return FakeBillRepository()


class FakeExtractor:
    """Deterministic SlipExtractor returning a fixed record."""

    def __init__(self, record: SlipRecord):
        self.record = record
        self.calls = 0

    async def extract(self, image_bytes: bytes, mime_type: Optional[str] = None) -> SlipRecord:
        self.calls += 1
        return self.record


@pytest.fixture
def make_extractor():
    return FakeExtractor


@pytest.fixture
def fake_line():
    line = MagicMock()
    line.reply_message = AsyncMock()
    line.push_message = AsyncMock()
    line.get_message_content = AsyncMock(return_value=b"image-bytes")
    line.get_group_member_profile = AsyncMock(return_value={"displayName": "Alice"})
    line.get_group_summary = AsyncMock(return_value={"groupName": "Trip"})
    return line


@pytest.fixture
def hours_ago():
    now = datetime.now(timezone.utc)
    return lambda hours: now - timedelta(hours=hours)


@pytest.fixture
def client():
    """Test client without startup events, so no MongoDB connection is made."""
    app.dependency_overrides.clear()
    yield TestClient(app)
    app.dependency_overrides.clear()
