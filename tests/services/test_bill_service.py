from datetime import datetime, timezone
from unittest.mock import AsyncMock

import pytest
from pymongo.errors import OperationFailure, ServerSelectionTimeoutError

from app.line.client import LineApiError
from app.models.bill import SplitType
from app.models.member import BillDraft
from app.schemas.bill import BillCreate
from app.services.bill_service import BillService
from app.utils.bill_validation import BillValidationError


@pytest.fixture
def service(mock_db, fake_repo):
    service = BillService(mock_db)
    service.bills = fake_repo
    service.members = AsyncMock()
    service.members.count_members.side_effect = lambda group_id, ids: len(list(ids))
    service.members.get_display_names.return_value = {}
    service.drafts = AsyncMock()
    return service


class TransactionalDrafts:
    """Draft store whose removals are undone when the surrounding transaction aborts."""

    def __init__(self, mock_db, draft: BillDraft):
        self.live = {str(draft.id): draft}
        self.pending = {}

        async def finish(exc_type, exc, tb):
            if exc_type is not None:
                self.live.update(self.pending)
            self.pending = {}
            return False

        mock_db.session.start_transaction.return_value.__aexit__.side_effect = finish

    async def consume_draft(self, draft_id, group_id, session=None):
        assert session is not None
        draft = self.live.pop(draft_id, None)
        if draft is not None:
            self.pending[draft_id] = draft
        return draft


def _bill_in(**overrides) -> BillCreate:
    data = dict(group_id="G1", title=" Hotpot ", split_type=SplitType.EQUAL, amount=900.0, member_ids=["A", "B", "C"])
    data.update(overrides)
    return BillCreate(**data)


@pytest.mark.asyncio
async def test_equal_split_creates_one_row_per_member(service, fake_repo):
    bill, participants = await service.create(_bill_in(), created_by="A")

    assert bill.title == "Hotpot"
    assert bill.total_amount == 900.0
    assert bill.created_by == "A"
    assert [p.user_id for p in participants] == ["A", "B", "C"]
    assert all(p.amount_due == 300.0 for p in participants)
    assert all(p.paid_at is None for p in participants)
    assert len(await fake_repo.list_participants(bill.id)) == 3


@pytest.mark.asyncio
async def test_each_split_charges_everyone_the_amount(service):
    _, participants = await service.create(_bill_in(split_type=SplitType.EACH, amount=120.0))
    assert [p.amount_due for p in participants] == [120.0, 120.0, 120.0]


@pytest.mark.asyncio
async def test_unknown_member_is_rejected(service, fake_repo):
    service.members.count_members.side_effect = None
    service.members.count_members.return_value = 2

    with pytest.raises(BillValidationError, match="do not exist"):
        await service.create(_bill_in())
    assert fake_repo.bills == {}


@pytest.mark.asyncio
@pytest.mark.parametrize("overrides", [
    {"amount": 0},
    {"amount": -10},
    {"member_ids": []},
    {"member_ids": ["A", "A"]},
])
async def test_invalid_submission_writes_nothing(service, fake_repo, overrides):
    with pytest.raises(BillValidationError):
        await service.create(_bill_in(**overrides))
    assert fake_repo.bills == {}
    assert fake_repo.participants == {}


@pytest.mark.asyncio
async def test_draft_is_consumed_and_sets_creator(service, mock_db):
    service.drafts.consume_draft.return_value = BillDraft(group_id="G1", user_id="OPENER", expires_at=datetime.now(timezone.utc))

    bill, _ = await service.create(_bill_in(draft_id="d1"))

    service.drafts.consume_draft.assert_awaited_once_with("d1", "G1", session=mock_db.session)
    assert bill.created_by == "OPENER"


@pytest.mark.asyncio
async def test_expired_draft_is_rejected(service, fake_repo):
    service.drafts.consume_draft.return_value = None

    with pytest.raises(BillValidationError, match="expired"):
        await service.create(_bill_in(draft_id="d1"))
    assert fake_repo.bills == {}


@pytest.mark.asyncio
async def test_failed_write_leaves_draft_usable(service, mock_db, fake_repo):
    draft = BillDraft(group_id="G1", user_id="OPENER", expires_at=datetime.now(timezone.utc))
    drafts = TransactionalDrafts(mock_db, draft)
    service.drafts = drafts
    fake_repo.create_bill_with_participants = AsyncMock(side_effect=OperationFailure("write conflict"))

    with pytest.raises(OperationFailure):
        await service.create(_bill_in(draft_id=str(draft.id)))

    assert str(draft.id) in drafts.live
    assert fake_repo.bills == {}

    del fake_repo.create_bill_with_participants
    bill, _ = await service.create(_bill_in(draft_id=str(draft.id)))

    assert bill.created_by == "OPENER"
    assert drafts.live == {}


@pytest.mark.asyncio
async def test_latest_status(service, fake_repo, hours_ago):
    fake_repo.add_bill("G1", "Old", {"A": 10.0}, created_at=hours_ago(5))
    bill = fake_repo.add_bill("G1", "New", {"A": 50.0, "B": 50.0}, created_at=hours_ago(1))
    await fake_repo.mark_paid(fake_repo.participant_for(bill, "B").id)
    service.members.get_display_names.return_value = {"A": "zoe", "B": "Adam"}

    status = await service.get_latest_status("G1")

    assert status.title == "New"
    assert status.bill_id == str(bill.id)
    assert [p.display_name for p in status.participants] == ["Adam", "zoe"]
    assert [p.is_paid for p in status.participants] == [True, False]


@pytest.mark.asyncio
async def test_latest_status_without_bills(service):
    assert await service.get_latest_status("G1") is None


@pytest.mark.asyncio
async def test_push_status_sends_card(service, fake_repo, fake_line):
    fake_repo.add_bill("G1", "Dinner", {"A": 50.0})

    await service.push_status(fake_line, "G1", alt_text="New Bill Created!")

    fake_line.push_message.assert_awaited_once()
    group_id, payload = fake_line.push_message.call_args[0]
    assert group_id == "G1"
    assert payload[0]["altText"] == "New Bill Created!"


@pytest.mark.asyncio
async def test_push_status_skips_group_without_bills(service, fake_line):
    await service.push_status(fake_line, "G1")
    fake_line.push_message.assert_not_awaited()


@pytest.mark.asyncio
@pytest.mark.parametrize("error", [LineApiError("rate limited", status_code=429), ServerSelectionTimeoutError("down")])
async def test_push_status_failures_are_logged_not_raised(service, fake_repo, fake_line, error):
    fake_repo.add_bill("G1", "Dinner", {"A": 50.0})
    fake_line.push_message = AsyncMock(side_effect=error)
    await service.push_status(fake_line, "G1")
