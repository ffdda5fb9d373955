import logging
from typing import Optional

from app.core.config import ObligationPolicy, settings
from app.models.bill import BillParticipant, Bill, Obligation
from app.repositories.bill_repo import BillRepository

logger = logging.getLogger(__name__)


def _as_obligation(participant: BillParticipant, bill: Bill) -> Obligation:
    return Obligation(**participant.model_dump(), bill_title=bill.title)


class ObligationService:
    """Finds the one unpaid obligation a payer's slip should settle."""

    def __init__(self, repo: BillRepository, policy: Optional[ObligationPolicy] = None):
        self.repo = repo
        self.policy = ObligationPolicy(policy or settings.OBLIGATION_POLICY)

    async def resolve(self, group_id: str, user_id: str) -> Optional[Obligation]:
        if self.policy == ObligationPolicy.LATEST_UNPAID:
            return await self._latest_unpaid(group_id, user_id)
        return await self._latest_bill(group_id, user_id)

    async def _latest_bill(self, group_id: str, user_id: str) -> Optional[Obligation]:
        # Older bills are not addressable once a newer one exists.
        bill = await self.repo.find_latest_bill_by_group(group_id)
        if bill is None:
            return None

        participant = await self.repo.find_obligation(bill.id, user_id)
        if participant is None or participant.is_paid:
            return None
        return _as_obligation(participant, bill)

    async def _latest_unpaid(self, group_id: str, user_id: str) -> Optional[Obligation]:
        participant = await self.repo.find_latest_unpaid_obligation(group_id, user_id)
        if participant is None:
            return None

        bill = await self.repo.get_bill(participant.bill_id)
        if bill is None:
            logger.warning("Participant %s references missing bill %s", participant.id, participant.bill_id)
            return None
        return _as_obligation(participant, bill)
