import logging
from enum import Enum

from app.models.bill import Obligation
from app.repositories.bill_repo import BillRepository
from app.schemas.slip import SlipRecord

logger = logging.getLogger(__name__)


class SettlementStatus(str, Enum):
    SETTLED = "settled"
    ALREADY_PAID = "already_paid"


class SettlementService:
    """Marks obligations paid. Safe to call twice for the same obligation."""

    def __init__(self, repo: BillRepository):
        self.repo = repo

    async def mark_paid(self, obligation: Obligation, slip: SlipRecord) -> SettlementStatus:
        flipped = await self.repo.mark_paid(
            obligation.id,
            paid_amount=slip.amount,
            slip_reference=slip.reference_id,
            slip_bank=slip.bank_name,
        )
        if not flipped:
            # Another slip for the same obligation won the race
            logger.info("Obligation %s was already paid", obligation.id)
            return SettlementStatus.ALREADY_PAID

        logger.info(
            "Obligation %s paid by %s (%.2f, ref=%s)",
            obligation.id, obligation.user_id, slip.amount or 0, slip.reference_id,
        )
        return SettlementStatus.SETTLED
