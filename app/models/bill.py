"""
Bill model - a group's shared expense and the obligations it creates.

Design principles:
- A bill is immutable once created
- One participant row per (bill, payer), inserted in the same transaction
- A participant row moves from unpaid to paid exactly once and never back
- The newest bill of a group is the "active" one
"""

from typing import Optional
from datetime import datetime
from enum import Enum
from pydantic import Field

from app.models.base import MongoModel, PyObjectId


class SplitType(str, Enum):
    EQUAL = "equal"  # total divided evenly between selected members
    EACH = "each"    # every selected member pays the stated amount


class Bill(MongoModel):
    group_id: str
    title: str
    total_amount: float = Field(gt=0)
    split_type: SplitType
    created_by: Optional[str] = None


class BillParticipant(MongoModel):
    """
    One payer's obligation within a bill.

    Invariants:
    - amount_due > 0
    - paid_at is None until the settlement writer flips it
    """
    bill_id: PyObjectId
    group_id: str
    user_id: str
    amount_due: float = Field(gt=0)

    paid_at: Optional[datetime] = None
    paid_amount: Optional[float] = None
    slip_reference: Optional[str] = None
    slip_bank: Optional[str] = None

    @property
    def is_paid(self) -> bool:
        return self.paid_at is not None


class Obligation(BillParticipant):
    """A participant row resolved together with the bill it belongs to."""
    bill_title: str
