from typing import Optional, List
from pydantic import BaseModel, Field
from datetime import datetime
from app.models.bill import SplitType


class BillCreate(BaseModel):
    """Bill form submission from the LIFF page."""
    group_id: str = Field(min_length=1)
    title: str = Field(min_length=1)
    split_type: SplitType
    amount: float
    member_ids: List[str] = []
    draft_id: Optional[str] = None


class BillCreateResponse(BaseModel):
    success: bool = True
    bill_id: str
    participants: int
    amount_per_person: float


class ParticipantStatus(BaseModel):
    user_id: str
    display_name: Optional[str] = None
    amount_due: float
    paid_at: Optional[datetime] = None

    @property
    def is_paid(self) -> bool:
        return self.paid_at is not None


class BillStatusResponse(BaseModel):
    """Latest bill of a group with per-member payment state."""
    bill_id: str
    title: str
    total_amount: float
    split_type: SplitType
    created_at: datetime
    participants: List[ParticipantStatus] = []
