"""
Slip schemas.

A SlipRecord is what the vision model read off a bank transfer slip. It is
never persisted: produced once per image, consumed once by reconciliation.
"""

from typing import Optional
from pydantic import BaseModel

SLIP_FIELDS = (
    "bank_name",
    "amount",
    "transaction_date",
    "transaction_time",
    "sender",
    "receiver",
    "reference_id",
    "channel",
)


class SlipRecord(BaseModel):
    bank_name: Optional[str] = None
    amount: Optional[float] = None
    transaction_date: Optional[str] = None  # YYYY-MM-DD
    transaction_time: Optional[str] = None  # HH:mm
    sender: Optional[str] = None
    receiver: Optional[str] = None
    reference_id: Optional[str] = None
    channel: Optional[str] = None

    error: Optional[str] = None

    @property
    def ok(self) -> bool:
        return self.error is None

    @classmethod
    def failed(cls, message: str) -> "SlipRecord":
        return cls(error=message)
