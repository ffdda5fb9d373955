"""Bill validation utilities."""
import math
from typing import List

from app.models.bill import SplitType


class BillValidationError(Exception):
    """Custom exception for bill validation errors."""
    pass


def validate_amount(amount: float) -> None:
    if amount is None or not math.isfinite(amount) or amount <= 0:
        raise BillValidationError("Amount must be a positive number")


def validate_members(member_ids: List[str]) -> None:
    """
    Validate selected members.

    Rules:
    - at least one member
    - no empty ids
    - no member selected twice
    """
    if not member_ids:
        raise BillValidationError("At least one member must be selected")

    if any(not member_id or not member_id.strip() for member_id in member_ids):
        raise BillValidationError("Member ids must not be empty")

    if len(set(member_ids)) != len(member_ids):
        raise BillValidationError("A member was selected more than once")


def calculate_amount_per_person(total: float, split_type: SplitType, member_count: int) -> float:
    """
    Amount each selected member owes.

    equal: total divided evenly, rounded to 2 decimals
    each:  every member owes the stated total
    """
    if member_count <= 0:
        raise BillValidationError("At least one member must be selected")

    if split_type == SplitType.EQUAL:
        per_person = round(total / member_count, 2)
    else:
        per_person = round(total, 2)

    if per_person <= 0:
        raise BillValidationError("Amount per person must be positive")
    return per_person
