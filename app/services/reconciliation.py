"""
Reconciliation - decide whether a slip amount settles an obligation.

Decision table:
    amount missing            -> AMOUNT_MISSING
    no obligation             -> NO_OBLIGATION
    |received - due| <= t*due -> CONFIRM
    otherwise                 -> MISMATCH

The tolerance is a fraction of the amount due (not of the amount received)
and the boundary is inclusive. There is no partial payment.
"""

import math
from decimal import Decimal
from enum import Enum
from typing import Optional
from pydantic import BaseModel

from app.core.config import settings
from app.models.bill import Obligation


BOUNDARY_REL_TOL = 1e-9


class Decision(str, Enum):
    CONFIRM = "confirm"
    MISMATCH = "mismatch"
    NO_OBLIGATION = "no_obligation"
    AMOUNT_MISSING = "amount_missing"


class ReconciliationResult(BaseModel):
    decision: Decision
    bill_title: Optional[str] = None
    expected: Optional[float] = None
    received: Optional[float] = None


def _decimal(value: float) -> Decimal:
    # str() gives the shortest repr, so 315.0 stays 315.0 and not 314.99999...
    return Decimal(str(value))


def within_tolerance(received: float, due: float, tolerance: Optional[float] = None) -> bool:
    ratio = settings.AMOUNT_TOLERANCE if tolerance is None else tolerance
    diff = abs(_decimal(received) - _decimal(due))
    limit = _decimal(ratio) * _decimal(due)
    if diff <= limit:
        return True
    # A computed due * 1.05 can land one float ulp past the limit
    return math.isclose(float(diff), float(limit), rel_tol=BOUNDARY_REL_TOL)


def reconcile(
    amount: Optional[float],
    obligation: Optional[Obligation],
    tolerance: Optional[float] = None,
) -> ReconciliationResult:
    if amount is None:
        return ReconciliationResult(decision=Decision.AMOUNT_MISSING)

    if obligation is None:
        return ReconciliationResult(decision=Decision.NO_OBLIGATION, received=amount)

    if within_tolerance(amount, obligation.amount_due, tolerance):
        decision = Decision.CONFIRM
    else:
        decision = Decision.MISMATCH
    return ReconciliationResult(
        decision=decision,
        bill_title=obligation.bill_title,
        expected=obligation.amount_due,
        received=amount,
    )
