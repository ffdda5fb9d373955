import logging

from fastapi import APIRouter, HTTPException, Depends, Query, status
from pymongo.errors import PyMongoError

from app.api.deps import get_bill_service
from app.line.client import LineClient, get_line_client
from app.schemas.bill import BillCreate, BillCreateResponse, BillStatusResponse
from app.services.bill_service import BillService
from app.utils.bill_validation import BillValidationError

logger = logging.getLogger(__name__)

router = APIRouter()


@router.post("/", response_model=BillCreateResponse)
async def create_bill(
    bill_in: BillCreate,
    bill_service: BillService = Depends(get_bill_service),
    line: LineClient = Depends(get_line_client),
):
    """Create a bill and one obligation per selected member"""
    try:
        bill, participants = await bill_service.create(bill_in)
    except BillValidationError as e:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=str(e))
    except PyMongoError:
        logger.exception("Error creating bill for group %s", bill_in.group_id)
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail="Failed to create bill"
        )

    await bill_service.push_status(line, bill.group_id, alt_text="New Bill Created!")

    return BillCreateResponse(
        bill_id=str(bill.id),
        participants=len(participants),
        amount_per_person=participants[0].amount_due,
    )


@router.get("/latest", response_model=BillStatusResponse)
async def get_latest_bill(
    group_id: str = Query(..., min_length=1),
    bill_service: BillService = Depends(get_bill_service),
):
    """Get the active bill of a group with payment state per member"""
    bill_status = await bill_service.get_latest_status(group_id)
    if bill_status is None:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="No bills found for this group")
    return bill_status
