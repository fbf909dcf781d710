"""
Vendor-facing routes.

Vendors have no account: they open the link from their invitation email,
which carries the vendor id and the invitation's access token.
"""
from fastapi import APIRouter, Depends, Query
from sqlalchemy.orm import Session
import logging

from bidhub.db.session import get_db
from bidhub.db.store import BidStore
from bidhub.schemas.submission import SubmissionIn, SubmissionOut, VendorBidView
from bidhub.core.errors import AlreadyResponded, DeliveryFailed, ValidationFailed
from bidhub.services import bid_service, notification_service, validation_service
from bidhub.utils.bid_state import BidStateMachine

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/vendor-submissions", tags=["vendor submissions"])


@router.get("/{bid_id}", response_model=VendorBidView)
def view_bid(
    bid_id: int,
    vendor_id: int = Query(...),
    token: str = Query(..., description="Access token from the invitation link"),
    db: Session = Depends(get_db),
):
    bid, invitation = bid_service.get_bid_for_vendor(db, bid_id, vendor_id, token)
    submission = BidStore(db).get_submission(bid_id, vendor_id)
    return {
        "bid_id": bid.id,
        "title": bid.title,
        "description": bid.description,
        "due_date": bid.due_date,
        "status": BidStateMachine.status(bid.due_date),
        "days_remaining": BidStateMachine.days_remaining(bid.due_date),
        "buyer_company": bid.buyer.company_name or bid.buyer.name,
        "items": bid.items,
        "has_responded": invitation.has_responded,
        "submission": submission,
    }


@router.post("/{bid_id}", response_model=SubmissionOut, status_code=201)
async def submit_response(
    bid_id: int,
    payload: SubmissionIn,
    vendor_id: int = Query(...),
    token: str = Query(..., description="Access token from the invitation link"),
    db: Session = Depends(get_db),
):
    """Submit the vendor's prices and terms. A vendor answers each bid once."""
    bid, invitation = bid_service.get_bid_for_vendor(db, bid_id, vendor_id, token)
    bid_service.ensure_active(bid, "This bid has expired and is no longer accepting responses")
    if invitation.has_responded:
        raise AlreadyResponded("You have already submitted a response to this bid")

    result = validation_service.validate_submission(payload)
    if not result.is_valid:
        raise ValidationFailed(f"Validation error: {result.message}")

    submission = bid_service.submit_response(db, bid_id, vendor_id, payload)

    try:
        await notification_service.send_submission_notification(db, bid, submission)
    except DeliveryFailed as e:
        logger.warning(f"Response to bid {bid_id} stored but buyer notification failed: {e.message}")

    return submission
