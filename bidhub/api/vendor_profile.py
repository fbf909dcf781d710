"""
Vendor accounts.

A vendor account owns no records of its own: buyers keep vendor records
under an email address, and the account with that address sees them here
together with the bids it was invited to.
"""
from fastapi import APIRouter, Depends
from sqlalchemy.orm import Session
import logging

from bidhub.db.session import get_db
from bidhub.db.models import User, VendorInvitation
from bidhub.schemas.vendor import VendorProfileOut
from bidhub.core.deps import require_vendor
from bidhub.services import bid_service, notification_service
from bidhub.utils.bid_state import BidStateMachine

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/vendor", tags=["vendor profile"])


def profile_invitation_out(invitation: VendorInvitation) -> dict:
    bid = invitation.bid
    return {
        "bid_id": bid.id,
        "title": bid.title,
        "buyer_company": bid.buyer.company_name or bid.buyer.name,
        "due_date": bid.due_date,
        "status": BidStateMachine.status(bid.due_date),
        "vendor_id": invitation.vendor_id,
        "company_name": invitation.vendor.company_name,
        "has_responded": invitation.has_responded,
        "link": notification_service.vendor_link(bid, invitation),
    }


@router.get("/profile", response_model=VendorProfileOut)
def get_profile(
    db: Session = Depends(get_db),
    current_user: User = Depends(require_vendor),
):
    """Vendor records kept under the caller's email, and their invitations"""
    records, invitations = bid_service.vendor_profile(db, current_user)
    return {
        "name": current_user.name,
        "email": current_user.email,
        "records": records,
        "invitations": [profile_invitation_out(i) for i in invitations],
    }
