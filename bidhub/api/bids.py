from fastapi import APIRouter, Depends, Query
from sqlalchemy.orm import Session
from typing import Optional
import logging

from bidhub.db.session import get_db
from bidhub.db.models import Bid, User, VendorInvitation
from bidhub.schemas.bid import (
    BidCreate, BidUpdate, DueDateExtension, AddVendorsRequest,
    BidOut, BidDetailOut, InvitationOut,
)
from bidhub.schemas.comparison import ComparisonOut
from bidhub.core.deps import require_buyer
from bidhub.core.errors import DeliveryFailed, ValidationFailed
from bidhub.services import bid_service, comparison_service, notification_service, validation_service
from bidhub.utils.bid_state import BidStateMachine
from bidhub.utils.pagination import PaginationParams, Page, page_of

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/bids", tags=["bids"])


def invitation_out(invitation: VendorInvitation) -> dict:
    return {
        "vendor_id": invitation.vendor_id,
        "company_name": invitation.vendor.company_name,
        "email": invitation.vendor.email,
        "has_responded": invitation.has_responded,
        "responded_at": invitation.responded_at,
        "status": BidStateMachine.invitation_status(invitation.has_responded),
    }


def bid_out(bid: Bid, detail: bool = False) -> dict:
    data = {
        "id": bid.id,
        "title": bid.title,
        "description": bid.description,
        "created_at": bid.created_at,
        "due_date": bid.due_date,
        "last_reminder_sent": bid.last_reminder_sent,
        "status": BidStateMachine.status(bid.due_date),
        "summary": comparison_service.response_summary(bid),
    }
    if detail:
        data["requirements"] = bid.requirements
        data["items"] = bid.items
        data["invitations"] = [invitation_out(i) for i in bid.invitations]
    return data


@router.get("", response_model=Page[BidOut])
def list_bids(
    pagination: PaginationParams = Depends(),
    db: Session = Depends(get_db),
    current_user: User = Depends(require_buyer),
):
    """List the buyer's bids, newest first"""
    bids, total = bid_service.list_bids(db, current_user, pagination.skip, pagination.limit)
    return page_of([bid_out(b) for b in bids], total, pagination.skip, pagination.limit)


@router.post("", response_model=BidDetailOut, status_code=201)
async def create_bid(
    payload: BidCreate,
    db: Session = Depends(get_db),
    current_user: User = Depends(require_buyer),
):
    """Create a bid and email an invitation to every invited vendor"""
    items = [item.model_dump() for item in payload.items]
    result = validation_service.validate_bid_items(items)
    if not result.is_valid:
        raise ValidationFailed(f"Validation failed: {result.message}")

    bid = bid_service.create_bid(
        db,
        current_user,
        title=payload.title,
        description=payload.description,
        due_date=payload.due_date,
        requirements=payload.requirements.model_dump(),
        items=items,
        vendor_ids=payload.vendor_ids,
    )

    try:
        await notification_service.send_bid_invitations(db, bid, bid.invitations)
    except DeliveryFailed as e:
        logger.warning(f"Bid {bid.id} created but invitations failed: {e.message}")

    return bid_out(bid, detail=True)


@router.get("/{bid_id}", response_model=BidDetailOut)
def get_bid(
    bid_id: int,
    db: Session = Depends(get_db),
    current_user: User = Depends(require_buyer),
):
    return bid_out(bid_service.get_owned_bid(db, current_user, bid_id), detail=True)


@router.put("/{bid_id}", response_model=BidDetailOut)
def update_bid(
    bid_id: int,
    payload: BidUpdate,
    db: Session = Depends(get_db),
    current_user: User = Depends(require_buyer),
):
    bid = bid_service.update_bid(db, current_user, bid_id, title=payload.title, description=payload.description)
    return bid_out(bid, detail=True)


@router.delete("/{bid_id}")
def delete_bid(
    bid_id: int,
    db: Session = Depends(get_db),
    current_user: User = Depends(require_buyer),
):
    """Delete a bid with its items, invitations and responses"""
    bid_service.delete_bid(db, current_user, bid_id)
    return {"message": "Bid deleted", "bid_id": bid_id}


@router.post("/{bid_id}/extend", response_model=BidDetailOut)
async def extend_due_date(
    bid_id: int,
    payload: DueDateExtension,
    db: Session = Depends(get_db),
    current_user: User = Depends(require_buyer),
):
    """Move the due date later; vendors yet to respond are notified"""
    bid = bid_service.extend_due_date(db, current_user, bid_id, payload.due_date)

    pending = bid_service.pending_invitations(bid)
    if pending:
        try:
            await notification_service.send_due_date_extension_notices(db, bid, pending)
        except DeliveryFailed as e:
            logger.warning(f"Bid {bid.id} extended but notices failed: {e.message}")

    return bid_out(bid, detail=True)


@router.post("/{bid_id}/remind")
async def send_reminders(
    bid_id: int,
    db: Session = Depends(get_db),
    current_user: User = Depends(require_buyer),
):
    """Email a reminder to every vendor that has not responded yet"""
    reminded = await bid_service.send_reminders(db, current_user, bid_id)
    return {"message": f"Reminders sent to {reminded} vendor(s)", "reminded": reminded}


@router.get("/{bid_id}/vendors", response_model=list[InvitationOut])
def list_invited_vendors(
    bid_id: int,
    db: Session = Depends(get_db),
    current_user: User = Depends(require_buyer),
):
    bid = bid_service.get_owned_bid(db, current_user, bid_id)
    return [invitation_out(i) for i in bid.invitations]


@router.post("/{bid_id}/vendors")
async def add_vendors(
    bid_id: int,
    payload: AddVendorsRequest,
    db: Session = Depends(get_db),
    current_user: User = Depends(require_buyer),
):
    """Invite more vendors to an active bid; vendors already invited are skipped"""
    bid = bid_service.get_owned_bid(db, current_user, bid_id)
    bid_service.ensure_active(bid, "Cannot add vendors to expired bids")

    created = bid_service.add_vendors_to_bid(db, current_user, bid_id, payload.vendor_ids)
    if created:
        try:
            await notification_service.send_bid_invitations(db, bid, created)
        except DeliveryFailed as e:
            logger.warning(f"Vendors added to bid {bid_id} but invitations failed: {e.message}")

    return {
        "message": f"{len(created)} vendor(s) added",
        "added": len(created),
        "invitations": [invitation_out(i) for i in created],
    }


@router.get("/{bid_id}/comparison", response_model=ComparisonOut)
def compare_responses(
    bid_id: int,
    vendor_id: str = Query("all", description="Vendor id, or 'all'"),
    sort_field: str = Query("price", description="price, lead_time or company_name"),
    sort_order: str = Query("asc", description="asc or desc"),
    filter_text: Optional[str] = Query(None, description="Substring of material code or description"),
    header_order: str = Query("asc", description="Company name order of the header responses, asc or desc"),
    db: Session = Depends(get_db),
    current_user: User = Depends(require_buyer),
):
    """Side-by-side view of the vendor responses for a bid"""
    bid = bid_service.get_bid_for_comparison(db, current_user, bid_id)
    return comparison_service.build_comparison(bid, vendor_id, sort_field, sort_order, filter_text, header_order)
