"""
Notification Service - compose and send bid emails

Invitation, reminder, due date extension and submission messages. Every
recipient is attempted; if any message fails the call raises
DeliveryFailed after the rest have gone out.
"""
from sqlalchemy.orm import Session
from typing import Iterable, List, Optional, Dict, Any
from datetime import datetime
import logging

from bidhub.core.config import settings
from bidhub.core.errors import DeliveryFailed
from bidhub.db.models import Bid, VendorInvitation, VendorSubmission
from bidhub.services.email_service import email_service
from bidhub.utils.bid_state import BidStateMachine

logger = logging.getLogger(__name__)


class NotificationType:
    """Email template names"""
    BID_INVITATION = "bid_invitation"
    BID_REMINDER = "bid_reminder"
    BID_DUE_DATE_EXTENDED = "bid_due_date_extended"
    BID_SUBMISSION = "bid_submission"


def vendor_link(bid: Bid, invitation: VendorInvitation) -> str:
    """Link a vendor follows to open and answer the bid"""
    return (
        f"{settings.APP_URL}/vendor/{bid.id}"
        f"?vendor_id={invitation.vendor_id}&token={invitation.access_token}"
    )


def buyer_bid_link(bid: Bid) -> str:
    return f"{settings.APP_URL}/dashboard/bids/{bid.id}"


def _bid_context(bid: Bid) -> Dict[str, Any]:
    buyer = bid.buyer
    return {
        "bid_title": bid.title,
        "bid_description": bid.description,
        "due_date": bid.due_date.strftime("%B %d, %Y"),
        "buyer_name": buyer.name,
        "company_name": buyer.company_name or buyer.name,
        "item_count": len(bid.items),
    }


async def _deliver(db: Session, bid: Bid, messages: List[Dict[str, Any]]) -> int:
    """
    Send prepared messages one by one.

    Returns:
        Number of messages handed to the provider
    Raises:
        DeliveryFailed: if at least one message failed
    """
    failures = []
    for message in messages:
        result = await email_service.send_email(
            to_email=message["to"],
            subject=message["subject"],
            template_name=message["template"],
            context=message["context"],
            db=db,
            related_bid_id=bid.id,
        )
        if result["status"] == "failed":
            failures.append(f"{message['to']}: {result['message']}")

    if failures:
        logger.warning(f"Bid {bid.id}: {len(failures)} of {len(messages)} emails failed")
        raise DeliveryFailed(f"Failed to send {len(failures)} of {len(messages)} emails: {'; '.join(failures)}")
    return len(messages)


async def send_bid_invitations(db: Session, bid: Bid, invitations: Iterable[VendorInvitation]) -> int:
    context = _bid_context(bid)
    messages = []
    for invitation in invitations:
        messages.append({
            "to": invitation.vendor.email,
            "subject": f"Bid Invitation: {bid.title}",
            "template": NotificationType.BID_INVITATION,
            "context": {**context, "vendor_name": invitation.vendor.company_name,
                        "vendor_link": vendor_link(bid, invitation)},
        })
    logger.info(f"Sending {len(messages)} invitation(s) for bid {bid.id}")
    return await _deliver(db, bid, messages)


async def send_bid_reminders(
    db: Session,
    bid: Bid,
    invitations: Iterable[VendorInvitation],
    now: Optional[datetime] = None,
) -> int:
    context = _bid_context(bid)
    days = BidStateMachine.days_remaining(bid.due_date, now)
    messages = []
    for invitation in invitations:
        messages.append({
            "to": invitation.vendor.email,
            "subject": f"Reminder: Bid Response Due for {bid.title}",
            "template": NotificationType.BID_REMINDER,
            "context": {**context, "vendor_name": invitation.vendor.company_name,
                        "days_remaining": days, "vendor_link": vendor_link(bid, invitation)},
        })
    logger.info(f"Sending {len(messages)} reminder(s) for bid {bid.id} ({days} days remaining)")
    return await _deliver(db, bid, messages)


async def send_due_date_extension_notices(db: Session, bid: Bid, invitations: Iterable[VendorInvitation]) -> int:
    """Tell vendors that have not answered yet about the new due date"""
    context = _bid_context(bid)
    messages = []
    for invitation in invitations:
        messages.append({
            "to": invitation.vendor.email,
            "subject": f"Due Date Extended: {bid.title}",
            "template": NotificationType.BID_DUE_DATE_EXTENDED,
            "context": {**context, "vendor_name": invitation.vendor.company_name,
                        "vendor_link": vendor_link(bid, invitation)},
        })
    return await _deliver(db, bid, messages)


async def send_submission_notification(db: Session, bid: Bid, submission: VendorSubmission) -> int:
    """Tell the buyer a vendor has responded"""
    context = _bid_context(bid)
    message = {
        "to": bid.buyer.email,
        "subject": f"New Bid Response: {bid.title}",
        "template": NotificationType.BID_SUBMISSION,
        "context": {
            **context,
            "vendor_name": submission.vendor.company_name,
            "submission_date": submission.submitted_at.strftime("%B %d, %Y"),
            "priced_item_count": len(submission.item_responses),
            "has_header_info": submission.has_header_response,
            "bid_link": buyer_bid_link(bid),
        },
    }
    return await _deliver(db, bid, [message])
