"""
Response comparison for buyers.

Pure projections over a bid loaded with its items, invitations and
submissions (see BidStore.get_bid_with_responses). Nothing here touches
the session.
"""
from decimal import Decimal
from typing import Dict, List, Optional, Union
import logging

from bidhub.core.errors import ValidationFailed
from bidhub.db.models import Bid, VendorSubmission

logger = logging.getLogger(__name__)

SORT_FIELDS = ("price", "lead_time", "company_name")
SORT_ORDERS = ("asc", "desc")


def _check_sort(sort_field: str, sort_order: str):
    if sort_field not in SORT_FIELDS:
        raise ValidationFailed(f"Unknown sort field '{sort_field}'. Use one of: {', '.join(SORT_FIELDS)}")
    if sort_order not in SORT_ORDERS:
        raise ValidationFailed(f"Unknown sort order '{sort_order}'. Use asc or desc")


def _parse_vendor_filter(vendor_filter: Union[str, int, None]) -> Optional[int]:
    """Vendor id to keep, or None for every vendor"""
    if vendor_filter is None or vendor_filter == "all":
        return None
    try:
        return int(vendor_filter)
    except (TypeError, ValueError):
        raise ValidationFailed(f"Invalid vendor filter '{vendor_filter}'")


def _responding_submissions(bid: Bid, vendor_id: Optional[int]) -> List[tuple]:
    """(invitation, submission) pairs for vendors that responded and pass the filter"""
    submissions: Dict[int, VendorSubmission] = {s.vendor_id: s for s in bid.submissions}
    pairs = []
    for invitation in bid.invitations:
        if not invitation.has_responded:
            continue
        if vendor_id is not None and invitation.vendor_id != vendor_id:
            continue
        submission = submissions.get(invitation.vendor_id)
        if submission is None:
            logger.warning(f"Bid {bid.id}: vendor {invitation.vendor_id} marked responded without a submission")
            continue
        pairs.append((invitation, submission))
    return pairs


def _sort_key(sort_field: str):
    if sort_field == "company_name":
        return lambda row: row["company_name"].casefold()
    return lambda row: row[sort_field]


def build_item_comparison(
    bid: Bid,
    vendor_filter: Union[str, int, None] = "all",
    sort_field: str = "price",
    sort_order: str = "asc",
    filter_text: Optional[str] = None,
) -> List[dict]:
    """
    One entry per bid item with the responding vendors' prices.

    Responses only come from the item's own submission rows; a vendor that
    answered with header terms alone does not appear under any item.
    """
    _check_sort(sort_field, sort_order)
    pairs = _responding_submissions(bid, _parse_vendor_filter(vendor_filter))
    needle = filter_text.lower() if filter_text else None

    comparison = []
    for item in bid.items:
        if needle and needle not in item.material_code.lower() and needle not in item.description.lower():
            continue

        responses = []
        for invitation, submission in pairs:
            for response in submission.item_responses:
                if response.item_id != item.id:
                    continue
                responses.append({
                    "vendor_id": invitation.vendor_id,
                    "company_name": invitation.vendor.company_name,
                    "price": Decimal(response.price),
                    "lead_time": response.lead_time,
                    "incoterm": response.incoterm,
                    "payment_terms": response.payment_terms,
                })
        responses.sort(key=_sort_key(sort_field), reverse=sort_order == "desc")

        comparison.append({
            "item_id": item.id,
            "material_code": item.material_code,
            "description": item.description,
            "quantity": item.quantity,
            "uom": item.uom,
            "responses": responses,
            "no_responses": not responses,
        })
    return comparison


def build_header_comparison(
    bid: Bid,
    vendor_filter: Union[str, int, None] = "all",
    sort_order: str = "asc",
) -> List[dict]:
    """Header-level terms per responding vendor, ordered by company name"""
    _check_sort("company_name", sort_order)
    pairs = _responding_submissions(bid, _parse_vendor_filter(vendor_filter))
    rows = []
    for invitation, submission in pairs:
        if not submission.has_header_response:
            continue
        rows.append({
            "vendor_id": invitation.vendor_id,
            "company_name": invitation.vendor.company_name,
            "incoterm": submission.incoterm,
            "payment_terms": submission.payment_terms,
            "additional_notes": submission.additional_notes,
            "submitted_at": submission.submitted_at,
        })
    rows.sort(key=_sort_key("company_name"), reverse=sort_order == "desc")
    return rows


def response_summary(bid: Bid) -> dict:
    """Counts over every invitation, regardless of any view filter"""
    invited = len(bid.invitations)
    responded = sum(1 for invitation in bid.invitations if invitation.has_responded)
    return {
        "responded": responded,
        "invited": invited,
        "label": f"{responded} of {invited} vendors responded",
    }


def build_comparison(
    bid: Bid,
    vendor_filter: Union[str, int, None] = "all",
    sort_field: str = "price",
    sort_order: str = "asc",
    filter_text: Optional[str] = None,
    header_order: str = "asc",
) -> dict:
    """Item view, header view and summary; the header view keeps its own name ordering"""
    return {
        "bid_id": bid.id,
        "title": bid.title,
        "items": build_item_comparison(bid, vendor_filter, sort_field, sort_order, filter_text),
        "header_responses": build_header_comparison(bid, vendor_filter, header_order),
        "summary": response_summary(bid),
    }
