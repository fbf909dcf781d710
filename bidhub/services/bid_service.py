"""
Bid Lifecycle Service

Operations a buyer or an invited vendor performs on a bid: create, edit,
extend, invite vendors, submit a response, remind and delete. Rules about
ownership, required fields and duplicate submissions live here; the raw
writes are delegated to BidStore.
"""
from typing import Iterable, List, Optional, Tuple
from datetime import datetime
from decimal import Decimal
import logging
import secrets

from sqlalchemy.orm import Session

from bidhub.core.errors import NotFound, ValidationFailed, NotInvited, AlreadyResponded
from bidhub.db.models import User, Vendor, Bid, VendorInvitation, VendorSubmission
from bidhub.db.store import BidStore
from bidhub.services import notification_service
from bidhub.utils.bid_state import BidStateMachine, to_naive_utc
from bidhub.utils.pagination import paginate_query
from bidhub.utils.permissions import require_bid_owner, require_vendor_owner

logger = logging.getLogger(__name__)

DEFAULT_REQUIREMENTS = {"tier": "all", "material_class": "all", "location": "all", "min_bid_amount": 0}


# ------------------------
# Validation helpers
# ------------------------

def validate_items(items: List[dict]):
    """Raise ValidationFailed unless every item is complete"""
    if not items:
        raise ValidationFailed("At least one item is required")
    for item in items:
        if not (item.get("material_code") or "").strip():
            raise ValidationFailed("Material code is required for all items")
        if not (item.get("description") or "").strip():
            raise ValidationFailed("Description is required for all items")
        quantity = item.get("quantity")
        if quantity is None or quantity <= 0:
            raise ValidationFailed("Quantity must be a positive number for all items")
        if not (item.get("uom") or "").strip():
            raise ValidationFailed("Unit of measure is required for all items")


def validate_requirements(requirements: dict):
    for field, label in (("tier", "Tier"), ("material_class", "Material class"), ("location", "Location")):
        if not (requirements.get(field) or "").strip():
            raise ValidationFailed(f"{label} selection is required")
    if (requirements.get("min_bid_amount") or 0) < 0:
        raise ValidationFailed("Minimum bid amount cannot be negative")


def ensure_active(bid: Bid, message: str, now: Optional[datetime] = None):
    """Boundary check used before mutations that an expired bid no longer accepts"""
    if BidStateMachine.is_expired(bid.due_date, now):
        raise ValidationFailed(message)


# ------------------------
# Reads
# ------------------------

def get_bid(db: Session, bid_id: int) -> Bid:
    bid = BidStore(db).get_bid(bid_id)
    if not bid:
        raise NotFound("Bid not found")
    return bid


def get_owned_bid(db: Session, buyer: User, bid_id: int) -> Bid:
    bid = get_bid(db, bid_id)
    require_bid_owner(buyer, bid)
    return bid


def get_bid_for_comparison(db: Session, buyer: User, bid_id: int) -> Bid:
    bid = BidStore(db).get_bid_with_responses(bid_id)
    if not bid:
        raise NotFound("Bid not found")
    require_bid_owner(buyer, bid)
    return bid


def list_bids(db: Session, buyer: User, skip: int = 0, limit: int = 50) -> Tuple[List[Bid], int]:
    return paginate_query(BidStore(db).bids_query(buyer.id), skip, limit)


def get_bid_for_vendor(db: Session, bid_id: int, vendor_id: int, token: str) -> Tuple[Bid, VendorInvitation]:
    """
    Resolve the bid an invited vendor opens from the invitation link.
    A wrong token is reported exactly like a missing invitation.
    """
    store = BidStore(db)
    bid = store.get_bid(bid_id)
    if not bid:
        raise NotFound("Bid not found")
    invitation = store.get_invitation(bid_id, vendor_id)
    if not invitation or not secrets.compare_digest(invitation.access_token, token or ""):
        raise NotInvited("Bid not found or you don't have access")
    return bid, invitation


def pending_invitations(bid: Bid) -> List[VendorInvitation]:
    return [invitation for invitation in bid.invitations if not invitation.has_responded]


# ------------------------
# Lifecycle operations
# ------------------------

def create_bid(
    db: Session,
    buyer: User,
    title: str,
    description: Optional[str],
    due_date: datetime,
    requirements: Optional[dict],
    items: List[dict],
    vendor_ids: List[int],
) -> Bid:
    """
    Create a bid with its requirements, items and invitations.
    Nothing is written unless the whole request is valid, and the
    writes themselves commit together.
    """
    if not (title or "").strip():
        raise ValidationFailed("Title is required")
    validate_items(items)
    requirements = {**DEFAULT_REQUIREMENTS, **(requirements or {})}
    validate_requirements(requirements)
    if not vendor_ids:
        raise ValidationFailed("At least one vendor must be invited")
    _load_owned_vendors(db, buyer, vendor_ids)

    bid = BidStore(db).create_bid(
        buyer_id=buyer.id,
        title=title.strip(),
        description=description,
        due_date=to_naive_utc(due_date),
        requirements=requirements,
        items=items,
        vendor_ids=vendor_ids,
    )
    logger.info(f"Buyer {buyer.id} created bid {bid.id} inviting {len(bid.invitations)} vendors")
    return bid


def update_bid(
    db: Session,
    buyer: User,
    bid_id: int,
    title: Optional[str] = None,
    description: Optional[str] = None,
) -> Bid:
    """Edit header text. Items are immutable once the bid exists."""
    bid = get_owned_bid(db, buyer, bid_id)
    fields = {}
    if title is not None:
        if not title.strip():
            raise ValidationFailed("Title cannot be empty")
        fields["title"] = title.strip()
    if description is not None:
        fields["description"] = description
    if not fields:
        return bid
    return BidStore(db).update_bid(bid, **fields)


def extend_due_date(
    db: Session,
    buyer: User,
    bid_id: int,
    new_due_date: datetime,
    now: Optional[datetime] = None,
) -> Bid:
    bid = get_owned_bid(db, buyer, bid_id)
    is_valid, message = BidStateMachine.validate_extension(new_due_date, now)
    if not is_valid:
        raise ValidationFailed(message)

    bid = BidStore(db).extend_due_date(bid, to_naive_utc(new_due_date))
    logger.info(f"Bid {bid.id} due date extended to {bid.due_date.isoformat()}")
    return bid


def add_vendors_to_bid(db: Session, buyer: User, bid_id: int, vendor_ids: List[int]) -> List[VendorInvitation]:
    """
    Invite more vendors. Vendors already on the bid are skipped, so calling
    this twice with the same list changes nothing the second time.

    Returns:
        The invitations created by this call
    """
    bid = get_owned_bid(db, buyer, bid_id)
    if not vendor_ids:
        raise ValidationFailed("At least one vendor is required")
    _load_owned_vendors(db, buyer, vendor_ids)

    created = BidStore(db).add_invitations(bid, vendor_ids)
    logger.info(f"Bid {bid.id}: {len(created)} new vendor invitation(s)")
    return created


def submit_response(db: Session, bid_id: int, vendor_id: int, submission) -> VendorSubmission:
    """
    Record a vendor's response. Each vendor answers a bid once.

    Args:
        submission: object with `items` (item_id, price, lead_time, incoterm,
            payment_terms) and an optional `header_response`
    """
    store = BidStore(db)
    bid = store.get_bid(bid_id)
    if not bid:
        raise NotFound("Bid not found")

    invitation = store.get_invitation(bid_id, vendor_id)
    if not invitation:
        raise NotInvited("Vendor was not invited to this bid")
    if invitation.has_responded:
        raise AlreadyResponded("You have already submitted a response to this bid")

    item_responses = _validate_item_responses(bid, submission.items or [])
    header = _header_fields(submission.header_response)
    if not item_responses and not any(header.values()):
        raise ValidationFailed("Submission must include either item responses or header-level information")

    stored = store.record_submission(invitation, header, item_responses)
    logger.info(f"Vendor {vendor_id} responded to bid {bid_id} with {len(item_responses)} item price(s)")
    return stored


def delete_bid(db: Session, buyer: User, bid_id: int):
    bid = get_owned_bid(db, buyer, bid_id)
    BidStore(db).delete_bid(bid.id)
    logger.info(f"Buyer {buyer.id} deleted bid {bid_id}")


def mark_reminded(db: Session, bid_id: int) -> Bid:
    bid = get_bid(db, bid_id)
    return BidStore(db).mark_reminded(bid)


async def send_reminders(db: Session, buyer: User, bid_id: int, now: Optional[datetime] = None) -> int:
    """
    Email every vendor that has not responded, then stamp the reminder time.
    The stamp is only written when every reminder went out.

    Returns:
        Number of vendors reminded
    """
    bid = get_owned_bid(db, buyer, bid_id)
    ensure_active(bid, "Cannot send reminders for expired bids", now)
    pending = pending_invitations(bid)
    if not pending:
        raise ValidationFailed("All vendors have already responded to this bid")

    sent = await notification_service.send_bid_reminders(db, bid, pending, now)
    mark_reminded(db, bid.id)
    logger.info(f"Reminded {sent} vendor(s) about bid {bid.id}")
    return sent


def _validate_item_responses(bid: Bid, responses) -> List[dict]:
    bid_item_ids = {item.id for item in bid.items}
    seen = set()
    rows = []
    for response in responses:
        if response.item_id not in bid_item_ids:
            raise ValidationFailed(f"Item {response.item_id} does not belong to this bid")
        if response.item_id in seen:
            raise ValidationFailed(f"Item {response.item_id} was priced more than once")
        seen.add(response.item_id)

        price = Decimal(str(response.price))
        if price <= 0:
            raise ValidationFailed("Price must be a positive number for all items")
        if response.lead_time is None or response.lead_time < 0:
            raise ValidationFailed("Valid lead time is required for all items")

        rows.append({
            "item_id": response.item_id,
            "price": price,
            "lead_time": response.lead_time,
            "incoterm": response.incoterm or "",
            "payment_terms": response.payment_terms or "",
        })
    return rows


def _header_fields(header) -> dict:
    if header is None:
        return {"incoterm": None, "payment_terms": None, "additional_notes": None}
    return {
        "incoterm": header.incoterm or None,
        "payment_terms": header.payment_terms or None,
        "additional_notes": header.additional_notes or None,
    }


# ------------------------
# Vendors
# ------------------------

def _load_owned_vendors(db: Session, buyer: User, vendor_ids: Iterable[int]) -> List[Vendor]:
    """Every invitee must be a vendor record of this buyer; the batch fails as a whole."""
    wanted = set(vendor_ids)
    found = {vendor.id: vendor for vendor in BidStore(db).get_vendors(wanted) if vendor.buyer_id == buyer.id}
    missing = sorted(wanted - set(found))
    if missing:
        raise NotFound(f"Vendor(s) not found: {', '.join(str(v) for v in missing)}")
    return list(found.values())


def create_vendor(db: Session, buyer: User, material_classes: Iterable[str] = (), **fields) -> Vendor:
    if not (fields.get("company_name") or "").strip() or not (fields.get("email") or "").strip():
        raise ValidationFailed("Company name and email are required")
    classes = [name.strip() for name in material_classes if name and name.strip()]
    vendor = BidStore(db).create_vendor(buyer.id, material_classes=classes, **fields)
    logger.info(f"Buyer {buyer.id} added vendor {vendor.id} ({vendor.company_name})")
    return vendor


def get_owned_vendor(db: Session, buyer: User, vendor_id: int) -> Vendor:
    vendor = BidStore(db).get_vendor(vendor_id)
    if not vendor:
        raise NotFound("Vendor not found")
    require_vendor_owner(buyer, vendor)
    return vendor


def set_vendor_material_classes(db: Session, buyer: User, vendor_id: int, material_classes: Iterable[str]) -> Vendor:
    vendor = get_owned_vendor(db, buyer, vendor_id)
    classes = [name.strip() for name in material_classes if name and name.strip()]
    return BidStore(db).set_material_classes(vendor, classes)


def matches_requirements(
    vendor: Vendor,
    tier: str = "all",
    material_class: str = "all",
    location: str = "all",
    search: Optional[str] = None,
) -> bool:
    """
    Vendor discovery filter. "all" matches anything; tier is an exact match,
    material class and location are case-insensitive substring matches.
    """
    if search:
        needle = search.lower()
        haystacks = [vendor.company_name, vendor.email, vendor.contact_name or ""]
        if not any(needle in value.lower() for value in haystacks):
            return False
    if tier and tier != "all" and vendor.tier != tier:
        return False
    if material_class and material_class != "all":
        wanted = material_class.lower()
        if not any(wanted in name.lower() for name in vendor.material_class_names):
            return False
    if location and location != "all":
        if not vendor.location or location.lower() not in vendor.location.lower():
            return False
    return True


def list_vendors(
    db: Session,
    buyer: User,
    tier: str = "all",
    material_class: str = "all",
    location: str = "all",
    search: Optional[str] = None,
) -> List[Vendor]:
    vendors = BidStore(db).list_vendors(buyer.id)
    return [v for v in vendors if matches_requirements(v, tier, material_class, location, search)]


def vendor_profile(db: Session, user: User) -> Tuple[List[Vendor], List[VendorInvitation]]:
    """
    What a vendor account can see: the vendor records buyers keep under the
    account's email address and the invitations sent to those records.
    """
    store = BidStore(db)
    records = store.vendors_by_email(user.email)
    invitations = store.invitations_for_vendors(v.id for v in records)
    logger.info(f"Vendor profile for user {user.id}: {len(records)} record(s), {len(invitations)} invitation(s)")
    return records, invitations
