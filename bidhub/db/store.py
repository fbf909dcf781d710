"""
BidStore - the single storage abstraction over the relational schema.

Raw reads and mutations only. Temporal rules (expired bids, due date in
the future) belong to the callers in bidhub.services.bid_service.
Every mutating method runs as one transaction: it commits on success and
rolls back everything it wrote on failure.
"""
from typing import Iterable, List, Optional, Dict, Any
from datetime import datetime
import logging
import secrets

from sqlalchemy import func
from sqlalchemy.orm import Session, selectinload

from bidhub.core.errors import AlreadyResponded
from bidhub.db.models import (
    User, Vendor, VendorMaterialClass, Bid, BidRequirement, BidItem,
    VendorInvitation, VendorSubmission, VendorItemResponse,
)
from bidhub.utils.bid_state import utcnow

logger = logging.getLogger(__name__)


def new_access_token() -> str:
    return secrets.token_urlsafe(24)


class BidStore:

    def __init__(self, db: Session):
        self.db = db

    # ------------------------
    # Users
    # ------------------------
    def get_user(self, user_id: int) -> Optional[User]:
        return self.db.query(User).filter(User.id == user_id).first()

    def get_user_by_email(self, email: str) -> Optional[User]:
        return self.db.query(User).filter(User.email == email).first()

    def create_user(self, **fields) -> User:
        user = User(**fields)
        self.db.add(user)
        self._commit()
        self.db.refresh(user)
        return user

    # ------------------------
    # Vendors
    # ------------------------
    def list_vendors(self, buyer_id: int) -> List[Vendor]:
        return (
            self.db.query(Vendor)
            .options(selectinload(Vendor.material_classes))
            .filter(Vendor.buyer_id == buyer_id)
            .order_by(Vendor.company_name)
            .all()
        )

    def get_vendor(self, vendor_id: int) -> Optional[Vendor]:
        return self.db.query(Vendor).filter(Vendor.id == vendor_id).first()

    def get_vendors(self, vendor_ids: Iterable[int]) -> List[Vendor]:
        ids = list(vendor_ids)
        if not ids:
            return []
        return self.db.query(Vendor).filter(Vendor.id.in_(ids)).all()

    def create_vendor(self, buyer_id: int, material_classes: Iterable[str] = (), **fields) -> Vendor:
        vendor = Vendor(buyer_id=buyer_id, **fields)
        vendor.material_classes = [
            VendorMaterialClass(material_class=name) for name in _unique(material_classes)
        ]
        self.db.add(vendor)
        self._commit()
        self.db.refresh(vendor)
        return vendor

    def vendors_by_email(self, email: str) -> List[Vendor]:
        """Vendor records any buyer keeps under this address, case-insensitive."""
        return (
            self.db.query(Vendor)
            .options(selectinload(Vendor.material_classes))
            .filter(func.lower(Vendor.email) == email.lower())
            .order_by(Vendor.company_name, Vendor.id)
            .all()
        )

    def set_material_classes(self, vendor: Vendor, material_classes: Iterable[str]) -> Vendor:
        """Replace the vendor's material class set."""
        self.db.query(VendorMaterialClass).filter(
            VendorMaterialClass.vendor_id == vendor.id
        ).delete(synchronize_session=False)
        for name in _unique(material_classes):
            self.db.add(VendorMaterialClass(vendor_id=vendor.id, material_class=name))
        self._commit()
        self.db.refresh(vendor)
        return vendor

    # ------------------------
    # Bids
    # ------------------------
    def bids_query(self, buyer_id: int):
        return self.db.query(Bid).filter(Bid.buyer_id == buyer_id).order_by(Bid.created_at.desc(), Bid.id.desc())

    def get_bid(self, bid_id: int) -> Optional[Bid]:
        return self.db.query(Bid).filter(Bid.id == bid_id).first()

    def get_bid_with_responses(self, bid_id: int) -> Optional[Bid]:
        """Load a bid with everything the comparison view reads."""
        return (
            self.db.query(Bid)
            .options(
                selectinload(Bid.items),
                selectinload(Bid.invitations).selectinload(VendorInvitation.vendor),
                selectinload(Bid.submissions).selectinload(VendorSubmission.item_responses),
            )
            .filter(Bid.id == bid_id)
            .first()
        )

    def create_bid(
        self,
        buyer_id: int,
        title: str,
        description: Optional[str],
        due_date: datetime,
        requirements: Dict[str, Any],
        items: List[Dict[str, Any]],
        vendor_ids: Iterable[int],
    ) -> Bid:
        """Insert the bid with requirements, items and invitations in one transaction."""
        bid = Bid(
            buyer_id=buyer_id,
            title=title,
            description=description,
            due_date=due_date,
            created_at=utcnow(),
        )
        bid.requirements = BidRequirement(**requirements)
        bid.items = [BidItem(**item) for item in items]
        bid.invitations = [
            VendorInvitation(vendor_id=vendor_id, has_responded=False, access_token=new_access_token())
            for vendor_id in _unique(vendor_ids)
        ]
        self.db.add(bid)
        self._commit()
        self.db.refresh(bid)
        logger.info(f"Stored bid {bid.id} with {len(items)} items")
        return bid

    def update_bid(self, bid: Bid, **fields) -> Bid:
        for key, value in fields.items():
            setattr(bid, key, value)
        self._commit()
        self.db.refresh(bid)
        return bid

    def extend_due_date(self, bid: Bid, new_due_date: datetime) -> Bid:
        return self.update_bid(bid, due_date=new_due_date)

    def mark_reminded(self, bid: Bid) -> Bid:
        return self.update_bid(bid, last_reminder_sent=utcnow())

    def delete_bid(self, bid_id: int):
        """Delete a bid and every row referencing it, leaf tables first."""
        submission_ids = self.db.query(VendorSubmission.id).filter(VendorSubmission.bid_id == bid_id)
        try:
            self.db.query(VendorItemResponse).filter(
                VendorItemResponse.submission_id.in_(submission_ids.scalar_subquery())
            ).delete(synchronize_session=False)
            self.db.query(VendorSubmission).filter(
                VendorSubmission.bid_id == bid_id
            ).delete(synchronize_session=False)
            self.db.query(VendorInvitation).filter(
                VendorInvitation.bid_id == bid_id
            ).delete(synchronize_session=False)
            self.db.query(BidItem).filter(BidItem.bid_id == bid_id).delete(synchronize_session=False)
            self.db.query(BidRequirement).filter(
                BidRequirement.bid_id == bid_id
            ).delete(synchronize_session=False)
            self.db.query(Bid).filter(Bid.id == bid_id).delete(synchronize_session=False)
            self.db.commit()
        except Exception:
            self.db.rollback()
            raise
        self.db.expire_all()
        logger.info(f"Deleted bid {bid_id} and its child rows")

    # ------------------------
    # Invitations & submissions
    # ------------------------
    def get_invitation(self, bid_id: int, vendor_id: int) -> Optional[VendorInvitation]:
        return self.db.query(VendorInvitation).filter(
            VendorInvitation.bid_id == bid_id,
            VendorInvitation.vendor_id == vendor_id,
        ).first()

    def invitations_for_vendors(self, vendor_ids: Iterable[int]) -> List[VendorInvitation]:
        """Invitations of the given vendor records, soonest due date first."""
        ids = list(vendor_ids)
        if not ids:
            return []
        return (
            self.db.query(VendorInvitation)
            .join(Bid, VendorInvitation.bid_id == Bid.id)
            .options(selectinload(VendorInvitation.bid).selectinload(Bid.buyer), selectinload(VendorInvitation.vendor))
            .filter(VendorInvitation.vendor_id.in_(ids))
            .order_by(Bid.due_date, VendorInvitation.id)
            .all()
        )

    def add_invitations(self, bid: Bid, vendor_ids: Iterable[int]) -> List[VendorInvitation]:
        """Invite vendors not yet on the bid; existing invitations are left untouched."""
        existing = {
            vendor_id for (vendor_id,) in
            self.db.query(VendorInvitation.vendor_id).filter(VendorInvitation.bid_id == bid.id)
        }
        created = []
        for vendor_id in _unique(vendor_ids):
            if vendor_id in existing:
                continue
            invitation = VendorInvitation(
                bid_id=bid.id,
                vendor_id=vendor_id,
                has_responded=False,
                access_token=new_access_token(),
            )
            self.db.add(invitation)
            created.append(invitation)
        self._commit()
        for invitation in created:
            self.db.refresh(invitation)
        return created

    def get_submission(self, bid_id: int, vendor_id: int) -> Optional[VendorSubmission]:
        return self.db.query(VendorSubmission).filter(
            VendorSubmission.bid_id == bid_id,
            VendorSubmission.vendor_id == vendor_id,
        ).first()

    def record_submission(
        self,
        invitation: VendorInvitation,
        header: Dict[str, Any],
        item_responses: List[Dict[str, Any]],
    ) -> VendorSubmission:
        """
        Store a submission with its item responses and flip the invitation to
        responded. A second submission for the same pair is refused, never overwritten.
        """
        if invitation.has_responded or self.get_submission(invitation.bid_id, invitation.vendor_id):
            raise AlreadyResponded("You have already submitted a response to this bid")

        now = utcnow()
        submission = VendorSubmission(
            bid_id=invitation.bid_id,
            vendor_id=invitation.vendor_id,
            submitted_at=now,
            **header,
        )
        submission.item_responses = [VendorItemResponse(**response) for response in item_responses]
        self.db.add(submission)

        invitation.has_responded = True
        invitation.responded_at = now
        self._commit()
        self.db.refresh(submission)
        return submission

    def _commit(self):
        try:
            self.db.commit()
        except Exception:
            self.db.rollback()
            raise


def _unique(values: Iterable) -> list:
    """Drop duplicates, keep first-seen order"""
    seen = set()
    result = []
    for value in values:
        if value in seen:
            continue
        seen.add(value)
        result.append(value)
    return result
