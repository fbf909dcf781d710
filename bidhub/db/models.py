from sqlalchemy import (
    Column, String, DateTime, ForeignKey, Integer, Text, Numeric, Boolean, Uuid, UniqueConstraint
)
from sqlalchemy.orm import relationship
import uuid
from bidhub.db.session import Base
from bidhub.utils.bid_state import utcnow


class User(Base):
    __tablename__ = "users"

    id = Column(Integer, primary_key=True)
    uuid = Column(Uuid(as_uuid=True), unique=True, nullable=False, default=uuid.uuid4)
    name = Column(String(255), nullable=False)
    email = Column(String(255), unique=True, nullable=False)
    password_hash = Column(String(255), nullable=False)
    role = Column(String(50), nullable=False)  # buyer, vendor
    company_name = Column(String(255), nullable=False, default="")
    created_at = Column(DateTime, default=utcnow, nullable=False)

    vendors = relationship("Vendor", back_populates="buyer")
    bids = relationship("Bid", back_populates="buyer")


class Vendor(Base):
    """Supplier record kept by a single buyer."""
    __tablename__ = "vendors"

    id = Column(Integer, primary_key=True)
    uuid = Column(Uuid(as_uuid=True), unique=True, nullable=False, default=uuid.uuid4)
    buyer_id = Column(Integer, ForeignKey("users.id"), nullable=False)
    company_name = Column(String(255), nullable=False)
    email = Column(String(255), nullable=False)
    contact_name = Column(String(255), nullable=True)
    phone = Column(String(50), nullable=True)
    tier = Column(String(50), nullable=False)
    location = Column(String(255), nullable=True)

    buyer = relationship("User", back_populates="vendors")
    material_classes = relationship(
        "VendorMaterialClass",
        back_populates="vendor",
        cascade="all, delete-orphan",
        order_by="VendorMaterialClass.id",
    )

    @property
    def material_class_names(self):
        return [mc.material_class for mc in self.material_classes]


class VendorMaterialClass(Base):
    __tablename__ = "vendor_material_classes"
    __table_args__ = (UniqueConstraint("vendor_id", "material_class", name="uq_vendor_material_class"),)

    id = Column(Integer, primary_key=True)
    vendor_id = Column(Integer, ForeignKey("vendors.id"), nullable=False)
    material_class = Column(String(255), nullable=False)

    vendor = relationship("Vendor", back_populates="material_classes")


class Bid(Base):
    __tablename__ = "bids"

    id = Column(Integer, primary_key=True)
    uuid = Column(Uuid(as_uuid=True), unique=True, nullable=False, default=uuid.uuid4)
    buyer_id = Column(Integer, ForeignKey("users.id"), nullable=False)
    title = Column(String(255), nullable=False)
    description = Column(Text, nullable=True)
    created_at = Column(DateTime, default=utcnow, nullable=False)
    due_date = Column(DateTime, nullable=False)
    last_reminder_sent = Column(DateTime, nullable=True)

    # Active/expired is derived from due_date at read time, see utils.bid_state
    buyer = relationship("User", back_populates="bids")
    requirements = relationship("BidRequirement", back_populates="bid", uselist=False)
    items = relationship("BidItem", back_populates="bid", order_by="BidItem.id")
    invitations = relationship("VendorInvitation", back_populates="bid", order_by="VendorInvitation.id")
    submissions = relationship("VendorSubmission", back_populates="bid")


class BidRequirement(Base):
    """Vendor discovery filter; not enforced on submissions."""
    __tablename__ = "bid_requirements"

    id = Column(Integer, primary_key=True)
    bid_id = Column(Integer, ForeignKey("bids.id"), nullable=False)
    tier = Column(String(50), nullable=False, default="all")
    material_class = Column(String(255), nullable=False, default="all")
    location = Column(String(255), nullable=False, default="all")
    min_bid_amount = Column(Integer, nullable=False, default=0)

    bid = relationship("Bid", back_populates="requirements")


class BidItem(Base):
    __tablename__ = "bid_items"

    id = Column(Integer, primary_key=True)
    uuid = Column(Uuid(as_uuid=True), unique=True, nullable=False, default=uuid.uuid4)
    bid_id = Column(Integer, ForeignKey("bids.id"), nullable=False)
    material_code = Column(String(100), nullable=False)
    description = Column(Text, nullable=False)
    quantity = Column(Integer, nullable=False)
    uom = Column(String(50), nullable=False)
    packaging = Column(String(100), nullable=True)
    remarks = Column(Text, nullable=True)

    bid = relationship("Bid", back_populates="items")


class VendorInvitation(Base):
    __tablename__ = "vendor_invitations"
    __table_args__ = (UniqueConstraint("bid_id", "vendor_id", name="uq_invitation_bid_vendor"),)

    id = Column(Integer, primary_key=True)
    bid_id = Column(Integer, ForeignKey("bids.id"), nullable=False)
    vendor_id = Column(Integer, ForeignKey("vendors.id"), nullable=False)
    has_responded = Column(Boolean, default=False, nullable=False)
    responded_at = Column(DateTime, nullable=True)
    # Secret carried in the vendor's invitation link
    access_token = Column(String(64), nullable=False)

    bid = relationship("Bid", back_populates="invitations")
    vendor = relationship("Vendor")


class VendorSubmission(Base):
    __tablename__ = "vendor_submissions"
    __table_args__ = (UniqueConstraint("bid_id", "vendor_id", name="uq_submission_bid_vendor"),)

    id = Column(Integer, primary_key=True)
    uuid = Column(Uuid(as_uuid=True), unique=True, nullable=False, default=uuid.uuid4)
    bid_id = Column(Integer, ForeignKey("bids.id"), nullable=False)
    vendor_id = Column(Integer, ForeignKey("vendors.id"), nullable=False)
    submitted_at = Column(DateTime, default=utcnow, nullable=False)

    # Header-level response, applies to every item unless overridden
    incoterm = Column(String(100), nullable=True)
    payment_terms = Column(String(100), nullable=True)
    additional_notes = Column(Text, nullable=True)

    bid = relationship("Bid", back_populates="submissions")
    vendor = relationship("Vendor")
    item_responses = relationship(
        "VendorItemResponse", back_populates="submission", order_by="VendorItemResponse.id"
    )

    @property
    def has_header_response(self):
        return bool(self.incoterm or self.payment_terms or self.additional_notes)


class VendorItemResponse(Base):
    __tablename__ = "vendor_item_responses"

    id = Column(Integer, primary_key=True)
    submission_id = Column(Integer, ForeignKey("vendor_submissions.id"), nullable=False)
    item_id = Column(Integer, ForeignKey("bid_items.id"), nullable=False)
    price = Column(Numeric(14, 2), nullable=False)
    lead_time = Column(Integer, nullable=False)  # days
    incoterm = Column(String(100), nullable=False, default="")
    payment_terms = Column(String(100), nullable=False, default="")

    submission = relationship("VendorSubmission", back_populates="item_responses")
    item = relationship("BidItem")


class EmailLog(Base):
    """Email delivery tracking"""
    __tablename__ = "email_logs"

    id = Column(Integer, primary_key=True)
    email_to = Column(String(255), nullable=False)
    subject = Column(String(255), nullable=False)
    template_name = Column(String(100), nullable=False)
    status = Column(String(20), default="queued")  # queued, sent, failed, disabled, console
    provider = Column(String(20), nullable=True)  # smtp, sendgrid, console
    related_bid_id = Column(Integer, nullable=True)
    error_message = Column(Text, nullable=True)
    sent_at = Column(DateTime, nullable=True)
    created_at = Column(DateTime, default=utcnow)
