from pydantic import BaseModel, field_validator
from typing import List, Optional
from datetime import datetime

from bidhub.utils.bid_state import to_naive_utc


# ------------------------
# Requests
# ------------------------
class RequirementsIn(BaseModel):
    tier: str = "all"
    material_class: str = "all"
    location: str = "all"
    min_bid_amount: int = 0


class BidItemIn(BaseModel):
    material_code: str
    description: str
    quantity: int
    uom: str = "ea"
    packaging: Optional[str] = None
    remarks: Optional[str] = None


class BidCreate(BaseModel):
    title: str
    description: str
    due_date: datetime
    requirements: RequirementsIn = RequirementsIn()
    items: List[BidItemIn]
    vendor_ids: List[int]

    @field_validator("due_date")
    @classmethod
    def naive_utc(cls, v: datetime):
        return to_naive_utc(v)


class BidUpdate(BaseModel):
    """Header edits only; items are fixed at creation"""
    title: Optional[str] = None
    description: Optional[str] = None


class DueDateExtension(BaseModel):
    due_date: datetime

    @field_validator("due_date")
    @classmethod
    def naive_utc(cls, v: datetime):
        return to_naive_utc(v)


class AddVendorsRequest(BaseModel):
    vendor_ids: List[int]


# ------------------------
# Responses
# ------------------------
class RequirementsOut(RequirementsIn):
    class Config:
        from_attributes = True


class BidItemOut(BidItemIn):
    id: int

    class Config:
        from_attributes = True


class ResponseSummary(BaseModel):
    responded: int
    invited: int
    label: str


class InvitationOut(BaseModel):
    vendor_id: int
    company_name: str
    email: str
    has_responded: bool
    responded_at: Optional[datetime] = None
    status: str


class BidOut(BaseModel):
    id: int
    title: str
    description: Optional[str] = None
    created_at: datetime
    due_date: datetime
    last_reminder_sent: Optional[datetime] = None
    status: str  # active, expired; derived from due_date
    summary: ResponseSummary


class BidDetailOut(BidOut):
    requirements: Optional[RequirementsOut] = None
    items: List[BidItemOut]
    invitations: List[InvitationOut]
