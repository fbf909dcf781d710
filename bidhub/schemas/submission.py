from pydantic import BaseModel
from typing import List, Optional
from datetime import datetime
from decimal import Decimal

from bidhub.schemas.bid import BidItemOut


class ItemResponseIn(BaseModel):
    item_id: int
    price: Decimal
    lead_time: int  # days
    incoterm: str = ""
    payment_terms: str = ""


class HeaderResponseIn(BaseModel):
    incoterm: Optional[str] = None
    payment_terms: Optional[str] = None
    additional_notes: Optional[str] = None


class SubmissionIn(BaseModel):
    items: List[ItemResponseIn] = []
    header_response: Optional[HeaderResponseIn] = None


class ItemResponseOut(BaseModel):
    item_id: int
    price: Decimal
    lead_time: int
    incoterm: str
    payment_terms: str

    class Config:
        from_attributes = True


class SubmissionOut(BaseModel):
    id: int
    bid_id: int
    vendor_id: int
    submitted_at: datetime
    incoterm: Optional[str] = None
    payment_terms: Optional[str] = None
    additional_notes: Optional[str] = None
    item_responses: List[ItemResponseOut] = []

    class Config:
        from_attributes = True


class VendorBidView(BaseModel):
    """What an invited vendor sees when opening the invitation link"""
    bid_id: int
    title: str
    description: Optional[str] = None
    due_date: datetime
    status: str
    days_remaining: int
    buyer_company: str
    items: List[BidItemOut]
    has_responded: bool
    submission: Optional[SubmissionOut] = None
