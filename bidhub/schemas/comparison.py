from pydantic import BaseModel
from typing import List, Optional
from datetime import datetime
from decimal import Decimal

from bidhub.schemas.bid import ResponseSummary


class ComparisonRow(BaseModel):
    vendor_id: int
    company_name: str
    price: Decimal
    lead_time: int
    incoterm: str
    payment_terms: str


class ItemComparison(BaseModel):
    item_id: int
    material_code: str
    description: str
    quantity: int
    uom: str
    responses: List[ComparisonRow]
    no_responses: bool


class HeaderComparisonRow(BaseModel):
    vendor_id: int
    company_name: str
    incoterm: Optional[str] = None
    payment_terms: Optional[str] = None
    additional_notes: Optional[str] = None
    submitted_at: datetime


class ComparisonOut(BaseModel):
    bid_id: int
    title: str
    items: List[ItemComparison]
    header_responses: List[HeaderComparisonRow]
    summary: ResponseSummary
