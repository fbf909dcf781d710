from pydantic import BaseModel, EmailStr, field_validator
from typing import List, Optional
from datetime import datetime


class VendorCreate(BaseModel):
    company_name: str
    email: EmailStr
    contact_name: Optional[str] = None
    phone: Optional[str] = None
    tier: str = "tier3"
    location: Optional[str] = None
    material_classes: List[str] = []


class MaterialClassesUpdate(BaseModel):
    material_classes: List[str]


class VendorOut(BaseModel):
    id: int
    company_name: str
    email: str
    contact_name: Optional[str] = None
    phone: Optional[str] = None
    tier: str
    location: Optional[str] = None
    material_classes: List[str] = []

    @field_validator("material_classes", mode="before")
    @classmethod
    def class_names(cls, v):
        # ORM rows carry VendorMaterialClass objects
        return [getattr(mc, "material_class", mc) for mc in v or []]

    class Config:
        from_attributes = True


class ProfileInvitationOut(BaseModel):
    bid_id: int
    title: str
    buyer_company: str
    due_date: datetime
    status: str
    vendor_id: int
    company_name: str
    has_responded: bool
    link: str


class VendorProfileOut(BaseModel):
    name: str
    email: str
    records: List[VendorOut]
    invitations: List[ProfileInvitationOut]
