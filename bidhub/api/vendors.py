from fastapi import APIRouter, Depends, Query
from sqlalchemy.orm import Session
from typing import Optional
import logging

from bidhub.db.session import get_db
from bidhub.db.models import User
from bidhub.schemas.vendor import VendorCreate, VendorOut, MaterialClassesUpdate
from bidhub.core.deps import require_buyer
from bidhub.services import bid_service

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/vendors", tags=["vendors"])


@router.get("", response_model=list[VendorOut])
def list_vendors(
    tier: str = Query("all"),
    material_class: str = Query("all"),
    location: str = Query("all"),
    search: Optional[str] = Query(None, description="Matches company name, email or contact name"),
    db: Session = Depends(get_db),
    current_user: User = Depends(require_buyer),
):
    """
    List the buyer's vendors, optionally narrowed by the same filters a
    bid's requirements use.
    """
    return bid_service.list_vendors(db, current_user, tier, material_class, location, search)


@router.post("", response_model=VendorOut, status_code=201)
def create_vendor(
    payload: VendorCreate,
    db: Session = Depends(get_db),
    current_user: User = Depends(require_buyer),
):
    fields = payload.model_dump(exclude={"material_classes"})
    return bid_service.create_vendor(db, current_user, material_classes=payload.material_classes, **fields)


@router.get("/{vendor_id}", response_model=VendorOut)
def get_vendor(
    vendor_id: int,
    db: Session = Depends(get_db),
    current_user: User = Depends(require_buyer),
):
    return bid_service.get_owned_vendor(db, current_user, vendor_id)


@router.put("/{vendor_id}/material-classes", response_model=VendorOut)
def set_material_classes(
    vendor_id: int,
    payload: MaterialClassesUpdate,
    db: Session = Depends(get_db),
    current_user: User = Depends(require_buyer),
):
    """Replace the vendor's material classes with the given list"""
    return bid_service.set_vendor_material_classes(db, current_user, vendor_id, payload.material_classes)
