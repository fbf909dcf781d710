from pydantic import BaseModel
from typing import Any, List, Literal, Optional

from bidhub.schemas.bid import BidItemIn


class ValidationRequest(BaseModel):
    type: Literal["bid_items", "vendor_submission"]
    data: Any


class ValidationResultOut(BaseModel):
    is_valid: bool
    message: Optional[str] = None


class CsvUploadOut(BaseModel):
    items: List[BidItemIn]
