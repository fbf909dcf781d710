from fastapi import APIRouter, Depends, HTTPException, UploadFile, File
from pydantic import ValidationError
from typing import List
import logging

from bidhub.core.deps import get_current_user
from bidhub.schemas.bid import BidItemIn
from bidhub.schemas.submission import SubmissionIn
from bidhub.schemas.tools import ValidationRequest, ValidationResultOut, CsvUploadOut
from bidhub.services import csv_import, validation_service

logger = logging.getLogger(__name__)

router = APIRouter(tags=["tools"])


@router.post("/csv-upload", response_model=CsvUploadOut)
async def upload_items_csv(
    file: UploadFile = File(...),
    current_user=Depends(get_current_user),
):
    """Parse a CSV of bid items; nothing is stored"""
    if not (file.filename or "").lower().endswith(".csv"):
        raise HTTPException(status_code=400, detail="Only CSV files are supported")

    text = csv_import.decode_upload(await file.read())
    items = csv_import.parse_bid_items_csv(text)
    if not items:
        raise HTTPException(status_code=400, detail="No valid items found in the CSV file")

    return {"items": items}


@router.post("/ai-validation", response_model=ValidationResultOut)
def validate_payload(
    request: ValidationRequest,
    current_user=Depends(get_current_user),
):
    """Run the advisory checks on draft bid items or a draft vendor submission"""
    try:
        if request.type == "bid_items":
            items = [BidItemIn.model_validate(item).model_dump() for item in _as_list(request.data)]
            result = validation_service.validate_bid_items(items)
        else:
            result = validation_service.validate_submission(SubmissionIn.model_validate(request.data))
    except ValidationError as e:
        raise HTTPException(status_code=400, detail=f"Invalid {request.type} data: {e.error_count()} error(s)")

    return result.to_dict()


def _as_list(data) -> List:
    if not isinstance(data, list):
        raise HTTPException(status_code=400, detail="bid_items data must be a list")
    return data
