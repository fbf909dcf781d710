"""
Validation Service

Advisory checks for bid items and vendor submissions. A structural check
runs first, followed by heuristics that flag values a human should look
at again. Results never block a write on their own.
"""
from dataclasses import dataclass
from decimal import Decimal
from functools import wraps
from typing import Any, List, Optional
import logging

from bidhub.core.config import settings
from bidhub.core.errors import ValidationFailed
from bidhub.services.bid_service import validate_items

logger = logging.getLogger(__name__)

SUSPICIOUS_TERMS = ("test", "dummy", "sample", "xxx", "fake")
MIN_DESCRIPTION_LENGTH = 5
MAX_ITEM_QUANTITY = 10000
MIN_PRICE = Decimal("0.01")
MAX_PRICE = Decimal("1000000")
MAX_LEAD_TIME_DAYS = 365


@dataclass
class ValidationResult:
    is_valid: bool
    message: Optional[str] = None

    def to_dict(self) -> dict:
        return {"is_valid": self.is_valid, "message": self.message}


def _guarded(func):
    """Apply the ON_VALIDATOR_ERROR policy when a check raises unexpectedly."""
    @wraps(func)
    def wrapper(*args, **kwargs) -> ValidationResult:
        try:
            return func(*args, **kwargs)
        except Exception as e:
            logger.error(f"Validator {func.__name__} failed: {str(e)}")
            if settings.ON_VALIDATOR_ERROR == "reject":
                return ValidationResult(False, "Validation could not be completed")
            return ValidationResult(True)
    return wrapper


def _get(obj: Any, name: str, default=None):
    if isinstance(obj, dict):
        return obj.get(name, default)
    return getattr(obj, name, default)


@_guarded
def validate_bid_items(items: List[dict]) -> ValidationResult:
    try:
        validate_items(items)
    except ValidationFailed as e:
        return ValidationResult(False, e.message)

    flagged = 0
    for item in items:
        description = item["description"].lower()
        if (
            len(description) < MIN_DESCRIPTION_LENGTH
            or any(term in description for term in SUSPICIOUS_TERMS)
            or item["quantity"] > MAX_ITEM_QUANTITY
        ):
            flagged += 1

    if flagged:
        return ValidationResult(
            False,
            f"Potential issues detected in {flagged} items. "
            "Please review the material codes and descriptions for accuracy.",
        )
    return ValidationResult(True)


@_guarded
def validate_submission(submission) -> ValidationResult:
    """
    Args:
        submission: object or dict with `items` (item_id, price, lead_time)
            and an optional `header_response`
    """
    items = _get(submission, "items") or []
    header = _get(submission, "header_response")
    if not items and not header:
        return ValidationResult(False, "Submission must include either item responses or header-level information")

    for item in items:
        if not _get(item, "item_id"):
            return ValidationResult(False, "Item ID is required for all items")
        price = _get(item, "price")
        if price is None or Decimal(str(price)) < 0:
            return ValidationResult(False, "Valid price is required for all items")
        lead_time = _get(item, "lead_time")
        if lead_time is None or lead_time < 0:
            return ValidationResult(False, "Valid lead time is required for all items")

    flagged = 0
    for item in items:
        price = Decimal(str(_get(item, "price")))
        lead_time = _get(item, "lead_time")
        if price <= MIN_PRICE or price > MAX_PRICE or lead_time <= 0 or lead_time > MAX_LEAD_TIME_DAYS:
            flagged += 1

    if flagged:
        return ValidationResult(
            False,
            f"Potential issues detected in {flagged} items. "
            "Please review the prices and lead times for accuracy.",
        )
    return ValidationResult(True)
