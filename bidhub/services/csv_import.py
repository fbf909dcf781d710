"""
Bid item import from CSV.

Header names are matched case-insensitively against a list of synonyms per
field, so spreadsheets exported from different tools load without edits.
"""
import csv
import io
import logging
import re
from typing import Dict, List

logger = logging.getLogger(__name__)

COLUMN_SYNONYMS = {
    "material_code": ("materialcode", "material_code", "material code", "code", "sku"),
    "description": ("description", "desc", "name", "item", "product"),
    "quantity": ("quantity", "qty", "amount"),
    "uom": ("uom", "unit", "unit of measure", "measure"),
    "packaging": ("packaging", "package", "packing"),
    "remarks": ("remarks", "notes", "comment", "comments"),
}

DEFAULT_QUANTITY = 1
DEFAULT_UOM = "ea"

_LEADING_INT = re.compile(r"^\s*([+-]?\d+)")


def _pick(row: Dict[str, str], field: str) -> str:
    """First non-empty value among the field's synonyms"""
    for name in COLUMN_SYNONYMS[field]:
        value = (row.get(name) or "").strip()
        if value:
            return value
    return ""


def _parse_quantity(raw: str) -> int:
    match = _LEADING_INT.match(raw or "")
    if not match:
        return DEFAULT_QUANTITY
    return int(match.group(1))


def parse_bid_items_csv(text: str) -> List[dict]:
    """
    Parse CSV text into bid item dicts.

    Rows missing a material code or a description are dropped. Quantity
    takes the leading integer of the cell and defaults to 1; unit of
    measure defaults to "ea".
    """
    text = text.lstrip("\ufeff")

    reader = csv.DictReader(io.StringIO(text))
    if reader.fieldnames is None:
        return []
    reader.fieldnames = [(name or "").strip().lower() for name in reader.fieldnames]

    items = []
    skipped = 0
    for row in reader:
        if not any((value or "").strip() for value in row.values() if isinstance(value, str)):
            continue
        material_code = _pick(row, "material_code")
        description = _pick(row, "description")
        if not material_code or not description:
            skipped += 1
            continue

        items.append({
            "material_code": material_code,
            "description": description,
            "quantity": _parse_quantity(_pick(row, "quantity")),
            "uom": _pick(row, "uom") or DEFAULT_UOM,
            "packaging": _pick(row, "packaging"),
            "remarks": _pick(row, "remarks"),
        })

    logger.info(f"Parsed {len(items)} bid items from CSV ({skipped} rows skipped)")
    return items


def decode_upload(content: bytes) -> str:
    """Decode uploaded bytes as UTF-8 (BOM tolerated), falling back to Latin-1"""
    try:
        return content.decode("utf-8-sig")
    except UnicodeDecodeError:
        return content.decode("latin-1")
