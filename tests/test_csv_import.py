"""
test_csv_import.py - CSV bid item import

Covers header synonyms, defaults and row dropping in
bidhub/services/csv_import.py.
"""

from bidhub.services.csv_import import decode_upload, parse_bid_items_csv


def test_short_headers_with_default_uom():
    items = parse_bid_items_csv("code,desc,qty\nRM-1,Steel Bar,50\n")
    assert items == [{
        "material_code": "RM-1",
        "description": "Steel Bar",
        "quantity": 50,
        "uom": "ea",
        "packaging": "",
        "remarks": "",
    }]


def test_headers_are_trimmed_and_case_insensitive():
    text = " Material Code ,DESCRIPTION, Unit of Measure ,Packing,Notes\nPK-7,Wooden Pallet,pcs,Bundle,Heat treated\n"
    [item] = parse_bid_items_csv(text)
    assert item["material_code"] == "PK-7"
    assert item["uom"] == "pcs"
    assert item["packaging"] == "Bundle"
    assert item["remarks"] == "Heat treated"
    assert item["quantity"] == 1


def test_rows_without_code_or_description_are_dropped():
    text = "sku,product,amount\n,Orphan row,3\nX-1,,4\nX-2,Valve Body,7\n"
    items = parse_bid_items_csv(text)
    assert [i["material_code"] for i in items] == ["X-2"]
    assert items[0]["quantity"] == 7


def test_quantity_takes_leading_integer():
    text = "materialCode,name,quantity\nA-1,Copper Wire,12 rolls\nA-2,Brass Fitting,abc\n"
    items = parse_bid_items_csv(text)
    assert [i["quantity"] for i in items] == [12, 1]


def test_empty_input():
    assert parse_bid_items_csv("") == []
    assert parse_bid_items_csv("code,desc\n") == []


def test_decode_upload_strips_bom():
    raw = "\ufeffcode,desc\nRM-1,Steel Bar\n".encode("utf-8")
    text = decode_upload(raw)
    assert parse_bid_items_csv(text)[0]["material_code"] == "RM-1"
