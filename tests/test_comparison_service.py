"""
test_comparison_service.py - buyer-side comparison of vendor responses

Covers build_item_comparison, build_header_comparison, response_summary
and build_comparison in bidhub/services/comparison_service.py.
"""

from decimal import Decimal

import pytest

from bidhub.core.errors import ValidationFailed
from bidhub.db.store import BidStore
from bidhub.schemas.submission import HeaderResponseIn, ItemResponseIn, SubmissionIn
from bidhub.services import bid_service
from bidhub.services.comparison_service import (
    build_comparison, build_header_comparison, build_item_comparison, response_summary,
)


def _respond(db, bid, vendor, prices, header=None):
    """prices: {item_index: (price, lead_time)}"""
    payload = SubmissionIn(
        items=[
            ItemResponseIn(item_id=bid.items[index].id, price=Decimal(price), lead_time=lead)
            for index, (price, lead) in prices.items()
        ],
        header_response=HeaderResponseIn(**header) if header else None,
    )
    return bid_service.submit_response(db, bid.id, vendor.id, payload)


def _loaded(db, bid):
    return BidStore(db).get_bid_with_responses(bid.id)


def test_one_of_two_vendors_priced_one_item(db_session, vendors, bid):
    v1, _ = vendors
    _respond(db_session, bid, v1, {0: ("10.50", 5)})

    loaded = _loaded(db_session, bid)
    items = build_item_comparison(loaded)

    i1, i2 = items
    assert len(i1["responses"]) == 1
    row = i1["responses"][0]
    assert row["vendor_id"] == v1.id
    assert row["company_name"] == "Acme Supplies"
    assert row["price"] == Decimal("10.50")
    assert row["lead_time"] == 5
    assert not i1["no_responses"]

    assert i2["responses"] == []
    assert i2["no_responses"]

    assert response_summary(loaded)["label"] == "1 of 2 vendors responded"


def test_pending_vendors_and_foreign_items_never_appear(db_session, vendors, bid, make_bid):
    v1, v2 = vendors
    other = make_bid(title="Other bid")
    _respond(db_session, other, v2, {0: ("1.00", 1)})
    _respond(db_session, bid, v1, {0: ("10.50", 5), 1: ("4.00", 2)})

    items = build_item_comparison(_loaded(db_session, bid))
    bid_item_ids = {item.id for item in bid.items}
    assert {entry["item_id"] for entry in items} == bid_item_ids
    for entry in items:
        assert {row["vendor_id"] for row in entry["responses"]} == {v1.id}


def test_sort_by_price_and_lead_time(db_session, vendors, bid):
    v1, v2 = vendors
    _respond(db_session, bid, v1, {0: ("12.00", 3)})
    _respond(db_session, bid, v2, {0: ("9.99", 10)})
    loaded = _loaded(db_session, bid)

    by_price = build_item_comparison(loaded, sort_field="price")[0]["responses"]
    assert [r["vendor_id"] for r in by_price] == [v2.id, v1.id]

    by_lead_desc = build_item_comparison(loaded, sort_field="lead_time", sort_order="desc")[0]["responses"]
    assert [r["vendor_id"] for r in by_lead_desc] == [v2.id, v1.id]

    by_name = build_item_comparison(loaded, sort_field="company_name")[0]["responses"]
    assert [r["company_name"] for r in by_name] == ["Acme Supplies", "Beta Metals"]


def test_vendor_filter_and_text_filter(db_session, vendors, bid):
    v1, v2 = vendors
    _respond(db_session, bid, v1, {0: ("12.00", 3), 1: ("2.00", 3)})
    _respond(db_session, bid, v2, {0: ("9.99", 10)})
    loaded = _loaded(db_session, bid)

    only_v2 = build_item_comparison(loaded, vendor_filter=str(v2.id))
    assert [r["vendor_id"] for r in only_v2[0]["responses"]] == [v2.id]
    assert only_v2[1]["no_responses"]

    pallets = build_item_comparison(loaded, filter_text="pallet")
    assert [entry["material_code"] for entry in pallets] == ["PK-7"]

    by_code = build_item_comparison(loaded, filter_text="rm-")
    assert [entry["material_code"] for entry in by_code] == ["RM-1"]

    # summary ignores view filters
    assert response_summary(loaded) == {"responded": 2, "invited": 2, "label": "2 of 2 vendors responded"}


def test_header_only_response_is_not_shown_under_items(db_session, vendors, bid):
    v1, v2 = vendors
    _respond(db_session, bid, v1, {0: ("10.50", 5)})
    _respond(db_session, bid, v2, {}, header={"incoterm": "FOB", "payment_terms": "Net 30"})
    loaded = _loaded(db_session, bid)

    for entry in build_item_comparison(loaded):
        assert v2.id not in {r["vendor_id"] for r in entry["responses"]}

    headers = build_header_comparison(loaded)
    assert [h["company_name"] for h in headers] == ["Beta Metals"]
    assert headers[0]["incoterm"] == "FOB"


def test_header_rows_sorted_by_company_name(db_session, vendors, bid):
    v1, v2 = vendors
    _respond(db_session, bid, v2, {}, header={"incoterm": "CIF"})
    _respond(db_session, bid, v1, {}, header={"payment_terms": "Net 60"})
    loaded = _loaded(db_session, bid)

    assert [h["company_name"] for h in build_header_comparison(loaded)] == ["Acme Supplies", "Beta Metals"]
    assert [h["company_name"] for h in build_header_comparison(loaded, sort_order="desc")] == ["Beta Metals", "Acme Supplies"]


def test_unknown_sort_field_is_rejected(db_session, bid):
    with pytest.raises(ValidationFailed, match="sort field"):
        build_item_comparison(_loaded(db_session, bid), sort_field="rating")
    with pytest.raises(ValidationFailed, match="sort order"):
        build_item_comparison(_loaded(db_session, bid), sort_order="up")


def test_build_comparison_bundles_all_views(db_session, vendors, bid):
    _respond(db_session, bid, vendors[0], {0: ("10.50", 5)}, header={"incoterm": "EXW"})
    result = build_comparison(_loaded(db_session, bid))
    assert result["bid_id"] == bid.id
    assert len(result["items"]) == 2
    assert len(result["header_responses"]) == 1
    assert result["summary"]["responded"] == 1


def test_invalid_vendor_filter_rejected_before_anyone_responds(db_session, bid):
    loaded = _loaded(db_session, bid)
    with pytest.raises(ValidationFailed, match="vendor filter"):
        build_item_comparison(loaded, vendor_filter="abc")
    with pytest.raises(ValidationFailed, match="vendor filter"):
        build_header_comparison(loaded, vendor_filter="abc")


def test_item_sort_order_does_not_reorder_header_rows(db_session, vendors, bid):
    v1, v2 = vendors
    _respond(db_session, bid, v1, {0: ("10.00", 5)}, header={"incoterm": "EXW"})
    _respond(db_session, bid, v2, {0: ("12.00", 3)}, header={"incoterm": "FOB"})

    result = build_comparison(_loaded(db_session, bid), sort_field="price", sort_order="desc")
    assert [r["company_name"] for r in result["items"][0]["responses"]] == ["Beta Metals", "Acme Supplies"]
    assert [h["company_name"] for h in result["header_responses"]] == ["Acme Supplies", "Beta Metals"]

    result = build_comparison(_loaded(db_session, bid), header_order="desc")
    assert [h["company_name"] for h in result["header_responses"]] == ["Beta Metals", "Acme Supplies"]
