"""
test_api.py - HTTP routes

Exercises the FastAPI routers through TestClient: auth, vendors, bids,
the vendor submission link, comparison, CSV upload and validation.
Authentication is overridden to the `buyer` fixture except in the auth
tests, which use real tokens.
"""

from datetime import timedelta

from fastapi.testclient import TestClient
from slowapi import Limiter
from slowapi.util import get_remote_address

from bidhub.core.deps import get_current_user
from bidhub.db.models import User, VendorInvitation
from bidhub.utils.bid_state import utcnow


def _bid_payload(vendors, **overrides):
    payload = {
        "title": "Fasteners Q4",
        "description": "Replenishment of stock fasteners",
        "due_date": (utcnow() + timedelta(days=5)).isoformat(),
        "items": [
            {"material_code": "FS-10", "description": "Hex bolt M10x40", "quantity": 500, "uom": "ea"},
            {"material_code": "FS-11", "description": "Flat washer M10", "quantity": 500, "uom": "ea"},
        ],
        "vendor_ids": [v.id for v in vendors],
    }
    payload.update(overrides)
    return payload


def _vendor_params(invitation: VendorInvitation) -> dict:
    return {"vendor_id": invitation.vendor_id, "token": invitation.access_token}


# ── auth ─────────────────────────────────────────────────────────────


class TestAuth:
    def test_register_login_me(self, db_session):
        from bidhub.main import app
        with TestClient(app) as c:
            from bidhub.db.session import get_db

            def _override_db():
                yield db_session

            app.dependency_overrides[get_db] = _override_db
            try:
                resp = c.post("/auth/register", json={
                    "name": "Dana Buyer", "email": "dana@fabrikam.com",
                    "password": "hunter22", "company_name": "Fabrikam",
                })
                assert resp.status_code == 200

                dup = c.post("/auth/register", json={
                    "name": "Dana Again", "email": "dana@fabrikam.com", "password": "x1234567",
                })
                assert dup.status_code == 400

                bad = c.post("/auth/login", json={"email": "dana@fabrikam.com", "password": "nope"})
                assert bad.status_code == 401

                login = c.post("/auth/login", json={"email": "dana@fabrikam.com", "password": "hunter22"})
                token = login.json()["access_token"]

                me = c.get("/auth/me", headers={"Authorization": f"Bearer {token}"})
                assert me.status_code == 200
                assert me.json()["company_name"] == "Fabrikam"

                assert c.get("/auth/me").status_code == 401
                assert c.get("/auth/me", headers={"Authorization": "Bearer garbage"}).status_code == 401
            finally:
                app.dependency_overrides.clear()


# ── vendors ──────────────────────────────────────────────────────────


class TestVendorRoutes:
    def test_create_and_filter(self, client):
        resp = client.post("/vendors", json={
            "company_name": "Delta Castings", "email": "hello@deltacastings.com",
            "tier": "tier1", "location": "Pune, IN", "material_classes": ["Castings"],
        })
        assert resp.status_code == 201
        vendor = resp.json()
        assert vendor["material_classes"] == ["Castings"]

        found = client.get("/vendors", params={"material_class": "cast"}).json()
        assert [v["company_name"] for v in found] == ["Delta Castings"]

        updated = client.put(f"/vendors/{vendor['id']}/material-classes", json={"material_classes": ["Forgings"]})
        assert updated.json()["material_classes"] == ["Forgings"]

    def test_vendor_role_cannot_manage_vendors(self, client, buyer, db_session):
        buyer.role = "vendor"
        db_session.commit()
        assert client.get("/vendors").status_code == 403

    def test_vendor_account_profile(self, client, db_session, vendors, bid):
        from bidhub.main import app

        account = User(name="Alice Acme", email="sales@acme.example", password_hash="x", role="vendor")
        db_session.add(account)
        db_session.commit()
        app.dependency_overrides[get_current_user] = lambda: account

        body = client.get("/vendor/profile").json()
        assert [r["company_name"] for r in body["records"]] == ["Acme Supplies"]
        assert body["records"][0]["material_classes"] == ["Raw Materials", "Steel"]

        invitation = body["invitations"][0]
        assert invitation["bid_id"] == bid.id
        assert invitation["buyer_company"] == "Northwind Trading"
        assert invitation["status"] == "active"
        assert invitation["has_responded"] is False
        token = db_session.query(VendorInvitation).filter_by(bid_id=bid.id, vendor_id=vendors[0].id).one().access_token
        assert invitation["link"].endswith(f"/vendor/{bid.id}?vendor_id={vendors[0].id}&token={token}")

    def test_buyer_has_no_vendor_profile(self, client):
        assert client.get("/vendor/profile").status_code == 403


# ── bids ─────────────────────────────────────────────────────────────


class TestBidRoutes:
    def test_create_get_list(self, client, vendors):
        resp = client.post("/bids", json=_bid_payload(vendors))
        assert resp.status_code == 201, resp.text
        body = resp.json()
        assert body["status"] == "active"
        assert body["summary"]["label"] == "0 of 2 vendors responded"
        assert [i["material_code"] for i in body["items"]] == ["FS-10", "FS-11"]
        assert {inv["status"] for inv in body["invitations"]} == {"pending"}

        detail = client.get(f"/bids/{body['id']}").json()
        assert detail["requirements"]["tier"] == "all"

        page = client.get("/bids", params={"limit": 10}).json()
        assert page["total"] == 1
        assert page["has_more"] is False

    def test_create_rejects_flagged_items(self, client, vendors):
        payload = _bid_payload(vendors, items=[
            {"material_code": "X", "description": "dummy item", "quantity": 1, "uom": "ea"},
        ])
        resp = client.post("/bids", json=payload)
        assert resp.status_code == 400
        assert resp.json()["detail"].startswith("Validation failed: Potential issues")

    def test_create_with_unknown_vendor(self, client, vendors):
        resp = client.post("/bids", json=_bid_payload(vendors, vendor_ids=[vendors[0].id, 4242]))
        assert resp.status_code == 404

    def test_other_buyers_bid_is_forbidden(self, client, db_session, other_buyer, make_bid):
        from bidhub.main import app
        bid = make_bid()
        app.dependency_overrides[get_current_user] = lambda: other_buyer
        resp = client.get(f"/bids/{bid.id}")
        assert resp.status_code == 403
        assert resp.json() == {"detail": "Not authorized to access this bid"}

    def test_update_and_delete(self, client, db_session, bid):
        bid_id = bid.id
        resp = client.put(f"/bids/{bid_id}", json={"title": "Renamed bid"})
        assert resp.json()["title"] == "Renamed bid"

        assert client.delete(f"/bids/{bid_id}").status_code == 200
        assert client.get(f"/bids/{bid_id}").status_code == 404

    def test_extend(self, client, bid):
        past = client.post(f"/bids/{bid.id}/extend", json={"due_date": (utcnow() - timedelta(days=1)).isoformat()})
        assert past.status_code == 400
        assert past.json()["detail"] == "New due date must be in the future"

        new_due = (utcnow() + timedelta(days=30)).replace(microsecond=0)
        ok = client.post(f"/bids/{bid.id}/extend", json={"due_date": new_due.isoformat() + "Z"})
        assert ok.status_code == 200
        assert ok.json()["due_date"].startswith(new_due.isoformat())

    def test_remind(self, client, bid):
        resp = client.post(f"/bids/{bid.id}/remind")
        assert resp.status_code == 200
        assert resp.json()["reminded"] == 2

    def test_expired_bid_rejects_reminders_and_vendors(self, client, db_session, vendors, make_bid):
        expired = make_bid(due_date=utcnow() - timedelta(hours=1), vendor_ids=[vendors[0].id])
        assert client.get(f"/bids/{expired.id}").json()["status"] == "expired"
        assert client.post(f"/bids/{expired.id}/remind").status_code == 400
        resp = client.post(f"/bids/{expired.id}/vendors", json={"vendor_ids": [vendors[1].id]})
        assert resp.status_code == 400
        assert resp.json()["detail"] == "Cannot add vendors to expired bids"

    def test_add_vendors_twice(self, client, vendors, make_bid):
        bid = make_bid(vendor_ids=[vendors[0].id])
        first = client.post(f"/bids/{bid.id}/vendors", json={"vendor_ids": [vendors[1].id]}).json()
        second = client.post(f"/bids/{bid.id}/vendors", json={"vendor_ids": [vendors[1].id]}).json()
        assert first["added"] == 1
        assert second["added"] == 0
        assert len(client.get(f"/bids/{bid.id}/vendors").json()) == 2


# ── vendor submission link + comparison ──────────────────────────────


class TestVendorSubmissionRoutes:
    def test_submit_then_compare(self, client, db_session, vendors, bid):
        invitation = bid.invitations[0]
        i1, i2 = bid.items

        view = client.get(f"/vendor-submissions/{bid.id}", params=_vendor_params(invitation))
        assert view.status_code == 200
        assert view.json()["has_responded"] is False
        assert view.json()["buyer_company"] == "Northwind Trading"

        resp = client.post(
            f"/vendor-submissions/{bid.id}",
            params=_vendor_params(invitation),
            json={"items": [{"item_id": i1.id, "price": "10.50", "lead_time": 5}]},
        )
        assert resp.status_code == 201, resp.text

        again = client.post(
            f"/vendor-submissions/{bid.id}",
            params=_vendor_params(invitation),
            json={"items": [{"item_id": i1.id, "price": "8.00", "lead_time": 5}]},
        )
        assert again.status_code == 409

        comparison = client.get(f"/bids/{bid.id}/comparison").json()
        first, second = comparison["items"]
        assert len(first["responses"]) == 1
        assert first["responses"][0]["vendor_id"] == vendors[0].id
        assert float(first["responses"][0]["price"]) == 10.5
        assert first["responses"][0]["lead_time"] == 5
        assert second["no_responses"] is True
        assert comparison["summary"]["label"] == "1 of 2 vendors responded"

    def test_wrong_token(self, client, bid):
        invitation = bid.invitations[0]
        resp = client.get(f"/vendor-submissions/{bid.id}", params={"vendor_id": invitation.vendor_id, "token": "nope"})
        assert resp.status_code == 404

    def test_expired_bid_refuses_submission(self, client, vendors, make_bid):
        expired = make_bid(due_date=utcnow() - timedelta(minutes=5))
        invitation = expired.invitations[0]
        resp = client.post(
            f"/vendor-submissions/{expired.id}",
            params=_vendor_params(invitation),
            json={"header_response": {"incoterm": "FOB"}},
        )
        assert resp.status_code == 400
        assert "expired" in resp.json()["detail"]

    def test_flagged_prices_are_rejected(self, client, bid):
        invitation = bid.invitations[1]
        resp = client.post(
            f"/vendor-submissions/{bid.id}",
            params=_vendor_params(invitation),
            json={"items": [{"item_id": bid.items[0].id, "price": "0.01", "lead_time": 5}]},
        )
        assert resp.status_code == 400
        assert resp.json()["detail"].startswith("Validation error:")

    def test_unknown_sort_field(self, client, bid):
        resp = client.get(f"/bids/{bid.id}/comparison", params={"sort_field": "rating"})
        assert resp.status_code == 400

    def test_invalid_vendor_filter_without_responses(self, client, bid):
        resp = client.get(f"/bids/{bid.id}/comparison", params={"vendor_id": "abc"})
        assert resp.status_code == 400
        assert "vendor filter" in resp.json()["detail"]


# ── tools ────────────────────────────────────────────────────────────


class TestToolRoutes:
    def test_csv_upload(self, client):
        files = {"file": ("items.csv", b"code,desc,qty\nRM-1,Steel Bar,50\n", "text/csv")}
        resp = client.post("/csv-upload", files=files)
        assert resp.status_code == 200
        assert resp.json()["items"][0]["uom"] == "ea"

    def test_csv_upload_rejects_other_files(self, client):
        files = {"file": ("items.xlsx", b"binary", "application/octet-stream")}
        assert client.post("/csv-upload", files=files).status_code == 400

    def test_csv_without_items(self, client):
        files = {"file": ("items.csv", b"code,desc\n,\n", "text/csv")}
        resp = client.post("/csv-upload", files=files)
        assert resp.status_code == 400
        assert resp.json()["detail"] == "No valid items found in the CSV file"

    def test_ai_validation(self, client):
        resp = client.post("/ai-validation", json={
            "type": "bid_items",
            "data": [{"material_code": "A", "description": "Test widget", "quantity": 1, "uom": "ea"}],
        })
        assert resp.json()["is_valid"] is False

        resp = client.post("/ai-validation", json={
            "type": "vendor_submission",
            "data": {"items": [{"item_id": 1, "price": 42, "lead_time": 10}]},
        })
        assert resp.json() == {"is_valid": True, "message": None}

    def test_health(self, client):
        body = client.get("/health").json()
        assert body["status"] == "healthy"
        assert body["scheduler"]["enabled"] is False


# ── rate limiting ────────────────────────────────────────────────────


class TestRateLimit:
    def test_default_rate_limit_applies_to_every_route(self, client, monkeypatch):
        from bidhub.main import app

        monkeypatch.setattr(app.state, "limiter", Limiter(key_func=get_remote_address, default_limits=["2/minute"]))
        codes = [client.get("/bids").status_code for _ in range(3)]
        assert codes == [200, 200, 429]
        # limits are counted per route
        assert client.get("/vendors").status_code == 200
