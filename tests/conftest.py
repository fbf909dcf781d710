"""
conftest.py - shared fixtures for the BidHub test suite

Provides an in-memory SQLite database, a FastAPI TestClient with the
session and current user overridden, and factory fixtures for buyers,
vendors and bids.

- Every test gets fresh tables (created and dropped around the test)
- Email delivery is disabled unless a test turns it on
- The background scheduler never starts
- Rate limiting is off unless a test installs its own limiter
"""

import os

# Must be set before importing bidhub modules
os.environ["DATABASE_URL"] = "sqlite://"
os.environ["SCHEDULER_ENABLED"] = "false"
os.environ["EMAIL_ENABLED"] = "false"
os.environ["ON_VALIDATOR_ERROR"] = "allow"
os.environ["RATE_LIMIT_ENABLED"] = "false"

from datetime import timedelta

import pytest
from fastapi.testclient import TestClient
from sqlalchemy import create_engine, event
from sqlalchemy.orm import Session, sessionmaker
from sqlalchemy.pool import StaticPool

from bidhub.db.session import Base, get_db
from bidhub.db.models import User, Vendor, Bid
from bidhub.core.deps import get_current_user
from bidhub.services import bid_service
from bidhub.utils.bid_state import utcnow
from bidhub.utils.security import hash_password

# ── In-memory SQLite engine ──────────────────────────────────────────

engine = create_engine(
    "sqlite://",
    connect_args={"check_same_thread": False},
    poolclass=StaticPool,
)
TestSessionLocal = sessionmaker(bind=engine, autocommit=False, autoflush=False)


@event.listens_for(engine, "connect")
def _enable_fk(dbapi_conn, _):
    """SQLite ignores FKs by default, turn them on."""
    dbapi_conn.execute("PRAGMA foreign_keys=ON")


# ── Fixtures ─────────────────────────────────────────────────────────


@pytest.fixture(autouse=True)
def db_session():
    """Create all tables, yield a session, then tear down."""
    Base.metadata.create_all(bind=engine)
    session = TestSessionLocal()
    try:
        yield session
    finally:
        session.close()
        Base.metadata.drop_all(bind=engine)


@pytest.fixture()
def session_factory():
    return TestSessionLocal


def _make_user(db: Session, email: str, name: str, company: str) -> User:
    user = User(
        name=name,
        email=email,
        password_hash=hash_password("s3cret-pass"),
        role="buyer",
        company_name=company,
    )
    db.add(user)
    db.commit()
    db.refresh(user)
    return user


@pytest.fixture()
def buyer(db_session: Session) -> User:
    return _make_user(db_session, "buyer@northwind.example", "Nina Buyer", "Northwind Trading")


@pytest.fixture()
def other_buyer(db_session: Session) -> User:
    """A second buyer who must not see the first buyer's records."""
    return _make_user(db_session, "buyer@contoso.example", "Carl Other", "Contoso")


@pytest.fixture()
def vendors(db_session: Session, buyer: User) -> list[Vendor]:
    """Two vendors of `buyer`: V1 Acme Supplies (tier1), V2 Beta Metals (tier2)."""
    v1 = bid_service.create_vendor(
        db_session, buyer,
        material_classes=["Raw Materials", "Steel"],
        company_name="Acme Supplies", email="sales@acme.example",
        contact_name="Alice Acme", tier="tier1", location="Houston, TX",
    )
    v2 = bid_service.create_vendor(
        db_session, buyer,
        material_classes=["Packaging"],
        company_name="Beta Metals", email="quotes@beta.example",
        contact_name="Bob Beta", tier="tier2", location="Monterrey, MX",
    )
    return [v1, v2]


ITEMS = [
    {"material_code": "RM-1", "description": "Steel Bar 20mm", "quantity": 50, "uom": "ea"},
    {"material_code": "PK-7", "description": "Wooden Pallet", "quantity": 10, "uom": "pcs"},
]


@pytest.fixture()
def make_bid(db_session: Session, buyer: User, vendors: list[Vendor]):
    """Factory: a bid from `buyer` with items I1, I2 inviting V1 and V2."""
    def _make(**overrides) -> Bid:
        fields = {
            "title": "Q3 raw materials",
            "description": "Quarterly replenishment",
            "due_date": utcnow() + timedelta(days=7),
            "requirements": None,
            "items": [dict(item) for item in ITEMS],
            "vendor_ids": [v.id for v in vendors],
        }
        fields.update(overrides)
        return bid_service.create_bid(db_session, buyer, **fields)
    return _make


@pytest.fixture()
def bid(make_bid) -> Bid:
    return make_bid()


@pytest.fixture()
def client(db_session: Session, buyer: User) -> TestClient:
    """FastAPI TestClient with auth overridden to return `buyer`."""
    from bidhub.main import app

    def _override_db():
        yield db_session

    def _override_user():
        return buyer

    app.dependency_overrides[get_db] = _override_db
    app.dependency_overrides[get_current_user] = _override_user

    with TestClient(app) as c:
        yield c

    app.dependency_overrides.clear()
