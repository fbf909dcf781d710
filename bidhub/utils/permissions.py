"""
Role-based access control utilities
"""
from bidhub.core.errors import Unauthorized
from bidhub.db.models import User, Bid, Vendor


def is_buyer(user: User) -> bool:
    return user.role == "buyer"


def is_vendor(user: User) -> bool:
    return user.role == "vendor"


def owns_bid(user: User, bid: Bid) -> bool:
    """Check if user is the buyer who created the bid"""
    return bid.buyer_id == user.id


def owns_vendor(user: User, vendor: Vendor) -> bool:
    """Vendor records are private to the buyer that added them"""
    return vendor.buyer_id == user.id


def require_bid_owner(user: User, bid: Bid):
    """Raise Unauthorized if the user does not own the bid"""
    if not owns_bid(user, bid):
        raise Unauthorized("Not authorized to access this bid")


def require_vendor_owner(user: User, vendor: Vendor):
    if not owns_vendor(user, vendor):
        raise Unauthorized("Not authorized to access this vendor")
