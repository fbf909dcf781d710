"""
Bid State - derived bid lifecycle and invitation status
"""
from typing import Optional
from datetime import datetime, timezone


def utcnow() -> datetime:
    """Naive UTC timestamp, the form every DateTime column is stored in."""
    return datetime.now(timezone.utc).replace(tzinfo=None)


def to_naive_utc(value: datetime) -> datetime:
    """Convert an aware datetime to naive UTC; naive values are assumed UTC already."""
    if value.tzinfo is not None:
        return value.astimezone(timezone.utc).replace(tzinfo=None)
    return value


class BidStatus:
    """Bid status values. Never stored, always computed from the due date."""
    ACTIVE = "active"
    EXPIRED = "expired"


class InvitationStatus:
    PENDING = "pending"
    RESPONDED = "responded"


class BidStateMachine:
    """
    Derived lifecycle for bids and invitations.

    Bid:        active ──(due date passes)──▶ expired
                   ▲                            │
                   └──────(due date extended)───┘

    Invitation: pending ──(submission)──▶ responded   (terminal)
    """

    @classmethod
    def status(cls, due_date: datetime, now: Optional[datetime] = None) -> str:
        """Active while now is strictly before the due date"""
        now = now or utcnow()
        if to_naive_utc(due_date) <= now:
            return BidStatus.EXPIRED
        return BidStatus.ACTIVE

    @classmethod
    def is_expired(cls, due_date: datetime, now: Optional[datetime] = None) -> bool:
        return cls.status(due_date, now) == BidStatus.EXPIRED

    @classmethod
    def validate_extension(cls, new_due_date: datetime, now: Optional[datetime] = None) -> tuple[bool, str]:
        """
        Validate a due date extension.

        Returns:
            (is_valid, error_message)
        """
        now = now or utcnow()
        if to_naive_utc(new_due_date) <= now:
            return False, "New due date must be in the future"
        return True, "Valid extension"

    @classmethod
    def invitation_status(cls, has_responded: bool) -> str:
        return InvitationStatus.RESPONDED if has_responded else InvitationStatus.PENDING

    @classmethod
    def days_remaining(cls, due_date: datetime, now: Optional[datetime] = None) -> int:
        """Whole days left until the due date, rounded up; 0 once expired"""
        now = now or utcnow()
        seconds = (to_naive_utc(due_date) - now).total_seconds()
        if seconds <= 0:
            return 0
        return int(-(-seconds // 86400))
