from fastapi import Depends, HTTPException, status
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer
from sqlalchemy.orm import Session

from bidhub.db.session import get_db
from bidhub.db.models import User
from bidhub.db.store import BidStore
from bidhub.utils.permissions import is_buyer, is_vendor
from bidhub.utils.security import decode_access_token

bearer_scheme = HTTPBearer(auto_error=False)


def get_current_user(
    credentials: HTTPAuthorizationCredentials = Depends(bearer_scheme),
    db: Session = Depends(get_db),
) -> User:
    """Resolve the calling user from the bearer token."""
    if credentials is None:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Not authenticated",
            headers={"WWW-Authenticate": "Bearer"},
        )

    subject = decode_access_token(credentials.credentials)
    if subject is None:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Invalid or expired token",
            headers={"WWW-Authenticate": "Bearer"},
        )

    user = BidStore(db).get_user(int(subject))
    if not user:
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="User not found")
    return user


def require_buyer(current_user: User = Depends(get_current_user)) -> User:
    """Only buyers manage vendors and bids."""
    if not is_buyer(current_user):
        raise HTTPException(status_code=403, detail="Only buyers can perform this action")
    return current_user


def require_vendor(current_user: User = Depends(get_current_user)) -> User:
    if not is_vendor(current_user):
        raise HTTPException(status_code=403, detail="Only vendor accounts have a vendor profile")
    return current_user
