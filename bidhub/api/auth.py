from fastapi import APIRouter, Depends, HTTPException, status
from sqlalchemy.orm import Session
import logging

from bidhub.db.session import get_db
from bidhub.db.models import User
from bidhub.db.store import BidStore
from bidhub.core.deps import get_current_user
from bidhub.utils.security import hash_password, verify_password, create_access_token
from bidhub.schemas.auth import UserCreate, UserLogin, Token, UserOut

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/auth", tags=["auth"])


@router.post("/register", response_model=Token)
def register(user_data: UserCreate, db: Session = Depends(get_db)):
    """Register a buyer (or vendor) account and return an access token"""
    store = BidStore(db)
    if store.get_user_by_email(user_data.email):
        raise HTTPException(status_code=400, detail="Email already registered")
    try:
        password_hash = hash_password(user_data.password)
    except ValueError as exc:
        raise HTTPException(status_code=400, detail=str(exc))

    new_user = store.create_user(
        name=user_data.name,
        email=user_data.email,
        password_hash=password_hash,
        role=user_data.role,
        company_name=user_data.company_name,
    )
    logger.info(f"Registered {new_user.role} account {new_user.id}")

    token = create_access_token({"sub": str(new_user.id)})
    return {"access_token": token, "token_type": "bearer", "user_id": str(new_user.id)}


@router.post("/login", response_model=Token)
def login(user_data: UserLogin, db: Session = Depends(get_db)):
    """Login with email/password - returns access token"""
    user = BidStore(db).get_user_by_email(user_data.email)
    if not user or not verify_password(user_data.password, user.password_hash):
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Invalid credentials"
        )
    token = create_access_token({"sub": str(user.id)})
    return {"access_token": token, "token_type": "bearer", "user_id": str(user.id)}


@router.get("/me", response_model=UserOut)
def me(current_user: User = Depends(get_current_user)):
    return current_user
