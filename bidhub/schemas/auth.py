from pydantic import BaseModel, EmailStr, field_validator
from typing import Literal
from datetime import datetime

# bcrypt limit in bytes
MAX_BCRYPT_BYTES = 72


def _truncate_password(v: str) -> str:
    encoded = v.encode("utf-8")
    if len(encoded) > MAX_BCRYPT_BYTES:
        # Truncate to valid UTF-8 boundary up to MAX_BCRYPT_BYTES
        v = encoded[:MAX_BCRYPT_BYTES].decode('utf-8', errors='ignore')
    return v


class UserCreate(BaseModel):
    name: str
    email: EmailStr
    password: str
    role: Literal["buyer", "vendor"] = "buyer"
    company_name: str = ""

    @field_validator("password")
    @classmethod
    def password_byte_length(cls, v: str):
        if not v:
            raise ValueError("password must be provided")
        return _truncate_password(v)


class UserLogin(BaseModel):
    email: EmailStr
    password: str

    @field_validator("password")
    @classmethod
    def password_byte_length(cls, v: str):
        return _truncate_password(v)


class Token(BaseModel):
    access_token: str
    token_type: str
    user_id: str


class UserOut(BaseModel):
    id: int
    name: str
    email: str
    role: str
    company_name: str
    created_at: datetime

    class Config:
        from_attributes = True
