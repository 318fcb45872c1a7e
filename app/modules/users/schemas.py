from pydantic import BaseModel, Field, validator
from typing import Optional
from datetime import datetime

from app.modules.users.models import UserRole


def _clean_phone(v: str) -> str:
    """Phone numbers are stored without surrounding whitespace"""
    v = v.strip()
    if not v:
        raise ValueError('Phone number is required')
    return v


# User Registration
class UserRegistrationRequest(BaseModel):
    """Registration request"""
    phone_number: str = Field(..., min_length=1, max_length=20)
    password: str = Field(..., min_length=1, max_length=72)

    @validator('phone_number')
    def strip_phone(cls, v):
        return _clean_phone(v)


class RegistrationResponse(BaseModel):
    success: bool = True
    message: str


# User Login
class UserLoginRequest(BaseModel):
    """User login request"""
    phone_number: str
    password: str

    @validator('phone_number')
    def strip_phone(cls, v):
        return _clean_phone(v)


class UserSummary(BaseModel):
    id: int
    phone_number: str
    role: UserRole

    class Config:
        from_attributes = True


class LoginResponse(BaseModel):
    """Login response carrying the user and a JWT access token"""
    success: bool = True
    user: UserSummary
    access_token: str
    token_type: str = "bearer"
    expires_in: int


class UserProfileResponse(BaseModel):
    id: int
    phone_number: str
    role: UserRole
    created_at: Optional[datetime]

    class Config:
        from_attributes = True


class MessageResponse(BaseModel):
    success: bool = True
    message: Optional[str] = None
