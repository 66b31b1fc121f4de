from pydantic import BaseModel, EmailStr, Field, validator
from typing import Optional, List
from datetime import datetime
from vidhanto.models import UserRole, KycStatus

PHONE_PATTERN = r"^[+0-9\s\-()]{10,15}$"


class UserCreate(BaseModel):
    first_name: str = Field(..., min_length=2, max_length=50)
    last_name: str = Field(..., min_length=2, max_length=50)
    email: EmailStr
    password: str = Field(..., min_length=6)
    phone: Optional[str] = Field(None, pattern=PHONE_PATTERN)
    role: UserRole = UserRole.USER

    @validator("role")
    def no_admin_signup(cls, v):
        if v == UserRole.ADMIN:
            raise ValueError("Role must be either user or lawyer")
        return v

    @validator("first_name", "last_name")
    def strip_names(cls, v):
        return v.strip()


class UserLogin(BaseModel):
    email: EmailStr
    password: str


class RefreshRequest(BaseModel):
    refresh_token: str


class VerifyEmailRequest(BaseModel):
    token: str


class ForgotPasswordRequest(BaseModel):
    email: EmailStr


class ResetPasswordRequest(BaseModel):
    token: str
    password: str = Field(..., min_length=6)


class TokenData(BaseModel):
    user_id: Optional[str] = None
    role: Optional[UserRole] = None


class UserResponse(BaseModel):
    id: str
    first_name: str
    last_name: str
    email: str
    phone: Optional[str] = None
    role: UserRole
    profile_image: Optional[str] = None
    address: Optional[dict] = None
    preferences: Optional[dict] = None
    is_active: bool
    is_email_verified: bool
    last_login: Optional[datetime] = None
    created_at: Optional[datetime] = None

    class Config:
        from_attributes = True


class LawyerSummary(BaseModel):
    id: str
    bar_license_number: str
    specializations: List[str] = []
    experience: Optional[int] = 0
    city: Optional[str] = None
    state: Optional[str] = None
    is_verified: bool
    kyc_status: KycStatus
    rating_average: Optional[float] = 0.0
    rating_count: Optional[int] = 0

    class Config:
        from_attributes = True


class AuthResponse(BaseModel):
    user: UserResponse
    access_token: str
    refresh_token: str
    token_type: str = "bearer"


class TokenPair(BaseModel):
    access_token: str
    refresh_token: str
    token_type: str = "bearer"


class MeResponse(BaseModel):
    user: UserResponse
    lawyer: Optional[LawyerSummary] = None


class MessageResponse(BaseModel):
    message: str
