from pydantic import BaseModel, Field
from typing import Optional, List
from datetime import datetime

from vidhanto.auth.schemas import UserResponse
from vidhanto.lawyers.schemas import LawyerResponse


class AdminStats(BaseModel):
    total_users: int
    total_lawyers: int
    verified_lawyers: int
    pending_kyc: int
    total_appointments: int
    total_documents: int
    total_payments: int
    total_revenue: int


class AdminUser(UserResponse):
    ban_reason: Optional[str] = None


class AdminUserListResponse(BaseModel):
    users: List[AdminUser]
    total: int
    page: int
    pages: int


class AdminLawyer(LawyerResponse):
    kyc_documents: List[dict] = []
    kyc_notes: Optional[str] = None
    verified_at: Optional[datetime] = None


class AdminLawyerListResponse(BaseModel):
    lawyers: List[AdminLawyer]
    total: int
    page: int
    pages: int


class KycDecision(BaseModel):
    status: str = Field(..., pattern="^(verified|rejected)$")
    notes: Optional[str] = Field(None, max_length=2000)


class BanRequest(BaseModel):
    reason: str = Field(..., min_length=1, max_length=500)
