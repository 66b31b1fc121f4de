from pydantic import BaseModel, Field, validator
from typing import Optional, List
from datetime import datetime

from vidhanto.models import ConsultationType, AppointmentStatus, BillingStatus
from vidhanto.lawyers.schemas import UserPublic

DURATIONS = (15, 30, 45, 60)


def _check_duration(v):
    if v is not None and v not in DURATIONS:
        raise ValueError("Duration must be 15, 30, 45 or 60 minutes")
    return v


class AppointmentCreate(BaseModel):
    lawyer_id: str
    consultation_type: ConsultationType
    scheduled_date: datetime
    duration: int = 30
    description: Optional[str] = Field(None, max_length=1000)
    documents: Optional[List[dict]] = None

    @validator("duration")
    def valid_duration(cls, v):
        return _check_duration(v)


class AppointmentUpdate(BaseModel):
    scheduled_date: Optional[datetime] = None
    duration: Optional[int] = None
    description: Optional[str] = Field(None, max_length=1000)
    documents: Optional[List[dict]] = None

    @validator("duration")
    def valid_duration(cls, v):
        return _check_duration(v)


class AppointmentComplete(BaseModel):
    notes: Optional[str] = Field(None, max_length=2000)
    rating: Optional[int] = Field(None, ge=1, le=5)
    review: Optional[str] = Field(None, max_length=1000)


class AppointmentCancel(BaseModel):
    reason: str = Field(..., min_length=1, max_length=500)


class LawyerBrief(BaseModel):
    id: str
    user: Optional[UserPublic] = None
    specializations: List[str] = []
    rating_average: float = 0.0

    class Config:
        from_attributes = True


class AppointmentResponse(BaseModel):
    id: str
    user_id: str
    lawyer_id: str
    user: Optional[UserPublic] = None
    lawyer: Optional[LawyerBrief] = None
    consultation_type: ConsultationType
    scheduled_date: datetime
    duration: int
    status: AppointmentStatus
    payment_status: BillingStatus
    payment_id: Optional[str] = None
    consultation_fee: int
    platform_fee: int
    total_fee: int
    description: Optional[str] = None
    documents: Optional[List[dict]] = None
    meeting_link: Optional[str] = None
    room_id: Optional[str] = None
    lawyer_notes: Optional[str] = None
    user_notes: Optional[str] = None
    user_rating: Optional[int] = None
    user_review: Optional[str] = None
    cancellation_reason: Optional[str] = None
    cancelled_by: Optional[str] = None
    cancelled_at: Optional[datetime] = None
    completed_at: Optional[datetime] = None
    created_at: Optional[datetime] = None

    class Config:
        from_attributes = True


class AppointmentListResponse(BaseModel):
    appointments: List[AppointmentResponse]
    total: int
    page: int
    pages: int
