from pydantic import BaseModel, Field, validator
from typing import Optional, List, Dict
from datetime import datetime
import re

from vidhanto.models import KycStatus
from vidhanto.scheduling import DAYS

HHMM = re.compile(r"^([01]\d|2[0-3]):[0-5]\d$")


class UserPublic(BaseModel):
    id: str
    first_name: str
    last_name: str
    email: str
    phone: Optional[str] = None
    profile_image: Optional[str] = None

    class Config:
        from_attributes = True


class TimeRange(BaseModel):
    start: str
    end: str

    @validator("start", "end")
    def valid_time(cls, v):
        if not HHMM.match(v):
            raise ValueError("Time must be in HH:MM format")
        return v

    @validator("end")
    def end_after_start(cls, v, values):
        start = values.get("start")
        if start and v <= start:
            raise ValueError("End time must be after start time")
        return v


class LawyerResponse(BaseModel):
    id: str
    user_id: str
    user: Optional[UserPublic] = None
    bar_license_number: str
    specializations: List[str] = []
    experience: Optional[int] = 0
    education: List[dict] = []
    languages: List[str] = []
    city: Optional[str] = None
    state: Optional[str] = None
    bio: Optional[str] = None
    chat_fee: int
    voice_fee: int
    video_fee: int
    availability: Dict[str, List[TimeRange]] = {}
    is_verified: bool
    is_available: bool
    rating_average: float = 0.0
    rating_count: int = 0
    total_consultations: int = 0
    kyc_status: KycStatus
    created_at: Optional[datetime] = None

    class Config:
        from_attributes = True


class LawyerListResponse(BaseModel):
    lawyers: List[LawyerResponse]
    total: int
    page: int
    pages: int


class LawyerProfileUpdate(BaseModel):
    bar_license_number: Optional[str] = Field(None, min_length=3, max_length=100)
    specializations: Optional[List[str]] = None
    experience: Optional[int] = Field(None, ge=0, le=70)
    education: Optional[List[dict]] = None
    languages: Optional[List[str]] = None
    city: Optional[str] = None
    state: Optional[str] = None
    bio: Optional[str] = Field(None, max_length=2000)
    chat_fee: Optional[int] = Field(None, ge=0)
    voice_fee: Optional[int] = Field(None, ge=0)
    video_fee: Optional[int] = Field(None, ge=0)
    is_available: Optional[bool] = None


class AvailabilityUpdate(BaseModel):
    availability: Dict[str, List[TimeRange]]

    @validator("availability")
    def known_days(cls, v):
        unknown = [day for day in v if day not in DAYS]
        if unknown:
            raise ValueError(f"Unknown day(s): {', '.join(unknown)}")
        return v


class KycDocument(BaseModel):
    type: str
    url: str
    number: Optional[str] = None


class KycSubmission(BaseModel):
    documents: List[KycDocument] = Field(..., min_length=1)
    bar_license_number: Optional[str] = None
    bank_details: Optional[dict] = None


class SlotsResponse(BaseModel):
    lawyer_id: str
    date: str
    day: str
    slots: List[str]
