from pydantic import BaseModel, Field
from typing import Optional, List

from vidhanto.auth.schemas import PHONE_PATTERN
from vidhanto.appointments.schemas import AppointmentResponse


class Address(BaseModel):
    street: Optional[str] = None
    city: Optional[str] = None
    state: Optional[str] = None
    pincode: Optional[str] = Field(None, pattern=r"^\d{6}$")
    country: str = "India"


class ProfileUpdate(BaseModel):
    first_name: Optional[str] = Field(None, min_length=2, max_length=50)
    last_name: Optional[str] = Field(None, min_length=2, max_length=50)
    phone: Optional[str] = Field(None, pattern=PHONE_PATTERN)
    address: Optional[Address] = None
    preferences: Optional[dict] = None


class DashboardResponse(BaseModel):
    total_appointments: int
    completed_appointments: int
    upcoming_appointments: int
    next_appointments: List[AppointmentResponse] = []
    total_documents: int
    total_estamps: int
    total_payments: int
    total_spent: int
