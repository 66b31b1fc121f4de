from pydantic import BaseModel, Field, validator
from typing import Optional, List
from datetime import datetime, date

from vidhanto.constants import STAMP_REGIONS
from vidhanto.models import EStampStatus, StampType, InstrumentType, BillingStatus

PARTY_TYPES = ("first_party", "second_party", "witness", "authorizer")


class PartyAddress(BaseModel):
    street: Optional[str] = None
    city: Optional[str] = None
    state: Optional[str] = None
    pincode: Optional[str] = Field(None, pattern=r"^\d{6}$")
    country: str = "India"


class Party(BaseModel):
    name: str = Field(..., min_length=1, max_length=200)
    type: str
    address: Optional[PartyAddress] = None
    pan: Optional[str] = Field(None, pattern=r"^[A-Z]{5}[0-9]{4}[A-Z]$")
    aadhaar: Optional[str] = Field(None, pattern=r"^\d{12}$")

    @validator("type")
    def valid_party_type(cls, v):
        if v not in PARTY_TYPES:
            raise ValueError(f"Party type must be one of: {', '.join(PARTY_TYPES)}")
        return v


class EStampCreate(BaseModel):
    state: str
    stamp_type: StampType
    stamp_value: Optional[float] = Field(None, gt=0)
    instrument_type: InstrumentType
    instrument_date: date
    parties: List[Party] = Field(..., min_length=1)
    description: str = Field(..., min_length=1, max_length=2000)

    @validator("state")
    def known_state(cls, v):
        if v not in STAMP_REGIONS:
            raise ValueError("Unsupported state for e-stamping")
        return v


class EStampResponse(BaseModel):
    id: str
    user_id: str
    state: str
    stamp_type: StampType
    stamp_value: float
    instrument_type: InstrumentType
    instrument_date: Optional[datetime] = None
    description: Optional[str] = None
    parties: List[dict] = []
    document_url: Optional[str] = None
    payment_amount: float
    payment_status: BillingStatus
    gateway_order_id: Optional[str] = None
    transaction_id: Optional[str] = None
    paid_at: Optional[datetime] = None
    certificate_number: Optional[str] = None
    certificate_issued_at: Optional[datetime] = None
    certificate_expires_at: Optional[datetime] = None
    verification_url: Optional[str] = None
    status: EStampStatus
    audit_trail: Optional[List[dict]] = None
    created_at: Optional[datetime] = None

    class Config:
        from_attributes = True


class EStampListResponse(BaseModel):
    estamps: List[EStampResponse]
    total: int
    page: int
    pages: int


class PaymentInitiation(BaseModel):
    estamp: EStampResponse
    order_id: str
    amount: int
    currency: str
    key_id: str


class CertificateVerification(BaseModel):
    certificate_number: str
    state: str
    stamp_type: StampType
    stamp_value: float
    instrument_type: InstrumentType
    issued_at: Optional[datetime] = None
    expires_at: Optional[datetime] = None
    status: EStampStatus
    is_valid: bool
    days_until_expiry: int


class StampRates(BaseModel):
    state: str
    judicial: float
    non_judicial: float
