from pydantic import BaseModel, EmailStr, Field
from typing import Optional, List
from datetime import datetime

from vidhanto.models import ESignatureStatus, SignerStatus, SignatureType


class SignerCreate(BaseModel):
    name: str = Field(..., min_length=1, max_length=200)
    email: EmailStr
    phone: Optional[str] = None
    order: Optional[int] = None


class ESignatureSettings(BaseModel):
    require_otp: bool = True
    allow_decline: bool = True
    reminder_frequency_days: int = Field(3, ge=1, le=30)


class ESignatureCreate(BaseModel):
    document_id: str
    title: Optional[str] = Field(None, max_length=200)
    message: Optional[str] = Field(None, max_length=2000)
    signers: List[SignerCreate] = Field(..., min_length=1)
    settings: ESignatureSettings = ESignatureSettings()


class ESignatureSign(BaseModel):
    email: EmailStr
    otp: Optional[str] = None
    signature_type: SignatureType = SignatureType.DRAW
    signature_data: str = Field(..., min_length=1)


class SignerResponse(BaseModel):
    id: str
    name: str
    email: str
    phone: Optional[str] = None
    order: int
    status: SignerStatus
    signature_type: Optional[SignatureType] = None
    otp_sent_at: Optional[datetime] = None
    signed_at: Optional[datetime] = None

    class Config:
        from_attributes = True


class ESignatureResponse(BaseModel):
    id: str
    document_id: str
    created_by: str
    title: Optional[str] = None
    message: Optional[str] = None
    require_otp: bool
    allow_decline: bool
    reminder_frequency_days: int
    status: ESignatureStatus
    signers: List[SignerResponse] = []
    audit_trail: Optional[List[dict]] = None
    completed_at: Optional[datetime] = None
    created_at: Optional[datetime] = None

    class Config:
        from_attributes = True


class SignResult(BaseModel):
    esignature: ESignatureResponse
    all_signers_signed: bool
    completion_percentage: int


class ESignatureListResponse(BaseModel):
    requests: List[ESignatureResponse]
    total: int
    page: int
    pages: int


class SignedSigner(BaseModel):
    name: str
    email: str
    signature_type: Optional[SignatureType] = None
    signature_data: Optional[str] = None
    signed_at: Optional[datetime] = None
    ip_address: Optional[str] = None

    class Config:
        from_attributes = True


class SignatureBundle(BaseModel):
    esignature_id: str
    document_id: str
    document_title: str
    completed_at: Optional[datetime] = None
    signers: List[SignedSigner]
