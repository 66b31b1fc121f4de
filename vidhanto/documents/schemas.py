from pydantic import BaseModel, EmailStr, Field, validator
from typing import Optional, List
from datetime import datetime

from vidhanto.models import DocumentType, DocumentStatus, Priority, BillingStatus, SignatureStatus


class DocumentCreate(BaseModel):
    title: str = Field(..., min_length=1, max_length=200)
    type: DocumentType
    category: Optional[str] = None
    description: Optional[str] = Field(None, max_length=2000)
    content: Optional[str] = None
    template_id: Optional[str] = None
    priority: Priority = Priority.MEDIUM
    is_draft: bool = True
    base_price: int = Field(0, ge=0)
    additional_charges: int = Field(0, ge=0)


class DocumentUpdate(BaseModel):
    title: Optional[str] = Field(None, min_length=1, max_length=200)
    category: Optional[str] = None
    description: Optional[str] = Field(None, max_length=2000)
    content: Optional[str] = None
    priority: Optional[Priority] = None
    base_price: Optional[int] = Field(None, ge=0)


class ReviewSubmission(BaseModel):
    lawyer_id: str
    instructions: Optional[str] = Field(None, max_length=2000)
    urgency: Priority = Priority.MEDIUM


class LawyerReview(BaseModel):
    status: str
    comments: Optional[str] = Field(None, max_length=5000)
    revisions: Optional[List[dict]] = None
    additional_charges: Optional[int] = Field(None, ge=0)

    @validator("status")
    def valid_outcome(cls, v):
        if v not in ("approved", "rejected", "needs_revision"):
            raise ValueError("Status must be approved, rejected or needs_revision")
        return v


class SignOtpRequest(BaseModel):
    signer_name: str = Field(..., min_length=1, max_length=200)
    signer_email: EmailStr
    signer_type: str = "party"


class SignRequest(BaseModel):
    signer_email: EmailStr
    otp: str


class SignatureResponse(BaseModel):
    id: str
    signer_name: str
    signer_email: str
    signer_type: Optional[str] = None
    status: SignatureStatus
    signed_at: Optional[datetime] = None

    class Config:
        from_attributes = True


class DocumentResponse(BaseModel):
    id: str
    user_id: str
    lawyer_id: Optional[str] = None
    title: str
    type: DocumentType
    category: Optional[str] = None
    description: Optional[str] = None
    content: Optional[str] = None
    template_id: Optional[str] = None
    version: int
    status: DocumentStatus
    priority: Optional[Priority] = None
    review_instructions: Optional[str] = None
    review_urgency: Optional[Priority] = None
    review_submitted_at: Optional[datetime] = None
    reviewed_by: Optional[str] = None
    reviewed_at: Optional[datetime] = None
    review_comments: Optional[str] = None
    revisions: Optional[List[dict]] = None
    base_price: int
    additional_charges: int
    tax: int
    total_amount: int
    payment_status: BillingStatus
    payment_id: Optional[str] = None
    files: Optional[List[dict]] = None
    signatures: List[SignatureResponse] = []
    audit_trail: Optional[List[dict]] = None
    signed_at: Optional[datetime] = None
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None

    class Config:
        from_attributes = True


class DocumentListResponse(BaseModel):
    documents: List[DocumentResponse]
    total: int
    page: int
    pages: int


class DocumentTemplate(BaseModel):
    id: str
    name: str
    type: DocumentType
    description: str
    fields: List[str]
    base_price: int
