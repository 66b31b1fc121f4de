from pydantic import BaseModel, Field
from typing import Optional, List
from datetime import datetime

from vidhanto.models import PaymentType, PaymentStatus, RefundStatus


class OrderCreate(BaseModel):
    type: PaymentType
    related_id: str
    amount: int = Field(..., ge=1)


class PaymentVerification(BaseModel):
    razorpay_order_id: str
    razorpay_payment_id: str
    razorpay_signature: str


class RefundRequest(BaseModel):
    reason: str = Field(..., min_length=1, max_length=500)
    amount: Optional[int] = Field(None, ge=1)


class PaymentResponse(BaseModel):
    id: str
    user_id: str
    type: PaymentType
    related_id: str
    amount: int
    currency: str
    status: PaymentStatus
    payment_method: str
    gateway_order_id: Optional[str] = None
    gateway_payment_id: Optional[str] = None
    consultation_fee: Optional[int] = 0
    platform_fee: Optional[int] = 0
    taxes: Optional[int] = 0
    refund_id: Optional[str] = None
    refund_amount: Optional[int] = None
    refund_reason: Optional[str] = None
    refund_status: Optional[RefundStatus] = None
    refund_date: Optional[datetime] = None
    failure_reason: Optional[str] = None
    retry_count: int = 0
    max_retries: int = 3
    processed_at: Optional[datetime] = None
    created_at: Optional[datetime] = None

    class Config:
        from_attributes = True


class OrderResponse(BaseModel):
    payment: PaymentResponse
    order_id: str
    amount: int
    currency: str
    key_id: str


class RefundResponse(BaseModel):
    payment: PaymentResponse
    refund_amount: int
    max_refund_amount: int
    processing_fee: int


class PaymentHistoryResponse(BaseModel):
    payments: List[PaymentResponse]
    total: int
    page: int
    pages: int
