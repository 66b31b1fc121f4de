from fastapi import APIRouter, BackgroundTasks, Depends, HTTPException, Query, status
from sqlalchemy.orm import Session
from sqlalchemy import desc
from typing import Optional
from datetime import datetime
import logging

from vidhanto.database import get_db
from vidhanto.models import (
    User, Appointment, Document, Payment, PaymentType, PaymentStatus, RefundStatus, BillingStatus, new_id,
)
from vidhanto.payments.schemas import (
    OrderCreate, PaymentVerification, RefundRequest,
    PaymentResponse, OrderResponse, RefundResponse, PaymentHistoryResponse,
)
from vidhanto.auth.dependencies import get_current_user, is_owner_or_admin
from vidhanto.pagination import PageParams, paginate
from vidhanto.pricing import refund_processing_fee
from vidhanto.services.email_service import EmailService, get_email_service
from vidhanto.services.payment_gateway import RazorpayGateway, get_payment_gateway

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/payments", tags=["Payments"])

PAYMENT_DESCRIPTIONS = {
    PaymentType.APPOINTMENT: "your consultation",
    PaymentType.DOCUMENT: "your legal document",
    PaymentType.CONSULTATION: "your consultation",
    PaymentType.SUBSCRIPTION: "your subscription",
}


def get_related_entity(payment_type: PaymentType, related_id: str, db: Session):
    if payment_type == PaymentType.APPOINTMENT:
        return db.query(Appointment).filter(Appointment.id == related_id).first()
    if payment_type == PaymentType.DOCUMENT:
        return db.query(Document).filter(Document.id == related_id).first()
    return None


def mark_related(payment: Payment, billing_status: BillingStatus, db: Session) -> None:
    """Mirror the payment outcome onto the appointment or document it pays for."""
    entity = get_related_entity(payment.type, payment.related_id, db)
    if entity is None:
        return
    entity.payment_status = billing_status
    entity.payment_id = payment.id
    if isinstance(entity, Document):
        entity.add_audit(billing_status.value, payment.user_id, {"payment_id": payment.id, "amount": payment.amount})


def get_payment_or_404(payment_id: str, db: Session) -> Payment:
    payment = db.query(Payment).filter(Payment.id == payment_id).first()
    if not payment:
        raise HTTPException(status_code=404, detail="Payment not found")
    return payment


def order_payload(payment: Payment, order: dict, gateway: RazorpayGateway) -> dict:
    return {
        "payment": payment,
        "order_id": order["id"],
        "amount": order["amount"],
        "currency": order.get("currency", payment.currency or "INR"),
        "key_id": gateway.key_id,
    }


@router.post("/create-order", response_model=OrderResponse, status_code=status.HTTP_201_CREATED)
def create_order(
    order_data: OrderCreate,
    current_user: User = Depends(get_current_user),
    db: Session = Depends(get_db),
    gateway: RazorpayGateway = Depends(get_payment_gateway),
):
    if order_data.type in (PaymentType.APPOINTMENT, PaymentType.DOCUMENT):
        related = get_related_entity(order_data.type, order_data.related_id, db)
        if related is None or related.user_id != current_user.id:
            raise HTTPException(status_code=404, detail=f"{order_data.type.value.capitalize()} not found")
        if related.payment_status == BillingStatus.PAID:
            raise HTTPException(status_code=400, detail=f"{order_data.type.value.capitalize()} is already paid")

    payment = Payment(
        id=new_id(),
        user_id=current_user.id,
        type=order_data.type,
        related_id=order_data.related_id,
        amount=order_data.amount,
        status=PaymentStatus.PENDING,
    )
    payment.apply_breakdown()

    order = gateway.create_order(
        payment.amount,
        receipt=payment.id,
        notes={"type": order_data.type.value, "related_id": order_data.related_id, "user_id": current_user.id},
    )
    payment.gateway_order_id = order["id"]

    db.add(payment)
    db.commit()
    db.refresh(payment)
    logger.info("Payment order created", extra={"payment_id": payment.id, "order_id": order["id"]})
    return order_payload(payment, order, gateway)


@router.post("/verify", response_model=PaymentResponse)
def verify_payment(
    verification: PaymentVerification,
    background_tasks: BackgroundTasks,
    current_user: User = Depends(get_current_user),
    db: Session = Depends(get_db),
    gateway: RazorpayGateway = Depends(get_payment_gateway),
    mailer: EmailService = Depends(get_email_service),
):
    if not gateway.verify_signature(
        verification.razorpay_order_id,
        verification.razorpay_payment_id,
        verification.razorpay_signature,
    ):
        logger.warning("Payment signature mismatch", extra={"order_id": verification.razorpay_order_id})
        raise HTTPException(status_code=400, detail="Invalid payment signature")

    payment = db.query(Payment).filter(Payment.gateway_order_id == verification.razorpay_order_id).first()
    if not payment:
        raise HTTPException(status_code=404, detail="Payment not found")
    if payment.user_id != current_user.id:
        raise HTTPException(status_code=403, detail="Access denied")
    # Settled orders are not re-read from the gateway
    if payment.status not in (PaymentStatus.PENDING, PaymentStatus.PROCESSING):
        return payment

    details = gateway.fetch_payment(verification.razorpay_payment_id)
    gateway_status = details.get("status")

    payment.gateway_payment_id = verification.razorpay_payment_id
    payment.gateway_signature = verification.razorpay_signature
    payment.payment_method = details.get("method") or payment.payment_method

    if gateway_status == "captured":
        payment.status = PaymentStatus.COMPLETED
        payment.processed_at = datetime.utcnow()
        payment.failure_reason = None
        mark_related(payment, BillingStatus.PAID, db)
    elif gateway_status == "failed":
        payment.status = PaymentStatus.FAILED
        payment.failure_reason = details.get("error_description") or "Payment failed"
        payment.retry_count = (payment.retry_count or 0) + 1
    else:
        payment.status = PaymentStatus.PENDING

    db.commit()
    db.refresh(payment)
    logger.info(
        "Payment verified",
        extra={"payment_id": payment.id, "gateway_status": gateway_status, "status": payment.status.value},
    )

    if payment.status == PaymentStatus.COMPLETED:
        background_tasks.add_task(
            mailer.send_payment_confirmation,
            current_user.email,
            current_user.full_name,
            payment.amount,
            payment.id,
            PAYMENT_DESCRIPTIONS.get(payment.type, "your order"),
        )
    return payment


@router.post("/{payment_id}/retry", response_model=OrderResponse)
def retry_payment(
    payment_id: str,
    current_user: User = Depends(get_current_user),
    db: Session = Depends(get_db),
    gateway: RazorpayGateway = Depends(get_payment_gateway),
):
    payment = get_payment_or_404(payment_id, db)
    if payment.user_id != current_user.id:
        raise HTTPException(status_code=403, detail="Access denied")
    if not payment.can_retry():
        raise HTTPException(status_code=400, detail="Payment cannot be retried")

    order = gateway.create_order(
        payment.amount,
        receipt=payment.id,
        notes={"type": payment.type.value, "related_id": payment.related_id, "retry": str(payment.retry_count)},
    )
    payment.gateway_order_id = order["id"]
    payment.gateway_payment_id = None
    payment.gateway_signature = None
    payment.status = PaymentStatus.PENDING
    payment.failure_reason = None
    db.commit()
    db.refresh(payment)
    return order_payload(payment, order, gateway)


@router.get("/history", response_model=PaymentHistoryResponse)
def payment_history(
    status_filter: Optional[PaymentStatus] = Query(None, alias="status"),
    type: Optional[PaymentType] = None,
    page: PageParams = Depends(),
    current_user: User = Depends(get_current_user),
    db: Session = Depends(get_db)
):
    query = db.query(Payment).filter(Payment.user_id == current_user.id)
    if status_filter:
        query = query.filter(Payment.status == status_filter)
    if type:
        query = query.filter(Payment.type == type)

    result = paginate(query.order_by(desc(Payment.created_at)), page)
    return {
        "payments": result["items"],
        "total": result["total"],
        "page": result["page"],
        "pages": result["pages"],
    }


@router.get("/{payment_id}", response_model=PaymentResponse)
def get_payment(
    payment_id: str,
    current_user: User = Depends(get_current_user),
    db: Session = Depends(get_db)
):
    payment = get_payment_or_404(payment_id, db)
    if not is_owner_or_admin(current_user, payment.user_id):
        raise HTTPException(status_code=403, detail="Access denied")
    return payment


@router.post("/{payment_id}/refund", response_model=RefundResponse)
def refund_payment(
    payment_id: str,
    refund_data: RefundRequest,
    current_user: User = Depends(get_current_user),
    db: Session = Depends(get_db),
    gateway: RazorpayGateway = Depends(get_payment_gateway),
):
    payment = get_payment_or_404(payment_id, db)
    if not is_owner_or_admin(current_user, payment.user_id):
        raise HTTPException(status_code=403, detail="Access denied")
    if payment.refund_id:
        raise HTTPException(status_code=400, detail="Payment has already been refunded")
    if payment.status != PaymentStatus.COMPLETED:
        raise HTTPException(status_code=400, detail="Only completed payments can be refunded")

    max_refund = payment.max_refund_amount()
    if max_refund <= 0:
        raise HTTPException(status_code=400, detail="Nothing left to refund for this payment")
    amount = min(refund_data.amount or max_refund, max_refund)

    refund = gateway.refund(
        payment.gateway_payment_id,
        amount,
        notes={"reason": refund_data.reason, "payment_id": payment.id},
    )

    # refund_amount is capped against the completed status, so set it first
    payment.refund_amount = amount
    payment.refund_id = refund.get("id")
    payment.refund_reason = refund_data.reason
    payment.refund_status = RefundStatus.PROCESSED
    payment.refund_date = datetime.utcnow()
    payment.status = PaymentStatus.REFUNDED
    mark_related(payment, BillingStatus.REFUNDED, db)
    db.commit()
    db.refresh(payment)
    logger.info("Payment refunded", extra={"payment_id": payment.id, "refund_amount": amount})

    return {
        "payment": payment,
        "refund_amount": payment.refund_amount,
        "max_refund_amount": max_refund,
        "processing_fee": refund_processing_fee(payment.amount),
    }
