from fastapi import APIRouter, BackgroundTasks, Depends, HTTPException, Query, Request, status
from fastapi.exceptions import RequestValidationError
from pydantic import ValidationError
from sqlalchemy.orm import Session
from sqlalchemy import desc
from starlette.datastructures import UploadFile as StarletteUploadFile
from typing import Optional
from datetime import datetime, time
import json
import logging

from vidhanto.config import FRONTEND_URL
from vidhanto.database import get_db
from vidhanto.models import User, EStamp, EStampStatus, BillingStatus
from vidhanto.estamp import rates
from vidhanto.estamp.schemas import (
    EStampCreate, EStampResponse, EStampListResponse, PaymentInitiation,
    CertificateVerification, StampRates,
)
from vidhanto.payments.schemas import PaymentVerification
from vidhanto.auth.dependencies import get_current_user, is_owner_or_admin
from vidhanto.pagination import PageParams, paginate
from vidhanto.services.email_service import EmailService, get_email_service
from vidhanto.services.payment_gateway import RazorpayGateway, get_payment_gateway
from vidhanto.services.storage import StorageService, get_storage_service, read_upload, DOCUMENT_EXTENSIONS
from vidhanto.workflow import ESTAMP_WORKFLOW

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/estamp", tags=["E-Stamp"])


def get_estamp_or_404(estamp_id: str, db: Session) -> EStamp:
    estamp = db.query(EStamp).filter(EStamp.id == estamp_id).first()
    if not estamp:
        raise HTTPException(status_code=404, detail="E-stamp not found")
    return estamp


def get_owned_estamp(estamp_id: str, user: User, db: Session) -> EStamp:
    estamp = get_estamp_or_404(estamp_id, db)
    if estamp.user_id != user.id:
        raise HTTPException(status_code=403, detail="Access denied")
    return estamp


async def _read_create_payload(request: Request):
    """Accept either a JSON body or multipart with a ``data`` JSON field and an optional ``document`` file."""
    content_type = request.headers.get("content-type", "")
    upload = None
    try:
        if content_type.startswith("multipart/form-data"):
            form = await request.form()
            raw = form.get("data")
            if not raw:
                raise HTTPException(status_code=400, detail="Missing 'data' field in form")
            payload = json.loads(raw)
            document = form.get("document")
            if isinstance(document, StarletteUploadFile) and document.filename:
                upload = document
        else:
            payload = await request.json()
    except json.JSONDecodeError:
        raise HTTPException(status_code=400, detail="Invalid JSON payload")

    try:
        data = EStampCreate.parse_obj(payload)
    except ValidationError as e:
        raise RequestValidationError(e.errors())
    return data, upload


@router.get("/rates", response_model=StampRates)
def get_rates(state: str):
    return {"state": state, **rates.rates_for_state(state)}


@router.get("/verify/{certificate_number}", response_model=CertificateVerification)
def verify_certificate(certificate_number: str, db: Session = Depends(get_db)):
    """Public certificate lookup used by the verification page."""
    estamp = db.query(EStamp).filter(EStamp.certificate_number == certificate_number).first()
    if not estamp:
        raise HTTPException(status_code=404, detail="Certificate not found")

    now = datetime.utcnow()
    return {
        "certificate_number": estamp.certificate_number,
        "state": estamp.state,
        "stamp_type": estamp.stamp_type,
        "stamp_value": estamp.stamp_value,
        "instrument_type": estamp.instrument_type,
        "issued_at": estamp.certificate_issued_at,
        "expires_at": estamp.certificate_expires_at,
        "status": estamp.status,
        "is_valid": estamp.is_certificate_valid(now),
        "days_until_expiry": estamp.days_until_expiry(now),
    }


@router.post("/create", response_model=EStampResponse, status_code=status.HTTP_201_CREATED)
async def create_estamp(
    request: Request,
    current_user: User = Depends(get_current_user),
    db: Session = Depends(get_db),
    storage: StorageService = Depends(get_storage_service),
):
    data, upload = await _read_create_payload(request)

    stamp_value = data.stamp_value or rates.default_stamp_value(data.state, data.stamp_type)
    estamp = EStamp(
        user_id=current_user.id,
        state=data.state,
        stamp_type=data.stamp_type,
        stamp_value=stamp_value,
        instrument_type=data.instrument_type,
        instrument_date=datetime.combine(data.instrument_date, time()),
        description=data.description,
        parties=[party.dict(exclude_none=True) for party in data.parties],
        payment_amount=stamp_value,
    )

    if upload is not None:
        content = await read_upload(upload, extensions=DOCUMENT_EXTENSIONS)
        estamp.document_url = await storage.save(content, "estamps", upload.filename, upload.content_type)

    estamp.add_audit("created", current_user.id, {"stamp_value": stamp_value})
    db.add(estamp)
    db.commit()
    db.refresh(estamp)
    logger.info("E-stamp created", extra={"estamp_id": estamp.id, "state": estamp.state})
    return estamp


@router.get("/", response_model=EStampListResponse)
def list_estamps(
    status_filter: Optional[EStampStatus] = Query(None, alias="status"),
    page: PageParams = Depends(),
    current_user: User = Depends(get_current_user),
    db: Session = Depends(get_db)
):
    query = db.query(EStamp).filter(EStamp.user_id == current_user.id)
    if status_filter:
        query = query.filter(EStamp.status == status_filter)
    result = paginate(query.order_by(desc(EStamp.created_at)), page)
    return {
        "estamps": result["items"],
        "total": result["total"],
        "page": result["page"],
        "pages": result["pages"],
    }


@router.get("/{estamp_id}", response_model=EStampResponse)
def get_estamp(
    estamp_id: str,
    current_user: User = Depends(get_current_user),
    db: Session = Depends(get_db)
):
    estamp = get_estamp_or_404(estamp_id, db)
    if not is_owner_or_admin(current_user, estamp.user_id):
        raise HTTPException(status_code=403, detail="Access denied")
    return estamp


@router.post("/{estamp_id}/initiate-payment", response_model=PaymentInitiation)
def initiate_payment(
    estamp_id: str,
    current_user: User = Depends(get_current_user),
    db: Session = Depends(get_db),
    gateway: RazorpayGateway = Depends(get_payment_gateway),
):
    estamp = get_owned_estamp(estamp_id, current_user, db)
    ESTAMP_WORKFLOW.apply(estamp, "initiate_payment")

    order = gateway.create_order(
        estamp.payment_amount,
        receipt=estamp.id,
        notes={"type": "estamp", "estamp_id": estamp.id, "user_id": current_user.id},
    )
    estamp.gateway_order_id = order["id"]
    estamp.add_audit("payment_initiated", current_user.id, {"order_id": order["id"]})
    db.commit()
    db.refresh(estamp)

    return {
        "estamp": estamp,
        "order_id": order["id"],
        "amount": order["amount"],
        "currency": order.get("currency", "INR"),
        "key_id": gateway.key_id,
    }


@router.post("/{estamp_id}/verify-payment", response_model=EStampResponse)
def verify_payment(
    estamp_id: str,
    verification: PaymentVerification,
    background_tasks: BackgroundTasks,
    current_user: User = Depends(get_current_user),
    db: Session = Depends(get_db),
    gateway: RazorpayGateway = Depends(get_payment_gateway),
    mailer: EmailService = Depends(get_email_service),
):
    estamp = get_owned_estamp(estamp_id, current_user, db)
    if estamp.gateway_order_id != verification.razorpay_order_id:
        raise HTTPException(status_code=400, detail="Order does not match this e-stamp")
    if not gateway.verify_signature(
        verification.razorpay_order_id,
        verification.razorpay_payment_id,
        verification.razorpay_signature,
    ):
        logger.warning("E-stamp payment signature mismatch", extra={"estamp_id": estamp.id})
        raise HTTPException(status_code=400, detail="Invalid payment signature")

    ESTAMP_WORKFLOW.apply(estamp, "verify_payment")
    now = datetime.utcnow()
    estamp.payment_status = BillingStatus.PAID
    estamp.transaction_id = verification.razorpay_payment_id
    estamp.paid_at = now
    estamp.add_audit("paid", current_user.id, {"transaction_id": verification.razorpay_payment_id})
    if estamp.issue_certificate(FRONTEND_URL, now):
        estamp.add_audit("certificate_issued", None, {"certificate_number": estamp.certificate_number})
    db.commit()
    db.refresh(estamp)

    background_tasks.add_task(
        mailer.send_estamp_confirmation,
        current_user.email,
        current_user.full_name,
        estamp.certificate_number,
        estamp.stamp_value,
        estamp.verification_url,
    )
    logger.info("E-stamp issued", extra={"estamp_id": estamp.id, "certificate_number": estamp.certificate_number})
    return estamp


@router.post("/{estamp_id}/complete", response_model=EStampResponse)
def complete_estamp(
    estamp_id: str,
    current_user: User = Depends(get_current_user),
    db: Session = Depends(get_db)
):
    estamp = get_owned_estamp(estamp_id, current_user, db)
    ESTAMP_WORKFLOW.apply(estamp, "complete")
    estamp.add_audit("completed", current_user.id)
    db.commit()
    db.refresh(estamp)
    return estamp


@router.post("/{estamp_id}/cancel", response_model=EStampResponse)
def cancel_estamp(
    estamp_id: str,
    current_user: User = Depends(get_current_user),
    db: Session = Depends(get_db)
):
    estamp = get_owned_estamp(estamp_id, current_user, db)
    ESTAMP_WORKFLOW.apply(estamp, "cancel")
    estamp.add_audit("cancelled", current_user.id)
    db.commit()
    db.refresh(estamp)
    return estamp


@router.get("/{estamp_id}/download", response_model=EStampResponse)
def download_estamp(
    estamp_id: str,
    current_user: User = Depends(get_current_user),
    db: Session = Depends(get_db)
):
    estamp = get_owned_estamp(estamp_id, current_user, db)
    if estamp.status not in (EStampStatus.STAMPED, EStampStatus.COMPLETED):
        raise HTTPException(status_code=400, detail="E-stamp certificate is not available yet")

    estamp.add_audit("downloaded", current_user.id)
    db.commit()
    db.refresh(estamp)
    return estamp
