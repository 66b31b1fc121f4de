from fastapi import APIRouter, Depends, File, UploadFile
from sqlalchemy.orm import Session, joinedload
from sqlalchemy import desc
from typing import Optional
import logging

from vidhanto.database import get_db
from vidhanto.models import (
    User, Lawyer, Appointment, AppointmentStatus, Document, DocumentStatus, Payment, PaymentStatus,
)
from vidhanto.auth.schemas import UserResponse, MessageResponse
from vidhanto.auth.dependencies import get_current_user
from vidhanto.users.schemas import ProfileUpdate, DashboardResponse
from vidhanto.appointments.schemas import AppointmentListResponse
from vidhanto.documents.schemas import DocumentListResponse
from vidhanto.payments.schemas import PaymentHistoryResponse
from vidhanto.pagination import PageParams, paginate
from vidhanto.services.account_service import AccountService
from vidhanto.services.storage import StorageService, get_storage_service, read_upload, IMAGE_TYPES

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/users", tags=["Users"])


@router.get("/profile", response_model=UserResponse)
def get_profile(current_user: User = Depends(get_current_user)):
    return current_user


@router.put("/profile", response_model=UserResponse)
def update_profile(
    profile: ProfileUpdate,
    current_user: User = Depends(get_current_user),
    db: Session = Depends(get_db)
):
    update_data = profile.dict(exclude_unset=True)
    if profile.address is not None:
        update_data["address"] = profile.address.dict()
    for field, value in update_data.items():
        setattr(current_user, field, value)
    db.commit()
    db.refresh(current_user)
    return current_user


@router.post("/profile-image", response_model=UserResponse)
async def upload_profile_image(
    file: UploadFile = File(...),
    current_user: User = Depends(get_current_user),
    db: Session = Depends(get_db),
    storage: StorageService = Depends(get_storage_service),
):
    content = await read_upload(file, content_types=IMAGE_TYPES)
    current_user.profile_image = await storage.save(content, "profiles", file.filename, file.content_type)
    db.commit()
    db.refresh(current_user)
    return current_user


@router.get("/appointments", response_model=AppointmentListResponse)
def my_appointments(
    status: Optional[AppointmentStatus] = None,
    page: PageParams = Depends(),
    current_user: User = Depends(get_current_user),
    db: Session = Depends(get_db)
):
    query = db.query(Appointment).options(
        joinedload(Appointment.lawyer).joinedload(Lawyer.user),
    ).filter(Appointment.user_id == current_user.id)
    if status:
        query = query.filter(Appointment.status == status)
    result = paginate(query.order_by(desc(Appointment.scheduled_date)), page)
    return {
        "appointments": result["items"],
        "total": result["total"],
        "page": result["page"],
        "pages": result["pages"],
    }


@router.get("/documents", response_model=DocumentListResponse)
def my_documents(
    status: Optional[DocumentStatus] = None,
    page: PageParams = Depends(),
    current_user: User = Depends(get_current_user),
    db: Session = Depends(get_db)
):
    query = db.query(Document).filter(Document.user_id == current_user.id)
    if status:
        query = query.filter(Document.status == status)
    result = paginate(query.order_by(desc(Document.created_at)), page)
    return {
        "documents": result["items"],
        "total": result["total"],
        "page": result["page"],
        "pages": result["pages"],
    }


@router.get("/payments", response_model=PaymentHistoryResponse)
def my_payments(
    status: Optional[PaymentStatus] = None,
    page: PageParams = Depends(),
    current_user: User = Depends(get_current_user),
    db: Session = Depends(get_db)
):
    query = db.query(Payment).filter(Payment.user_id == current_user.id)
    if status:
        query = query.filter(Payment.status == status)
    result = paginate(query.order_by(desc(Payment.created_at)), page)
    return {
        "payments": result["items"],
        "total": result["total"],
        "page": result["page"],
        "pages": result["pages"],
    }


@router.get("/dashboard", response_model=DashboardResponse)
def dashboard(
    current_user: User = Depends(get_current_user),
    db: Session = Depends(get_db)
):
    return AccountService(db).dashboard(current_user)


@router.delete("/account", response_model=MessageResponse)
def delete_account(
    current_user: User = Depends(get_current_user),
    db: Session = Depends(get_db)
):
    AccountService(db).delete_account(current_user)
    return {"message": "Account deleted successfully"}
