from fastapi import APIRouter, Depends, HTTPException
from sqlalchemy.orm import Session, joinedload
from sqlalchemy import desc, func, or_
from typing import Optional
from datetime import datetime
import logging

from vidhanto.database import get_db
from vidhanto.models import (
    User, UserRole, Lawyer, KycStatus, Appointment, AppointmentStatus, Document,
    Payment, PaymentStatus, PaymentType,
)
from vidhanto.admin.schemas import (
    AdminStats, AdminUser, AdminUserListResponse, AdminLawyer, AdminLawyerListResponse, KycDecision, BanRequest,
)
from vidhanto.appointments.schemas import AppointmentListResponse
from vidhanto.payments.schemas import PaymentHistoryResponse
from vidhanto.auth.schemas import MessageResponse
from vidhanto.auth.dependencies import require_admin
from vidhanto.pagination import PageParams, paginate
from vidhanto.services.account_service import AccountService

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/admin", tags=["Admin"])


def get_user_or_404(user_id: str, db: Session) -> User:
    user = db.query(User).filter(User.id == user_id).first()
    if not user:
        raise HTTPException(status_code=404, detail="User not found")
    return user


def page_of(key: str, result: dict) -> dict:
    return {
        key: result["items"],
        "total": result["total"],
        "page": result["page"],
        "pages": result["pages"],
    }


@router.get("/stats", response_model=AdminStats)
def get_stats(
    current_user: User = Depends(require_admin()),
    db: Session = Depends(get_db)
):
    revenue = db.query(func.coalesce(func.sum(Payment.amount), 0)).filter(
        Payment.status == PaymentStatus.COMPLETED
    ).scalar()
    return {
        "total_users": db.query(User).filter(User.role == UserRole.USER).count(),
        "total_lawyers": db.query(Lawyer).count(),
        "verified_lawyers": db.query(Lawyer).filter(Lawyer.is_verified.is_(True)).count(),
        "pending_kyc": db.query(Lawyer).filter(Lawyer.kyc_status == KycStatus.PENDING).count(),
        "total_appointments": db.query(Appointment).count(),
        "total_documents": db.query(Document).count(),
        "total_payments": db.query(Payment).count(),
        "total_revenue": int(revenue or 0),
    }


@router.get("/users", response_model=AdminUserListResponse)
def list_users(
    search: Optional[str] = None,
    role: Optional[UserRole] = None,
    page: PageParams = Depends(),
    current_user: User = Depends(require_admin()),
    db: Session = Depends(get_db)
):
    query = db.query(User)
    if role:
        query = query.filter(User.role == role)
    if search:
        query = query.filter(
            or_(
                User.first_name.ilike(f"%{search}%"),
                User.last_name.ilike(f"%{search}%"),
                User.email.ilike(f"%{search}%"),
            )
        )
    return page_of("users", paginate(query.order_by(desc(User.created_at)), page))


@router.get("/lawyers", response_model=AdminLawyerListResponse)
def list_lawyers(
    kyc_status: Optional[KycStatus] = None,
    page: PageParams = Depends(),
    current_user: User = Depends(require_admin()),
    db: Session = Depends(get_db)
):
    query = db.query(Lawyer).options(joinedload(Lawyer.user))
    if kyc_status:
        query = query.filter(Lawyer.kyc_status == kyc_status)
    return page_of("lawyers", paginate(query.order_by(desc(Lawyer.created_at)), page))


@router.get("/appointments", response_model=AppointmentListResponse)
def list_appointments(
    status: Optional[AppointmentStatus] = None,
    page: PageParams = Depends(),
    current_user: User = Depends(require_admin()),
    db: Session = Depends(get_db)
):
    query = db.query(Appointment).options(
        joinedload(Appointment.user),
        joinedload(Appointment.lawyer).joinedload(Lawyer.user),
    )
    if status:
        query = query.filter(Appointment.status == status)
    return page_of("appointments", paginate(query.order_by(desc(Appointment.scheduled_date)), page))


@router.get("/payments", response_model=PaymentHistoryResponse)
def list_payments(
    status: Optional[PaymentStatus] = None,
    type: Optional[PaymentType] = None,
    page: PageParams = Depends(),
    current_user: User = Depends(require_admin()),
    db: Session = Depends(get_db)
):
    query = db.query(Payment)
    if status:
        query = query.filter(Payment.status == status)
    if type:
        query = query.filter(Payment.type == type)
    return page_of("payments", paginate(query.order_by(desc(Payment.created_at)), page))


@router.put("/lawyers/{lawyer_id}/verify", response_model=AdminLawyer)
def verify_lawyer(
    lawyer_id: str,
    decision: KycDecision,
    current_user: User = Depends(require_admin()),
    db: Session = Depends(get_db)
):
    lawyer = db.query(Lawyer).options(joinedload(Lawyer.user)).filter(Lawyer.id == lawyer_id).first()
    if not lawyer:
        raise HTTPException(status_code=404, detail="Lawyer not found")

    lawyer.kyc_status = KycStatus(decision.status)
    lawyer.kyc_notes = decision.notes
    if lawyer.kyc_status == KycStatus.VERIFIED:
        lawyer.is_verified = True
        lawyer.verified_at = datetime.utcnow()
    else:
        lawyer.is_verified = False
        lawyer.verified_at = None

    db.commit()
    db.refresh(lawyer)
    logger.info("KYC decision recorded", extra={"lawyer_id": lawyer.id, "kyc_status": decision.status})
    return lawyer


@router.put("/users/{user_id}/ban", response_model=AdminUser)
def ban_user(
    user_id: str,
    ban: BanRequest,
    current_user: User = Depends(require_admin()),
    db: Session = Depends(get_db)
):
    user = get_user_or_404(user_id, db)
    if user.role == UserRole.ADMIN:
        raise HTTPException(status_code=400, detail="Cannot ban an admin")

    user.is_active = False
    user.ban_reason = ban.reason
    db.commit()
    db.refresh(user)
    logger.info("User banned", extra={"user_id": user.id})
    return user


@router.put("/users/{user_id}/unban", response_model=AdminUser)
def unban_user(
    user_id: str,
    current_user: User = Depends(require_admin()),
    db: Session = Depends(get_db)
):
    user = get_user_or_404(user_id, db)
    user.is_active = True
    user.ban_reason = None
    db.commit()
    db.refresh(user)
    return user


@router.delete("/users/{user_id}", response_model=MessageResponse)
def delete_user(
    user_id: str,
    current_user: User = Depends(require_admin()),
    db: Session = Depends(get_db)
):
    if user_id == current_user.id:
        raise HTTPException(status_code=400, detail="You cannot delete your own account")
    user = get_user_or_404(user_id, db)
    AccountService(db).delete_account(user)
    return {"message": "User deleted successfully"}
