from fastapi import APIRouter, BackgroundTasks, Depends, HTTPException, status
from sqlalchemy.orm import Session, joinedload
from sqlalchemy import desc
from typing import Optional
from datetime import datetime
import logging

from vidhanto.database import get_db
from vidhanto.models import (
    User, UserRole, Lawyer, Appointment, AppointmentStatus, ConsultationType,
)
from vidhanto.appointments.schemas import (
    AppointmentCreate, AppointmentUpdate, AppointmentComplete, AppointmentCancel,
    AppointmentResponse, AppointmentListResponse,
)
from vidhanto.auth.dependencies import get_current_user, require_user
from vidhanto.config import MEETING_BASE_URL
from vidhanto.pagination import PageParams, paginate
from vidhanto.services.email_service import EmailService, get_email_service
from vidhanto.workflow import APPOINTMENT_WORKFLOW
from vidhanto import scheduling

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/appointments", tags=["Appointments"])


def ensure_lawyer_available(
    lawyer: Lawyer, scheduled_date: datetime, db: Session, exclude_id: Optional[str] = None
) -> None:
    if scheduled_date <= datetime.utcnow():
        raise HTTPException(status_code=400, detail="Appointment must be scheduled in the future")
    local = scheduling.to_local(scheduled_date)
    if not lawyer.is_available_at(scheduling.day_name(local), scheduling.hhmm(local)):
        raise HTTPException(status_code=400, detail="Lawyer is not available at the selected time")
    taken = db.query(Appointment.id).filter(
        Appointment.lawyer_id == lawyer.id,
        Appointment.scheduled_date == scheduled_date,
        Appointment.status.in_([AppointmentStatus.PENDING, AppointmentStatus.CONFIRMED]),
    )
    if exclude_id is not None:
        taken = taken.filter(Appointment.id != exclude_id)
    if taken.first():
        raise HTTPException(status_code=400, detail="This time slot is already booked")


def is_assigned_lawyer(appointment: Appointment, user: User) -> bool:
    return appointment.lawyer is not None and appointment.lawyer.user_id == user.id


def get_appointment_or_404(appointment_id: str, db: Session) -> Appointment:
    appointment = db.query(Appointment).options(
        joinedload(Appointment.user),
        joinedload(Appointment.lawyer).joinedload(Lawyer.user),
    ).filter(Appointment.id == appointment_id).first()
    if not appointment:
        raise HTTPException(status_code=404, detail="Appointment not found")
    return appointment


def get_accessible_appointment(appointment_id: str, user: User, db: Session) -> Appointment:
    appointment = get_appointment_or_404(appointment_id, db)
    if not (
        user.role == UserRole.ADMIN
        or appointment.user_id == user.id
        or is_assigned_lawyer(appointment, user)
    ):
        raise HTTPException(status_code=403, detail="Access denied")
    return appointment


@router.post("/", response_model=AppointmentResponse, status_code=status.HTTP_201_CREATED)
def create_appointment(
    appointment_data: AppointmentCreate,
    current_user: User = Depends(require_user()),
    db: Session = Depends(get_db)
):
    """Book a consultation with a verified lawyer."""
    lawyer = db.query(Lawyer).filter(
        Lawyer.id == appointment_data.lawyer_id,
        Lawyer.is_verified.is_(True),
        Lawyer.is_available.is_(True),
    ).first()
    if not lawyer:
        raise HTTPException(status_code=404, detail="Lawyer not found or not verified")

    scheduled_date = scheduling.normalize_utc(appointment_data.scheduled_date)
    ensure_lawyer_available(lawyer, scheduled_date, db)

    appointment = Appointment(
        user_id=current_user.id,
        lawyer_id=lawyer.id,
        consultation_type=appointment_data.consultation_type,
        scheduled_date=scheduled_date,
        duration=appointment_data.duration,
        description=appointment_data.description,
        documents=appointment_data.documents or [],
        consultation_fee=lawyer.fee_for(appointment_data.consultation_type),
    )
    db.add(appointment)
    db.commit()
    logger.info("Appointment booked", extra={"appointment_id": appointment.id, "lawyer_id": lawyer.id})
    return get_appointment_or_404(appointment.id, db)


@router.get("/", response_model=AppointmentListResponse)
def list_appointments(
    status: Optional[AppointmentStatus] = None,
    consultation_type: Optional[ConsultationType] = None,
    page: PageParams = Depends(),
    current_user: User = Depends(get_current_user),
    db: Session = Depends(get_db)
):
    query = db.query(Appointment).options(
        joinedload(Appointment.user),
        joinedload(Appointment.lawyer).joinedload(Lawyer.user),
    )

    # Apply role-based filtering
    if current_user.role == UserRole.USER:
        query = query.filter(Appointment.user_id == current_user.id)
    elif current_user.role == UserRole.LAWYER:
        query = query.join(Lawyer, Appointment.lawyer_id == Lawyer.id).filter(Lawyer.user_id == current_user.id)

    if status:
        query = query.filter(Appointment.status == status)
    if consultation_type:
        query = query.filter(Appointment.consultation_type == consultation_type)

    result = paginate(query.order_by(desc(Appointment.scheduled_date)), page)
    return {
        "appointments": result["items"],
        "total": result["total"],
        "page": result["page"],
        "pages": result["pages"],
    }


@router.get("/{appointment_id}", response_model=AppointmentResponse)
def get_appointment(
    appointment_id: str,
    current_user: User = Depends(get_current_user),
    db: Session = Depends(get_db)
):
    return get_accessible_appointment(appointment_id, current_user, db)


@router.put("/{appointment_id}", response_model=AppointmentResponse)
def update_appointment(
    appointment_id: str,
    appointment_update: AppointmentUpdate,
    current_user: User = Depends(get_current_user),
    db: Session = Depends(get_db)
):
    appointment = get_appointment_or_404(appointment_id, db)
    if appointment.user_id != current_user.id:
        raise HTTPException(status_code=403, detail="Access denied")

    APPOINTMENT_WORKFLOW.apply(appointment, "update")

    updates = appointment_update.dict(exclude_unset=True)
    if updates.get("scheduled_date") is not None:
        updates["scheduled_date"] = scheduling.normalize_utc(updates["scheduled_date"])
        ensure_lawyer_available(appointment.lawyer, updates["scheduled_date"], db, exclude_id=appointment.id)

    for field, value in updates.items():
        if value is not None:
            setattr(appointment, field, value)

    db.commit()
    return get_appointment_or_404(appointment.id, db)


@router.put("/{appointment_id}/confirm", response_model=AppointmentResponse)
def confirm_appointment(
    appointment_id: str,
    background_tasks: BackgroundTasks,
    current_user: User = Depends(get_current_user),
    db: Session = Depends(get_db),
    mailer: EmailService = Depends(get_email_service),
):
    appointment = get_appointment_or_404(appointment_id, db)
    if not is_assigned_lawyer(appointment, current_user):
        raise HTTPException(status_code=403, detail="Only the assigned lawyer can confirm this appointment")

    APPOINTMENT_WORKFLOW.apply(appointment, "confirm")
    appointment.room_id = appointment.id
    appointment.meeting_link = f"{MEETING_BASE_URL}/room/{appointment.id}"
    db.commit()

    appointment = get_appointment_or_404(appointment.id, db)
    background_tasks.add_task(
        mailer.send_appointment_confirmation,
        appointment.user.email,
        appointment.user.first_name,
        appointment.lawyer.user.full_name,
        appointment.scheduled_date,
        appointment.consultation_type.value,
        appointment.meeting_link,
    )
    return appointment


@router.put("/{appointment_id}/complete", response_model=AppointmentResponse)
def complete_appointment(
    appointment_id: str,
    completion: AppointmentComplete,
    current_user: User = Depends(get_current_user),
    db: Session = Depends(get_db)
):
    appointment = get_appointment_or_404(appointment_id, db)
    is_owner = appointment.user_id == current_user.id
    if not (is_owner or is_assigned_lawyer(appointment, current_user)):
        raise HTTPException(status_code=403, detail="Access denied")
    if not is_owner and (completion.rating is not None or completion.review):
        raise HTTPException(status_code=403, detail="Only the client can rate this consultation")

    APPOINTMENT_WORKFLOW.apply(appointment, "complete")
    appointment.completed_at = datetime.utcnow()

    if completion.notes:
        if is_owner:
            appointment.user_notes = completion.notes
        else:
            appointment.lawyer_notes = completion.notes

    lawyer = appointment.lawyer
    if completion.rating is not None:
        appointment.user_rating = completion.rating
        appointment.user_review = completion.review
        lawyer.add_rating(completion.rating)
    lawyer.total_consultations = (lawyer.total_consultations or 0) + 1

    db.commit()
    logger.info("Appointment completed", extra={"appointment_id": appointment.id, "rating": completion.rating})
    return get_appointment_or_404(appointment.id, db)


@router.put("/{appointment_id}/no-show", response_model=AppointmentResponse)
def mark_no_show(
    appointment_id: str,
    current_user: User = Depends(get_current_user),
    db: Session = Depends(get_db)
):
    appointment = get_appointment_or_404(appointment_id, db)
    if not is_assigned_lawyer(appointment, current_user):
        raise HTTPException(status_code=403, detail="Only the assigned lawyer can mark a no-show")
    if appointment.scheduled_date > datetime.utcnow():
        raise HTTPException(status_code=400, detail="Appointment has not started yet")

    APPOINTMENT_WORKFLOW.apply(appointment, "no_show")
    db.commit()
    return get_appointment_or_404(appointment.id, db)


@router.delete("/{appointment_id}", response_model=AppointmentResponse)
def cancel_appointment(
    appointment_id: str,
    cancellation: AppointmentCancel,
    current_user: User = Depends(get_current_user),
    db: Session = Depends(get_db)
):
    appointment = get_accessible_appointment(appointment_id, current_user, db)

    if not appointment.can_be_cancelled():
        raise HTTPException(
            status_code=400,
            detail="Appointment cannot be cancelled. Must be at least 2 hours before scheduled time"
        )

    APPOINTMENT_WORKFLOW.apply(appointment, "cancel")
    appointment.cancellation_reason = cancellation.reason
    appointment.cancelled_by = current_user.id
    appointment.cancelled_at = datetime.utcnow()
    db.commit()
    logger.info("Appointment cancelled", extra={"appointment_id": appointment.id, "cancelled_by": current_user.id})
    return get_appointment_or_404(appointment.id, db)
