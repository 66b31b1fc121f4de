from fastapi import APIRouter, Depends, HTTPException, Query
from sqlalchemy.orm import Session, joinedload
from sqlalchemy import or_, desc, asc, cast, String
from typing import Optional
from datetime import date, datetime, timedelta
import logging

from vidhanto.database import get_db
from vidhanto.models import Lawyer, User, Appointment, AppointmentStatus, KycStatus
from vidhanto.lawyers.schemas import (
    LawyerResponse, LawyerListResponse, LawyerProfileUpdate,
    AvailabilityUpdate, KycSubmission, SlotsResponse,
)
from vidhanto.auth.dependencies import get_current_lawyer, require_verified_lawyer
from vidhanto.constants import SPECIALIZATIONS, INDIAN_STATES
from vidhanto.pagination import PageParams, paginate
from vidhanto import scheduling

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/lawyers", tags=["Lawyers"])

SORT_OPTIONS = {
    "rating": [desc(Lawyer.rating_average), desc(Lawyer.rating_count)],
    "experience": [desc(Lawyer.experience)],
    "fees": [asc(Lawyer.chat_fee)],
    "reviews": [desc(Lawyer.rating_count)],
}


@router.get("/", response_model=LawyerListResponse)
def list_lawyers(
    specialization: Optional[str] = None,
    city: Optional[str] = None,
    state: Optional[str] = None,
    min_experience: Optional[int] = Query(None, ge=0),
    min_rating: Optional[float] = Query(None, ge=0, le=5),
    max_fee: Optional[int] = Query(None, ge=0),
    search: Optional[str] = None,
    sort_by: str = Query("rating", pattern="^(rating|experience|fees|reviews)$"),
    page: PageParams = Depends(),
    db: Session = Depends(get_db)
):
    """List verified lawyers with filtering, sorting and pagination."""
    query = db.query(Lawyer).join(User, Lawyer.user_id == User.id).options(joinedload(Lawyer.user)).filter(
        Lawyer.is_verified.is_(True),
        Lawyer.is_available.is_(True),
        User.is_active.is_(True),
    )

    if specialization:
        # specializations is a JSON list; match the quoted entry in its text form
        query = query.filter(cast(Lawyer.specializations, String).ilike(f'%"{specialization}"%'))
    if city:
        query = query.filter(Lawyer.city.ilike(f"%{city}%"))
    if state:
        query = query.filter(Lawyer.state == state)
    if min_experience is not None:
        query = query.filter(Lawyer.experience >= min_experience)
    if min_rating is not None:
        query = query.filter(Lawyer.rating_average >= min_rating)
    if max_fee is not None:
        query = query.filter(Lawyer.chat_fee <= max_fee)
    if search:
        query = query.filter(or_(
            User.first_name.ilike(f"%{search}%"),
            User.last_name.ilike(f"%{search}%"),
            Lawyer.bio.ilike(f"%{search}%"),
            cast(Lawyer.specializations, String).ilike(f"%{search}%"),
        ))

    query = query.order_by(*SORT_OPTIONS[sort_by])
    result = paginate(query, page)
    return {
        "lawyers": result["items"],
        "total": result["total"],
        "page": result["page"],
        "pages": result["pages"],
    }


@router.get("/specializations")
def get_specializations():
    return {"specializations": SPECIALIZATIONS}


@router.get("/states")
def get_states():
    return {"states": INDIAN_STATES}


@router.put("/profile", response_model=LawyerResponse)
def update_profile(
    profile: LawyerProfileUpdate,
    lawyer: Lawyer = Depends(get_current_lawyer),
    db: Session = Depends(get_db)
):
    updates = profile.dict(exclude_unset=True)
    license_number = updates.get("bar_license_number")
    if license_number and license_number != lawyer.bar_license_number:
        taken = db.query(Lawyer).filter(
            Lawyer.bar_license_number == license_number,
            Lawyer.id != lawyer.id,
        ).first()
        if taken:
            raise HTTPException(status_code=400, detail="Bar license number already registered")

    for field, value in updates.items():
        setattr(lawyer, field, value)

    db.commit()
    db.refresh(lawyer)
    return lawyer


@router.put("/availability", response_model=LawyerResponse)
def update_availability(
    payload: AvailabilityUpdate,
    lawyer: Lawyer = Depends(require_verified_lawyer()),
    db: Session = Depends(get_db)
):
    lawyer.availability = {
        day: [slot.dict() for slot in ranges]
        for day, ranges in payload.availability.items()
    }
    db.commit()
    db.refresh(lawyer)
    return lawyer


@router.post("/kyc", response_model=LawyerResponse)
def submit_kyc(
    submission: KycSubmission,
    lawyer: Lawyer = Depends(get_current_lawyer),
    db: Session = Depends(get_db)
):
    if lawyer.kyc_status == KycStatus.VERIFIED:
        raise HTTPException(status_code=400, detail="KYC already verified")

    if submission.bar_license_number:
        taken = db.query(Lawyer).filter(
            Lawyer.bar_license_number == submission.bar_license_number,
            Lawyer.id != lawyer.id,
        ).first()
        if taken:
            raise HTTPException(status_code=400, detail="Bar license number already registered")
        lawyer.bar_license_number = submission.bar_license_number

    submitted_at = datetime.utcnow().isoformat()
    lawyer.kyc_documents = [
        {**doc.dict(), "uploaded_at": submitted_at} for doc in submission.documents
    ]
    if submission.bank_details is not None:
        lawyer.bank_details = submission.bank_details
    lawyer.kyc_status = KycStatus.PENDING
    lawyer.kyc_notes = None

    db.commit()
    db.refresh(lawyer)
    logger.info("KYC submitted", extra={"lawyer_id": lawyer.id, "documents": len(submission.documents)})
    return lawyer


@router.get("/{lawyer_id}", response_model=LawyerResponse)
def get_lawyer(lawyer_id: str, db: Session = Depends(get_db)):
    lawyer = db.query(Lawyer).options(joinedload(Lawyer.user)).filter(Lawyer.id == lawyer_id).first()
    if not lawyer:
        raise HTTPException(status_code=404, detail="Lawyer not found")
    return lawyer


@router.get("/{lawyer_id}/slots", response_model=SlotsResponse)
def get_available_slots(
    lawyer_id: str,
    on: date = Query(..., alias="date"),
    db: Session = Depends(get_db)
):
    """Bookable 30-minute start times for a day, in the lawyer's local time."""
    lawyer = db.query(Lawyer).filter(Lawyer.id == lawyer_id).first()
    if not lawyer:
        raise HTTPException(status_code=404, detail="Lawyer not found")

    day = scheduling.day_name(on)
    slots = scheduling.generate_time_slots((lawyer.availability or {}).get(day, []))

    day_start = scheduling.local_slot_to_utc(on, "00:00")
    booked = db.query(Appointment.scheduled_date).filter(
        Appointment.lawyer_id == lawyer.id,
        Appointment.status.in_([AppointmentStatus.PENDING, AppointmentStatus.CONFIRMED]),
        Appointment.scheduled_date >= day_start,
        Appointment.scheduled_date < day_start + timedelta(days=1),
    ).all()
    taken = {scheduling.hhmm(scheduling.to_local(row.scheduled_date)) for row in booked}

    return {
        "lawyer_id": lawyer.id,
        "date": on.isoformat(),
        "day": day,
        "slots": [slot for slot in slots if slot not in taken],
    }
