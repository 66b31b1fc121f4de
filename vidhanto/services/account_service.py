from sqlalchemy.orm import Session
from sqlalchemy import func, or_
from datetime import datetime
import logging

from vidhanto.models import (
    User, UserRole, Lawyer, Appointment, AppointmentStatus, Document, DocumentSignature,
    ESignature, ESignatureSigner, EStamp, Payment, PaymentStatus, Chat, ChatMessage, Blog, BlogComment,
)

logger = logging.getLogger(__name__)


class AccountService:
    def __init__(self, db: Session):
        self.db = db

    def delete_account(self, user: User) -> dict:
        """Delete a user and everything that hangs off their account."""
        db = self.db
        lawyer = db.query(Lawyer).filter(Lawyer.user_id == user.id).first()

        appointment_filter = Appointment.user_id == user.id
        if lawyer:
            appointment_filter = or_(appointment_filter, Appointment.lawyer_id == lawyer.id)
        appointment_ids = [row.id for row in db.query(Appointment.id).filter(appointment_filter)]
        document_ids = [row.id for row in db.query(Document.id).filter(Document.user_id == user.id)]
        esignature_ids = [
            row.id for row in db.query(ESignature.id).filter(
                or_(ESignature.created_by == user.id, ESignature.document_id.in_(document_ids))
            )
        ]
        chat_filter = Chat.user_id == user.id
        if lawyer:
            chat_filter = or_(chat_filter, Chat.lawyer_id == lawyer.id)
        chat_ids = [row.id for row in db.query(Chat.id).filter(chat_filter)]
        blog_ids = [row.id for row in db.query(Blog.id).filter(Blog.author_id == user.id)]

        counts = {
            "chat_messages": db.query(ChatMessage).filter(ChatMessage.chat_id.in_(chat_ids)).delete(synchronize_session=False),
            "chats": db.query(Chat).filter(Chat.id.in_(chat_ids)).delete(synchronize_session=False),
        }
        # Other users' chats may still point at appointments being removed
        db.query(Chat).filter(Chat.appointment_id.in_(appointment_ids)).update(
            {Chat.appointment_id: None}, synchronize_session=False
        )
        counts["signers"] = db.query(ESignatureSigner).filter(
            ESignatureSigner.esignature_id.in_(esignature_ids)
        ).delete(synchronize_session=False)
        counts["esignatures"] = db.query(ESignature).filter(ESignature.id.in_(esignature_ids)).delete(synchronize_session=False)
        counts["signatures"] = db.query(DocumentSignature).filter(
            DocumentSignature.document_id.in_(document_ids)
        ).delete(synchronize_session=False)
        counts["documents"] = db.query(Document).filter(Document.id.in_(document_ids)).delete(synchronize_session=False)
        if lawyer:
            db.query(Document).filter(Document.lawyer_id == lawyer.id).update(
                {Document.lawyer_id: None}, synchronize_session=False
            )
        counts["appointments"] = db.query(Appointment).filter(Appointment.id.in_(appointment_ids)).delete(synchronize_session=False)
        counts["estamps"] = db.query(EStamp).filter(EStamp.user_id == user.id).delete(synchronize_session=False)
        counts["payments"] = db.query(Payment).filter(Payment.user_id == user.id).delete(synchronize_session=False)
        counts["comments"] = db.query(BlogComment).filter(
            or_(BlogComment.user_id == user.id, BlogComment.blog_id.in_(blog_ids))
        ).delete(synchronize_session=False)
        counts["blogs"] = db.query(Blog).filter(Blog.id.in_(blog_ids)).delete(synchronize_session=False)
        if lawyer:
            db.query(Lawyer).filter(Lawyer.id == lawyer.id).delete(synchronize_session=False)

        user_id = user.id
        db.query(User).filter(User.id == user_id).delete(synchronize_session=False)
        db.commit()
        logger.info("Account deleted", extra={"user_id": user_id, **counts})
        return counts

    def dashboard(self, user: User, now=None) -> dict:
        """Headline numbers for the user's home screen."""
        db = self.db
        now = now or datetime.utcnow()

        if user.role == UserRole.LAWYER and user.lawyer_profile is not None:
            appointments = db.query(Appointment).filter(Appointment.lawyer_id == user.lawyer_profile.id)
        else:
            appointments = db.query(Appointment).filter(Appointment.user_id == user.id)

        upcoming = appointments.filter(
            Appointment.scheduled_date > now,
            Appointment.status.in_([AppointmentStatus.PENDING, AppointmentStatus.CONFIRMED]),
        )

        spent = db.query(func.coalesce(func.sum(Payment.amount), 0)).filter(
            Payment.user_id == user.id,
            Payment.status == PaymentStatus.COMPLETED,
        ).scalar()

        return {
            "total_appointments": appointments.count(),
            "completed_appointments": appointments.filter(Appointment.status == AppointmentStatus.COMPLETED).count(),
            "upcoming_appointments": upcoming.count(),
            "next_appointments": upcoming.order_by(Appointment.scheduled_date).limit(5).all(),
            "total_documents": db.query(Document).filter(Document.user_id == user.id).count(),
            "total_estamps": db.query(EStamp).filter(EStamp.user_id == user.id).count(),
            "total_payments": db.query(Payment).filter(Payment.user_id == user.id).count(),
            "total_spent": int(spent or 0),
        }
