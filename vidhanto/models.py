from datetime import datetime, timedelta
import enum
import math
import random
import uuid

from sqlalchemy import Column, Integer, String, Text, DateTime, Boolean, ForeignKey, Enum, Float, JSON
from sqlalchemy.orm import relationship, validates
from sqlalchemy.sql import func

from vidhanto.database import Base
from vidhanto import pricing

# =====================================================
# ENUMS
# =====================================================

class UserRole(str, enum.Enum):
    USER = "user"
    LAWYER = "lawyer"
    ADMIN = "admin"

class KycStatus(str, enum.Enum):
    PENDING = "pending"
    VERIFIED = "verified"
    REJECTED = "rejected"

class ConsultationType(str, enum.Enum):
    CHAT = "chat"
    VOICE = "voice"
    VIDEO = "video"

class AppointmentStatus(str, enum.Enum):
    PENDING = "pending"
    CONFIRMED = "confirmed"
    CANCELLED = "cancelled"
    COMPLETED = "completed"
    NO_SHOW = "no-show"

class BillingStatus(str, enum.Enum):
    PENDING = "pending"
    PAID = "paid"
    REFUNDED = "refunded"
    FAILED = "failed"

class DocumentType(str, enum.Enum):
    NDA = "nda"
    AGREEMENT = "agreement"
    RENT_AGREEMENT = "rent-agreement"
    LEGAL_NOTICE = "legal-notice"
    AFFIDAVIT = "affidavit"
    WILL = "will"
    POWER_OF_ATTORNEY = "power-of-attorney"
    PETITION = "petition"
    OTHER = "other"

class DocumentStatus(str, enum.Enum):
    DRAFT = "draft"
    PENDING_REVIEW = "pending_review"
    UNDER_REVIEW = "under_review"
    NEEDS_REVISION = "needs_revision"
    APPROVED = "approved"
    REJECTED = "rejected"
    COMPLETED = "completed"
    CANCELLED = "cancelled"

class Priority(str, enum.Enum):
    LOW = "low"
    MEDIUM = "medium"
    HIGH = "high"
    URGENT = "urgent"

class SignatureStatus(str, enum.Enum):
    PENDING = "pending"
    SIGNED = "signed"
    DECLINED = "declined"

class ESignatureStatus(str, enum.Enum):
    DRAFT = "draft"
    SENT = "sent"
    IN_PROGRESS = "in_progress"
    COMPLETED = "completed"
    CANCELLED = "cancelled"

class SignerStatus(str, enum.Enum):
    PENDING = "pending"
    OTP_SENT = "otp_sent"
    SIGNED = "signed"
    COMPLETED = "completed"

class SignatureType(str, enum.Enum):
    DRAW = "draw"
    TYPE = "type"
    UPLOAD = "upload"

class EStampStatus(str, enum.Enum):
    DRAFT = "draft"
    PAYMENT_PENDING = "payment_pending"
    STAMPED = "stamped"
    COMPLETED = "completed"
    CANCELLED = "cancelled"

class StampType(str, enum.Enum):
    JUDICIAL = "judicial"
    NON_JUDICIAL = "non-judicial"
    REVENUE = "revenue"
    SPECIAL_ADHESIVE = "special adhesive"

class InstrumentType(str, enum.Enum):
    AGREEMENT = "agreement"
    BOND = "bond"
    DEED = "deed"
    POWER_OF_ATTORNEY = "power_of_attorney"
    AFFIDAVIT = "affidavit"
    INDEMNITY_BOND = "indemnity_bond"

class PaymentType(str, enum.Enum):
    APPOINTMENT = "appointment"
    DOCUMENT = "document"
    CONSULTATION = "consultation"
    SUBSCRIPTION = "subscription"
    REFUND = "refund"

class PaymentStatus(str, enum.Enum):
    PENDING = "pending"
    PROCESSING = "processing"
    COMPLETED = "completed"
    FAILED = "failed"
    REFUNDED = "refunded"
    CANCELLED = "cancelled"

class RefundStatus(str, enum.Enum):
    PENDING = "pending"
    PROCESSED = "processed"
    FAILED = "failed"

class ChatType(str, enum.Enum):
    AI = "ai"
    CONSULTATION = "consultation"
    GENERAL = "general"

class ChatStatus(str, enum.Enum):
    ACTIVE = "active"
    ENDED = "ended"
    ARCHIVED = "archived"

class SenderType(str, enum.Enum):
    USER = "user"
    AI = "ai"
    LAWYER = "lawyer"
    SYSTEM = "system"

class BlogStatus(str, enum.Enum):
    DRAFT = "draft"
    PUBLISHED = "published"
    ARCHIVED = "archived"


def new_id() -> str:
    return str(uuid.uuid4())


class AuditTrailMixin:
    audit_trail = Column(JSON, default=list)

    def add_audit(self, action: str, actor_id=None, details=None, ip_address=None):
        entry = {
            "action": action,
            "actor": actor_id,
            "timestamp": datetime.utcnow().isoformat(),
        }
        if details:
            entry["details"] = details
        if ip_address:
            entry["ip_address"] = ip_address
        # reassign so the JSON column is flagged dirty
        self.audit_trail = list(self.audit_trail or []) + [entry]
        return entry

# =====================================================
# USERS & LAWYERS
# =====================================================

class User(Base):
    __tablename__ = "users"

    id = Column(String(36), primary_key=True, default=new_id)
    first_name = Column(String(50), nullable=False)
    last_name = Column(String(50), nullable=False)
    email = Column(String(255), unique=True, nullable=False, index=True)
    password_hash = Column(String(255), nullable=False)
    phone = Column(String(20))
    role = Column(Enum(UserRole), nullable=False, default=UserRole.USER, index=True)
    profile_image = Column(String(500))
    address = Column(JSON)
    preferences = Column(JSON)
    is_active = Column(Boolean, default=True)
    is_email_verified = Column(Boolean, default=False)
    email_verification_token = Column(String(128), index=True)
    email_verification_expires = Column(DateTime)
    password_reset_token = Column(String(128), index=True)
    password_reset_expires = Column(DateTime)
    ban_reason = Column(Text)
    last_login = Column(DateTime)
    created_at = Column(DateTime, default=func.now())
    updated_at = Column(DateTime, default=func.now(), onupdate=func.now())

    lawyer_profile = relationship("Lawyer", back_populates="user", uselist=False)

    @property
    def full_name(self) -> str:
        return f"{self.first_name} {self.last_name}"


class Lawyer(Base):
    __tablename__ = "lawyers"

    id = Column(String(36), primary_key=True, default=new_id)
    user_id = Column(String(36), ForeignKey("users.id"), unique=True, nullable=False, index=True)
    bar_license_number = Column(String(100), unique=True, nullable=False)
    specializations = Column(JSON, default=list)
    experience = Column(Integer, default=0)
    education = Column(JSON, default=list)
    languages = Column(JSON, default=list)
    city = Column(String(100), index=True)
    state = Column(String(100), index=True)
    bio = Column(Text)
    chat_fee = Column(Integer, default=500)
    voice_fee = Column(Integer, default=1000)
    video_fee = Column(Integer, default=1500)
    availability = Column(JSON, default=dict)  # {"monday": [{"start": "09:00", "end": "17:00"}]}
    is_verified = Column(Boolean, default=False, index=True)
    is_available = Column(Boolean, default=True)
    rating_average = Column(Float, default=0.0)
    rating_count = Column(Integer, default=0)
    total_consultations = Column(Integer, default=0)
    total_earnings = Column(Integer, default=0)
    kyc_status = Column(Enum(KycStatus), default=KycStatus.PENDING, index=True)
    kyc_documents = Column(JSON, default=list)
    kyc_notes = Column(Text)
    bank_details = Column(JSON)
    verified_at = Column(DateTime)
    created_at = Column(DateTime, default=func.now())
    updated_at = Column(DateTime, default=func.now(), onupdate=func.now())

    user = relationship("User", back_populates="lawyer_profile")

    def fee_for(self, consultation_type) -> int:
        return {
            ConsultationType.CHAT: self.chat_fee,
            ConsultationType.VOICE: self.voice_fee,
            ConsultationType.VIDEO: self.video_fee,
        }[ConsultationType(consultation_type)] or 0

    def is_available_at(self, day: str, time: str) -> bool:
        """``day`` is a lowercase weekday name and ``time`` is ``HH:MM``."""
        for slot in (self.availability or {}).get(day, []):
            if slot["start"] <= time <= slot["end"]:
                return True
        return False

    def add_rating(self, rating: int) -> None:
        self.rating_average = pricing.running_average(self.rating_average, self.rating_count, rating)
        self.rating_count = (self.rating_count or 0) + 1

# =====================================================
# APPOINTMENTS
# =====================================================

class Appointment(Base):
    __tablename__ = "appointments"

    id = Column(String(36), primary_key=True, default=new_id)
    user_id = Column(String(36), ForeignKey("users.id"), nullable=False, index=True)
    lawyer_id = Column(String(36), ForeignKey("lawyers.id"), nullable=False, index=True)
    consultation_type = Column(Enum(ConsultationType), nullable=False)
    scheduled_date = Column(DateTime, nullable=False, index=True)
    duration = Column(Integer, default=30)
    status = Column(Enum(AppointmentStatus), default=AppointmentStatus.PENDING, index=True)
    payment_status = Column(Enum(BillingStatus), default=BillingStatus.PENDING)
    payment_id = Column(String(36))

    consultation_fee = Column(Integer, nullable=False, default=0)
    platform_fee = Column(Integer, nullable=False, default=0)
    total_fee = Column(Integer, nullable=False, default=0)

    description = Column(Text)
    documents = Column(JSON, default=list)
    meeting_link = Column(String(500))
    room_id = Column(String(100))
    lawyer_notes = Column(Text)
    user_notes = Column(Text)
    user_rating = Column(Integer)
    user_review = Column(Text)
    cancellation_reason = Column(Text)
    cancelled_by = Column(String(36))
    cancelled_at = Column(DateTime)
    completed_at = Column(DateTime)
    row_version = Column(Integer, nullable=False)
    created_at = Column(DateTime, default=func.now())
    updated_at = Column(DateTime, default=func.now(), onupdate=func.now())

    user = relationship("User")
    lawyer = relationship("Lawyer")

    __mapper_args__ = {"version_id_col": row_version}

    @validates("consultation_fee")
    def _recompute_fees(self, key, value):
        value = value or 0
        self.platform_fee = pricing.platform_fee(value)
        self.total_fee = value + self.platform_fee
        return value

    def can_be_cancelled(self, now=None) -> bool:
        now = now or datetime.utcnow()
        if self.status not in (AppointmentStatus.PENDING, AppointmentStatus.CONFIRMED):
            return False
        return self.scheduled_date - now > timedelta(hours=2)

    def is_upcoming(self, now=None) -> bool:
        now = now or datetime.utcnow()
        return self.scheduled_date > now and self.status in (
            AppointmentStatus.PENDING,
            AppointmentStatus.CONFIRMED,
        )

# =====================================================
# DOCUMENTS
# =====================================================

class Document(AuditTrailMixin, Base):
    __tablename__ = "documents"

    id = Column(String(36), primary_key=True, default=new_id)
    user_id = Column(String(36), ForeignKey("users.id"), nullable=False, index=True)
    lawyer_id = Column(String(36), ForeignKey("lawyers.id"), index=True)
    title = Column(String(200), nullable=False)
    type = Column(Enum(DocumentType), nullable=False)
    category = Column(String(100))
    description = Column(Text)
    content = Column(Text)
    template_id = Column(String(100))
    version = Column(Integer, default=1)
    status = Column(Enum(DocumentStatus), default=DocumentStatus.DRAFT, index=True)
    priority = Column(Enum(Priority), default=Priority.MEDIUM)

    review_instructions = Column(Text)
    review_urgency = Column(Enum(Priority))
    review_submitted_at = Column(DateTime)
    reviewed_by = Column(String(36))
    reviewed_at = Column(DateTime)
    review_comments = Column(Text)
    revisions = Column(JSON, default=list)

    base_price = Column(Integer, nullable=False, default=0)
    additional_charges = Column(Integer, nullable=False, default=0)
    tax = Column(Integer, nullable=False, default=0)
    total_amount = Column(Integer, nullable=False, default=0)
    payment_status = Column(Enum(BillingStatus), default=BillingStatus.PENDING)
    payment_id = Column(String(36))

    files = Column(JSON, default=list)
    signed_at = Column(DateTime)
    row_version = Column(Integer, nullable=False)
    created_at = Column(DateTime, default=func.now())
    updated_at = Column(DateTime, default=func.now(), onupdate=func.now())

    user = relationship("User")
    lawyer = relationship("Lawyer")
    signatures = relationship(
        "DocumentSignature",
        back_populates="document",
        cascade="all, delete-orphan",
        order_by="DocumentSignature.created_at",
    )

    __mapper_args__ = {"version_id_col": row_version}

    @validates("base_price", "additional_charges")
    def _recompute_pricing(self, key, value):
        value = value or 0
        base = value if key == "base_price" else (self.base_price or 0)
        additional = value if key == "additional_charges" else (self.additional_charges or 0)
        self.tax = pricing.document_tax(base, additional)
        self.total_amount = base + additional + self.tax
        return value

    def has_signed_signatures(self) -> bool:
        return any(s.status == SignatureStatus.SIGNED for s in self.signatures)


class DocumentSignature(Base):
    __tablename__ = "document_signatures"

    id = Column(String(36), primary_key=True, default=new_id)
    document_id = Column(String(36), ForeignKey("documents.id"), nullable=False, index=True)
    signer_name = Column(String(200), nullable=False)
    signer_email = Column(String(255), nullable=False)
    signer_type = Column(String(50), default="party")
    status = Column(Enum(SignatureStatus), default=SignatureStatus.PENDING)
    otp_hash = Column(String(64))
    otp_expires_at = Column(DateTime)
    signed_at = Column(DateTime)
    ip_address = Column(String(64))
    user_agent = Column(String(500))
    created_at = Column(DateTime, default=func.now())

    document = relationship("Document", back_populates="signatures")

# =====================================================
# E-SIGNATURE
# =====================================================

class ESignature(AuditTrailMixin, Base):
    __tablename__ = "esignatures"

    id = Column(String(36), primary_key=True, default=new_id)
    document_id = Column(String(36), ForeignKey("documents.id"), nullable=False, index=True)
    created_by = Column(String(36), ForeignKey("users.id"), nullable=False, index=True)
    title = Column(String(200))
    message = Column(Text)
    require_otp = Column(Boolean, default=True)
    allow_decline = Column(Boolean, default=True)
    reminder_frequency_days = Column(Integer, default=3)
    status = Column(Enum(ESignatureStatus), default=ESignatureStatus.DRAFT, index=True)
    completed_at = Column(DateTime)
    row_version = Column(Integer, nullable=False)
    created_at = Column(DateTime, default=func.now())
    updated_at = Column(DateTime, default=func.now(), onupdate=func.now())

    document = relationship("Document")
    signers = relationship(
        "ESignatureSigner",
        back_populates="esignature",
        cascade="all, delete-orphan",
        order_by="ESignatureSigner.order",
    )

    __mapper_args__ = {"version_id_col": row_version}

    def signed_count(self) -> int:
        return sum(1 for s in self.signers if s.status in (SignerStatus.SIGNED, SignerStatus.COMPLETED))

    def completion_percentage(self) -> int:
        if not self.signers:
            return 0
        return pricing.round_half_up(self.signed_count() / len(self.signers) * 100)

    def all_signed(self) -> bool:
        return bool(self.signers) and self.signed_count() == len(self.signers)

    def signer_by_email(self, email: str):
        email = email.lower()
        return next((s for s in self.signers if s.email.lower() == email), None)


class ESignatureSigner(Base):
    __tablename__ = "esignature_signers"

    id = Column(String(36), primary_key=True, default=new_id)
    esignature_id = Column(String(36), ForeignKey("esignatures.id"), nullable=False, index=True)
    name = Column(String(200), nullable=False)
    email = Column(String(255), nullable=False)
    phone = Column(String(20))
    order = Column(Integer, default=1)
    otp = Column(String(32))
    otp_sent_at = Column(DateTime)
    otp_verified = Column(Boolean, default=False)
    signature_type = Column(Enum(SignatureType))
    signature_data = Column(Text)
    signed_at = Column(DateTime)
    ip_address = Column(String(64))
    status = Column(Enum(SignerStatus), default=SignerStatus.PENDING)

    esignature = relationship("ESignature", back_populates="signers")

# =====================================================
# E-STAMP
# =====================================================

CERTIFICATE_VALIDITY = timedelta(days=365)


class EStamp(AuditTrailMixin, Base):
    __tablename__ = "estamps"

    id = Column(String(36), primary_key=True, default=new_id)
    user_id = Column(String(36), ForeignKey("users.id"), nullable=False, index=True)
    state = Column(String(100), nullable=False)
    stamp_type = Column(Enum(StampType), nullable=False)
    stamp_value = Column(Float, nullable=False)
    instrument_type = Column(Enum(InstrumentType), nullable=False)
    instrument_date = Column(DateTime)
    description = Column(Text)
    parties = Column(JSON, default=list)
    document_url = Column(String(500))

    payment_amount = Column(Float, nullable=False)
    payment_status = Column(Enum(BillingStatus), default=BillingStatus.PENDING)
    gateway_order_id = Column(String(100), index=True)
    transaction_id = Column(String(100))
    paid_at = Column(DateTime)

    certificate_number = Column(String(50), unique=True, index=True)
    certificate_issued_at = Column(DateTime)
    certificate_expires_at = Column(DateTime)
    verification_url = Column(String(500))

    status = Column(Enum(EStampStatus), default=EStampStatus.DRAFT, index=True)
    row_version = Column(Integer, nullable=False)
    created_at = Column(DateTime, default=func.now())
    updated_at = Column(DateTime, default=func.now(), onupdate=func.now())

    user = relationship("User")

    __mapper_args__ = {"version_id_col": row_version}

    def issue_certificate(self, frontend_url: str, now=None) -> bool:
        """Issue the stamp certificate. Returns False if one already exists."""
        if self.certificate_number:
            return False
        now = now or datetime.utcnow()
        millis = int(now.timestamp() * 1000)
        self.certificate_number = f"EST-{millis}-{random.randint(0, 9999):04d}"
        self.certificate_issued_at = now
        self.certificate_expires_at = now + CERTIFICATE_VALIDITY
        self.verification_url = f"{frontend_url}/verify-estamp/{self.certificate_number}"
        return True

    def is_certificate_valid(self, now=None) -> bool:
        now = now or datetime.utcnow()
        return (
            self.status in (EStampStatus.STAMPED, EStampStatus.COMPLETED)
            and self.certificate_expires_at is not None
            and self.certificate_expires_at > now
        )

    def days_until_expiry(self, now=None) -> int:
        if not self.certificate_expires_at:
            return 0
        now = now or datetime.utcnow()
        remaining = (self.certificate_expires_at - now).total_seconds() / 86400
        return max(0, math.ceil(remaining))

# =====================================================
# PAYMENTS
# =====================================================

class Payment(Base):
    __tablename__ = "payments"

    id = Column(String(36), primary_key=True, default=new_id)
    user_id = Column(String(36), ForeignKey("users.id"), nullable=False, index=True)
    type = Column(Enum(PaymentType), nullable=False)
    related_id = Column(String(36), nullable=False, index=True)
    amount = Column(Integer, nullable=False)
    currency = Column(String(3), default="INR")
    status = Column(Enum(PaymentStatus), default=PaymentStatus.PENDING, index=True)
    payment_method = Column(String(30), default="razorpay")
    gateway_order_id = Column(String(100), unique=True, index=True)
    gateway_payment_id = Column(String(100))
    gateway_signature = Column(String(256))

    consultation_fee = Column(Integer, default=0)
    platform_fee = Column(Integer, default=0)
    taxes = Column(Integer, default=0)

    refund_id = Column(String(100))
    refund_amount = Column(Integer)
    refund_reason = Column(Text)
    refund_status = Column(Enum(RefundStatus))
    refund_date = Column(DateTime)

    failure_reason = Column(Text)
    retry_count = Column(Integer, default=0)
    max_retries = Column(Integer, default=3)
    processed_at = Column(DateTime)
    row_version = Column(Integer, nullable=False)
    created_at = Column(DateTime, default=func.now())
    updated_at = Column(DateTime, default=func.now(), onupdate=func.now())

    user = relationship("User")

    __mapper_args__ = {"version_id_col": row_version}

    def apply_breakdown(self) -> None:
        if self.type == PaymentType.APPOINTMENT:
            split = pricing.appointment_breakdown(self.amount)
            self.consultation_fee = split["consultation_fee"]
            self.platform_fee = split["platform_fee"]
        else:
            self.consultation_fee = self.amount
            self.platform_fee = 0

    def max_refund_amount(self) -> int:
        if self.status != PaymentStatus.COMPLETED:
            return 0
        return pricing.max_refund(self.amount)

    def can_retry(self) -> bool:
        return self.status == PaymentStatus.FAILED and (self.retry_count or 0) < (self.max_retries or 0)

    @validates("refund_amount")
    def _cap_refund(self, key, value):
        if value is None:
            return value
        return min(value, self.max_refund_amount())

# =====================================================
# CHATS
# =====================================================

class Chat(Base):
    __tablename__ = "chats"

    id = Column(String(36), primary_key=True, default=new_id)
    user_id = Column(String(36), ForeignKey("users.id"), nullable=False, index=True)
    lawyer_id = Column(String(36), ForeignKey("lawyers.id"), index=True)
    appointment_id = Column(String(36), ForeignKey("appointments.id"))
    type = Column(Enum(ChatType), default=ChatType.GENERAL, index=True)
    title = Column(String(200))
    status = Column(Enum(ChatStatus), default=ChatStatus.ACTIVE)
    model_used = Column(String(100))
    total_tokens = Column(Integer, default=0)
    total_cost = Column(Float, default=0.0)
    rating = Column(Integer)
    feedback = Column(Text)
    ended_at = Column(DateTime)
    last_message_at = Column(DateTime)
    created_at = Column(DateTime, default=func.now())
    updated_at = Column(DateTime, default=func.now(), onupdate=func.now())

    user = relationship("User")
    lawyer = relationship("Lawyer")
    messages = relationship(
        "ChatMessage",
        back_populates="chat",
        cascade="all, delete-orphan",
        order_by="ChatMessage.created_at",
    )

    def is_participant(self, user) -> bool:
        if self.user_id == user.id:
            return True
        return self.lawyer is not None and self.lawyer.user_id == user.id


class ChatMessage(Base):
    __tablename__ = "chat_messages"

    id = Column(String(36), primary_key=True, default=new_id)
    chat_id = Column(String(36), ForeignKey("chats.id"), nullable=False, index=True)
    sender_id = Column(String(36))
    sender_type = Column(Enum(SenderType), nullable=False)
    content = Column(Text, nullable=False)
    prompt_tokens = Column(Integer, default=0)
    completion_tokens = Column(Integer, default=0)
    is_error = Column(Boolean, default=False)
    created_at = Column(DateTime, default=datetime.utcnow)

    chat = relationship("Chat", back_populates="messages")

# =====================================================
# BLOGS
# =====================================================

class Blog(Base):
    __tablename__ = "blogs"

    id = Column(String(36), primary_key=True, default=new_id)
    title = Column(String(200), nullable=False)
    slug = Column(String(220), unique=True, nullable=False, index=True)
    excerpt = Column(String(500))
    content = Column(Text, nullable=False)
    author_id = Column(String(36), ForeignKey("users.id"), nullable=False)
    category = Column(String(100), index=True)
    tags = Column(JSON, default=list)
    featured_image = Column(String(500))
    status = Column(Enum(BlogStatus), default=BlogStatus.DRAFT, index=True)
    published_at = Column(DateTime)
    views = Column(Integer, default=0)
    likes = Column(Integer, default=0)
    meta_title = Column(String(200))
    meta_description = Column(String(300))
    created_at = Column(DateTime, default=func.now())
    updated_at = Column(DateTime, default=func.now(), onupdate=func.now())

    author = relationship("User")
    comments = relationship(
        "BlogComment",
        back_populates="blog",
        cascade="all, delete-orphan",
        order_by="BlogComment.created_at",
    )


class BlogComment(Base):
    __tablename__ = "blog_comments"

    id = Column(String(36), primary_key=True, default=new_id)
    blog_id = Column(String(36), ForeignKey("blogs.id"), nullable=False, index=True)
    user_id = Column(String(36), ForeignKey("users.id"), nullable=False)
    content = Column(Text, nullable=False)
    created_at = Column(DateTime, default=datetime.utcnow)

    blog = relationship("Blog", back_populates="comments")
    user = relationship("User")
