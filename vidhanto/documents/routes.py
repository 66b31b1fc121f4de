from fastapi import APIRouter, BackgroundTasks, Depends, File, HTTPException, Request, UploadFile, status
from sqlalchemy.orm import Session, selectinload
from sqlalchemy import desc, or_
from typing import Optional, List
from datetime import datetime, timedelta
import hmac
import logging
import re
import secrets

from vidhanto.database import get_db
from vidhanto.models import (
    User, UserRole, Lawyer, Document, DocumentSignature, DocumentStatus, DocumentType, SignatureStatus,
)
from vidhanto.documents.schemas import (
    DocumentCreate, DocumentUpdate, ReviewSubmission, LawyerReview,
    SignOtpRequest, SignRequest, DocumentResponse, DocumentListResponse, DocumentTemplate,
)
from vidhanto.auth.dependencies import get_current_user, require_verified_lawyer
from vidhanto.auth.utils import hash_token
from vidhanto.pagination import PageParams, paginate
from vidhanto.services.email_service import EmailService, get_email_service
from vidhanto.services.storage import StorageService, get_storage_service, read_upload, DOCUMENT_EXTENSIONS
from vidhanto.workflow import DOCUMENT_WORKFLOW

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/documents", tags=["Documents"])

OTP_PATTERN = re.compile(r"^\d{6}$")
SIGN_OTP_TTL = timedelta(minutes=10)

REVIEW_OUTCOMES = {
    "approved": ("approve", "approved"),
    "rejected": ("reject", "rejected"),
    "needs_revision": ("request_revision", "revision_requested"),
}

TEMPLATES = [
    {
        "id": "nda-template",
        "name": "Non-Disclosure Agreement",
        "type": DocumentType.NDA,
        "description": "Standard NDA for business discussions",
        "fields": ["company_name", "purpose", "duration", "penalty_clause"],
        "base_price": 999,
    },
    {
        "id": "employment-agreement",
        "name": "Employment Agreement",
        "type": DocumentType.AGREEMENT,
        "description": "Employment contract covering role, pay and notice period",
        "fields": ["employee_name", "employer_name", "position", "salary", "start_date"],
        "base_price": 1499,
    },
    {
        "id": "rental-agreement",
        "name": "Rental Agreement",
        "type": DocumentType.RENT_AGREEMENT,
        "description": "Residential rental agreement",
        "fields": ["landlord_name", "tenant_name", "property_address", "rent_amount", "duration"],
        "base_price": 799,
    },
    {
        "id": "legal-notice",
        "name": "Legal Notice",
        "type": DocumentType.LEGAL_NOTICE,
        "description": "General purpose legal notice",
        "fields": ["recipient_name", "notice_type", "details", "compliance_period"],
        "base_price": 1999,
    },
    {
        "id": "affidavit",
        "name": "Affidavit",
        "type": DocumentType.AFFIDAVIT,
        "description": "General affidavit",
        "fields": ["deponent_name", "purpose", "facts", "oath_statement"],
        "base_price": 499,
    },
]


def client_ip(request: Request) -> Optional[str]:
    forwarded = request.headers.get("x-forwarded-for")
    if forwarded:
        return forwarded.split(",")[0].strip()
    return request.client.host if request.client else None


def get_document_or_404(document_id: str, db: Session) -> Document:
    document = db.query(Document).options(
        selectinload(Document.signatures),
        selectinload(Document.lawyer),
    ).filter(Document.id == document_id).first()
    if not document:
        raise HTTPException(status_code=404, detail="Document not found")
    return document


def get_owned_document(document_id: str, user: User, db: Session) -> Document:
    document = get_document_or_404(document_id, db)
    if document.user_id != user.id:
        raise HTTPException(status_code=403, detail="Access denied")
    return document


def is_assigned_lawyer(document: Document, user: User) -> bool:
    return document.lawyer is not None and document.lawyer.user_id == user.id


@router.get("/templates", response_model=List[DocumentTemplate])
def list_templates(type: Optional[DocumentType] = None):
    if type:
        return [t for t in TEMPLATES if t["type"] == type]
    return TEMPLATES


@router.post("/", response_model=DocumentResponse, status_code=status.HTTP_201_CREATED)
def create_document(
    document_data: DocumentCreate,
    current_user: User = Depends(get_current_user),
    db: Session = Depends(get_db)
):
    data = document_data.dict(exclude={"is_draft"})
    document = Document(
        user_id=current_user.id,
        status=DocumentStatus.DRAFT if document_data.is_draft else DocumentStatus.PENDING_REVIEW,
        files=[],
        revisions=[],
        **data,
    )
    document.add_audit("created", current_user.id)
    db.add(document)
    db.commit()
    return get_document_or_404(document.id, db)


@router.get("/", response_model=DocumentListResponse)
def list_documents(
    status: Optional[DocumentStatus] = None,
    type: Optional[DocumentType] = None,
    page: PageParams = Depends(),
    current_user: User = Depends(get_current_user),
    db: Session = Depends(get_db)
):
    query = db.query(Document).options(selectinload(Document.signatures))

    if current_user.role != UserRole.ADMIN:
        lawyer_ids = [l.id for l in db.query(Lawyer.id).filter(Lawyer.user_id == current_user.id)]
        query = query.filter(or_(Document.user_id == current_user.id, Document.lawyer_id.in_(lawyer_ids)))
    if status:
        query = query.filter(Document.status == status)
    if type:
        query = query.filter(Document.type == type)

    result = paginate(query.order_by(desc(Document.created_at)), page)
    return {
        "documents": result["items"],
        "total": result["total"],
        "page": result["page"],
        "pages": result["pages"],
    }


@router.get("/{document_id}", response_model=DocumentResponse)
def get_document(
    document_id: str,
    current_user: User = Depends(get_current_user),
    db: Session = Depends(get_db)
):
    document = get_document_or_404(document_id, db)
    if not (
        current_user.role == UserRole.ADMIN
        or document.user_id == current_user.id
        or is_assigned_lawyer(document, current_user)
    ):
        raise HTTPException(status_code=403, detail="Access denied")
    return document


@router.put("/{document_id}", response_model=DocumentResponse)
def update_document(
    document_id: str,
    document_update: DocumentUpdate,
    current_user: User = Depends(get_current_user),
    db: Session = Depends(get_db)
):
    document = get_owned_document(document_id, current_user, db)
    DOCUMENT_WORKFLOW.apply(document, "update")

    updates = document_update.dict(exclude_unset=True)
    if "content" in updates and updates["content"] != document.content:
        document.version = (document.version or 1) + 1
    for field, value in updates.items():
        setattr(document, field, value)

    document.add_audit("updated", current_user.id, {"fields": sorted(updates)})
    db.commit()
    return get_document_or_404(document.id, db)


@router.post("/{document_id}/submit-review", response_model=DocumentResponse)
def submit_for_review(
    document_id: str,
    submission: ReviewSubmission,
    current_user: User = Depends(get_current_user),
    db: Session = Depends(get_db)
):
    document = get_owned_document(document_id, current_user, db)

    lawyer = db.query(Lawyer).filter(
        Lawyer.id == submission.lawyer_id,
        Lawyer.is_verified.is_(True),
    ).first()
    if not lawyer:
        raise HTTPException(status_code=404, detail="Lawyer not found or not verified")

    DOCUMENT_WORKFLOW.apply(document, "submit_for_review")
    document.lawyer_id = lawyer.id
    document.review_instructions = submission.instructions
    document.review_urgency = submission.urgency
    document.review_submitted_at = datetime.utcnow()
    document.add_audit("submitted", current_user.id, {"lawyer_id": lawyer.id})
    db.commit()
    return get_document_or_404(document.id, db)


@router.put("/{document_id}/review", response_model=DocumentResponse)
def review_document(
    document_id: str,
    review: LawyerReview,
    lawyer: Lawyer = Depends(require_verified_lawyer()),
    db: Session = Depends(get_db)
):
    document = get_document_or_404(document_id, db)
    if document.lawyer_id != lawyer.id:
        raise HTTPException(status_code=403, detail="Only the assigned lawyer can review this document")

    action, audit_action = REVIEW_OUTCOMES[review.status]
    DOCUMENT_WORKFLOW.apply(document, action)
    document.reviewed_by = lawyer.user_id
    document.reviewed_at = datetime.utcnow()
    document.review_comments = review.comments
    if review.revisions:
        document.revisions = list(document.revisions or []) + review.revisions
    if review.additional_charges is not None:
        document.additional_charges = review.additional_charges

    document.add_audit(audit_action, lawyer.user_id, {"comments": review.comments} if review.comments else None)
    db.commit()
    return get_document_or_404(document.id, db)


@router.post("/{document_id}/sign/request-otp")
def request_signing_otp(
    document_id: str,
    otp_request: SignOtpRequest,
    background_tasks: BackgroundTasks,
    current_user: User = Depends(get_current_user),
    db: Session = Depends(get_db),
    mailer: EmailService = Depends(get_email_service),
):
    document = get_owned_document(document_id, current_user, db)
    if not DOCUMENT_WORKFLOW.can(document.status, "sign"):
        raise HTTPException(status_code=400, detail=f"Document cannot be signed in status '{document.status.value}'")

    email = otp_request.signer_email.lower()
    signature = next(
        (s for s in document.signatures if s.signer_email == email and s.status == SignatureStatus.PENDING),
        None,
    )
    if signature is None:
        if any(s.signer_email == email and s.status == SignatureStatus.SIGNED for s in document.signatures):
            raise HTTPException(status_code=400, detail="Signer has already signed this document")
        signature = DocumentSignature(signer_email=email)
        document.signatures.append(signature)

    otp = f"{secrets.randbelow(10 ** 6):06d}"
    signature.signer_name = otp_request.signer_name
    signature.signer_type = otp_request.signer_type
    signature.otp_hash = hash_token(otp)
    signature.otp_expires_at = datetime.utcnow() + SIGN_OTP_TTL
    db.commit()

    background_tasks.add_task(mailer.send_otp_email, email, otp_request.signer_name, otp, f"sign '{document.title}'")
    return {"message": "OTP sent to signer", "expires_in_seconds": int(SIGN_OTP_TTL.total_seconds())}


@router.post("/{document_id}/sign", response_model=DocumentResponse)
def sign_document(
    document_id: str,
    sign_request: SignRequest,
    request: Request,
    current_user: User = Depends(get_current_user),
    db: Session = Depends(get_db)
):
    if not OTP_PATTERN.match(sign_request.otp):
        raise HTTPException(status_code=400, detail="Invalid OTP format")

    document = get_owned_document(document_id, current_user, db)
    email = sign_request.signer_email.lower()
    signature = next(
        (s for s in document.signatures if s.signer_email == email and s.status == SignatureStatus.PENDING),
        None,
    )
    if signature is None or not signature.otp_hash:
        raise HTTPException(status_code=400, detail="No OTP requested for this signer")
    if signature.otp_expires_at is None or signature.otp_expires_at < datetime.utcnow():
        raise HTTPException(status_code=400, detail="OTP has expired")
    if not hmac.compare_digest(signature.otp_hash, hash_token(sign_request.otp)):
        raise HTTPException(status_code=400, detail="Invalid OTP")

    DOCUMENT_WORKFLOW.apply(document, "sign")
    now = datetime.utcnow()
    signature.status = SignatureStatus.SIGNED
    signature.signed_at = now
    signature.otp_hash = None
    signature.otp_expires_at = None
    signature.ip_address = client_ip(request)
    signature.user_agent = (request.headers.get("user-agent") or "")[:500]
    document.signed_at = now
    document.add_audit("signed", current_user.id, {"signer_email": email}, ip_address=signature.ip_address)
    db.commit()
    logger.info("Document signed", extra={"document_id": document.id})
    return get_document_or_404(document.id, db)


@router.post("/{document_id}/files", response_model=DocumentResponse)
async def upload_document_file(
    document_id: str,
    file: UploadFile = File(...),
    current_user: User = Depends(get_current_user),
    db: Session = Depends(get_db),
    storage: StorageService = Depends(get_storage_service),
):
    document = get_owned_document(document_id, current_user, db)
    if document.status in (DocumentStatus.COMPLETED, DocumentStatus.CANCELLED):
        raise HTTPException(status_code=400, detail="Files cannot be added to a finalized document")

    content = await read_upload(file, extensions=DOCUMENT_EXTENSIONS)
    url = await storage.save(content, "documents", file.filename, file.content_type)
    entry = {
        "name": file.filename,
        "url": url,
        "size": len(content),
        "content_type": file.content_type,
        "uploaded_at": datetime.utcnow().isoformat(),
    }
    document.files = list(document.files or []) + [entry]
    document.add_audit("updated", current_user.id, {"file": file.filename})
    db.commit()
    return get_document_or_404(document.id, db)


def _withdraw(document: Document, user: User, db: Session) -> Document:
    if document.status == DocumentStatus.COMPLETED or document.has_signed_signatures():
        raise HTTPException(status_code=400, detail="Cannot delete a signed or finalized document")
    DOCUMENT_WORKFLOW.apply(document, "cancel")
    document.add_audit("cancelled", user.id)
    db.commit()
    return get_document_or_404(document.id, db)


@router.post("/{document_id}/cancel", response_model=DocumentResponse)
def cancel_document(
    document_id: str,
    current_user: User = Depends(get_current_user),
    db: Session = Depends(get_db)
):
    return _withdraw(get_owned_document(document_id, current_user, db), current_user, db)


@router.delete("/{document_id}", response_model=DocumentResponse)
def delete_document(
    document_id: str,
    current_user: User = Depends(get_current_user),
    db: Session = Depends(get_db)
):
    """Withdraw a document. Rows are kept for the audit trail."""
    return _withdraw(get_owned_document(document_id, current_user, db), current_user, db)
