from fastapi import APIRouter, BackgroundTasks, Depends, File, Form, HTTPException, Request, UploadFile, status
from sqlalchemy.orm import Session, selectinload
from sqlalchemy import desc
from typing import Optional
from datetime import datetime
import base64
import hmac
import logging
import secrets

from vidhanto.database import get_db
from vidhanto.models import (
    User, Document, ESignature, ESignatureSigner, ESignatureStatus, SignerStatus, SignatureType,
)
from vidhanto.esignature.schemas import (
    ESignatureCreate, ESignatureSign, ESignatureResponse, SignResult,
    ESignatureListResponse, SignatureBundle,
)
from vidhanto.auth.dependencies import get_current_user
from vidhanto.documents.routes import client_ip
from vidhanto.pagination import PageParams, paginate
from vidhanto.services.email_service import EmailService, get_email_service
from vidhanto.services.storage import read_upload, IMAGE_TYPES
from vidhanto.workflow import ESIGNATURE_WORKFLOW

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/esignature", tags=["E-Signature"])


def generate_signer_otp() -> str:
    return secrets.token_hex(6).upper()


def get_esignature_or_404(esignature_id: str, db: Session) -> ESignature:
    esignature = db.query(ESignature).options(
        selectinload(ESignature.signers),
        selectinload(ESignature.document),
    ).filter(ESignature.id == esignature_id).first()
    if not esignature:
        raise HTTPException(status_code=404, detail="E-signature request not found")
    return esignature


def get_created_esignature(esignature_id: str, user: User, db: Session) -> ESignature:
    esignature = get_esignature_or_404(esignature_id, db)
    if esignature.created_by != user.id:
        raise HTTPException(status_code=403, detail="Access denied")
    return esignature


def apply_signature(
    esignature: ESignature,
    email: str,
    otp: Optional[str],
    signature_type: SignatureType,
    signature_data: str,
    ip_address: Optional[str],
    db: Session,
) -> dict:
    signer = esignature.signer_by_email(email)
    if signer is None:
        raise HTTPException(status_code=404, detail="Signer not found")
    if signer.status in (SignerStatus.SIGNED, SignerStatus.COMPLETED):
        raise HTTPException(status_code=400, detail="Document already signed by this signer")
    if esignature.require_otp:
        if not otp or not signer.otp or not hmac.compare_digest(signer.otp, otp.strip().upper()):
            raise HTTPException(status_code=400, detail="Invalid OTP")

    ESIGNATURE_WORKFLOW.apply(esignature, "sign")
    now = datetime.utcnow()
    signer.status = SignerStatus.SIGNED
    signer.otp_verified = True
    signer.signature_type = signature_type
    signer.signature_data = signature_data
    signer.signed_at = now
    signer.ip_address = ip_address
    esignature.add_audit("signed", signer.email, {"signer": signer.name}, ip_address=ip_address)

    if esignature.all_signed():
        ESIGNATURE_WORKFLOW.apply(esignature, "complete")
        esignature.completed_at = now
        esignature.add_audit("completed", None, {"signers": len(esignature.signers)})

    db.commit()
    esignature = get_esignature_or_404(esignature.id, db)
    return {
        "esignature": esignature,
        "all_signers_signed": esignature.all_signed(),
        "completion_percentage": esignature.completion_percentage(),
    }


@router.post("/create", response_model=ESignatureResponse, status_code=status.HTTP_201_CREATED)
def create_esignature(
    request_data: ESignatureCreate,
    current_user: User = Depends(get_current_user),
    db: Session = Depends(get_db)
):
    document = db.query(Document).filter(
        Document.id == request_data.document_id,
        Document.user_id == current_user.id,
    ).first()
    if not document:
        raise HTTPException(status_code=404, detail="Document not found")

    esignature = ESignature(
        document_id=document.id,
        created_by=current_user.id,
        title=request_data.title or document.title,
        message=request_data.message,
        **request_data.settings.dict(),
    )
    for index, signer in enumerate(request_data.signers, start=1):
        esignature.signers.append(ESignatureSigner(
            name=signer.name,
            email=signer.email.lower(),
            phone=signer.phone,
            order=signer.order or index,
            otp=generate_signer_otp(),
        ))
    esignature.add_audit("created", current_user.id, {"signers": len(request_data.signers)})

    db.add(esignature)
    db.commit()
    return get_esignature_or_404(esignature.id, db)


@router.get("/my-requests", response_model=ESignatureListResponse)
def my_requests(
    page: PageParams = Depends(),
    current_user: User = Depends(get_current_user),
    db: Session = Depends(get_db)
):
    query = db.query(ESignature).options(selectinload(ESignature.signers)).filter(
        ESignature.created_by == current_user.id
    ).order_by(desc(ESignature.created_at))
    result = paginate(query, page)
    return {
        "requests": result["items"],
        "total": result["total"],
        "page": result["page"],
        "pages": result["pages"],
    }


@router.get("/{esignature_id}", response_model=ESignatureResponse)
def get_esignature(
    esignature_id: str,
    current_user: User = Depends(get_current_user),
    db: Session = Depends(get_db)
):
    esignature = get_esignature_or_404(esignature_id, db)
    if esignature.created_by != current_user.id and esignature.signer_by_email(current_user.email) is None:
        raise HTTPException(status_code=403, detail="Access denied")
    return esignature


@router.post("/{esignature_id}/send", response_model=ESignatureResponse)
def send_for_signing(
    esignature_id: str,
    background_tasks: BackgroundTasks,
    current_user: User = Depends(get_current_user),
    db: Session = Depends(get_db),
    mailer: EmailService = Depends(get_email_service),
):
    esignature = get_created_esignature(esignature_id, current_user, db)
    ESIGNATURE_WORKFLOW.apply(esignature, "send")

    now = datetime.utcnow()
    notified = []
    for signer in esignature.signers:
        if signer.status not in (SignerStatus.PENDING, SignerStatus.OTP_SENT):
            continue
        signer.status = SignerStatus.OTP_SENT
        signer.otp_sent_at = now
        notified.append((signer.email, signer.name, signer.otp))
    esignature.add_audit("sent", current_user.id, {"recipients": len(notified)})
    db.commit()

    for email, name, otp in notified:
        background_tasks.add_task(
            mailer.send_signing_request, email, name, esignature.title, otp, esignature.id, esignature.message,
        )
    logger.info("Signing request sent", extra={"esignature_id": esignature.id, "recipients": len(notified)})
    return get_esignature_or_404(esignature.id, db)


@router.post("/{esignature_id}/sign", response_model=SignResult)
def sign_esignature(
    esignature_id: str,
    sign_data: ESignatureSign,
    request: Request,
    db: Session = Depends(get_db)
):
    """Public: signers authenticate with the OTP they were emailed."""
    esignature = get_esignature_or_404(esignature_id, db)
    return apply_signature(
        esignature,
        sign_data.email,
        sign_data.otp,
        sign_data.signature_type,
        sign_data.signature_data,
        client_ip(request),
        db,
    )


@router.post("/{esignature_id}/upload-signature", response_model=SignResult)
async def upload_signature(
    esignature_id: str,
    request: Request,
    email: str = Form(...),
    otp: Optional[str] = Form(None),
    signature: UploadFile = File(...),
    db: Session = Depends(get_db)
):
    esignature = get_esignature_or_404(esignature_id, db)
    content = await read_upload(signature, content_types=IMAGE_TYPES)
    data_uri = f"data:{signature.content_type};base64,{base64.b64encode(content).decode('ascii')}"
    return apply_signature(
        esignature, email, otp, SignatureType.UPLOAD, data_uri, client_ip(request), db,
    )


@router.post("/{esignature_id}/cancel", response_model=ESignatureResponse)
def cancel_esignature(
    esignature_id: str,
    current_user: User = Depends(get_current_user),
    db: Session = Depends(get_db)
):
    esignature = get_created_esignature(esignature_id, current_user, db)
    ESIGNATURE_WORKFLOW.apply(esignature, "cancel")
    esignature.add_audit("cancelled", current_user.id)
    db.commit()
    return get_esignature_or_404(esignature.id, db)


@router.get("/{esignature_id}/download", response_model=SignatureBundle)
def download_signed(
    esignature_id: str,
    current_user: User = Depends(get_current_user),
    db: Session = Depends(get_db)
):
    esignature = get_created_esignature(esignature_id, current_user, db)
    if esignature.status != ESignatureStatus.COMPLETED:
        raise HTTPException(status_code=400, detail="Document is not fully signed yet")

    esignature.add_audit("downloaded", current_user.id)
    db.commit()
    esignature = get_esignature_or_404(esignature.id, db)
    return {
        "esignature_id": esignature.id,
        "document_id": esignature.document_id,
        "document_title": esignature.document.title,
        "completed_at": esignature.completed_at,
        "signers": esignature.signers,
    }
