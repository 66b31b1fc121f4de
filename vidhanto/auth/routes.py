from fastapi import APIRouter, BackgroundTasks, Depends, HTTPException, status
from sqlalchemy.orm import Session
from datetime import timedelta, datetime
import logging

from vidhanto.database import get_db
from vidhanto.models import User, UserRole, Lawyer
from vidhanto.auth.schemas import (
    UserCreate, UserLogin, RefreshRequest, VerifyEmailRequest,
    ForgotPasswordRequest, ResetPasswordRequest,
    AuthResponse, TokenPair, MeResponse, MessageResponse,
)
from vidhanto.auth.utils import (
    verify_password, get_password_hash, create_token_pair, verify_token,
    generate_token, hash_token,
)
from vidhanto.auth.dependencies import get_current_user, credentials_exception
from vidhanto.config import EMAIL_VERIFICATION_EXPIRE_HOURS, PASSWORD_RESET_EXPIRE_MINUTES
from vidhanto.services.email_service import EmailService, get_email_service

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/auth", tags=["Authentication"])

DEFAULT_LAWYER_LANGUAGES = ["English", "Hindi"]


@router.post("/register", response_model=AuthResponse, status_code=status.HTTP_201_CREATED)
def register_user(
    user_data: UserCreate,
    background_tasks: BackgroundTasks,
    db: Session = Depends(get_db),
    mailer: EmailService = Depends(get_email_service),
):
    email = user_data.email.lower()
    existing_user = db.query(User).filter(User.email == email).first()
    if existing_user:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail="User already exists with this email"
        )

    verification_token = generate_token()
    db_user = User(
        first_name=user_data.first_name,
        last_name=user_data.last_name,
        email=email,
        password_hash=get_password_hash(user_data.password),
        phone=user_data.phone,
        role=user_data.role,
        email_verification_token=hash_token(verification_token),
        email_verification_expires=datetime.utcnow() + timedelta(hours=EMAIL_VERIFICATION_EXPIRE_HOURS),
    )
    db.add(db_user)
    db.flush()

    if db_user.role == UserRole.LAWYER:
        # Placeholder licence until the lawyer completes KYC
        db.add(Lawyer(
            user_id=db_user.id,
            bar_license_number=f"TEMP-{db_user.id}",
            languages=list(DEFAULT_LAWYER_LANGUAGES),
            chat_fee=500,
            voice_fee=1000,
            video_fee=1500,
        ))

    db.commit()
    db.refresh(db_user)
    logger.info("User registered", extra={"user_id": db_user.id, "role": db_user.role.value})

    background_tasks.add_task(mailer.send_verification_email, db_user.email, db_user.first_name, verification_token)

    return {"user": db_user, **create_token_pair(db_user)}


@router.post("/login", response_model=AuthResponse)
def login_user(credentials: UserLogin, db: Session = Depends(get_db)):
    user = db.query(User).filter(User.email == credentials.email.lower()).first()

    if not user or not verify_password(credentials.password, user.password_hash):
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Invalid email or password",
            headers={"WWW-Authenticate": "Bearer"},
        )

    if not user.is_active:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Account is deactivated"
        )

    # Update last login
    user.last_login = datetime.utcnow()
    db.commit()
    db.refresh(user)

    return {"user": user, **create_token_pair(user)}


@router.post("/refresh", response_model=TokenPair)
def refresh_tokens(request: RefreshRequest, db: Session = Depends(get_db)):
    token_data = verify_token(
        request.refresh_token,
        credentials_exception("Invalid refresh token"),
        token_type="refresh",
    )
    user = db.query(User).filter(User.id == token_data.user_id).first()
    if not user or not user.is_active:
        raise credentials_exception("Invalid refresh token")
    return create_token_pair(user)


@router.get("/me", response_model=MeResponse)
def get_me(current_user: User = Depends(get_current_user)):
    lawyer = current_user.lawyer_profile if current_user.role == UserRole.LAWYER else None
    return {"user": current_user, "lawyer": lawyer}


@router.post("/verify-email", response_model=MessageResponse)
def verify_email(request: VerifyEmailRequest, db: Session = Depends(get_db)):
    user = db.query(User).filter(
        User.email_verification_token == hash_token(request.token),
        User.email_verification_expires > datetime.utcnow(),
    ).first()
    if not user:
        raise HTTPException(status_code=400, detail="Invalid or expired verification token")

    user.is_email_verified = True
    user.email_verification_token = None
    user.email_verification_expires = None
    db.commit()
    return {"message": "Email verified successfully"}


@router.post("/forgot-password", response_model=MessageResponse)
def forgot_password(
    request: ForgotPasswordRequest,
    background_tasks: BackgroundTasks,
    db: Session = Depends(get_db),
    mailer: EmailService = Depends(get_email_service),
):
    user = db.query(User).filter(User.email == request.email.lower()).first()
    if not user:
        raise HTTPException(status_code=404, detail="No user found with this email")

    reset_token = generate_token()
    user.password_reset_token = hash_token(reset_token)
    user.password_reset_expires = datetime.utcnow() + timedelta(minutes=PASSWORD_RESET_EXPIRE_MINUTES)
    db.commit()

    background_tasks.add_task(mailer.send_password_reset_email, user.email, user.first_name, reset_token)
    return {"message": "Password reset email sent"}


@router.post("/reset-password", response_model=MessageResponse)
def reset_password(request: ResetPasswordRequest, db: Session = Depends(get_db)):
    user = db.query(User).filter(
        User.password_reset_token == hash_token(request.token),
        User.password_reset_expires > datetime.utcnow(),
    ).first()
    if not user:
        raise HTTPException(status_code=400, detail="Invalid or expired reset token")

    user.password_hash = get_password_hash(request.password)
    user.password_reset_token = None
    user.password_reset_expires = None
    db.commit()
    logger.info("Password reset", extra={"user_id": user.id})
    return {"message": "Password reset successful"}


@router.post("/logout", response_model=MessageResponse)
def logout(current_user: User = Depends(get_current_user)):
    # Tokens are stateless; the client drops them.
    return {"message": "Logged out successfully"}
