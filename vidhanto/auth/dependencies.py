from fastapi import Depends, HTTPException, status
from fastapi.security import HTTPBearer, HTTPAuthorizationCredentials
from sqlalchemy.orm import Session
from vidhanto.database import get_db
from vidhanto.models import User, UserRole, Lawyer, KycStatus
from vidhanto.auth.utils import verify_token

bearer_scheme = HTTPBearer(auto_error=False)


def credentials_exception(detail: str = "Could not validate credentials") -> HTTPException:
    return HTTPException(
        status_code=status.HTTP_401_UNAUTHORIZED,
        detail=detail,
        headers={"WWW-Authenticate": "Bearer"},
    )


def user_from_token(token: str, db: Session) -> User:
    token_data = verify_token(token, credentials_exception())
    user = db.query(User).filter(User.id == token_data.user_id).first()
    if user is None:
        raise credentials_exception()
    if not user.is_active:
        raise credentials_exception("Account is deactivated")
    return user


def get_current_user(
    credentials: HTTPAuthorizationCredentials = Depends(bearer_scheme),
    db: Session = Depends(get_db)
):
    if credentials is None:
        raise credentials_exception("Access denied. No token provided.")
    return user_from_token(credentials.credentials, db)


def require_role(allowed_roles: list[UserRole]):
    def role_checker(current_user: User = Depends(get_current_user)):
        if current_user.role not in allowed_roles:
            raise HTTPException(
                status_code=status.HTTP_403_FORBIDDEN,
                detail="Insufficient permissions"
            )
        return current_user
    return role_checker


# Convenience wrappers
def require_admin():
    return require_role([UserRole.ADMIN])


def require_lawyer():
    return require_role([UserRole.LAWYER])


def require_user():
    return require_role([UserRole.USER])


def get_current_lawyer(
    current_user: User = Depends(require_lawyer()),
    db: Session = Depends(get_db)
) -> Lawyer:
    lawyer = db.query(Lawyer).filter(Lawyer.user_id == current_user.id).first()
    if not lawyer:
        raise HTTPException(status_code=404, detail="Lawyer profile not found")
    return lawyer


def require_verified_lawyer():
    def verified_checker(lawyer: Lawyer = Depends(get_current_lawyer)):
        if lawyer.kyc_status != KycStatus.VERIFIED:
            raise HTTPException(
                status_code=status.HTTP_403_FORBIDDEN,
                detail="Lawyer KYC verification required"
            )
        return lawyer
    return verified_checker


def is_owner_or_admin(user: User, owner_id: str) -> bool:
    return user.role == UserRole.ADMIN or user.id == owner_id
