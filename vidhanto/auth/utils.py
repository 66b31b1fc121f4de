from datetime import datetime, timedelta
import hashlib
import secrets
from typing import Optional

from fastapi import HTTPException, status
from jose import ExpiredSignatureError, JWTError, jwt
from passlib.hash import pbkdf2_sha256 as hasher

from vidhanto.auth.schemas import TokenData
from vidhanto.config import (
    JWT_SECRET,
    JWT_REFRESH_SECRET,
    JWT_ALGORITHM,
    ACCESS_TOKEN_EXPIRE_MINUTES,
    REFRESH_TOKEN_EXPIRE_MINUTES,
)


def get_password_hash(password: str) -> str:
    return hasher.hash(password)


def verify_password(plain_password: str, password_hash: str) -> bool:
    try:
        return hasher.verify(plain_password, password_hash)
    except ValueError:
        # malformed or foreign hash
        return False


def _encode(data: dict, secret: str, token_type: str, expires_delta: timedelta) -> str:
    to_encode = data.copy()
    now = datetime.utcnow()
    to_encode.update({"iat": now, "exp": now + expires_delta, "type": token_type})
    return jwt.encode(to_encode, secret, algorithm=JWT_ALGORITHM)


def create_access_token(data: dict, expires_delta: Optional[timedelta] = None) -> str:
    return _encode(
        data,
        JWT_SECRET,
        "access",
        expires_delta or timedelta(minutes=ACCESS_TOKEN_EXPIRE_MINUTES),
    )


def create_refresh_token(data: dict, expires_delta: Optional[timedelta] = None) -> str:
    return _encode(
        data,
        JWT_REFRESH_SECRET,
        "refresh",
        expires_delta or timedelta(minutes=REFRESH_TOKEN_EXPIRE_MINUTES),
    )


def create_token_pair(user) -> dict:
    claims = {"sub": user.id, "role": user.role.value}
    return {
        "access_token": create_access_token(claims),
        "refresh_token": create_refresh_token(claims),
        "token_type": "bearer",
    }


def verify_token(token: str, credentials_exception: HTTPException, token_type: str = "access") -> TokenData:
    secret = JWT_SECRET if token_type == "access" else JWT_REFRESH_SECRET
    try:
        payload = jwt.decode(token, secret, algorithms=[JWT_ALGORITHM])
    except ExpiredSignatureError:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Token expired",
            headers={"WWW-Authenticate": "Bearer"},
        )
    except JWTError:
        raise credentials_exception

    user_id = payload.get("sub")
    if user_id is None or payload.get("type") != token_type:
        raise credentials_exception
    return TokenData(user_id=user_id, role=payload.get("role"))


def generate_token() -> str:
    """Random URL-safe token for email links."""
    return secrets.token_urlsafe(32)


def hash_token(token: str) -> str:
    return hashlib.sha256(token.encode("utf-8")).hexdigest()
