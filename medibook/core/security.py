from datetime import datetime, timedelta
from typing import Optional
from jose import ExpiredSignatureError, JWTError, jwt
from passlib.context import CryptContext
from fastapi.security import HTTPBearer
from pydantic import BaseModel
from enum import Enum

from .config import settings

# Password hashing
pwd_context = CryptContext(schemes=["bcrypt"], deprecated="auto")

# Missing credentials are reported by the auth gate itself
security = HTTPBearer(auto_error=False)

class UserRole(str, Enum):
    ADMIN = "admin"
    DOCTOR = "doctor"
    PATIENT = "patient"

class TokenPayload(BaseModel):
    sub: Optional[str] = None
    exp: Optional[int] = None

class TokenVerificationError(Exception):
    """Raised when a bearer token cannot be trusted."""

    def __init__(self, reason: str):
        super().__init__(reason)
        self.reason = reason

# Password utilities
def verify_password(plain_password: str, hashed_password: str) -> bool:
    """Verify a plain password against its hash."""
    return pwd_context.verify(plain_password, hashed_password)

def get_password_hash(password: str) -> str:
    """Generate password hash."""
    return pwd_context.hash(password)

# JWT utilities
def create_access_token(
    subject: int,
    expires_delta: Optional[timedelta] = None
) -> str:
    """Create a signed token embedding the user id."""
    if not settings.SECRET_KEY:
        raise RuntimeError("SECRET_KEY is not configured")

    if expires_delta is None:
        expires_delta = timedelta(days=settings.JWT_EXPIRE_DAYS)

    to_encode = {
        "sub": str(subject),
        "exp": datetime.utcnow() + expires_delta,
    }

    return jwt.encode(
        to_encode,
        settings.SECRET_KEY,
        algorithm=settings.ALGORITHM
    )

def verify_token(token: str) -> TokenPayload:
    """Verify and decode a token, raising TokenVerificationError on failure."""
    if not settings.SECRET_KEY:
        raise RuntimeError("SECRET_KEY is not configured")

    try:
        payload = jwt.decode(
            token,
            settings.SECRET_KEY,
            algorithms=[settings.ALGORITHM]
        )
    except ExpiredSignatureError:
        raise TokenVerificationError("Token has expired")
    except JWTError:
        raise TokenVerificationError("Token signature could not be verified")

    return TokenPayload(**payload)
