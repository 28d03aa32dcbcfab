from fastapi import Depends, Header, Request
from fastapi.security import HTTPAuthorizationCredentials
from sqlalchemy.orm import Session
from typing import List, Optional
import logging

from ..core.config import settings
from ..core.database import get_db, get_redis
from ..core.errors import (
    BadRequest, Forbidden, InvalidToken, RateLimited, Unauthenticated, UnknownSubject
)
from ..core.security import (
    security, verify_token, TokenVerificationError, UserRole, TokenPayload
)
from ..models.user import User

logger = logging.getLogger(__name__)

async def get_current_user_token(
    credentials: Optional[HTTPAuthorizationCredentials] = Depends(security)
) -> TokenPayload:
    """Extract and verify the bearer token from the Authorization header."""
    if credentials is None or not credentials.credentials:
        logger.warning("Rejected request without bearer token")
        raise Unauthenticated()

    try:
        return verify_token(credentials.credentials)
    except TokenVerificationError as exc:
        logger.warning(f"Rejected bearer token: {exc.reason}")
        raise InvalidToken()

async def get_current_user(
    token_payload: TokenPayload = Depends(get_current_user_token),
    db: Session = Depends(get_db)
) -> User:
    """Resolve the token's subject and apply the deployment's access rule."""
    try:
        user_id = int(token_payload.sub)
    except (TypeError, ValueError):
        raise InvalidToken()

    user = db.get(User, user_id)
    if not user:
        raise UnknownSubject()

    # NOTE: this shuts doctors and admins out entirely, so the doctor/admin
    # branches of the appointment service only run with PATIENT_ONLY_ACCESS off.
    if settings.PATIENT_ONLY_ACCESS and user.role != UserRole.PATIENT:
        logger.warning(f"Rejected non-patient user {user.id} ({user.role.value})")
        raise Forbidden("Only patients can access this application")

    return user

# Role-based access control dependencies
def require_role(allowed_roles: List[UserRole]):
    """Create a dependency that requires specific user roles."""
    async def role_checker(
        current_user: User = Depends(get_current_user)
    ) -> User:
        if current_user.role not in allowed_roles:
            raise Forbidden(
                f"User role {current_user.role.value} is not authorized to access this route"
            )
        return current_user

    return role_checker

async def get_expected_version(
    if_match: Optional[str] = Header(None)
) -> Optional[int]:
    """Parse an optional If-Match header carrying an appointment version."""
    if if_match is None:
        return None
    try:
        return int(if_match.strip().strip('"'))
    except ValueError:
        raise BadRequest("If-Match must be an appointment version number")

# Rate limiting dependency
async def rate_limit_check(
    request: Request,
    redis_client = Depends(get_redis)
) -> None:
    """Fixed-window rate limiting for the public authentication endpoints."""
    if not settings.RATE_LIMIT_ENABLED:
        return

    client_ip = request.client.host if request.client else "unknown"
    key = f"rate_limit:{request.url.path}:{client_ip}"

    current_requests = redis_client.incr(key)
    if current_requests == 1:
        redis_client.expire(key, settings.RATE_LIMIT_WINDOW_SECONDS)

    if current_requests > settings.RATE_LIMIT_REQUESTS:
        logger.warning(f"Rate limit exceeded for {client_ip} on {request.url.path}")
        raise RateLimited()
