from fastapi import APIRouter, Depends, status
from sqlalchemy.orm import Session

from ...core.database import get_db
from ...api.deps import get_current_user, rate_limit_check
from ...services.auth_service import AuthService
from ...schemas.auth import UserLogin, UserRegister, UserResponse
from ...models.user import User

router = APIRouter(prefix="/auth", tags=["Authentication"])

def _token_response(user: User, token: str) -> dict:
    return {
        "success": True,
        "token": token,
        "data": UserResponse.model_validate(user),
    }

@router.post("/register", status_code=status.HTTP_201_CREATED)
async def register(
    user_data: UserRegister,
    db: Session = Depends(get_db),
    _: None = Depends(rate_limit_check)
):
    """Register a new patient account."""
    auth_service = AuthService(db)
    user, token = auth_service.register_user(user_data)
    return _token_response(user, token)

@router.post("/login")
async def login(
    login_data: UserLogin,
    db: Session = Depends(get_db),
    _: None = Depends(rate_limit_check)
):
    """Authenticate user and return an access token."""
    auth_service = AuthService(db)
    user, token = auth_service.authenticate_user(login_data)
    return _token_response(user, token)

@router.get("/me")
async def get_current_user_info(
    current_user: User = Depends(get_current_user)
):
    """Get current user information."""
    return {"success": True, "data": UserResponse.model_validate(current_user)}

@router.get("/logout")
async def logout(
    current_user: User = Depends(get_current_user)
):
    """Tokens are stateless, so there is nothing to revoke server-side."""
    return {"success": True, "message": "User logged out successfully"}
