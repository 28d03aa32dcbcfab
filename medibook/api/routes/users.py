from fastapi import APIRouter, Depends, Query
from sqlalchemy.orm import Session

from ...core.database import get_db
from ...core.errors import NotFound
from ...core.security import UserRole
from ...api.deps import require_role
from ...schemas.auth import UserResponse
from ...models.user import User

router = APIRouter(prefix="/users", tags=["Users"])

@router.get("", dependencies=[Depends(require_role([UserRole.ADMIN]))])
async def list_users(
    skip: int = Query(0, ge=0),
    limit: int = Query(10, ge=1, le=100),
    db: Session = Depends(get_db)
):
    """List all users (admin only)."""
    users = db.query(User).order_by(User.id).offset(skip).limit(limit).all()
    return {
        "success": True,
        "count": len(users),
        "data": [UserResponse.model_validate(user) for user in users],
    }

@router.get("/{user_id}", dependencies=[Depends(require_role([UserRole.ADMIN]))])
async def get_user(
    user_id: int,
    db: Session = Depends(get_db)
):
    """Get a single user (admin only)."""
    user = db.get(User, user_id)
    if not user:
        raise NotFound(f"User not found with id of {user_id}")
    return {"success": True, "data": UserResponse.model_validate(user)}
