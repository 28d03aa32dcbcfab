from fastapi import status
from sqlalchemy.orm import Session
from typing import Tuple
import logging

from ..core.errors import AppError, BadRequest
from ..core.security import (
    verify_password, get_password_hash, create_access_token, UserRole
)
from ..models.user import User
from ..schemas.auth import UserLogin, UserRegister

logger = logging.getLogger(__name__)


class InvalidCredentials(AppError):
    status_code = status.HTTP_401_UNAUTHORIZED
    default_message = "Invalid credentials"


class AuthService:
    def __init__(self, db: Session):
        self.db = db

    def register_user(self, user_data: UserRegister) -> Tuple[User, str]:
        """Register a new patient and issue a token."""
        existing_user = self.db.query(User).filter(
            User.email == user_data.email
        ).first()

        if existing_user:
            raise BadRequest("User already exists")

        # Public registration only ever creates patients
        new_user = User(
            name=user_data.name,
            email=user_data.email,
            password_hash=get_password_hash(user_data.password),
            role=UserRole.PATIENT,
            phone=user_data.phone,
            address=user_data.address,
        )

        self.db.add(new_user)
        self.db.commit()
        self.db.refresh(new_user)

        logger.info(f"Registered user {new_user.id}")
        return new_user, create_access_token(new_user.id)

    def authenticate_user(self, login_data: UserLogin) -> Tuple[User, str]:
        """Check credentials and issue a token."""
        user = self.db.query(User).filter(
            User.email == login_data.email
        ).first()

        if not user or not verify_password(login_data.password, user.password_hash):
            logger.warning("Failed login attempt")
            raise InvalidCredentials()

        return user, create_access_token(user.id)
