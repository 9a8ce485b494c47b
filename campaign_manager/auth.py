"""
Password hashing, JWT issuing/validation and the FastAPI dependency that
resolves the caller from a bearer token.
"""
import logging
import uuid
from datetime import datetime, timedelta, timezone
from typing import Any, Dict

import bcrypt
import jwt
from fastapi import Depends, HTTPException, Security, status
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer
from sqlalchemy import select
from sqlalchemy.orm import Session

from campaign_manager.config import settings
from campaign_manager.database import get_db
from campaign_manager.models import User, UserRole
from campaign_manager.schema import AuthResponse, LoginRequest, RegisterRequest
from campaign_manager.service import EmailAlreadyRegistered, InvalidCredentials

log = logging.getLogger(__name__)

security = HTTPBearer(auto_error=False)


def hash_password(password: str) -> str:
    salt = bcrypt.gensalt(rounds=settings.BCRYPT_ROUNDS)
    return bcrypt.hashpw(password.encode("utf-8"), salt).decode("utf-8")


def verify_password(password: str, password_hash: str) -> bool:
    try:
        return bcrypt.checkpw(password.encode("utf-8"), password_hash.encode("utf-8"))
    except ValueError:
        # malformed stored hash or over-long password
        return False


class JWTAuth:
    """JWT issuing and validation"""

    @staticmethod
    def create_token(user: User) -> str:
        now = datetime.now(timezone.utc)
        payload = {
            "sub": str(user.id),
            "email": user.email,
            "role": user.role.value,
            "iat": now,
            "exp": now + timedelta(minutes=settings.JWT_ACCESS_TOKEN_LIFETIME_MINUTES),
        }
        return jwt.encode(payload, settings.JWT_SECRET_KEY, algorithm=settings.JWT_ALGORITHM)

    @staticmethod
    def decode_token(token: str) -> Dict[str, Any]:
        """
        Decode and validate a JWT.

        Raises:
            HTTPException: 401 if the token is invalid or expired
        """
        try:
            return jwt.decode(
                token,
                settings.JWT_SECRET_KEY,
                algorithms=[settings.JWT_ALGORITHM],
                options={"require": ["exp", "sub"]},
            )
        except jwt.ExpiredSignatureError:
            raise _unauthorized("Token has expired")
        except jwt.InvalidTokenError:
            raise _unauthorized("Invalid token")

    @staticmethod
    def get_user_id(payload: Dict[str, Any]) -> uuid.UUID:
        try:
            return uuid.UUID(str(payload["sub"]))
        except (KeyError, ValueError):
            raise _unauthorized("Invalid token")


def _unauthorized(detail: str) -> HTTPException:
    return HTTPException(
        status_code=status.HTTP_401_UNAUTHORIZED,
        detail=detail,
        headers={"WWW-Authenticate": "Bearer"},
    )


class AuthService:
    def __init__(self, db: Session):
        self.db = db

    def _auth_response(self, user: User) -> AuthResponse:
        return AuthResponse(
            token=JWTAuth.create_token(user),
            user_id=user.id,
            email=user.email,
            name=user.name,
            role=user.role.value,
        )

    def get_user_by_email(self, email: str) -> User | None:
        return self.db.scalars(select(User).where(User.email == email.lower())).first()

    def register(self, request: RegisterRequest) -> AuthResponse:
        email = request.email.lower()
        log.info("Attempting to register user with email: %s", email)

        if self.get_user_by_email(email):
            log.warning("Registration failed - email already exists: %s", email)
            raise EmailAlreadyRegistered(f"Email already exists: {email}")

        user = User(
            email=email,
            password_hash=hash_password(request.password),
            name=request.name,
            role=UserRole.USER,
        )
        self.db.add(user)
        self.db.commit()
        self.db.refresh(user)

        log.info("User registered with id %s and email %s", user.id, user.email)
        return self._auth_response(user)

    def login(self, request: LoginRequest) -> AuthResponse:
        log.info("Attempting to authenticate user with email: %s", request.email)

        user = self.get_user_by_email(request.email)
        if not user or not verify_password(request.password, user.password_hash):
            log.warning("Authentication failed for email: %s", request.email)
            raise InvalidCredentials("Invalid email or password")

        return self._auth_response(user)


# ────────────────────────────────────────────
# FastAPI Dependencies
# ────────────────────────────────────────────

def get_current_user(
    credentials: HTTPAuthorizationCredentials | None = Security(security),
    db: Session = Depends(get_db),
) -> User:
    """Resolve the authenticated user from the Authorization bearer token."""
    if credentials is None or not credentials.credentials:
        raise _unauthorized("Not authenticated")

    payload = JWTAuth.decode_token(credentials.credentials)
    user = db.get(User, JWTAuth.get_user_id(payload))
    if user is None:
        raise _unauthorized("User no longer exists")
    return user
