"""
MailTrack Backend: Authentication Service
===========================================

What:  Password hashing, JWT issue/verify, and the signup / login /
       refresh workflows.
How:   bcrypt for password hashes (configurable rounds), python-jose for
       HS256 tokens. Access and refresh tokens share the signing secret
       and carry a `type` claim so one cannot stand in for the other.
Who:   Called by routes/auth.py; `decode_token` is also used by the
       request dependencies in dependencies.py.

Token Claims:
    sub       user id (string UUID)
    username  login name at issue time
    role      super_admin | rd_department | other_department
    iss       settings.jwt_issuer, checked on decode
    iat, exp  issue and expiry times
    type      "access" or "refresh"
"""

import logging
import uuid
from datetime import datetime, timedelta, timezone
from typing import Any, Dict

import bcrypt
from jose import JWTError, jwt
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from mailtrack.config import settings
from mailtrack.exceptions import AuthenticationError, DuplicateError, ValidationError
from mailtrack.models.user import User
from mailtrack.schemas.auth import (
    DepartmentBrief,
    SignupRequest,
    TokenResponse,
    UserResponse,
)

logger = logging.getLogger(__name__)

ACCESS_TOKEN = "access"
REFRESH_TOKEN = "refresh"


# ══════════════════════════════════════════════════════════════════════════
# Password Hashing
# ══════════════════════════════════════════════════════════════════════════


def get_password_hash(password: str) -> str:
    # bcrypt only looks at the first 72 bytes
    password_bytes = password.encode("utf-8")[:72]
    hashed = bcrypt.hashpw(password_bytes, bcrypt.gensalt(rounds=settings.bcrypt_rounds))
    return hashed.decode("utf-8")


def verify_password(plain_password: str, hashed_password: str) -> bool:
    password_bytes = plain_password.encode("utf-8")[:72]
    try:
        return bcrypt.checkpw(password_bytes, hashed_password.encode("utf-8"))
    except ValueError:
        # Malformed stored hash
        logger.warning("Stored password hash could not be parsed")
        return False


# ══════════════════════════════════════════════════════════════════════════
# Tokens
# ══════════════════════════════════════════════════════════════════════════


def _create_token(user: User, token_type: str, expires_in: int) -> str:
    now = datetime.now(timezone.utc)
    claims = {
        "sub": str(user.id),
        "username": user.username,
        "role": user.role,
        "iss": settings.jwt_issuer,
        "iat": now,
        "exp": now + timedelta(seconds=expires_in),
        "type": token_type,
    }
    return jwt.encode(claims, settings.jwt_secret, algorithm=settings.jwt_algorithm)


def create_access_token(user: User) -> str:
    return _create_token(user, ACCESS_TOKEN, settings.access_token_expires_in)


def create_refresh_token(user: User) -> str:
    return _create_token(user, REFRESH_TOKEN, settings.refresh_token_expires_in)


def decode_token(token: str, expected_type: str = ACCESS_TOKEN) -> Dict[str, Any]:
    """
    Verify signature, issuer, expiry and token type.

    Raises:
        AuthenticationError: For any token that fails verification.
    """
    try:
        payload = jwt.decode(
            token,
            settings.jwt_secret,
            algorithms=[settings.jwt_algorithm],
            issuer=settings.jwt_issuer,
        )
    except JWTError as e:
        logger.info("Rejected %s token: %s", expected_type, str(e))
        raise AuthenticationError(message="Invalid or expired token")

    if payload.get("type") != expected_type:
        raise AuthenticationError(message="Invalid token type")
    if not payload.get("sub"):
        raise AuthenticationError(message="Invalid or expired token")
    return payload


def user_to_response(user: User) -> UserResponse:
    department = None
    if user.department is not None:
        department = DepartmentBrief(
            id=user.department.id,
            name=user.department.name,
            code=user.department.code,
        )
    return UserResponse(
        id=user.id,
        username=user.username,
        role=user.role,
        department=department,
        created_at=user.created_at,
    )


# ══════════════════════════════════════════════════════════════════════════
# Workflows
# ══════════════════════════════════════════════════════════════════════════


class AuthService:
    """Account creation and token exchange."""

    async def get_user(self, db: AsyncSession, user_id: uuid.UUID) -> User | None:
        result = await db.execute(select(User).where(User.id == user_id))
        return result.scalar_one_or_none()

    async def get_user_by_username(self, db: AsyncSession, username: str) -> User | None:
        result = await db.execute(select(User).where(User.username == username))
        return result.scalar_one_or_none()

    async def create_user(
        self, db: AsyncSession, username: str, password: str, role: str
    ) -> User:
        """
        Insert a new account after checking the username is free.

        Raises:
            DuplicateError: Username already taken (→ 400)
        """
        if await self.get_user_by_username(db, username) is not None:
            raise DuplicateError(message="Username already exists", field="username")

        user = User(
            username=username,
            password_hash=get_password_hash(password),
            role=role,
        )
        db.add(user)
        await db.flush()
        logger.info("User created: %s (role=%s)", user.username, user.role)
        return user

    async def signup(self, db: AsyncSession, data: SignupRequest) -> UserResponse:
        user = await self.create_user(db, data.username, data.password, data.role.value)
        return UserResponse(id=user.id, username=user.username, role=user.role, created_at=user.created_at)

    def _issue_tokens(self, user: User) -> TokenResponse:
        return TokenResponse(
            access_token=create_access_token(user),
            refresh_token=create_refresh_token(user),
            access_expires_in=settings.access_token_expires_in,
            refresh_expires_in=settings.refresh_token_expires_in,
            user=user_to_response(user),
        )

    async def login(self, db: AsyncSession, username: str, password: str) -> TokenResponse:
        """
        Exchange credentials for an access/refresh token pair.

        Unknown usernames and wrong passwords produce the same message.
        """
        user = await self.get_user_by_username(db, username)
        if user is None or not verify_password(password, user.password_hash):
            logger.info("Failed login for username=%s", username)
            raise ValidationError(message="Invalid username or password")

        logger.info("User logged in: %s", user.username)
        return self._issue_tokens(user)

    async def refresh(self, db: AsyncSession, refresh_token: str) -> TokenResponse:
        """
        Issue a fresh token pair from a valid refresh token.

        The user is reloaded so deleted accounts cannot keep refreshing.
        """
        payload = decode_token(refresh_token, expected_type=REFRESH_TOKEN)
        try:
            user_id = uuid.UUID(payload["sub"])
        except ValueError:
            raise AuthenticationError(message="Invalid refresh token")

        user = await self.get_user(db, user_id)
        if user is None:
            raise AuthenticationError(message="User no longer exists")
        return self._issue_tokens(user)


auth_service = AuthService()
