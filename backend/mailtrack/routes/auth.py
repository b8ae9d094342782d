"""
MailTrack Backend: Auth Routes
================================

What:  Account signup, login, token refresh and the current-user profile.
"""

import logging

from fastapi import APIRouter, Depends
from sqlalchemy.ext.asyncio import AsyncSession

from mailtrack.database import get_db_session
from mailtrack.dependencies import get_current_user
from mailtrack.models.user import User
from mailtrack.schemas.auth import (
    LoginRequest,
    RefreshRequest,
    SignupRequest,
    SignupResponse,
    TokenResponse,
    UserResponse,
)
from mailtrack.schemas.common import ErrorResponse
from mailtrack.services.auth_service import auth_service, user_to_response

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/auth", tags=["Auth"])


@router.post(
    "/signup",
    status_code=201,
    response_model=SignupResponse,
    responses={400: {"description": "Invalid input or username taken", "model": ErrorResponse}},
    summary="Create a user account",
)
async def signup(
    body: SignupRequest,
    db: AsyncSession = Depends(get_db_session),
) -> SignupResponse:
    user = await auth_service.signup(db, body)
    return SignupResponse(user=user)


@router.post(
    "/login",
    response_model=TokenResponse,
    responses={400: {"description": "Invalid username or password", "model": ErrorResponse}},
    summary="Exchange credentials for access and refresh tokens",
)
async def login(
    body: LoginRequest,
    db: AsyncSession = Depends(get_db_session),
) -> TokenResponse:
    return await auth_service.login(db, body.username, body.password)


@router.post(
    "/refresh",
    response_model=TokenResponse,
    responses={401: {"description": "Invalid or expired refresh token", "model": ErrorResponse}},
    summary="Issue a new token pair from a refresh token",
)
async def refresh(
    body: RefreshRequest,
    db: AsyncSession = Depends(get_db_session),
) -> TokenResponse:
    return await auth_service.refresh(db, body.refresh_token)


@router.get("/me", response_model=UserResponse, summary="Profile of the authenticated user")
async def me(user: User = Depends(get_current_user)) -> UserResponse:
    return user_to_response(user)
