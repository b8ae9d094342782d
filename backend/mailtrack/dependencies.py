"""
MailTrack Backend: Request Dependencies
=========================================

What:  FastAPI dependencies resolving the authenticated user and gating
       super-admin actions.
How:   `HTTPBearer(auto_error=False)` extracts the token so the error
       message and status stay under our control; the user is reloaded
       from the database on every request (with their department) so
       role filters see current data. The username is left on
       request.state for the access log.
"""

import uuid

from fastapi import Depends, Request
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer
from sqlalchemy.ext.asyncio import AsyncSession

from mailtrack.database import get_db_session
from mailtrack.exceptions import AuthenticationError, PermissionDeniedError
from mailtrack.models.enums import Role
from mailtrack.models.user import User
from mailtrack.services.auth_service import auth_service, decode_token

bearer_scheme = HTTPBearer(auto_error=False)


async def get_current_user(
    request: Request,
    credentials: HTTPAuthorizationCredentials | None = Depends(bearer_scheme),
    db: AsyncSession = Depends(get_db_session),
) -> User:
    if credentials is None or credentials.scheme.lower() != "bearer" or not credentials.credentials:
        raise AuthenticationError(message="Missing or malformed Authorization header")

    payload = decode_token(credentials.credentials)
    try:
        user_id = uuid.UUID(payload["sub"])
    except ValueError:
        raise AuthenticationError(message="Invalid or expired token")

    user = await auth_service.get_user(db, user_id)
    if user is None:
        raise AuthenticationError(message="Invalid or expired token")

    # Picked up by the access log
    request.state.username = user.username
    return user


async def require_super_admin(user: User = Depends(get_current_user)) -> User:
    if user.role != Role.SUPER_ADMIN.value:
        raise PermissionDeniedError()
    return user
