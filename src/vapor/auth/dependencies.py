"""FastAPI dependencies resolving the bearer token to a user."""

from __future__ import annotations

import jwt
from fastapi import Depends, Security
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer
from sqlalchemy.ext.asyncio import AsyncSession

from vapor.audit import set_actor
from vapor.auth.jwt import verify_token
from vapor.auth.service import get_user_by_id
from vapor.database import get_session
from vapor.db.models import User
from vapor.errors import AuthenticationError, ForbiddenError

_bearer = HTTPBearer()


async def get_current_user(
    credentials: HTTPAuthorizationCredentials = Security(_bearer),
    db: AsyncSession = Depends(get_session),
) -> User:
    """
    The user behind a valid access token, also bound as the actor on audit rows.

    A missing header is rejected by ``HTTPBearer`` itself.
    """
    try:
        claims = verify_token(credentials.credentials, expected_type="access")
    except jwt.InvalidTokenError as e:
        raise AuthenticationError(str(e)) from e

    user = await get_user_by_id(db, int(claims["sub"]))
    if user is None:
        msg = "User not found"
        raise AuthenticationError(msg)
    set_actor(user.username)
    return user


async def get_current_admin(user: User = Depends(get_current_user)) -> User:
    if not user.is_admin:
        msg = "Admin role required"
        raise ForbiddenError(msg)
    return user
