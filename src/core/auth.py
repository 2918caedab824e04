"""Authentication module for bearer JWT validation."""
import logging

import jwt
from fastapi import Depends, HTTPException, status
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer
from sqlalchemy import select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from core.config import Settings, get_settings
from db.session import get_async_session
from models.user import User

logger = logging.getLogger(__name__)

DEV_USER_EXTERNAL_ID = "dev|local-development-user"

# HTTP Bearer token scheme
security = HTTPBearer(auto_error=False)


def _unauthorized(detail: str) -> HTTPException:
    return HTTPException(
        status_code=status.HTTP_401_UNAUTHORIZED,
        detail=detail,
        headers={"WWW-Authenticate": "Bearer"},
    )


def decode_jwt(token: str, settings: Settings) -> dict:
    """
    Decode and validate a JWT issued by the identity provider.

    Raises:
        HTTPException: If the token is invalid or expired, or no secret is configured.
    """
    if not settings.jwt_secret:
        logger.error("JWT_SECRET is not configured; rejecting bearer token")
        raise _unauthorized("Could not validate credentials")

    try:
        return jwt.decode(
            token,
            settings.jwt_secret,
            algorithms=[settings.jwt_algorithm],
        )
    except jwt.ExpiredSignatureError:
        raise _unauthorized("Token has expired")
    except jwt.PyJWTError as e:
        # Log full details for debugging (server-side only)
        logger.warning("JWT validation failed: %s", e)
        raise _unauthorized("Invalid token")


async def get_or_create_user(
    db: AsyncSession,
    external_id: str,
    email: str | None = None,
    name: str | None = None,
) -> User:
    """
    Get existing user or create new one from token claims.

    Handles race conditions where concurrent requests try to create the same
    user: on IntegrityError (unique external_id) the insert is rolled back and
    the existing user is fetched.

    Note: Uses flush(), not commit. Session generator handles commit at request end.
    """
    result = await db.execute(select(User).where(User.external_id == external_id))
    user = result.scalar_one_or_none()

    if user is None:
        user = User(external_id=external_id, email=email, name=name)
        db.add(user)
        try:
            await db.flush()
        except IntegrityError:
            # Race condition: another request created the user between our SELECT
            # and INSERT. Rollback and fetch the existing user.
            await db.rollback()
            result = await db.execute(select(User).where(User.external_id == external_id))
            user = result.scalar_one()

    changed = False
    if email and user.email != email:
        user.email = email
        changed = True
    if name and user.name != name:
        user.name = name
        changed = True
    if changed:
        await db.flush()

    return user


async def get_or_create_dev_user(db: AsyncSession) -> User:
    """Get or create a development user for DEV_MODE."""
    return await get_or_create_user(
        db,
        external_id=DEV_USER_EXTERNAL_ID,
        email="dev@localhost",
        name="Developer",
    )


async def get_current_user(
    credentials: HTTPAuthorizationCredentials | None = Depends(security),
    db: AsyncSession = Depends(get_async_session),
    settings: Settings = Depends(get_settings),
) -> User:
    """
    Dependency that validates the bearer token and returns the current user.

    In DEV_MODE, bypasses auth and returns a development user.
    """
    if settings.dev_mode:
        return await get_or_create_dev_user(db)

    if credentials is None:
        raise _unauthorized("Not authenticated")

    payload = decode_jwt(credentials.credentials, settings)

    external_id = payload.get("sub")
    if not external_id:
        raise _unauthorized("Invalid token: missing sub claim")

    return await get_or_create_user(
        db,
        external_id=external_id,
        email=payload.get("email"),
        name=payload.get("name"),
    )
