"""Access-token verification, current-user dependencies and the admin check."""

import jwt
from fastapi import Depends, Request
from sqlalchemy.ext.asyncio import AsyncSession

from storefront.config import get_settings
from storefront.constants import ADMIN_CLAIM_ROLE, ADMIN_PROFILE_ROLE, COOKIE_NAME
from storefront.db.session import get_db
from storefront.exceptions import AuthenticationError, PermissionDeniedError
from storefront.models.profile import Profile
from storefront.schemas.auth import AuthUser


def extract_token(request: Request) -> str | None:
    """Bearer header first, then the auth provider's session cookie."""
    header = request.headers.get("Authorization")
    if header:
        scheme, _, token = header.partition(" ")
        if scheme.lower() == "bearer" and token.strip():
            return token.strip()
    return request.cookies.get(COOKIE_NAME)


def _decode_jwt(token: str) -> dict:
    settings = get_settings()
    return jwt.decode(
        token,
        settings.supabase_jwt_secret,
        algorithms=["HS256"],
        audience=settings.supabase_jwt_audience,
        options={"require": ["exp", "sub"]},
    )


def _user_from_claims(payload: dict) -> AuthUser:
    return AuthUser(
        id=payload["sub"],
        email=payload.get("email"),
        app_metadata=payload.get("app_metadata") or {},
        user_metadata=payload.get("user_metadata") or {},
        expires_at=payload.get("exp"),
    )


async def get_current_user(request: Request) -> AuthUser:
    """FastAPI dependency: verify the access token and return its user, or raise 401."""
    token = extract_token(request)
    if not token:
        raise AuthenticationError()
    try:
        return _user_from_claims(_decode_jwt(token))
    except (jwt.InvalidTokenError, KeyError):
        raise AuthenticationError("Invalid or expired session")


async def get_optional_user(request: Request) -> AuthUser | None:
    """Like get_current_user but returns None instead of raising 401."""
    token = extract_token(request)
    if not token:
        return None
    try:
        return _user_from_claims(_decode_jwt(token))
    except (jwt.InvalidTokenError, KeyError):
        return None


async def is_admin(user: AuthUser, db: AsyncSession) -> bool:
    """Admin if the token's app_metadata says so, else if the profile row does."""
    if user.claim_role == ADMIN_CLAIM_ROLE:
        return True
    profile = await db.get(Profile, user.id)
    return profile is not None and profile.role == ADMIN_PROFILE_ROLE


async def require_admin(
    user: AuthUser = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
) -> AuthUser:
    """FastAPI dependency: the current user, or 403 when not an admin."""
    if not await is_admin(user, db):
        raise PermissionDeniedError()
    return user
