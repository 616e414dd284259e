"""Profile and user-listing operations."""

import logging

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from storefront.constants import DEFAULT_PROFILE_ROLE
from storefront.models.profile import Profile
from storefront.schemas.auth import SignupRequest, UserListing
from storefront.services import supabase_auth

logger = logging.getLogger(__name__)


async def get_profile(db: AsyncSession, user_id: str) -> Profile | None:
    return await db.get(Profile, user_id)


async def upsert_profile(
    db: AsyncSession, user_id: str, email: str, full_name: str | None
) -> Profile:
    profile = await db.get(Profile, user_id)
    if profile:
        profile.email = email
        profile.full_name = full_name or profile.full_name
    else:
        profile = Profile(id=user_id, email=email, full_name=full_name, role=DEFAULT_PROFILE_ROLE)
        db.add(profile)
    await db.commit()
    return profile


async def signup(db: AsyncSession, data: SignupRequest) -> dict:
    """Register with the auth provider, then mirror the user into profiles.

    Provider rejections propagate as AuthProviderError before any row is written.
    A failed profile write is logged and does not undo the signup.
    """
    user = await supabase_auth.sign_up(data.email, data.password, {"full_name": data.name})
    user_id = user.get("id")
    email = user.get("email") or data.email

    if user_id:
        try:
            await upsert_profile(db, user_id, email, data.name)
        except SQLAlchemyError as e:
            await db.rollback()
            logger.error(f"Profile creation failed for new user {user_id}: {e}")
    else:
        logger.warning(f"Auth provider returned no user id for signup of {data.email}")

    return {"id": user_id, "email": email, "name": data.name}


def _format_user(user: dict) -> UserListing:
    metadata = user.get("user_metadata") or {}
    email = user.get("email")
    return UserListing(
        id=user["id"],
        full_name=metadata.get("full_name") or (email.split("@")[0] if email else "Unknown"),
        email=email,
        created_at=user.get("created_at"),
    )


async def list_users() -> list[UserListing]:
    users = await supabase_auth.list_users()
    return [_format_user(u) for u in users]
