"""Auth routes: signup through the auth provider, current user."""

import logging

from fastapi import APIRouter, Depends
from sqlalchemy.ext.asyncio import AsyncSession

from storefront.db.session import get_db
from storefront.schemas.auth import AuthUser, SignupRequest
from storefront.services.auth_service import get_current_user, is_admin
from storefront.services.user_service import get_profile, signup

logger = logging.getLogger(__name__)
router = APIRouter(prefix="/api/auth", tags=["auth"])


@router.post("/signup", status_code=201)
async def signup_user(data: SignupRequest, db: AsyncSession = Depends(get_db)):
    user = await signup(db, data)
    logger.info(f"New signup: {user['id']}")
    return {"message": "Signup successful. Please check your email to confirm your account.", "user": user}


@router.get("/me")
async def me(user: AuthUser = Depends(get_current_user), db: AsyncSession = Depends(get_db)):
    profile = await get_profile(db, user.id)
    return {
        "id": user.id,
        "email": user.email,
        "full_name": (profile.full_name if profile else None) or user.full_name,
        "role": profile.role if profile else None,
        "is_admin": await is_admin(user, db),
    }
